import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import uvicorn
import yaml

from api.server import create_app
from config.config import SystemConfig, load_config, save_config, config_to_dict
from integrated_voting_system import PrivateVotingSystem, demonstrate
from ledger.http_client import HttpLedgerClient
from ledger.vote_ledger import LedgerError
from utils.utils import setup_logging, create_performance_report
from voting.secret_store import FileSecretStore
from voting.session import SessionStatus
from wallet.signer import JsonRpcSigner, WalletError

logger = logging.getLogger(__name__)

VOTE_CHOICES = {'yes': 1, 'no': 0, '1': 1, '0': 0}


def run_server(config: SystemConfig):
    system = PrivateVotingSystem(config)
    app = create_app(system)

    logger.info(f"Private Voting API on port {config.server_config.port} "
                f"(mode={config.mode}, network={config.network})")
    try:
        uvicorn.run(app, host=config.server_config.host,
                    port=config.server_config.port, log_level="info")
    finally:
        snapshot = system.save_snapshot()
        if snapshot:
            logger.info(f"Ledger snapshot written to {snapshot}")


async def run_vote(config: SystemConfig, api_url: str, proposal_id: int, choice: int,
                   passphrase: str = None) -> int:
    if not config.zk_config.verification_key:
        logger.warning("zk_proofs.verification_key is not set; the server will "
                       "reject proofs unless it shares this client's key")
    ledger = HttpLedgerClient(api_url, timeout=config.ledger_config.request_timeout)
    system = PrivateVotingSystem(
        config,
        ledger=ledger,
        secret_store=FileSecretStore(config.secret_file, passphrase=passphrase)
    )

    result = await system.cast_vote(proposal_id, choice)
    print(result.message)
    if result.status is SessionStatus.VOTED:
        print(f"Transaction: {result.receipt.tx_hash}")
        logger.debug(create_performance_report(system.monitor))
    return 1 if result.status is SessionStatus.FAILED else 0


def show_results(config: SystemConfig, api_url: str, proposal_id: int) -> int:
    ledger = HttpLedgerClient(api_url, timeout=config.ledger_config.request_timeout)
    try:
        total = ledger.get_tally(proposal_id)
    except LedgerError as e:
        print(f"Error: {e}")
        return 1
    print(f"Proposal {proposal_id}: {total} votes")
    return 0


def run_deploy(config: SystemConfig, artifact_path: Path, signer=None) -> int:
    """Deploy a compiled contract artifact ({bytecode, abi, args}) through the wallet"""
    try:
        with open(artifact_path, 'r') as f:
            artifact = json.load(f)
    except (OSError, ValueError) as e:
        print(f"Error: cannot read contract artifact {artifact_path}: {e}")
        return 1

    system = PrivateVotingSystem(
        config,
        secret_store=FileSecretStore(config.secret_file),
        signer=signer or JsonRpcSigner(config.rpc_url, timeout=config.ledger_config.request_timeout)
    )
    try:
        address = system.connect_wallet()
        print(f"Wallet connected: {address[:6]}...{address[-4:]}")
        deployment = system.deploy_contract(
            artifact['bytecode'], artifact.get('abi', []), artifact.get('args'))
    except KeyError:
        print("Error: contract artifact has no bytecode")
        return 1
    except WalletError as e:
        print(f"Error: {e}")
        return 1

    print(f"Deployment transaction: {deployment.tx_hash}")
    if deployment.address:
        print(f"Contract address: {deployment.address}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Private voting demo system")
    parser.add_argument('--config', type=Path, default=Path('config.yaml'),
                        help='Path to YAML configuration')
    parser.add_argument('--log-level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])

    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('serve', help='Run the HTTP API')
    subparsers.add_parser('demo', help='Run the scripted voting demonstration')

    vote = subparsers.add_parser('vote', help='Cast a vote against a running API')
    vote.add_argument('choice', choices=sorted(VOTE_CHOICES))
    vote.add_argument('--proposal', type=int, default=1)
    vote.add_argument('--api-url', default='http://localhost:3000')
    vote.add_argument('--passphrase', default=None,
                      help='Seal the voter secret file with this passphrase')

    results = subparsers.add_parser('results', help='Show the tally for a proposal')
    results.add_argument('--proposal', type=int, default=1)
    results.add_argument('--api-url', default='http://localhost:3000')

    deploy = subparsers.add_parser('deploy', help='Deploy the voting contract through the wallet RPC')
    deploy.add_argument('artifact', type=Path,
                        help='JSON file with bytecode, abi and optional constructor args')

    show = subparsers.add_parser('show-config', help='Print the effective configuration')
    show.add_argument('--write', action='store_true',
                      help='Also write it back to the config path')

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    setup_logging(args.log_level, log_dir=config.log_dir)

    if args.command == 'serve':
        run_server(config)
        return 0
    if args.command == 'demo':
        asyncio.run(demonstrate(config))
        return 0
    if args.command == 'vote':
        return asyncio.run(run_vote(config, args.api_url, args.proposal,
                                    VOTE_CHOICES[args.choice], args.passphrase))
    if args.command == 'results':
        return show_results(config, args.api_url, args.proposal)
    if args.command == 'deploy':
        return run_deploy(config, args.artifact)
    if args.command == 'show-config':
        print(yaml.safe_dump(config_to_dict(config), default_flow_style=False))
        if args.write:
            save_config(config, args.config)
            print(f"Written to {args.config}")
        return 0
    return 1


if __name__ == "__main__":
    sys.exit(main())
