#!/usr/bin/env python3
"""
Private Voting System
=====================
Boundary facade wiring the hash oracle, proof oracle, vote ledger and voting
session together, plus the proposal registry and the wallet capability.

Callers (CLI, HTTP layer, tests) construct one instance per process or per
test and pass it around explicitly.
"""

import asyncio
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from config.config import SystemConfig
from ledger.vote_ledger import VoteLedger, LedgerError, OperationForbiddenError
from utils.utils import PerformanceMonitor
from voting.secret_store import SecretStore, FileSecretStore, InMemorySecretStore, VoterIdentity
from voting.session import VotingSession, SessionResult
from wallet.signer import Signer, ContractDeployment, WalletError
from zk.zk_proofs import (
    HashOracle, FieldHasher, ProofOracle, SimulatedProofSystem,
    compute_nullifier, to_hex64
)

logger = logging.getLogger(__name__)

# ============================================================================
# PROPOSALS
# ============================================================================


@dataclass(frozen=True)
class Proposal:
    id: int
    content_hash: int
    title: str
    description: str = ""
    status: str = "active"
    end_date: Optional[str] = None

    def to_dict(self, total_votes: int = 0) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'endDate': self.end_date,
            'contentHash': to_hex64(self.content_hash),
            'totalVotes': total_votes
        }


class ProposalRegistry:
    """Immutable proposals by id"""

    def __init__(self, hasher: HashOracle):
        self.hasher = hasher
        self._proposals: Dict[int, Proposal] = {}

    def content_hash(self, title: str, description: str) -> int:
        # Text is hashed down to short chunks first so arbitrary lengths fit the field
        title_digest = hashlib.sha256(title.encode('utf-8')).digest()[:31]
        body_digest = hashlib.sha256(description.encode('utf-8')).digest()[:31]
        return self.hasher.hash([title_digest, body_digest])

    def create(self, proposal_id: int, title: str, description: str = "",
               end_date: Optional[str] = None) -> Proposal:
        if proposal_id in self._proposals:
            raise ValueError(f"Proposal {proposal_id} already exists")
        proposal = Proposal(
            id=proposal_id,
            content_hash=self.content_hash(title, description),
            title=title,
            description=description,
            end_date=end_date
        )
        self._proposals[proposal_id] = proposal
        return proposal

    def get(self, proposal_id: int) -> Optional[Proposal]:
        return self._proposals.get(proposal_id)

    def all(self) -> List[Proposal]:
        return [self._proposals[k] for k in sorted(self._proposals)]

    @classmethod
    def with_demo_proposal(cls, hasher: HashOracle) -> 'ProposalRegistry':
        registry = cls(hasher)
        registry.create(
            1,
            'Should we increase the community fund allocation by 20%?',
            'This proposal suggests increasing the community fund from 100,000 '
            'tokens to 120,000 tokens to support more community initiatives and grants.',
            end_date='2025-12-31'
        )
        return registry


# ============================================================================
# FACADE
# ============================================================================


class PrivateVotingSystem:
    """Single entry point for casting votes, reading results and administration"""

    def __init__(
        self,
        config: Optional[SystemConfig] = None,
        ledger=None,
        hasher: Optional[HashOracle] = None,
        prover: Optional[ProofOracle] = None,
        secret_store: Optional[SecretStore] = None,
        signer: Optional[Signer] = None,
        proposals: Optional[ProposalRegistry] = None
    ):
        self.config = config or SystemConfig()
        self.hasher = hasher or FieldHasher()
        self.prover = prover or SimulatedProofSystem(self.config.zk_config, self.hasher)
        self.ledger = ledger if ledger is not None else self._build_ledger()
        self.secret_store = secret_store or FileSecretStore(self.config.secret_file)
        self.signer = signer
        self.proposals = proposals or ProposalRegistry.with_demo_proposal(self.hasher)
        self.monitor = PerformanceMonitor()

        self.session = VotingSession(
            ledger=self.ledger,
            hasher=self.hasher,
            prover=self.prover,
            secret_store=self.secret_store,
            config=self.config,
            monitor=self.monitor
        )

        logger.info(f"Private voting system ready (mode={self.config.mode}, "
                    f"network={self.config.network})")

    def _build_ledger(self) -> VoteLedger:
        """Fresh ledger, or the one restored from the configured snapshot file"""
        snapshot_file = self.config.ledger_config.snapshot_file
        if snapshot_file is None or not snapshot_file.exists():
            return VoteLedger(self.prover, self.config)

        try:
            with open(snapshot_file, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise LedgerError(f"Cannot read ledger snapshot {snapshot_file}: {e}") from e

        return VoteLedger.from_snapshot(data, self.prover, self.config)

    def save_snapshot(self) -> Optional[Path]:
        """Persist the local ledger to the configured snapshot file, if any"""
        snapshot_file = self.config.ledger_config.snapshot_file
        if snapshot_file is None or not isinstance(self.ledger, VoteLedger):
            return None
        return self.ledger.save_snapshot(snapshot_file)

    @property
    def mode(self) -> str:
        return self.config.response_mode

    async def cast_vote(self, proposal_id: int, vote_choice: int) -> SessionResult:
        return await self.session.cast_vote(proposal_id, vote_choice)

    def get_results(self, proposal_id: int) -> Dict[str, int]:
        return {'proposal_id': proposal_id, 'total': self.ledger.get_tally(proposal_id)}

    def has_voted(self, nullifier) -> bool:
        return self.ledger.has_voted(nullifier)

    def reset_demo_state(self):
        if self.config.is_production:
            raise OperationForbiddenError("Reset not available in production mode")
        self.ledger.reset()

    def list_proposals(self) -> List[Dict[str, Any]]:
        return [p.to_dict(total_votes=self.ledger.get_tally(p.id))
                for p in self.proposals.all()]

    def connect_wallet(self) -> str:
        if self.signer is None:
            raise WalletError(
                "Aztec wallet not detected. Please install an Aztec-compatible wallet.")
        return self.signer.request_accounts()[0]

    def deploy_contract(self, bytecode: str, abi: List[Dict[str, Any]],
                        args: Optional[Dict[str, Any]] = None) -> ContractDeployment:
        if self.signer is None:
            raise WalletError("Please connect your wallet first")
        return self.signer.deploy_contract(bytecode, abi, args)

    def get_system_metrics(self) -> Dict[str, Any]:
        return {
            'mode': self.config.mode,
            'network': self.config.network,
            'proposals': len(self.proposals.all()),
            'performance': self.monitor.get_summary()
        }


# ============================================================================
# DEMONSTRATION
# ============================================================================


async def demonstrate(config: Optional[SystemConfig] = None):
    """Walk through the core voting scenarios against a fresh in-memory ledger"""
    config = config or SystemConfig()
    hasher = FieldHasher()
    prover = SimulatedProofSystem(config.zk_config, hasher)
    ledger = VoteLedger(prover, config)

    def voter(secret: int) -> PrivateVotingSystem:
        return PrivateVotingSystem(
            config, ledger=ledger, hasher=hasher, prover=prover,
            secret_store=InMemorySecretStore(VoterIdentity(secret=secret)))

    print("\n" + "=" * 80)
    print("PRIVATE VOTING DEMONSTRATION")
    print("=" * 80 + "\n")

    start_time = time.time()

    print("[A] Voter S=12345 votes YES on proposal 1, then tries again")
    alice = voter(12345)
    nullifier = compute_nullifier(hasher, 12345, 1)
    print(f"    nullifier: {to_hex64(nullifier)[:18]}...")
    first = await alice.cast_vote(1, 1)
    print(f"    first attempt:  {first.status.value} (tx {first.receipt.tx_hash[:18]}...)")
    second = await alice.cast_vote(1, 1)
    print(f"    second attempt: {second.status.value}")
    print(f"    tally(1) = {ledger.get_tally(1)}\n")

    print("[B] Voters S=111 and S=222 vote on proposal 1")
    for secret in (111, 222):
        result = await voter(secret).cast_vote(1, secret % 2)
        print(f"    S={secret}: {result.status.value}")
    print(f"    tally(1) = {ledger.get_tally(1)}\n")

    print("[C] Voter S=333 submits an out-of-range vote (2)")
    result = await voter(333).cast_vote(1, 2)
    print(f"    {result.status.value}: {result.error}")
    print(f"    tally(1) = {ledger.get_tally(1)}\n")

    print("[D] Reset while in production mode")
    production = PrivateVotingSystem(
        SystemConfig(mode="production", contract_address="0xdemo"),
        secret_store=InMemorySecretStore())
    try:
        production.reset_demo_state()
    except OperationForbiddenError as e:
        print(f"    rejected: {e}\n")

    print(f"Completed in {time.time() - start_time:.2f}s")
    print("=" * 80 + "\n")

    return ledger.snapshot()


if __name__ == "__main__":
    asyncio.run(demonstrate())
