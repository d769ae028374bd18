from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any
import logging
import os

import yaml

logger = logging.getLogger(__name__)

VALID_MODES = ("development", "production")


@dataclass
class ZKConfig:
    # Statement shape and prover behaviour
    bind_commitment_to_proposal: bool = False
    simulated_proving_delay: float = 0.0
    proof_ttl_seconds: int = 3600
    verification_key: Optional[str] = None  # hex, random per process if unset


@dataclass
class LedgerConfig:
    snapshot_file: Optional[Path] = None
    request_timeout: float = 10.0

    def __post_init__(self):
        if self.snapshot_file is not None:
            self.snapshot_file = Path(self.snapshot_file)


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    frontend_url: str = "*"


@dataclass
class SystemConfig:
    mode: str = "development"
    network: str = "testnet"
    rpc_url: str = "https://api.aztec.network"
    contract_address: Optional[str] = None
    secret_file: Path = field(default_factory=lambda: Path("keys/voter_secret.json"))

    zk_config: ZKConfig = field(default_factory=ZKConfig)
    ledger_config: LedgerConfig = field(default_factory=LedgerConfig)
    server_config: ServerConfig = field(default_factory=ServerConfig)

    log_dir: Path = field(default_factory=lambda: Path("logs"))
    results_dir: Path = field(default_factory=lambda: Path("results"))
    enable_debug_mode: bool = False

    def __post_init__(self):
        if self.mode not in VALID_MODES:
            raise ValueError(
                f"Unknown mode {self.mode!r}, expected one of {VALID_MODES}")

        self.secret_file = Path(self.secret_file)
        self.log_dir = Path(self.log_dir)
        self.results_dir = Path(self.results_dir)

        if self.is_production and not self.contract_address:
            logger.warning(
                "CONTRACT_ADDRESS not set while running in production mode")

    @property
    def is_production(self) -> bool:
        return self.mode == "production"

    @property
    def response_mode(self) -> str:
        """Mode label reported to clients"""
        return "production" if self.is_production else "demo"


def _apply_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    # first name set wins
    env_map = {
        'mode': ('MODE', 'VOTING_MODE'),
        'network': ('AZTEC_NETWORK', 'VOTING_NETWORK'),
        'rpc_url': ('AZTEC_RPC_URL',),
        'contract_address': ('CONTRACT_ADDRESS',),
    }
    for key, env_names in env_map.items():
        for env_name in env_names:
            value = os.environ.get(env_name)
            if value:
                config_data[key] = value
                break

    server_data = config_data.setdefault('server', {})
    if os.environ.get('PORT'):
        server_data['port'] = int(os.environ['PORT'])
    if os.environ.get('FRONTEND_URL'):
        server_data['frontend_url'] = os.environ['FRONTEND_URL']

    return config_data


def _build_config(config_data: Dict[str, Any]) -> SystemConfig:
    zk_data = config_data.get('zk_proofs', {})
    zk_config = ZKConfig(
        bind_commitment_to_proposal=zk_data.get(
            'bind_commitment_to_proposal', False),
        simulated_proving_delay=float(
            zk_data.get('simulated_proving_delay', 0.0)),
        proof_ttl_seconds=int(zk_data.get('proof_ttl_seconds', 3600)),
        verification_key=zk_data.get('verification_key')
    )

    ledger_data = config_data.get('ledger', {})
    ledger_config = LedgerConfig(
        snapshot_file=ledger_data.get('snapshot_file'),
        request_timeout=float(ledger_data.get('request_timeout', 10.0))
    )

    server_data = config_data.get('server', {})
    server_config = ServerConfig(
        host=server_data.get('host', '0.0.0.0'),
        port=int(server_data.get('port', 3000)),
        frontend_url=server_data.get('frontend_url', '*')
    )

    return SystemConfig(
        mode=config_data.get('mode', 'development'),
        network=config_data.get('network', 'testnet'),
        rpc_url=config_data.get('rpc_url', 'https://api.aztec.network'),
        contract_address=config_data.get('contract_address'),
        secret_file=Path(config_data.get(
            'secret_file', 'keys/voter_secret.json')),
        zk_config=zk_config,
        ledger_config=ledger_config,
        server_config=server_config,
        log_dir=Path(config_data.get('log_dir', 'logs')),
        results_dir=Path(config_data.get('results_dir', 'results')),
        enable_debug_mode=config_data.get('enable_debug_mode', False)
    )


def load_config(config_path: Optional[Path] = None) -> SystemConfig:
    """Load configuration from file and environment, or return defaults"""
    if config_path is None:
        config_path = Path("config.yaml")

    config_data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(
                f"Could not load config file {config_path}: {e}. Using defaults")
            config_data = {}

    return _build_config(_apply_env_overrides(config_data))


def config_to_dict(config: SystemConfig) -> Dict[str, Any]:
    return {
        'mode': config.mode,
        'network': config.network,
        'rpc_url': config.rpc_url,
        'contract_address': config.contract_address,
        'secret_file': str(config.secret_file),
        'zk_proofs': {
            'bind_commitment_to_proposal': config.zk_config.bind_commitment_to_proposal,
            'simulated_proving_delay': config.zk_config.simulated_proving_delay,
            'proof_ttl_seconds': config.zk_config.proof_ttl_seconds,
            'verification_key': config.zk_config.verification_key
        },
        'ledger': {
            'snapshot_file': str(config.ledger_config.snapshot_file)
            if config.ledger_config.snapshot_file else None,
            'request_timeout': config.ledger_config.request_timeout
        },
        'server': {
            'host': config.server_config.host,
            'port': config.server_config.port,
            'frontend_url': config.server_config.frontend_url
        },
        'log_dir': str(config.log_dir),
        'results_dir': str(config.results_dir),
        'enable_debug_mode': config.enable_debug_mode
    }


def save_config(config: SystemConfig, config_path: Optional[Path] = None):
    """Save configuration to YAML file"""
    if config_path is None:
        config_path = Path("config.yaml")

    config_data = config_to_dict(config)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w') as f:
        yaml.dump(config_data, f, default_flow_style=False)
