"""
Wallet signer capability.

Account access and contract deployment belong to an external wallet; the
voting system only talks to it through this narrow interface.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_GAS_LIMIT = '0x5f5e100'


class WalletError(Exception):
    """Wallet unavailable, refused the request or returned an error"""
    pass


@dataclass
class ContractDeployment:
    tx_hash: str
    address: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


class Signer(ABC):

    @abstractmethod
    def request_accounts(self) -> List[str]:
        ...

    @abstractmethod
    def deploy_contract(self, bytecode: str, abi: List[Dict[str, Any]],
                        args: Optional[Dict[str, Any]] = None) -> ContractDeployment:
        ...


class JsonRpcSigner(Signer):
    """Signer reached over JSON-RPC 2.0"""

    def __init__(self, rpc_url: str, session: Optional[requests.Session] = None,
                 timeout: float = 30.0):
        self.rpc_url = rpc_url
        self.session = session or requests.Session()
        self.timeout = timeout
        self.address: Optional[str] = None
        self._ids = itertools.count(1)

    @property
    def connected(self) -> bool:
        return self.address is not None

    def _call(self, method: str, params: Any = None) -> Any:
        request = {'jsonrpc': '2.0', 'id': next(self._ids), 'method': method}
        if params is not None:
            request['params'] = params

        try:
            response = self.session.post(self.rpc_url, json=request, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as e:
            raise WalletError(f"Wallet RPC {method} failed: {e}") from e
        except ValueError as e:
            raise WalletError(f"Wallet RPC {method} returned invalid JSON") from e

        if 'error' in body:
            error = body['error']
            message = error.get('message') if isinstance(error, dict) else str(error)
            raise WalletError(f"Wallet RPC {method} error: {message}")
        return body.get('result')

    def request_accounts(self) -> List[str]:
        accounts = self._call('aztec_requestAccounts') or []
        if not accounts:
            raise WalletError(
                "No accounts found. Please create an account in your Aztec wallet.")

        self.address = accounts[0]
        logger.info(f"Wallet connected: {self.address[:6]}...{self.address[-4:]}")
        return list(accounts)

    def deploy_contract(self, bytecode: str, abi: List[Dict[str, Any]],
                        args: Optional[Dict[str, Any]] = None) -> ContractDeployment:
        if not self.connected:
            raise WalletError("Please connect your wallet first")

        result = self._call('aztec_deployContract', {
            'bytecode': bytecode,
            'abi': abi,
            'constructorArgs': args or {},
            'gasLimit': DEFAULT_GAS_LIMIT
        })

        if isinstance(result, str):
            deployment = ContractDeployment(tx_hash=result)
        elif isinstance(result, dict) and ('txHash' in result or 'hash' in result):
            deployment = ContractDeployment(
                tx_hash=result.get('txHash') or result.get('hash'),
                address=result.get('contractAddress') or result.get('address'),
                raw=result
            )
        else:
            raise WalletError(f"Unexpected deployment response: {result!r}")

        logger.info(f"Contract deployment initiated: {deployment.tx_hash}")
        return deployment

    def disconnect(self):
        self.address = None
