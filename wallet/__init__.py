"""External wallet signer capability."""

from .signer import Signer, JsonRpcSigner, ContractDeployment, WalletError

__all__ = ['Signer', 'JsonRpcSigner', 'ContractDeployment', 'WalletError']
