"""Vote ledger: nullifier registry and per-proposal tallies."""

from .vote_ledger import (
    VoteLedger,
    LedgerEntry,
    Receipt,
    LedgerError,
    ValidationError,
    DuplicateVoteError,
    InvalidProofError,
    OperationForbiddenError,
)
from .http_client import HttpLedgerClient

__all__ = [
    'VoteLedger',
    'HttpLedgerClient',
    'LedgerEntry',
    'Receipt',
    'LedgerError',
    'ValidationError',
    'DuplicateVoteError',
    'InvalidProofError',
    'OperationForbiddenError',
]
