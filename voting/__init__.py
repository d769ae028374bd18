"""Client-side voting session and voter secret storage."""

from .secret_store import (
    VoterIdentity,
    SecretStore,
    InMemorySecretStore,
    FileSecretStore,
    SecretStoreError,
    generate_identity,
    resolve_identity,
)
from .session import VotingSession, SessionResult, SessionStatus

__all__ = [
    'VoterIdentity',
    'SecretStore',
    'InMemorySecretStore',
    'FileSecretStore',
    'SecretStoreError',
    'generate_identity',
    'resolve_identity',
    'VotingSession',
    'SessionResult',
    'SessionStatus',
]
