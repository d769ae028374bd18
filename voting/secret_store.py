"""
Voter secret persistence.

The voter secret never leaves the client. File storage keeps it in a 0600
JSON document, optionally sealed with AES-GCM under a Scrypt-derived key.
"""

import json
import logging
import os
import secrets
import stat
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Set

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from zk.zk_proofs import FIELD_PRIME

logger = logging.getLogger(__name__)


class SecretStoreError(Exception):
    """Stored secret missing, corrupt or undecryptable"""
    pass


@dataclass
class VoterIdentity:
    secret: int
    created_at: float = field(default_factory=time.time)
    voted_proposals: Set[int] = field(default_factory=set)

    def __repr__(self) -> str:
        return f"VoterIdentity(secret=<redacted>, created_at={self.created_at})"


def generate_identity() -> VoterIdentity:
    # Zero is excluded so an uninitialised secret is never mistaken for a real one
    return VoterIdentity(secret=secrets.randbelow(FIELD_PRIME - 1) + 1)


class SecretStore(ABC):

    @abstractmethod
    def load(self) -> Optional[VoterIdentity]:
        ...

    @abstractmethod
    def save(self, identity: VoterIdentity):
        ...


class InMemorySecretStore(SecretStore):

    def __init__(self, identity: Optional[VoterIdentity] = None):
        self._identity = identity

    def load(self) -> Optional[VoterIdentity]:
        return self._identity

    def save(self, identity: VoterIdentity):
        self._identity = identity


class FileSecretStore(SecretStore):
    """JSON file store with owner-only permissions"""

    SALT_BYTES = 16
    NONCE_BYTES = 12

    def __init__(self, path: Path, passphrase: Optional[str] = None):
        self.path = Path(path)
        self.passphrase = passphrase

    def _derive_key(self, salt: bytes) -> bytes:
        kdf = Scrypt(salt=salt, length=32, n=2**14, r=8, p=1)
        return kdf.derive(self.passphrase.encode('utf-8'))

    def _seal(self, plaintext: bytes) -> dict:
        salt = secrets.token_bytes(self.SALT_BYTES)
        nonce = secrets.token_bytes(self.NONCE_BYTES)
        ciphertext = AESGCM(self._derive_key(salt)).encrypt(nonce, plaintext, b"voter-secret")
        return {
            'sealed': True,
            'salt': salt.hex(),
            'nonce': nonce.hex(),
            'ciphertext': ciphertext.hex()
        }

    def _unseal(self, document: dict) -> bytes:
        if not self.passphrase:
            raise SecretStoreError("Secret file is sealed; a passphrase is required")
        try:
            key = self._derive_key(bytes.fromhex(document['salt']))
            return AESGCM(key).decrypt(
                bytes.fromhex(document['nonce']),
                bytes.fromhex(document['ciphertext']),
                b"voter-secret")
        except InvalidTag:
            raise SecretStoreError("Wrong passphrase or tampered secret file")
        except (KeyError, ValueError) as e:
            raise SecretStoreError(f"Malformed sealed secret file: {e}")

    def load(self) -> Optional[VoterIdentity]:
        if not self.path.exists():
            return None

        try:
            document = json.loads(self.path.read_text())
            if document.get('sealed'):
                document = json.loads(self._unseal(document))
            return VoterIdentity(
                secret=int(document['secret'], 16),
                created_at=float(document['created_at']),
                voted_proposals=set(document.get('voted_proposals', []))
            )
        except OSError as e:
            raise SecretStoreError(f"Cannot read secret file {self.path}: {e}")
        except (ValueError, KeyError, TypeError) as e:
            raise SecretStoreError(f"Corrupt secret file {self.path}: {e}")

    def save(self, identity: VoterIdentity):
        payload = {
            'secret': hex(identity.secret),
            'created_at': identity.created_at,
            'voted_proposals': sorted(identity.voted_proposals)
        }
        if self.passphrase:
            document = self._seal(json.dumps(payload).encode('utf-8'))
        else:
            document = payload

        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC,
                         stat.S_IRUSR | stat.S_IWUSR)
            with os.fdopen(fd, 'w') as f:
                json.dump(document, f)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise SecretStoreError(f"Cannot write secret file {self.path}: {e}")
        logger.debug(f"Voter identity stored at {self.path}")


def resolve_identity(store: SecretStore) -> VoterIdentity:
    """Load the persistent voter identity, creating it on first use"""
    identity = store.load()
    if identity is None:
        identity = generate_identity()
        store.save(identity)
        logger.info("Generated new voter identity")
    return identity
