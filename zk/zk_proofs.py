"""
Zero-Knowledge Proof Layer for Private Voting
Field hashing for nullifiers/commitments plus a pluggable proving backend
"""

import asyncio
import hashlib
import hmac
import logging
import secrets
import string
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any, Sequence, Union

from config.config import ZKConfig

logger = logging.getLogger(__name__)

# ============================================================================
# FIELD ENCODING
# ============================================================================

# BN254 scalar field prime
FIELD_PRIME = 21888242871839275222246405745257275088548364400416034343698204186575808495617

FIELD_BYTES = 32
HEX64_LENGTH = 2 + 2 * FIELD_BYTES

FieldLike = Union[int, bytes, str]


class ZKError(Exception):
    """Base exception for ZK operations"""
    pass


class ProofGenerationError(ZKError):
    """Witness does not satisfy the voting statement"""
    pass


def to_hex64(value: int) -> str:
    """Encode a field element as 0x + 64 hex characters"""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Field element must be an int, got {type(value).__name__}")
    if value < 0 or value >= FIELD_PRIME:
        raise ValueError("Field element outside field bounds")
    return '0x' + value.to_bytes(FIELD_BYTES, 'big').hex()


def from_hex64(text: str) -> int:
    """Decode a 0x-prefixed 64 hex character string into a field element"""
    if not isinstance(text, str) or len(text) != HEX64_LENGTH or not text.startswith('0x'):
        raise ValueError("Expected 0x followed by 64 hex characters")
    if not all(c in string.hexdigits for c in text[2:]):
        raise ValueError(f"Invalid hex value: {text!r}")
    value = int(text[2:], 16)
    if value >= FIELD_PRIME:
        raise ValueError("Field element outside field bounds")
    return value


def to_field(value: FieldLike) -> int:
    """Canonical field encoding for ints, short byte strings and hex strings"""
    if isinstance(value, bool):
        raise ValueError("Booleans are not field elements")

    if isinstance(value, int):
        result = value
    elif isinstance(value, bytes):
        if len(value) >= FIELD_BYTES:
            raise ValueError(
                f"Byte strings must be shorter than {FIELD_BYTES} bytes")
        result = int.from_bytes(value, 'big')
    elif isinstance(value, str):
        digits = value[2:]
        if not value.startswith('0x') or not digits or \
                not all(c in string.hexdigits for c in digits):
            raise ValueError(f"Invalid hex value: {value!r}")
        result = int(digits, 16)
    else:
        raise ValueError(
            f"Unsupported field value type: {type(value).__name__}")

    if result < 0 or result >= FIELD_PRIME:
        raise ValueError(f"Value {value!r} outside field bounds")
    return result


# ============================================================================
# HASH / COMMITMENT ORACLE
# ============================================================================


class HashOracle(ABC):
    """Deterministic one-way function over sequences of field values"""

    @abstractmethod
    def hash(self, values: Sequence[FieldLike]) -> int:
        ...


class FieldHasher(HashOracle):
    """BLAKE2b-256 sponge reduced into the BN254 scalar field.

    Each element is length-prefixed and encoded as 32 big-endian bytes, so
    equal sequences hash equally and sequences of different length never
    share an encoding.
    """

    DOMAIN = b"PrivateVoting/FieldHash/v1"

    def __init__(self, domain: bytes = DOMAIN):
        self.domain = domain

    def hash(self, values: Sequence[FieldLike]) -> int:
        if isinstance(values, (str, bytes)) or not values:
            raise ValueError("hash expects a non-empty sequence of values")

        h = hashlib.blake2b(digest_size=FIELD_BYTES, person=b"pv-field-hash")
        h.update(self.domain)
        h.update(len(values).to_bytes(4, 'big'))
        for value in values:
            h.update(to_field(value).to_bytes(FIELD_BYTES, 'big'))

        return int.from_bytes(h.digest(), 'big') % FIELD_PRIME


def compute_nullifier(hasher: HashOracle, secret: FieldLike, proposal_id: int) -> int:
    return hasher.hash([secret, proposal_id])


def compute_commitment(hasher: HashOracle, vote: int, secret: FieldLike,
                       proposal_id: Optional[int] = None) -> int:
    """Commitment to a vote; binds the proposal too when one is given"""
    if proposal_id is None:
        return hasher.hash([vote, secret])
    return hasher.hash([vote, secret, proposal_id])


# ============================================================================
# PROOF ARTIFACTS
# ============================================================================


@dataclass(frozen=True)
class PublicInputs:
    proposal_id: int
    nullifier: int
    commitment: int

    def as_signals(self) -> List[str]:
        """Ordered public signals: proposal id, nullifier, commitment"""
        return [str(self.proposal_id), to_hex64(self.nullifier), to_hex64(self.commitment)]


@dataclass(frozen=True)
class PrivateInputs:
    vote: int
    secret: int

    def __repr__(self) -> str:
        return "PrivateInputs(<redacted>)"


@dataclass
class ProofArtifact:
    """Container for proof bytes and metadata"""
    proof: bytes
    public_signals: List[str]
    generation_time: float = 0.0
    timestamp: float = field(default_factory=time.time)
    expires_at: Optional[int] = None

    def is_expired(self) -> bool:
        return self.expires_at is not None and time.time() > self.expires_at

    def to_wire(self) -> Dict[str, Any]:
        wire = {
            'proof': '0x' + self.proof.hex(),
            'publicInputs': list(self.public_signals)
        }
        if self.expires_at is not None:
            wire['expiresAt'] = self.expires_at
        return wire

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> 'ProofArtifact':
        proof_hex = data.get('proof')
        signals = data.get('publicInputs')
        if not isinstance(proof_hex, str) or not proof_hex.startswith('0x'):
            raise ValueError("proof must be a 0x-prefixed hex string")
        if not isinstance(signals, list) or not all(isinstance(s, str) for s in signals):
            raise ValueError("publicInputs must be a list of strings")
        expires_at = data.get('expiresAt')
        if expires_at is not None and (isinstance(expires_at, bool) or not isinstance(expires_at, int)):
            raise ValueError("expiresAt must be an integer timestamp")
        try:
            proof_bytes = bytes.fromhex(proof_hex[2:])
        except ValueError:
            raise ValueError("proof is not valid hex")
        return cls(proof=proof_bytes, public_signals=signals, expires_at=expires_at)


# ============================================================================
# PROOF ORACLE
# ============================================================================


class ProofOracle(ABC):
    """Proving/verification capability for the voting statement"""

    @abstractmethod
    async def prove(self, private: PrivateInputs, public: PublicInputs) -> ProofArtifact:
        ...

    @abstractmethod
    def verify(self, artifact: ProofArtifact, public: PublicInputs) -> bool:
        ...


class SimulatedProofSystem(ProofOracle):
    """
    Stand-in for a succinct proving backend.

    Statement checked at proving time:
      vote in {0, 1}
      nullifier == H(secret, proposal_id)
      commitment == H(vote, secret) (or H(vote, secret, proposal_id) when bound)

    The proof is nonce || HMAC(verification_key, nonce || public signals ||
    expiry), so verification needs only the public inputs and the expiry the
    artifact carries. Altering or dropping the expiry breaks the tag. Anyone holding the key can
    forge proofs; it is not a zero-knowledge argument.
    """

    NONCE_BYTES = 32
    PROOF_BYTES = 64

    def __init__(self, config: Optional[ZKConfig] = None, hasher: Optional[HashOracle] = None):
        self.config = config or ZKConfig()
        self.hasher = hasher or FieldHasher()
        if self.config.verification_key:
            self._key = bytes.fromhex(self.config.verification_key)
        else:
            self._key = secrets.token_bytes(32)

    def _check_statement(self, private: PrivateInputs, public: PublicInputs):
        if isinstance(private.vote, bool) or private.vote not in (0, 1):
            raise ProofGenerationError(
                f"Vote choice must be 0 or 1, got {private.vote!r}")

        try:
            expected_nullifier = compute_nullifier(
                self.hasher, private.secret, public.proposal_id)
            proposal_binding = public.proposal_id if self.config.bind_commitment_to_proposal else None
            expected_commitment = compute_commitment(
                self.hasher, private.vote, private.secret, proposal_binding)
        except ValueError as e:
            raise ProofGenerationError(f"Witness not encodable: {e}")

        if expected_nullifier != public.nullifier:
            raise ProofGenerationError("Nullifier does not match secret and proposal")
        if expected_commitment != public.commitment:
            raise ProofGenerationError("Commitment does not match vote and secret")

    def _tag(self, nonce: bytes, signals: List[str], expires_at: int) -> bytes:
        message = nonce + b"|".join(s.encode() for s in signals + [str(expires_at)])
        return hmac.new(self._key, message, hashlib.sha256).digest()

    async def prove(self, private: PrivateInputs, public: PublicInputs) -> ProofArtifact:
        start_time = time.time()
        self._check_statement(private, public)

        if self.config.simulated_proving_delay > 0:
            await asyncio.sleep(self.config.simulated_proving_delay)

        signals = public.as_signals()
        expires_at = int(time.time()) + self.config.proof_ttl_seconds
        nonce = secrets.token_bytes(self.NONCE_BYTES)
        proof = nonce + self._tag(nonce, signals, expires_at)

        generation_time = time.time() - start_time
        logger.debug(f"Ballot proof generated in {generation_time:.3f}s")

        now = time.time()
        return ProofArtifact(
            proof=proof,
            public_signals=signals,
            generation_time=generation_time,
            timestamp=now,
            expires_at=expires_at
        )

    def verify(self, artifact: ProofArtifact, public: PublicInputs) -> bool:
        if artifact.expires_at is None:
            logger.debug("Rejecting proof without expiry")
            return False
        if artifact.is_expired():
            logger.debug("Rejecting expired proof")
            return False
        if len(artifact.proof) != self.PROOF_BYTES:
            return False

        try:
            signals = public.as_signals()
        except ValueError:
            return False
        if list(artifact.public_signals) != signals:
            return False

        nonce = artifact.proof[:self.NONCE_BYTES]
        tag = artifact.proof[self.NONCE_BYTES:]
        return hmac.compare_digest(tag, self._tag(nonce, signals, artifact.expires_at))
