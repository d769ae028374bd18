"""
Vote Ledger
===========
Authoritative record of accepted votes keyed by nullifier, with per-proposal
tallies. A nullifier moves from unused to used exactly once and never back.

Each nullifier gets its own lock for the duration of verify-and-insert.
Submissions sharing a nullifier are serialised on it, so a later one sees
the outcome of an earlier one (recorded, or rejected and left unused).
Submissions with distinct nullifiers never wait on each other's proof
verification. The global lock only guards the maps.
"""

import logging
import secrets
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from config.config import SystemConfig
from zk.zk_proofs import ProofArtifact, ProofOracle, PublicInputs, from_hex64, to_hex64, FIELD_PRIME
from utils.utils import save_results

logger = logging.getLogger(__name__)

# ============================================================================
# EXCEPTIONS
# ============================================================================


class LedgerError(Exception):
    """Base exception for ledger operations"""
    pass


class ValidationError(LedgerError):
    """Malformed or missing submission fields"""
    pass


class DuplicateVoteError(LedgerError):
    """Nullifier already consumed"""
    pass


class InvalidProofError(LedgerError):
    """Proof failed verification against its public inputs"""
    pass


class OperationForbiddenError(LedgerError):
    """Administrative operation not allowed in the current mode"""
    pass


# ============================================================================
# RECORDS
# ============================================================================


@dataclass(frozen=True)
class LedgerEntry:
    nullifier: int
    proposal_id: int
    commitment: int
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nullifier': to_hex64(self.nullifier),
            'proposal_id': self.proposal_id,
            'commitment': to_hex64(self.commitment),
            'timestamp': self.timestamp
        }


@dataclass(frozen=True)
class Receipt:
    tx_hash: str
    entry: LedgerEntry
    mode: str

    def to_response(self) -> Dict[str, Any]:
        return {'success': True, 'txHash': self.tx_hash, 'mode': self.mode}


def generate_tx_hash() -> str:
    return '0x' + secrets.token_hex(32)


# ============================================================================
# FIELD VALIDATION
# ============================================================================


def validate_proposal_id(proposal_id: Any) -> int:
    if isinstance(proposal_id, bool) or not isinstance(proposal_id, int):
        raise ValidationError("Invalid proposal ID")
    if proposal_id < 0:
        raise ValidationError("Invalid proposal ID")
    return proposal_id


def validate_field(value: Any, name: str) -> int:
    """Accept a field element as int or 0x-prefixed 64 hex characters"""
    if value is None:
        raise ValidationError(f"Missing required field: {name}")
    if isinstance(value, str):
        try:
            return from_hex64(value)
        except ValueError as e:
            raise ValidationError(f"Invalid {name}: {e}")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"Invalid {name}: expected field element")
    if value < 0 or value >= FIELD_PRIME:
        raise ValidationError(f"Invalid {name}: outside field bounds")
    return value


def validate_proof(proof: Any) -> ProofArtifact:
    if proof is None:
        raise ValidationError("Missing required field: proof")
    if isinstance(proof, ProofArtifact):
        return proof
    if isinstance(proof, dict):
        try:
            return ProofArtifact.from_wire(proof)
        except ValueError as e:
            raise ValidationError(f"Invalid proof: {e}")
    raise ValidationError("Invalid proof: expected proof object")


# ============================================================================
# LEDGER
# ============================================================================


class VoteLedger:
    """In-process vote ledger with at-most-once semantics per nullifier"""

    def __init__(self, proof_oracle: ProofOracle, config: Optional[SystemConfig] = None):
        self.proof_oracle = proof_oracle
        self.config = config or SystemConfig()

        self._entries: Dict[int, LedgerEntry] = {}
        self._tallies: Dict[int, int] = {}
        # nullifier -> [lock, number of submissions holding or waiting on it]
        self._nullifier_locks: Dict[int, List[Any]] = {}
        self._lock = threading.Lock()

    @property
    def mode(self) -> str:
        return self.config.response_mode

    def _check_unused(self, nullifier: int):
        # caller holds self._lock
        if nullifier in self._entries:
            logger.info(
                f"Duplicate vote rejected (nullifier {to_hex64(nullifier)[:18]}...)")
            raise DuplicateVoteError("Vote already cast")

    def submit(self, proposal_id: Any, nullifier: Any, commitment: Any,
               proof: Union[ProofArtifact, Dict[str, Any], None]) -> Receipt:
        """Validate, check uniqueness, verify and record one vote"""
        proposal_id = validate_proposal_id(proposal_id)
        nullifier = validate_field(nullifier, 'nullifier')
        commitment = validate_field(commitment, 'commitment')
        artifact = validate_proof(proof)

        with self._lock:
            self._check_unused(nullifier)
            slot = self._nullifier_locks.setdefault(nullifier, [threading.Lock(), 0])
            slot[1] += 1

        try:
            with slot[0]:
                with self._lock:
                    self._check_unused(nullifier)

                public = PublicInputs(proposal_id, nullifier, commitment)
                if not self.proof_oracle.verify(artifact, public):
                    logger.warning(
                        f"Invalid proof for proposal {proposal_id} "
                        f"(nullifier {to_hex64(nullifier)[:18]}...)")
                    raise InvalidProofError("Proof verification failed")

                entry = LedgerEntry(
                    nullifier=nullifier,
                    proposal_id=proposal_id,
                    commitment=commitment,
                    timestamp=time.time()
                )
                with self._lock:
                    self._entries[nullifier] = entry
                    self._tallies[proposal_id] = self._tallies.get(proposal_id, 0) + 1
        finally:
            with self._lock:
                slot[1] -= 1
                if slot[1] == 0:
                    del self._nullifier_locks[nullifier]

        receipt = Receipt(tx_hash=generate_tx_hash(), entry=entry, mode=self.mode)
        logger.info(
            f"Vote recorded for proposal {proposal_id} (tx {receipt.tx_hash[:18]}...)")
        return receipt

    def has_voted(self, nullifier: Any) -> bool:
        nullifier = validate_field(nullifier, 'nullifier')
        with self._lock:
            return nullifier in self._entries

    def get_tally(self, proposal_id: int) -> int:
        with self._lock:
            return self._tallies.get(proposal_id, 0)

    def total_votes(self) -> int:
        with self._lock:
            return len(self._entries)

    def entries(self) -> List[LedgerEntry]:
        with self._lock:
            return sorted(self._entries.values(), key=lambda e: e.timestamp)

    def reset(self):
        """Clear all entries and tallies (development mode only)"""
        if self.config.is_production:
            raise OperationForbiddenError("Reset not available in production mode")

        with self._lock:
            self._entries.clear()
            self._tallies.clear()
        logger.info("Demo ledger state reset")

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'mode': self.mode,
                'tallies': dict(self._tallies),
                'entries': [e.to_dict() for e in
                            sorted(self._entries.values(), key=lambda e: e.timestamp)]
            }

    def save_snapshot(self, filepath: Optional[Path] = None) -> Path:
        filepath = filepath or self.config.ledger_config.snapshot_file \
            or self.config.results_dir / "ledger_snapshot.json"
        save_results(self.snapshot(), Path(filepath))
        return Path(filepath)

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any], proof_oracle: ProofOracle,
                      config: Optional[SystemConfig] = None) -> 'VoteLedger':
        """Rebuild a ledger from snapshot data; tallies are recomputed from entries"""
        data = data.get('data', data)
        ledger = cls(proof_oracle, config)
        for raw in data.get('entries', []):
            entry = LedgerEntry(
                nullifier=validate_field(raw.get('nullifier'), 'nullifier'),
                proposal_id=validate_proposal_id(raw.get('proposal_id')),
                commitment=validate_field(raw.get('commitment'), 'commitment'),
                timestamp=float(raw.get('timestamp', 0.0))
            )
            if entry.nullifier in ledger._entries:
                raise ValidationError("Snapshot contains a repeated nullifier")
            ledger._entries[entry.nullifier] = entry
            ledger._tallies[entry.proposal_id] = ledger._tallies.get(entry.proposal_id, 0) + 1
        logger.info(f"Ledger restored with {len(ledger._entries)} entries")
        return ledger
