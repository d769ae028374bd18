"""
Voting Session
==============
Drives a single voter through one vote attempt:

1. resolve the persistent voter secret
2. nullifier = H(secret, proposal_id); stop if the ledger already has it
3. commitment = H(vote, secret)
4. prove the statement, then submit nullifier, commitment and proof

Proof generation and submission are never retried here; callers decide
whether to start a new session.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from config.config import SystemConfig
from ledger.vote_ledger import (
    Receipt, LedgerError, DuplicateVoteError, ValidationError, validate_proposal_id
)
from utils.utils import PerformanceMonitor
from zk.zk_proofs import (
    HashOracle, ProofOracle, ProofGenerationError, PrivateInputs, PublicInputs,
    compute_nullifier, compute_commitment
)
from .secret_store import SecretStore, SecretStoreError, resolve_identity

logger = logging.getLogger(__name__)


class SessionStatus(Enum):
    VOTED = "voted"
    ALREADY_VOTED = "already_voted"
    FAILED = "failed"


@dataclass
class SessionResult:
    status: SessionStatus
    proposal_id: int
    receipt: Optional[Receipt] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.status is SessionStatus.VOTED

    @property
    def message(self) -> str:
        if self.status is SessionStatus.VOTED:
            return "Vote submitted successfully"
        if self.status is SessionStatus.ALREADY_VOTED:
            return "You have already voted on this proposal."
        return f"Error: {self.error}"


class VotingSession:
    """Client-side orchestrator for one voter"""

    def __init__(self, ledger, hasher: HashOracle, prover: ProofOracle,
                 secret_store: SecretStore, config: Optional[SystemConfig] = None,
                 monitor: Optional[PerformanceMonitor] = None):
        self.ledger = ledger
        self.hasher = hasher
        self.prover = prover
        self.secret_store = secret_store
        self.config = config or SystemConfig()
        self.monitor = monitor or PerformanceMonitor()

    def _commitment(self, vote: int, secret: int, proposal_id: int) -> int:
        binding = proposal_id if self.config.zk_config.bind_commitment_to_proposal else None
        return compute_commitment(self.hasher, vote, secret, binding)

    def _mark_voted(self, identity, proposal_id: int):
        if proposal_id not in identity.voted_proposals:
            identity.voted_proposals.add(proposal_id)
            try:
                self.secret_store.save(identity)
            except SecretStoreError as e:
                # ledger is authoritative, the local flag is only a hint
                logger.warning(f"Could not record vote locally: {e}")

    def has_voted_locally(self, proposal_id: int) -> bool:
        identity = self.secret_store.load()
        return identity is not None and proposal_id in identity.voted_proposals

    def nullifier_for(self, proposal_id: int) -> int:
        identity = resolve_identity(self.secret_store)
        return compute_nullifier(self.hasher, identity.secret, proposal_id)

    def check_status(self, proposal_id: int) -> bool:
        """Ask the ledger whether this voter's nullifier is already used"""
        return self.ledger.has_voted(self.nullifier_for(proposal_id))

    async def cast_vote(self, proposal_id: int, vote_choice: int) -> SessionResult:
        try:
            validate_proposal_id(proposal_id)
        except ValidationError as e:
            return SessionResult(SessionStatus.FAILED, proposal_id, error=e)
        if isinstance(vote_choice, bool) or not isinstance(vote_choice, int):
            return SessionResult(SessionStatus.FAILED, proposal_id,
                                 error=ValidationError("Vote choice must be an integer"))

        try:
            identity = resolve_identity(self.secret_store)
        except SecretStoreError as e:
            logger.warning(f"Voter secret unavailable: {e}")
            return SessionResult(SessionStatus.FAILED, proposal_id, error=e)
        nullifier = compute_nullifier(self.hasher, identity.secret, proposal_id)

        try:
            if self.ledger.has_voted(nullifier):
                logger.info(f"Voter already voted on proposal {proposal_id}")
                self._mark_voted(identity, proposal_id)
                return SessionResult(SessionStatus.ALREADY_VOTED, proposal_id)
        except LedgerError as e:
            return SessionResult(SessionStatus.FAILED, proposal_id, error=e)

        try:
            commitment = self._commitment(vote_choice, identity.secret, proposal_id)
        except ValueError as e:
            error = ProofGenerationError(f"Vote choice {vote_choice!r} cannot be committed: {e}")
            logger.info(f"Proof generation failed for proposal {proposal_id}: {error}")
            return SessionResult(SessionStatus.FAILED, proposal_id, error=error)

        public = PublicInputs(proposal_id=proposal_id, nullifier=nullifier, commitment=commitment)

        try:
            with self.monitor.start_operation("generate_proof"):
                proof = await self.prover.prove(
                    PrivateInputs(vote=vote_choice, secret=identity.secret), public)
        except ProofGenerationError as e:
            logger.info(f"Proof generation failed for proposal {proposal_id}: {e}")
            return SessionResult(SessionStatus.FAILED, proposal_id, error=e)

        try:
            with self.monitor.start_operation("submit_vote"):
                receipt = self.ledger.submit(
                    public.proposal_id, public.nullifier, public.commitment, proof)
        except DuplicateVoteError:
            logger.info(f"Concurrent submission won for proposal {proposal_id}")
            self._mark_voted(identity, proposal_id)
            return SessionResult(SessionStatus.ALREADY_VOTED, proposal_id)
        except LedgerError as e:
            logger.warning(f"Vote submission rejected for proposal {proposal_id}: {e}")
            return SessionResult(SessionStatus.FAILED, proposal_id, error=e)

        self._mark_voted(identity, proposal_id)
        return SessionResult(SessionStatus.VOTED, proposal_id, receipt=receipt)
