"""Remote ledger access over the voting HTTP API."""

import logging
import time
from typing import Any, Dict, Optional

import requests

from zk.zk_proofs import ProofArtifact, to_hex64
from .vote_ledger import (
    LedgerEntry, Receipt, LedgerError, ValidationError, DuplicateVoteError,
    InvalidProofError, OperationForbiddenError,
    validate_proposal_id, validate_field, validate_proof
)

logger = logging.getLogger(__name__)


class HttpLedgerClient:
    """Ledger interface backed by a remote /api server"""

    def __init__(self, base_url: str, session=None, timeout: float = 10.0):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api/{path}"

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None):
        url = self._url(path)
        try:
            if method == "GET":
                response = self.session.get(url, timeout=self.timeout)
            else:
                response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise LedgerError(f"Cannot reach ledger at {url}: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code == 200:
            return body

        message = body.get('error') or body.get('message') or response.text
        if response.status_code == 409:
            raise DuplicateVoteError(message)
        if response.status_code == 400:
            if message == "Invalid proof":
                raise InvalidProofError(message)
            raise ValidationError(message)
        if response.status_code == 403:
            raise OperationForbiddenError(message)
        raise LedgerError(f"Ledger request failed ({response.status_code}): {message}")

    def submit(self, proposal_id: Any, nullifier: Any, commitment: Any, proof: Any) -> Receipt:
        proposal_id = validate_proposal_id(proposal_id)
        nullifier = validate_field(nullifier, 'nullifier')
        commitment = validate_field(commitment, 'commitment')
        artifact: ProofArtifact = validate_proof(proof)

        body = self._request("POST", "vote", {
            'proposal_id': proposal_id,
            'nullifier': to_hex64(nullifier),
            'commitment': to_hex64(commitment),
            'proof': artifact.to_wire()
        })

        entry = LedgerEntry(
            nullifier=nullifier,
            proposal_id=proposal_id,
            commitment=commitment,
            timestamp=time.time()
        )
        return Receipt(tx_hash=body['txHash'], entry=entry, mode=body.get('mode', 'demo'))

    def has_voted(self, nullifier: Any) -> bool:
        nullifier = validate_field(nullifier, 'nullifier')
        body = self._request("GET", f"has-voted/{to_hex64(nullifier)}")
        return bool(body['hasVoted'])

    def get_tally(self, proposal_id: int) -> int:
        body = self._request("GET", f"results/{proposal_id}")
        return int(body['total'])

    def reset(self):
        self._request("POST", "reset")
