"""HTTP surface of the private voting system."""

from .server import create_app, VoteRequest, ProofPayload

__all__ = ['create_app', 'VoteRequest', 'ProofPayload']
