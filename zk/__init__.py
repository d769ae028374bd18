"""
Zero-Knowledge Proof Module for the Private Voting System
Field hashing for nullifiers and commitments plus the proving interface
"""

from .zk_proofs import (
    # Field encoding
    FIELD_PRIME,
    to_field,
    to_hex64,
    from_hex64,

    # Hashing
    HashOracle,
    FieldHasher,
    compute_nullifier,
    compute_commitment,

    # Proofs
    PublicInputs,
    PrivateInputs,
    ProofArtifact,
    ProofOracle,
    SimulatedProofSystem,

    # Exceptions
    ZKError,
    ProofGenerationError,
)

__all__ = [
    'FIELD_PRIME',
    'to_field',
    'to_hex64',
    'from_hex64',

    'HashOracle',
    'FieldHasher',
    'compute_nullifier',
    'compute_commitment',

    'PublicInputs',
    'PrivateInputs',
    'ProofArtifact',
    'ProofOracle',
    'SimulatedProofSystem',

    'ZKError',
    'ProofGenerationError',
]
