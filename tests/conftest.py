import asyncio

import pytest

from config.config import SystemConfig, ZKConfig
from ledger.vote_ledger import VoteLedger
from zk.zk_proofs import (
    FieldHasher, SimulatedProofSystem, PrivateInputs, PublicInputs,
    compute_nullifier, compute_commitment
)


@pytest.fixture
def config(tmp_path):
    return SystemConfig(
        secret_file=tmp_path / "keys" / "voter_secret.json",
        log_dir=tmp_path / "logs",
        results_dir=tmp_path / "results",
        zk_config=ZKConfig(verification_key="11" * 32)
    )


@pytest.fixture
def production_config(tmp_path):
    return SystemConfig(
        mode="production",
        contract_address="0x" + "ab" * 32,
        secret_file=tmp_path / "keys" / "voter_secret.json",
        results_dir=tmp_path / "results",
        zk_config=ZKConfig(verification_key="11" * 32)
    )


@pytest.fixture
def hasher():
    return FieldHasher()


@pytest.fixture
def prover(config, hasher):
    return SimulatedProofSystem(config.zk_config, hasher)


@pytest.fixture
def ledger(prover, config):
    return VoteLedger(prover, config)


@pytest.fixture
def make_vote(hasher, prover):
    """Build (nullifier, commitment, proof) for a voter secret and proposal"""

    def _make(secret, proposal_id, vote=1):
        nullifier = compute_nullifier(hasher, secret, proposal_id)
        commitment = compute_commitment(hasher, vote, secret)
        proof = asyncio.run(prover.prove(
            PrivateInputs(vote=vote, secret=secret),
            PublicInputs(proposal_id, nullifier, commitment)))
        return nullifier, commitment, proof

    return _make
