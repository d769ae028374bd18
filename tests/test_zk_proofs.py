"""Hash oracle and proof oracle behaviour"""

import asyncio
import time

import pytest

from config.config import ZKConfig
from zk.zk_proofs import (
    FIELD_PRIME, FieldHasher, SimulatedProofSystem, ProofArtifact,
    PrivateInputs, PublicInputs, ProofGenerationError,
    compute_nullifier, compute_commitment, to_field, to_hex64, from_hex64
)


class TestFieldHasher:

    def test_repeated_calls_are_identical(self, hasher):
        assert compute_nullifier(hasher, 12345, 1) == compute_nullifier(hasher, 12345, 1)
        assert FieldHasher().hash([12345, 1]) == hasher.hash([12345, 1])

    def test_distinct_pairs_give_distinct_nullifiers(self, hasher):
        nullifiers = {compute_nullifier(hasher, secret, proposal)
                      for secret in (111, 222, 12345) for proposal in (0, 1, 2)}
        assert len(nullifiers) == 9

    def test_order_and_length_matter(self, hasher):
        assert hasher.hash([1, 2]) != hasher.hash([2, 1])
        assert hasher.hash([1, 2]) != hasher.hash([1, 2, 0])
        assert hasher.hash([0]) != hasher.hash([0, 0])

    def test_output_is_field_element(self, hasher):
        value = hasher.hash([FIELD_PRIME - 1, 0])
        assert 0 <= value < FIELD_PRIME
        assert len(to_hex64(value)) == 66

    def test_canonical_encodings_agree(self, hasher):
        assert hasher.hash([b"\x01\x00", 5]) == hasher.hash([256, "0x05"])

    @pytest.mark.parametrize("bad", [
        [], [-1], [FIELD_PRIME], [True], [1.5], ["12"], ["0xzz"], [b"x" * 32], [None]
    ])
    def test_rejects_unencodable_input(self, hasher, bad):
        with pytest.raises(ValueError):
            hasher.hash(bad)

    def test_rejects_bare_string_sequence(self, hasher):
        with pytest.raises(ValueError):
            hasher.hash("0x01")

    def test_commitment_binding_to_proposal_is_optional(self, hasher):
        unbound = compute_commitment(hasher, 1, 12345)
        assert unbound == hasher.hash([1, 12345])
        assert compute_commitment(hasher, 1, 12345, 1) != unbound


class TestHexEncoding:

    def test_round_trip_bounds(self):
        assert from_hex64(to_hex64(0)) == 0
        assert from_hex64(to_hex64(FIELD_PRIME - 1)) == FIELD_PRIME - 1

    @pytest.mark.parametrize("text", [
        "0x" + "0" * 63, "0x" + "0" * 65, "00" + "0" * 64, "0x" + "g" * 64,
        "0x" + "_1" * 32, "0x" + "f" * 64
    ])
    def test_rejects_malformed(self, text):
        with pytest.raises(ValueError):
            from_hex64(text)

    def test_to_field_range(self):
        assert to_field(b"") == 0
        with pytest.raises(ValueError):
            to_hex64(FIELD_PRIME)


class TestSimulatedProofSystem:

    def _public(self, hasher, secret=12345, proposal_id=1, vote=1):
        return PublicInputs(
            proposal_id=proposal_id,
            nullifier=compute_nullifier(hasher, secret, proposal_id),
            commitment=compute_commitment(hasher, vote, secret)
        )

    def test_prove_then_verify(self, hasher, prover):
        public = self._public(hasher)
        artifact = asyncio.run(prover.prove(PrivateInputs(1, 12345), public))

        assert len(artifact.proof) == 64
        assert artifact.public_signals == public.as_signals()
        assert artifact.public_signals[0] == "1"
        assert prover.verify(artifact, public)

    @pytest.mark.parametrize("field_name", ["proposal_id", "nullifier", "commitment"])
    def test_altered_public_input_fails(self, hasher, prover, field_name):
        public = self._public(hasher)
        artifact = asyncio.run(prover.prove(PrivateInputs(1, 12345), public))

        altered = PublicInputs(**{
            'proposal_id': public.proposal_id,
            'nullifier': public.nullifier,
            'commitment': public.commitment,
            field_name: getattr(public, field_name) + 1
        })
        assert not prover.verify(artifact, altered)

    def test_tampered_proof_bytes_fail(self, hasher, prover):
        public = self._public(hasher)
        artifact = asyncio.run(prover.prove(PrivateInputs(1, 12345), public))
        tampered = bytearray(artifact.proof)
        tampered[-1] ^= 0x01
        artifact.proof = bytes(tampered)
        assert not prover.verify(artifact, public)

    def test_other_key_rejects(self, hasher, prover):
        public = self._public(hasher)
        artifact = asyncio.run(prover.prove(PrivateInputs(1, 12345), public))
        other = SimulatedProofSystem(ZKConfig(verification_key="22" * 32), hasher)
        assert not other.verify(artifact, public)

    @pytest.mark.parametrize("vote", [2, -1, True])
    def test_non_boolean_vote_rejected(self, hasher, prover, vote):
        public = PublicInputs(1, compute_nullifier(hasher, 12345, 1), 0)
        with pytest.raises(ProofGenerationError):
            asyncio.run(prover.prove(PrivateInputs(vote, 12345), public))

    def test_mismatched_nullifier_rejected(self, hasher, prover):
        public = self._public(hasher)
        wrong = PublicInputs(public.proposal_id, public.nullifier + 1, public.commitment)
        with pytest.raises(ProofGenerationError):
            asyncio.run(prover.prove(PrivateInputs(1, 12345), wrong))

    def test_mismatched_commitment_rejected(self, hasher, prover):
        public = self._public(hasher, vote=0)
        with pytest.raises(ProofGenerationError):
            asyncio.run(prover.prove(PrivateInputs(1, 12345), public))

    def test_bound_commitment_requires_proposal(self, hasher):
        bound = SimulatedProofSystem(ZKConfig(bind_commitment_to_proposal=True), hasher)
        unbound_public = self._public(hasher)
        with pytest.raises(ProofGenerationError):
            asyncio.run(bound.prove(PrivateInputs(1, 12345), unbound_public))

        bound_public = PublicInputs(
            1, unbound_public.nullifier, compute_commitment(hasher, 1, 12345, 1))
        artifact = asyncio.run(bound.prove(PrivateInputs(1, 12345), bound_public))
        assert bound.verify(artifact, bound_public)

    def test_expired_proof_rejected(self, hasher, prover):
        public = self._public(hasher)
        artifact = asyncio.run(prover.prove(PrivateInputs(1, 12345), public))
        artifact.expires_at = time.time() - 1
        assert artifact.is_expired()
        assert not prover.verify(artifact, public)

    def test_wire_format(self, hasher, prover):
        public = self._public(hasher)
        artifact = asyncio.run(prover.prove(PrivateInputs(1, 12345), public))
        wire = artifact.to_wire()

        assert wire['proof'].startswith('0x') and len(wire['proof']) == 130
        assert wire['publicInputs'] == public.as_signals()
        assert wire['expiresAt'] == artifact.expires_at
        assert prover.verify(ProofArtifact.from_wire(wire), public)

    def test_expiry_is_bound_to_proof(self, hasher, prover):
        public = self._public(hasher)
        wire = asyncio.run(prover.prove(PrivateInputs(1, 12345), public)).to_wire()

        extended = dict(wire, expiresAt=wire['expiresAt'] + 3600)
        assert not prover.verify(ProofArtifact.from_wire(extended), public)

        stripped = {k: v for k, v in wire.items() if k != 'expiresAt'}
        assert not prover.verify(ProofArtifact.from_wire(stripped), public)

    def test_expiry_follows_configured_ttl(self, hasher):
        short_lived = SimulatedProofSystem(
            ZKConfig(verification_key="11" * 32, proof_ttl_seconds=-1), hasher)
        public = self._public(hasher)
        wire = asyncio.run(short_lived.prove(PrivateInputs(1, 12345), public)).to_wire()
        assert not short_lived.verify(ProofArtifact.from_wire(wire), public)

    @pytest.mark.parametrize("wire", [
        {}, {'proof': 'aa', 'publicInputs': []}, {'proof': '0xzz', 'publicInputs': []},
        {'proof': '0xaa', 'publicInputs': [1, 2]},
        {'proof': '0xaa', 'publicInputs': [], 'expiresAt': '123'}
    ])
    def test_malformed_wire_rejected(self, wire):
        with pytest.raises(ValueError):
            ProofArtifact.from_wire(wire)

    def test_private_inputs_are_redacted(self):
        assert "12345" not in repr(PrivateInputs(1, 12345))
