"""Voting session flow and voter secret storage"""

import asyncio
import json
import os
import stat

import pytest

from ledger.vote_ledger import DuplicateVoteError, InvalidProofError
from voting.secret_store import (
    FileSecretStore, InMemorySecretStore, SecretStoreError, VoterIdentity, resolve_identity
)
from voting.session import VotingSession, SessionStatus
from zk.zk_proofs import FIELD_PRIME, ProofGenerationError, compute_nullifier


def make_session(ledger, hasher, prover, config, secret=None, store=None):
    if store is None:
        identity = VoterIdentity(secret=secret) if secret is not None else None
        store = InMemorySecretStore(identity)
    return VotingSession(ledger, hasher, prover, store, config)


class TestCastVote:

    def test_vote_then_already_voted(self, ledger, hasher, prover, config):
        session = make_session(ledger, hasher, prover, config, secret=12345)

        first = asyncio.run(session.cast_vote(1, 1))
        assert first.status is SessionStatus.VOTED
        assert first.succeeded
        assert first.receipt.entry.nullifier == compute_nullifier(hasher, 12345, 1)
        assert ledger.get_tally(1) == 1
        assert session.has_voted_locally(1)

        second = asyncio.run(session.cast_vote(1, 1))
        assert second.status is SessionStatus.ALREADY_VOTED
        assert second.receipt is None
        assert ledger.get_tally(1) == 1

    def test_distinct_voters_both_counted(self, ledger, hasher, prover, config):
        for secret in (111, 222):
            result = asyncio.run(
                make_session(ledger, hasher, prover, config, secret=secret).cast_vote(1, 0))
            assert result.status is SessionStatus.VOTED
        assert ledger.get_tally(1) == 2
        assert ledger.total_votes() == 2

    def test_out_of_range_vote_fails_without_entry(self, ledger, hasher, prover, config):
        session = make_session(ledger, hasher, prover, config, secret=12345)

        result = asyncio.run(session.cast_vote(1, 2))
        assert result.status is SessionStatus.FAILED
        assert isinstance(result.error, ProofGenerationError)
        assert ledger.get_tally(1) == 0
        assert not ledger.has_voted(compute_nullifier(hasher, 12345, 1))
        assert not session.has_voted_locally(1)

    @pytest.mark.parametrize("proposal_id, vote", [(-1, 1), ("1", 1), (1, "yes"), (1, None)])
    def test_invalid_arguments_fail(self, ledger, hasher, prover, config, proposal_id, vote):
        result = asyncio.run(
            make_session(ledger, hasher, prover, config, secret=1).cast_vote(proposal_id, vote))
        assert result.status is SessionStatus.FAILED
        assert ledger.total_votes() == 0

    @pytest.mark.parametrize("vote", [-1, FIELD_PRIME, FIELD_PRIME + 1])
    def test_uncommittable_vote_is_proof_failure(self, ledger, hasher, prover, config, vote):
        session = make_session(ledger, hasher, prover, config, secret=12345)

        result = asyncio.run(session.cast_vote(1, vote))
        assert result.status is SessionStatus.FAILED
        assert isinstance(result.error, ProofGenerationError)
        assert ledger.total_votes() == 0
        assert not session.has_voted_locally(1)

    def test_unreadable_secret_is_failure(self, ledger, hasher, prover, config, tmp_path):
        path = tmp_path / "sealed.json"
        resolve_identity(FileSecretStore(path, passphrase="correct horse"))

        session = make_session(ledger, hasher, prover, config, store=FileSecretStore(path))
        result = asyncio.run(session.cast_vote(1, 1))
        assert result.status is SessionStatus.FAILED
        assert isinstance(result.error, SecretStoreError)
        assert ledger.total_votes() == 0

    def test_already_voted_skips_proving(self, ledger, hasher, prover, config, make_vote):
        ledger.submit(1, *make_vote(12345, 1))

        class ExplodingProver:
            async def prove(self, private, public):
                raise AssertionError("prove must not be called")

        session = make_session(ledger, hasher, ExplodingProver(), config, secret=12345)
        result = asyncio.run(session.cast_vote(1, 1))
        assert result.status is SessionStatus.ALREADY_VOTED
        assert session.has_voted_locally(1)

    def test_lost_race_reports_already_voted(self, hasher, prover, config):
        class RacingLedger:
            def has_voted(self, nullifier):
                return False

            def submit(self, *args):
                raise DuplicateVoteError("Vote already cast")

        session = make_session(RacingLedger(), hasher, prover, config, secret=12345)
        result = asyncio.run(session.cast_vote(1, 1))
        assert result.status is SessionStatus.ALREADY_VOTED
        assert result.error is None

    def test_rejected_proof_is_failure(self, hasher, prover, config):
        class RejectingLedger:
            def has_voted(self, nullifier):
                return False

            def submit(self, *args):
                raise InvalidProofError("Proof verification failed")

        session = make_session(RejectingLedger(), hasher, prover, config, secret=12345)
        result = asyncio.run(session.cast_vote(1, 1))
        assert result.status is SessionStatus.FAILED
        assert isinstance(result.error, InvalidProofError)
        assert not session.has_voted_locally(1)

    def test_check_status_follows_ledger(self, ledger, hasher, prover, config):
        session = make_session(ledger, hasher, prover, config, secret=12345)
        assert session.check_status(1) is False
        asyncio.run(session.cast_vote(1, 0))
        assert session.check_status(1) is True
        assert session.check_status(2) is False

    def test_proof_and_submit_are_timed(self, ledger, hasher, prover, config):
        session = make_session(ledger, hasher, prover, config, secret=12345)
        asyncio.run(session.cast_vote(1, 1))
        operations = session.monitor.get_summary()['operations']
        assert operations['generate_proof']['count'] == 1
        assert operations['submit_vote']['count'] == 1


class TestSecretStore:

    def test_identity_created_once(self):
        store = InMemorySecretStore()
        first = resolve_identity(store)
        assert resolve_identity(store).secret == first.secret
        assert 0 < first.secret

    def test_file_store_persists_with_owner_only_permissions(self, tmp_path):
        path = tmp_path / "keys" / "secret.json"
        identity = resolve_identity(FileSecretStore(path))
        identity.voted_proposals.add(3)
        FileSecretStore(path).save(identity)

        reloaded = FileSecretStore(path).load()
        assert reloaded.secret == identity.secret
        assert reloaded.voted_proposals == {3}
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_sealed_store(self, tmp_path):
        path = tmp_path / "secret.json"
        identity = resolve_identity(FileSecretStore(path, passphrase="correct horse"))

        document = json.loads(path.read_text())
        assert document['sealed'] is True
        assert hex(identity.secret) not in path.read_text()

        assert FileSecretStore(path, passphrase="correct horse").load().secret == identity.secret
        with pytest.raises(SecretStoreError):
            FileSecretStore(path, passphrase="wrong").load()
        with pytest.raises(SecretStoreError):
            FileSecretStore(path).load()

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "secret.json"
        path.write_text("{not json")
        with pytest.raises(SecretStoreError):
            FileSecretStore(path).load()

    def test_secret_not_in_repr(self):
        assert "12345" not in repr(VoterIdentity(secret=12345))

    def test_session_persists_across_instances(self, ledger, hasher, prover, config):
        store = FileSecretStore(config.secret_file)
        first = asyncio.run(make_session(ledger, hasher, prover, config, store=store).cast_vote(1, 1))
        assert first.status is SessionStatus.VOTED

        again = make_session(ledger, hasher, prover, config, store=FileSecretStore(config.secret_file))
        assert again.has_voted_locally(1)
        assert asyncio.run(again.cast_vote(1, 0)).status is SessionStatus.ALREADY_VOTED
