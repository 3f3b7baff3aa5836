"""Tests for simple and weighted vote casting.

Covers identifier allocation, weights by voter status, exactly-once voting
and the all-or-nothing behaviour of failed casts.
"""

import threading

import pytest

from tally_engine import DuplicateVoteError, NotFoundError, ValidationError


class TestCastVote:
    """Tests for the simple voting path."""

    def test_cast_vote_response(self, seeded_engine):
        vote = seeded_engine.cast_vote("v1", "alice")

        assert vote == {
            "vote_id": 1,
            "voter_id": "v1",
            "candidate_id": "alice",
            "timestamp": "2026-03-01T09:00:00Z",
        }
        assert seeded_engine.votes_for_candidate("alice") == 1.0
        assert seeded_engine.get_voter("v1")["has_voted"] is True

    def test_simple_vote_ignores_status(self, seeded_engine):
        seeded_engine.update_voter("v1", status="verified")
        seeded_engine.cast_vote("v1", "alice")

        assert seeded_engine.votes_for_candidate("alice") == 1.0

    def test_vote_ids_increase_in_cast_order(self, seeded_engine):
        ids = [
            seeded_engine.cast_vote("v1", "alice")["vote_id"],
            seeded_engine.cast_weighted_vote("v2", "bob")["vote_id"],
            seeded_engine.cast_vote("v3", "alice")["vote_id"],
            seeded_engine.cast_weighted_vote("v4", "carol")["vote_id"],
        ]
        assert ids == [1, 2, 3, 4]

    def test_second_vote_is_duplicate(self, seeded_engine):
        """Flow: vote once, then every further attempt on either path fails."""
        seeded_engine.cast_vote("v1", "alice")

        with pytest.raises(DuplicateVoteError):
            seeded_engine.cast_vote("v1", "alice")
        with pytest.raises(DuplicateVoteError):
            seeded_engine.cast_vote("v1", "bob")
        with pytest.raises(DuplicateVoteError):
            seeded_engine.cast_weighted_vote("v1", "carol")

        assert seeded_engine.votes_for_candidate("alice") == 1.0
        assert seeded_engine.votes_for_candidate("bob") == 0.0
        assert len(seeded_engine.ledger) == 1

    def test_unknown_voter(self, seeded_engine):
        with pytest.raises(NotFoundError, match="Voter"):
            seeded_engine.cast_vote("ghost", "alice")

    def test_unknown_candidate_leaves_no_reservation(self, seeded_engine):
        """A failed cast must not consume the voter's single vote."""
        with pytest.raises(NotFoundError, match="Candidate"):
            seeded_engine.cast_vote("v1", "nobody")

        assert seeded_engine.get_voter("v1")["has_voted"] is False
        assert len(seeded_engine.ledger) == 0
        seeded_engine.cast_vote("v1", "alice")

    @pytest.mark.parametrize("voter_id, candidate_id", [(None, "alice"), ("v1", ""), (None, None)])
    def test_missing_ids(self, seeded_engine, voter_id, candidate_id):
        with pytest.raises(ValidationError):
            seeded_engine.cast_vote(voter_id, candidate_id)

    def test_deleted_voter_cannot_vote(self, seeded_engine):
        seeded_engine.delete_voter("v1")
        with pytest.raises(NotFoundError):
            seeded_engine.cast_vote("v1", "alice")

    def test_failed_append_releases_identity(self, seeded_engine, monkeypatch):
        def broken_append(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(seeded_engine.ledger, "append", broken_append)

        with pytest.raises(RuntimeError):
            seeded_engine.cast_vote("v1", "alice")
        assert seeded_engine.get_voter("v1")["has_voted"] is False
        assert seeded_engine.votes_for_candidate("alice") == 0.0


class TestWeightedVote:
    """Tests for the weighted voting path."""

    @pytest.mark.parametrize("status, weight", [
        ("verified", 2.0),
        ("inactive", 0.5),
        ("unverified", 1.0),
    ])
    def test_weight_follows_status(self, seeded_engine, status, weight):
        seeded_engine.update_voter("v1", status=status)

        vote = seeded_engine.cast_weighted_vote("v1", "bob")

        assert vote["weight"] == weight
        assert set(vote) == {"vote_id", "voter_id", "candidate_id", "weight", "timestamp"}
        assert seeded_engine.votes_for_candidate("bob") == weight

    def test_fractional_totals(self, seeded_engine):
        seeded_engine.update_voter("v1", status="inactive")
        seeded_engine.update_voter("v2", status="inactive")
        seeded_engine.update_voter("v3", status="verified")
        for voter_id in ("v1", "v2", "v3", "v4"):
            seeded_engine.cast_weighted_vote(voter_id, "carol")

        assert seeded_engine.votes_for_candidate("carol") == 4.0
        assert seeded_engine.totals_consistent()

    def test_weight_taken_at_cast_time(self, seeded_engine):
        """Changing status after voting does not change the counted weight."""
        seeded_engine.update_voter("v1", status="verified")
        seeded_engine.cast_weighted_vote("v1", "alice")
        seeded_engine.update_voter("v1", status="inactive")

        assert seeded_engine.votes_for_candidate("alice") == 2.0


class TestConcurrentCasting:
    """Tests for exactly-once acceptance under concurrent requests."""

    def _race(self, n, target):
        barrier = threading.Barrier(n)
        outcomes = []
        lock = threading.Lock()

        def run(i):
            barrier.wait()
            try:
                target(i)
                result = "ok"
            except DuplicateVoteError:
                result = "dup"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=run, args=(i,)) for i in range(n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return outcomes

    def test_same_voter_exactly_one_succeeds(self, seeded_engine):
        candidates = ["alice", "bob", "carol"]

        def cast(i):
            if i % 2:
                seeded_engine.cast_weighted_vote("v1", candidates[i % 3])
            else:
                seeded_engine.cast_vote("v1", candidates[i % 3])

        outcomes = self._race(20, cast)

        assert outcomes.count("ok") == 1
        assert outcomes.count("dup") == 19
        assert len(seeded_engine.ledger) == 1
        assert sum(r["votes"] for r in seeded_engine.results()) == 1.0
        assert seeded_engine.totals_consistent()

    def test_different_voters_all_succeed(self, engine):
        engine.register_candidate("c1", "One", "P")
        for i in range(40):
            engine.register_voter(f"voter-{i}", f"Voter {i}", 40)

        outcomes = self._race(40, lambda i: engine.cast_vote(f"voter-{i}", "c1"))

        assert outcomes.count("ok") == 40
        assert engine.votes_for_candidate("c1") == 40.0
        ids = [v.vote_id for v in engine.ledger.votes()]
        assert ids == sorted(ids) == list(range(1, 41))
