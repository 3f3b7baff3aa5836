"""Tests for voter and candidate registration, lookup, update and deletion."""

import pytest

from tally_engine import ConflictError, NotFoundError, ValidationError


class TestVoterRegistration:
    """Tests for registering and reading voters."""

    def test_register_voter_defaults(self, engine):
        """A new voter is unverified and has not voted."""
        voter = engine.register_voter("v1", "Ada", 34)

        assert voter == {
            "voter_id": "v1",
            "name": "Ada",
            "age": 34,
            "status": "unverified",
            "has_voted": False,
        }
        assert engine.get_voter("v1") == voter

    @pytest.mark.parametrize("age", [0, 150])
    def test_register_voter_age_bounds_inclusive(self, engine, age):
        assert engine.register_voter("v1", "Ada", age)["age"] == age

    @pytest.mark.parametrize("age", [-1, 151, "30", 30.5, True])
    def test_register_voter_rejects_bad_age(self, engine, age):
        with pytest.raises(ValidationError):
            engine.register_voter("v1", "Ada", age)
        assert engine.list_voters() == []

    @pytest.mark.parametrize("voter_id, name, age", [
        (None, "Ada", 30),
        ("", "Ada", 30),
        ("v1", None, 30),
        ("v1", "", 30),
        ("v1", "Ada", None),
    ])
    def test_register_voter_requires_fields(self, engine, voter_id, name, age):
        with pytest.raises(ValidationError, match="required"):
            engine.register_voter(voter_id, name, age)

    def test_duplicate_voter_conflicts(self, engine):
        engine.register_voter("v1", "Ada", 34)

        with pytest.raises(ConflictError, match="already exists"):
            engine.register_voter("v1", "Someone Else", 50)

        assert engine.get_voter("v1")["name"] == "Ada"

    def test_unknown_voter_not_found(self, engine):
        with pytest.raises(NotFoundError):
            engine.get_voter("ghost")

    def test_list_voters_in_registration_order(self, seeded_engine):
        ids = [v["voter_id"] for v in seeded_engine.list_voters()]
        assert ids == ["v1", "v2", "v3", "v4", "v5", "v6"]

    def test_returned_records_are_copies(self, engine):
        engine.register_voter("v1", "Ada", 34)
        voter = engine.registry.get_voter("v1")
        voter.name = "Mallory"

        assert engine.get_voter("v1")["name"] == "Ada"


class TestVoterUpdate:
    """Tests for updating and deleting voters."""

    def test_update_name_age_status(self, seeded_engine):
        voter = seeded_engine.update_voter("v1", name="Renamed", age=40, status="verified")

        assert voter["name"] == "Renamed"
        assert voter["age"] == 40
        assert voter["status"] == "verified"

    def test_update_leaves_omitted_fields(self, seeded_engine):
        voter = seeded_engine.update_voter("v2", age=18)

        assert voter["name"] == "Voter 2"
        assert voter["age"] == 18

    @pytest.mark.parametrize("age", [17, 0, 151])
    def test_update_age_range_is_18_to_150(self, seeded_engine, age):
        with pytest.raises(ValidationError, match="between 18 and 150"):
            seeded_engine.update_voter("v1", age=age)
        assert seeded_engine.get_voter("v1")["age"] == 31

    def test_update_rejects_unknown_status(self, seeded_engine):
        with pytest.raises(ValidationError, match="status must be one of"):
            seeded_engine.update_voter("v1", status="superuser")

    def test_invalid_update_changes_nothing(self, seeded_engine):
        """A bad age rejects the whole update, including a valid name."""
        with pytest.raises(ValidationError):
            seeded_engine.update_voter("v1", name="New Name", age=5)
        assert seeded_engine.get_voter("v1")["name"] == "Voter 1"

    def test_update_rejects_empty_name(self, seeded_engine):
        with pytest.raises(ValidationError):
            seeded_engine.update_voter("v1", name="")

    def test_update_unknown_voter(self, engine):
        with pytest.raises(NotFoundError):
            engine.update_voter("ghost", name="x")

    def test_delete_voter(self, seeded_engine):
        deleted = seeded_engine.delete_voter("v1")

        assert deleted["voter_id"] == "v1"
        with pytest.raises(NotFoundError):
            seeded_engine.get_voter("v1")
        with pytest.raises(NotFoundError):
            seeded_engine.delete_voter("v1")

    def test_delete_keeps_cast_votes(self, seeded_engine):
        """Votes by a deleted voter remain historical facts."""
        seeded_engine.cast_vote("v1", "alice")
        seeded_engine.delete_voter("v1")

        assert seeded_engine.votes_for_candidate("alice") == 1.0
        assert len(seeded_engine.timeline("alice")["timeline"]) == 1
        assert seeded_engine.totals_consistent()


class TestCandidates:
    """Tests for candidate registration and listing."""

    def test_register_candidate(self, engine):
        candidate = engine.register_candidate("c1", "Grace", "Blue", 52)

        assert candidate == {
            "candidate_id": "c1",
            "name": "Grace",
            "party": "Blue",
            "age": 52,
            "votes": 0.0,
        }

    def test_candidate_age_optional(self, engine):
        assert engine.register_candidate("c1", "Grace", "Blue")["age"] is None

    @pytest.mark.parametrize("age", [17, 151])
    def test_candidate_age_range(self, engine, age):
        with pytest.raises(ValidationError):
            engine.register_candidate("c1", "Grace", "Blue", age)

    def test_candidate_requires_party(self, engine):
        with pytest.raises(ValidationError, match="required"):
            engine.register_candidate("c1", "Grace", None)

    def test_duplicate_candidate_conflicts(self, engine):
        engine.register_candidate("c1", "Grace", "Blue")
        with pytest.raises(ConflictError):
            engine.register_candidate("c1", "Other", "Red")

    def test_party_filter_is_case_insensitive(self, seeded_engine):
        blue = seeded_engine.list_candidates("BLUE")
        assert [c["candidate_id"] for c in blue] == ["alice", "carol"]

    def test_party_filter_is_exact(self, seeded_engine):
        with pytest.raises(NotFoundError):
            seeded_engine.list_candidates("Blu")

    @pytest.mark.parametrize("party", ["", "   "])
    def test_blank_party_filter_lists_all(self, seeded_engine, party):
        listed = seeded_engine.list_candidates(party)
        assert [c["candidate_id"] for c in listed] == ["alice", "bob", "carol"]

    def test_list_without_filter_may_be_empty(self, engine):
        assert engine.list_candidates() == []

    def test_unknown_candidate(self, engine):
        with pytest.raises(NotFoundError):
            engine.get_candidate("nobody")
