"""Identity registry: voter and candidate records."""
import dataclasses
import logging
import threading
from typing import Dict, List, Optional

from .config import settings
from .errors import ConflictError, NotFoundError, ValidationError
from .models import Candidate, Voter, VoterStatus

logger = logging.getLogger(__name__)


def _validate_age(age, minimum: int, maximum: int) -> int:
    """Check age is an integer inside [minimum, maximum]."""
    if isinstance(age, bool) or not isinstance(age, int):
        raise ValidationError("age must be an integer")
    if age < minimum or age > maximum:
        raise ValidationError(f"age must be between {minimum} and {maximum}")
    return age


def _require_text(value, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value


class IdentityRegistry:
    """Stores voters and candidates and owns the uniqueness of their ids."""

    def __init__(self):
        self._lock = threading.RLock()
        self._voters: Dict[str, Voter] = {}
        self._candidates: Dict[str, Candidate] = {}

    # Voters

    def register_voter(self, voter_id: str, name: str, age: int) -> Voter:
        """
        Register a new voter with status ``unverified``.

        Raises:
            ValidationError: If a field is missing or age is outside [0, 150]
            ConflictError: If the voter id is already registered
        """
        if not voter_id or not name or age is None:
            raise ValidationError("voter_id, name, and age are required")
        _require_text(voter_id, "voter_id")
        _require_text(name, "name")
        _validate_age(age, settings.VOTER_MIN_AGE, settings.VOTER_MAX_AGE)

        with self._lock:
            if voter_id in self._voters:
                raise ConflictError(f"voter with id: {voter_id} already exists")
            voter = Voter(voter_id=voter_id, name=name, age=age)
            self._voters[voter_id] = voter
            logger.info(f"Voter registered: voter_id={voter_id}")
            return dataclasses.replace(voter)

    def get_voter(self, voter_id: str) -> Voter:
        """Get a copy of a voter record, or raise NotFoundError."""
        with self._lock:
            voter = self._voters.get(voter_id)
            if voter is None:
                raise NotFoundError("Voter not found")
            return dataclasses.replace(voter)

    def list_voters(self) -> List[Voter]:
        """All voters in registration order."""
        with self._lock:
            return [dataclasses.replace(v) for v in self._voters.values()]

    def update_voter(
        self,
        voter_id: str,
        name: Optional[str] = None,
        age: Optional[int] = None,
        status: Optional[str] = None
    ) -> Voter:
        """
        Update a voter's name, age or status.

        All fields are validated before any is applied.

        Raises:
            NotFoundError: If the voter is not registered
            ValidationError: If age is outside [18, 150], name is not a
                non-empty string, or status is unknown
        """
        if age is not None:
            _validate_age(age, settings.UPDATE_MIN_AGE, settings.VOTER_MAX_AGE)
        if name is not None:
            _require_text(name, "name")
        new_status = None
        if status is not None:
            try:
                new_status = VoterStatus(status)
            except ValueError:
                allowed = ", ".join(s.value for s in VoterStatus)
                raise ValidationError(f"status must be one of: {allowed}")

        with self._lock:
            voter = self._voters.get(voter_id)
            if voter is None:
                raise NotFoundError("Voter not found")
            if name is not None:
                voter.name = name
            if age is not None:
                voter.age = age
            if new_status is not None:
                voter.status = new_status
            logger.info(f"Voter updated: voter_id={voter_id}")
            return dataclasses.replace(voter)

    def delete_voter(self, voter_id: str) -> Voter:
        """
        Remove a voter record.

        Votes already cast by the voter stay in the ledger.
        """
        with self._lock:
            voter = self._voters.pop(voter_id, None)
            if voter is None:
                raise NotFoundError("Voter not found")
            logger.info(f"Voter deleted: voter_id={voter_id}")
            return voter

    # Candidates

    def register_candidate(
        self,
        candidate_id: str,
        name: str,
        party: str,
        age: Optional[int] = None
    ) -> Candidate:
        """
        Register a candidate with a zero vote total.

        Raises:
            ValidationError: If a field is missing or age (when given) is outside [18, 150]
            ConflictError: If the candidate id is already registered
        """
        if not candidate_id or not name or not party:
            raise ValidationError("candidate_id, name, and party are required")
        _require_text(candidate_id, "candidate_id")
        _require_text(name, "name")
        _require_text(party, "party")
        if age is not None:
            _validate_age(age, settings.CANDIDATE_MIN_AGE, settings.VOTER_MAX_AGE)

        with self._lock:
            if candidate_id in self._candidates:
                raise ConflictError(f"candidate with id: {candidate_id} already exists")
            candidate = Candidate(candidate_id=candidate_id, name=name, party=party, age=age)
            self._candidates[candidate_id] = candidate
            logger.info(f"Candidate registered: candidate_id={candidate_id}, party={party}")
            return dataclasses.replace(candidate)

    def get_candidate(self, candidate_id: str) -> Candidate:
        """Get a copy of a candidate record, or raise NotFoundError."""
        with self._lock:
            return dataclasses.replace(self.candidate_record(candidate_id))

    def list_candidates(self, party: Optional[str] = None) -> List[Candidate]:
        """
        All candidates in registration order, optionally filtered by party.

        The party filter is a case-insensitive exact match. An empty or
        blank filter is the same as no filter.

        Raises:
            NotFoundError: If a party filter matches no candidate
        """
        with self._lock:
            candidates = [dataclasses.replace(c) for c in self._candidates.values()]
        if party is None or not party.strip():
            return candidates

        wanted = party.casefold()
        matching = [c for c in candidates if c.party.casefold() == wanted]
        if not matching:
            raise NotFoundError(f"No candidates found for party: {party}")
        return matching

    def candidate_record(self, candidate_id: str) -> Candidate:
        """
        Live candidate record, for the tally aggregator.

        Callers other than the aggregator should use get_candidate().
        """
        with self._lock:
            candidate = self._candidates.get(candidate_id)
            if candidate is None:
                raise NotFoundError("Candidate not found")
            return candidate

    def candidate_records(self) -> List[Candidate]:
        """Live candidate records in registration order, for the tally aggregator."""
        with self._lock:
            return list(self._candidates.values())

    def has_candidate(self, candidate_id: str) -> bool:
        with self._lock:
            return candidate_id in self._candidates

    # Snapshots

    def snapshot(self) -> Dict[str, list]:
        with self._lock:
            return {
                "voters": [v.to_record() for v in self._voters.values()],
                "candidates": [c.to_dict() for c in self._candidates.values()],
            }

    def restore(self, data: Dict[str, list]) -> None:
        """Replace all records with those from a snapshot."""
        with self._lock:
            self._voters = {}
            for record in data.get("voters", []):
                voter = Voter.from_dict(record)
                self._voters[voter.voter_id] = voter
            self._candidates = {}
            for record in data.get("candidates", []):
                candidate = Candidate.from_dict(record)
                self._candidates[candidate.candidate_id] = candidate
