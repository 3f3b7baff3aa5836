"""
Data models and utilities for the tally engine.

This module contains:
- VoterStatus: enumerated voter states driving weighted votes
- Voter, Candidate: registry records
- Vote: immutable ledger entry
- EncryptedBallot: immutable anonymous ballot
- Timestamp formatting and parsing helpers
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, Union

from .config import settings
from .errors import ValidationError


class VoterStatus(str, Enum):
    """Verification status of a registered voter."""
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    INACTIVE = "inactive"


def utc_now() -> datetime:
    """Default clock: current UTC time, timezone-aware."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """
    Render a datetime as an ISO-8601 UTC string with Z suffix.

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Union[str, datetime, None], field_name: str = "timestamp") -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Args:
        value: ISO string (a trailing Z is accepted) or datetime
        field_name: Name used in the error message

    Returns:
        datetime: Timezone-aware UTC datetime

    Raises:
        ValidationError: If the value is missing or not a valid timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"{field_name} must be a valid ISO-8601 timestamp")
    else:
        raise ValidationError(f"{field_name} must be a valid ISO-8601 timestamp")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        # Offsets that push the instant outside the datetime range
        raise ValidationError(f"{field_name} must be a valid ISO-8601 timestamp")


def weight_for_status(status: Union[VoterStatus, str]) -> float:
    """
    Get the weight a voter's ballot carries, based on their status.

    Args:
        status: Voter status at cast time

    Returns:
        float: 2.0 for verified, 0.5 for inactive, 1.0 otherwise (configurable)
    """
    if status == VoterStatus.VERIFIED:
        return settings.WEIGHT_VERIFIED
    if status == VoterStatus.INACTIVE:
        return settings.WEIGHT_INACTIVE
    return settings.WEIGHT_DEFAULT


@dataclass
class Voter:
    """
    Registered voter.

    Attributes:
        voter_id: Unique, immutable voter identifier
        name: Display name
        age: Age in years
        status: Verification status, drives weighted votes
    """
    voter_id: str
    name: str
    age: int
    status: VoterStatus = VoterStatus.UNVERIFIED

    def to_dict(self, has_voted: bool = False) -> Dict[str, Any]:
        """Convert to dictionary, with the derived has_voted flag."""
        return {
            "voter_id": self.voter_id,
            "name": self.name,
            "age": self.age,
            "status": self.status.value,
            "has_voted": has_voted,
        }

    def to_record(self) -> Dict[str, Any]:
        """Convert to a snapshot record."""
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Voter':
        """Create Voter from dictionary."""
        return cls(
            voter_id=data["voter_id"],
            name=data["name"],
            age=data["age"],
            status=VoterStatus(data.get("status", VoterStatus.UNVERIFIED)),
        )


@dataclass
class Candidate:
    """
    Registered candidate with running vote total.

    The total is owned by the tally aggregator; nothing else writes it.
    """
    candidate_id: str
    name: str
    party: str
    age: Optional[int] = None
    votes: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    def to_result(self) -> Dict[str, Any]:
        """Convert to a results row."""
        return {"candidate_id": self.candidate_id, "name": self.name, "votes": self.votes}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Candidate':
        """Create Candidate from dictionary."""
        return cls(**data)


@dataclass(frozen=True)
class Vote:
    """
    Ledger entry for an accepted vote.

    Attributes:
        vote_id: Strictly increasing in cast order
        voter_id: Voter who cast it (may no longer be registered)
        candidate_id: Candidate receiving it
        weight: Contribution to the candidate's total
        timestamp: Cast time (UTC)
        weighted: True when cast through the weighted path
    """
    vote_id: int
    voter_id: str
    candidate_id: str
    weight: float
    timestamp: datetime
    weighted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the cast response; weight is included for weighted votes."""
        data = {
            "vote_id": self.vote_id,
            "voter_id": self.voter_id,
            "candidate_id": self.candidate_id,
            "timestamp": format_timestamp(self.timestamp),
        }
        if self.weighted:
            data["weight"] = self.weight
        return data

    def to_record(self) -> Dict[str, Any]:
        """Convert to a full record for snapshots."""
        data = asdict(self)
        data["timestamp"] = format_timestamp(self.timestamp)
        return data

    def to_timeline_entry(self) -> Dict[str, Any]:
        """Timeline view: no voter identity."""
        return {"vote_id": self.vote_id, "timestamp": format_timestamp(self.timestamp)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Vote':
        """Create Vote from a snapshot record."""
        return cls(
            vote_id=int(data["vote_id"]),
            voter_id=data["voter_id"],
            candidate_id=data["candidate_id"],
            weight=float(data["weight"]),
            timestamp=parse_timestamp(data["timestamp"]),
            weighted=bool(data.get("weighted", False)),
        )


@dataclass(frozen=True)
class EncryptedBallot:
    """
    Anonymous encrypted ballot.

    Carries no voter identifier; uniqueness comes from the nullifier alone.
    """
    ballot_id: str
    election_id: str
    ciphertext: str
    zk_proof: str
    voter_pubkey: str
    nullifier: str
    anchored_at: datetime = field(default_factory=utc_now)

    def to_receipt(self, status: str = "accepted") -> Dict[str, Any]:
        """Convert to the submission response."""
        return {
            "ballot_id": self.ballot_id,
            "status": status,
            "nullifier": self.nullifier,
            "anchored_at": format_timestamp(self.anchored_at),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["anchored_at"] = format_timestamp(self.anchored_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EncryptedBallot':
        """Create EncryptedBallot from dictionary."""
        values = dict(data)
        values["anchored_at"] = parse_timestamp(values["anchored_at"], "anchored_at")
        return cls(**values)
