"""
Election vote-tallying and ballot-integrity engine.

This package contains:
- ElectionEngine: owner of all election state
- Identity registry, integrity gate, vote ledger, tally aggregator and
  encrypted ballot store components
- Data models (Voter, Candidate, Vote, EncryptedBallot)
- The error hierarchy rooted at TallyError
"""

from .ballots import BallotVerifier, PermissiveVerifier, generate_ballot_id
from .engine import ElectionEngine
from .errors import (
    TallyError,
    ValidationError,
    ConflictError,
    NotFoundError,
    DuplicateVoteError,
    InvalidProofError,
    InvalidSignatureError,
    EmptyResultError,
    SnapshotError,
)
from .models import (
    Voter,
    VoterStatus,
    Candidate,
    Vote,
    EncryptedBallot,
    format_timestamp,
    parse_timestamp,
    weight_for_status,
)

__all__ = [
    'ElectionEngine',
    'BallotVerifier',
    'PermissiveVerifier',
    'generate_ballot_id',
    'TallyError',
    'ValidationError',
    'ConflictError',
    'NotFoundError',
    'DuplicateVoteError',
    'InvalidProofError',
    'InvalidSignatureError',
    'EmptyResultError',
    'SnapshotError',
    'Voter',
    'VoterStatus',
    'Candidate',
    'Vote',
    'EncryptedBallot',
    'format_timestamp',
    'parse_timestamp',
    'weight_for_status',
]

__version__ = '2.0.0'
