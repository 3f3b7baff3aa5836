"""Ballot integrity gate: exactly-once voting by identity and by nullifier."""
import logging
import threading
from typing import Dict, List, Set

from .errors import DuplicateVoteError

logger = logging.getLogger(__name__)


class BallotIntegrityGate:
    """
    Two independent uniqueness sets.

    ``voted_identities`` holds voter ids that cast a plaintext or weighted
    vote; ``used_nullifiers`` holds nullifiers consumed by encrypted ballots.
    A voter in the first set is not blocked from the second channel.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._voted_identities: Set[str] = set()
        self._used_nullifiers: Set[str] = set()

    def reserve_identity(self, voter_id: str) -> None:
        """
        Insert voter_id if absent, in one step.

        Raises:
            DuplicateVoteError: If the voter already voted
        """
        with self._lock:
            if voter_id in self._voted_identities:
                logger.debug(f"Identity already reserved: voter_id={voter_id}")
                raise DuplicateVoteError(f"Voter {voter_id} has already voted")
            self._voted_identities.add(voter_id)

    def release_identity(self, voter_id: str) -> None:
        """Undo a reservation whose cast did not complete."""
        with self._lock:
            self._voted_identities.discard(voter_id)

    def reserve_nullifier(self, nullifier: str) -> None:
        """
        Insert nullifier if absent, in one step.

        Raises:
            DuplicateVoteError: If the nullifier was already used
        """
        with self._lock:
            if nullifier in self._used_nullifiers:
                logger.debug(f"Nullifier already used: {nullifier}")
                raise DuplicateVoteError("Nullifier has already been used")
            self._used_nullifiers.add(nullifier)

    def has_voted(self, voter_id: str) -> bool:
        with self._lock:
            return voter_id in self._voted_identities

    def is_nullifier_used(self, nullifier: str) -> bool:
        with self._lock:
            return nullifier in self._used_nullifiers

    def snapshot(self) -> Dict[str, List[str]]:
        with self._lock:
            return {
                "voted_identities": sorted(self._voted_identities),
                "used_nullifiers": sorted(self._used_nullifiers),
            }

    def restore(self, data: Dict[str, List[str]]) -> None:
        with self._lock:
            self._voted_identities = set(data.get("voted_identities", []))
            self._used_nullifiers = set(data.get("used_nullifiers", []))
