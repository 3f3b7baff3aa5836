"""Append-only vote ledger and the vote identifier allocator."""
import logging
import threading
from datetime import datetime
from typing import Callable, Dict, Any, List, Optional

from .models import Vote, parse_timestamp, utc_now

logger = logging.getLogger(__name__)


class VoteIdAllocator:
    """
    Single source of vote identifiers for every cast path.

    Identifiers start at 1 and strictly increase.
    """

    def __init__(self, start: int = 1):
        self._lock = threading.Lock()
        self._next = start

    def allocate(self) -> int:
        with self._lock:
            vote_id = self._next
            self._next += 1
            return vote_id

    @property
    def position(self) -> int:
        """Identifier the next allocation will return."""
        with self._lock:
            return self._next

    def advance_to(self, position: int) -> None:
        """Move forward so no identifier below ``position`` is handed out again."""
        with self._lock:
            self._next = max(self._next, position)


class VoteLedger:
    """
    Append-only log of accepted votes.

    ``lock`` guards the log; the tally aggregator updates totals under the
    same lock so an appended vote and its total change are seen together.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        allocator: Optional[VoteIdAllocator] = None
    ):
        self.lock = threading.RLock()
        self.clock = clock
        self.allocator = allocator or VoteIdAllocator()
        self._votes: List[Vote] = []

    def append(self, voter_id: str, candidate_id: str, weight: float, weighted: bool = False) -> Vote:
        """
        Record a vote with the next identifier and the current time.

        Identifier and timestamp are taken under the ledger lock, so both
        follow append order.
        """
        with self.lock:
            vote = Vote(
                vote_id=self.allocator.allocate(),
                voter_id=voter_id,
                candidate_id=candidate_id,
                weight=weight,
                timestamp=parse_timestamp(self.clock()),
                weighted=weighted,
            )
            self._votes.append(vote)
            logger.debug(f"Vote appended: vote_id={vote.vote_id}, candidate_id={candidate_id}")
            return vote

    def votes(self) -> List[Vote]:
        """All votes in cast order."""
        with self.lock:
            return list(self._votes)

    def votes_for(self, candidate_id: str) -> List[Vote]:
        """Votes for one candidate, in cast order."""
        with self.lock:
            return [v for v in self._votes if v.candidate_id == candidate_id]

    def __len__(self) -> int:
        with self.lock:
            return len(self._votes)

    def snapshot(self) -> Dict[str, Any]:
        with self.lock:
            return {
                "votes": [v.to_record() for v in self._votes],
                "next_vote_id": self.allocator.position,
            }

    def restore(self, data: Dict[str, Any]) -> None:
        with self.lock:
            self._votes = [Vote.from_dict(record) for record in data.get("votes", [])]
            last_id = max((v.vote_id for v in self._votes), default=0)
            self.allocator.advance_to(max(last_id + 1, int(data.get("next_vote_id", 1))))
