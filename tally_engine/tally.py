"""
Tally aggregator.

Keeps each candidate's running total as votes are accepted and answers
the aggregate queries: rankings, winners, timelines and time-range sums.
"""
import logging
from collections import defaultdict
from typing import Dict, Any, List

from .errors import EmptyResultError, ValidationError
from .ledger import VoteLedger
from .models import Candidate, Vote, format_timestamp, parse_timestamp
from .registry import IdentityRegistry

logger = logging.getLogger(__name__)


class TallyAggregator:
    """Running per-candidate totals, derived from the ledger."""

    def __init__(self, registry: IdentityRegistry, ledger: VoteLedger):
        self.registry = registry
        self.ledger = ledger

    def apply(self, vote: Vote) -> None:
        """
        Credit a vote's weight to its candidate.

        Must be called under ``ledger.lock`` together with the append.
        """
        candidate = self.registry.candidate_record(vote.candidate_id)
        candidate.votes += vote.weight

    def recompute(self) -> Dict[str, float]:
        """
        Rebuild every total from the ledger.

        Returns the recomputed totals without touching the running ones;
        the two must always agree.
        """
        with self.ledger.lock:
            totals: Dict[str, float] = defaultdict(float)
            for candidate in self.registry.candidate_records():
                totals[candidate.candidate_id] = 0.0
            for vote in self.ledger.votes():
                totals[vote.candidate_id] += vote.weight
            return dict(totals)

    def _standings(self) -> List[Candidate]:
        """Copies of all candidates, taken consistently with the ledger."""
        with self.ledger.lock:
            candidates = self.registry.list_candidates()
        if not candidates:
            raise EmptyResultError("No candidates registered")
        return candidates

    def results(self) -> List[Dict[str, Any]]:
        """
        All candidates by total, highest first.

        Equal totals keep registration order.

        Raises:
            EmptyResultError: If no candidates are registered
        """
        ranked = sorted(self._standings(), key=lambda c: c.votes, reverse=True)
        return [c.to_result() for c in ranked]

    def winners(self) -> List[Dict[str, Any]]:
        """
        Every candidate sharing the highest total.

        Raises:
            EmptyResultError: If no candidates are registered
        """
        candidates = self._standings()
        top = max(c.votes for c in candidates)
        return [c.to_result() for c in candidates if c.votes == top]

    def votes_for_candidate(self, candidate_id: str) -> float:
        """Current total for a candidate; NotFoundError if unknown."""
        with self.ledger.lock:
            return self.registry.candidate_record(candidate_id).votes

    def timeline(self, candidate_id: str) -> Dict[str, Any]:
        """
        Votes for a candidate in chronological order, without voter identity.

        Equal timestamps fall back to vote id order.
        """
        self.registry.candidate_record(candidate_id)
        votes = self.ledger.votes_for(candidate_id)
        votes.sort(key=lambda v: (v.timestamp, v.vote_id))
        return {
            "candidate_id": candidate_id,
            "timeline": [v.to_timeline_entry() for v in votes],
        }

    def votes_in_range(self, candidate_id: str, start, end) -> Dict[str, Any]:
        """
        Sum of weights for a candidate's votes cast within [start, end].

        Raises:
            ValidationError: If a bound is not a valid timestamp or start > end
            NotFoundError: If the candidate is unknown
        """
        start_at = parse_timestamp(start, "from")
        end_at = parse_timestamp(end, "to")
        if start_at > end_at:
            raise ValidationError("from must not be later than to")

        self.registry.candidate_record(candidate_id)
        gained = sum(
            (v.weight for v in self.ledger.votes_for(candidate_id)
             if start_at <= v.timestamp <= end_at),
            0.0
        )
        logger.debug(f"Range query: candidate_id={candidate_id}, votes_gained={gained}")
        return {
            "candidate_id": candidate_id,
            "from": format_timestamp(start_at),
            "to": format_timestamp(end_at),
            "votes_gained": gained,
        }
