"""
Election engine: the single owner of all tally state.

A vote flows registry (existence) -> integrity gate (uniqueness) ->
ledger (append) -> tally aggregator (total update). An encrypted ballot
flows integrity gate (nullifier) -> ballot store, without touching the
registry. Queries read only the ledger and the aggregated totals.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, Any, List, Optional

from prometheus_client import Counter

from .ballots import BallotVerifier, EncryptedBallotStore, generate_ballot_id
from .errors import TallyError, ValidationError
from .integrity import BallotIntegrityGate
from .ledger import VoteLedger
from .locks import KeyedLock
from .models import Voter, format_timestamp, utc_now, weight_for_status
from .registry import IdentityRegistry
from .tally import TallyAggregator

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1
SIMPLE_VOTE_WEIGHT = 1.0

# Prometheus metrics
votes_cast_total = Counter(
    'tally_votes_cast_total',
    'Total number of votes accepted',
    ['kind']
)

vote_rejections_total = Counter(
    'tally_vote_rejections_total',
    'Total number of rejected vote attempts',
    ['reason']
)

ballots_submitted_total = Counter(
    'tally_ballots_submitted_total',
    'Total number of encrypted ballots stored'
)

ballot_rejections_total = Counter(
    'tally_ballot_rejections_total',
    'Total number of rejected encrypted ballots',
    ['reason']
)

registrations_total = Counter(
    'tally_registrations_total',
    'Total number of voter and candidate registrations',
    ['kind']
)


class ElectionEngine:
    """In-memory election state with thread-safe operations."""

    def __init__(
        self,
        verifier: Optional[BallotVerifier] = None,
        clock: Callable[[], datetime] = utc_now,
        ballot_id_generator: Callable[[], str] = generate_ballot_id
    ):
        """
        Initialize an empty election.

        Args:
            verifier: Proof/signature verifier for encrypted ballots
            clock: Source of vote and ballot timestamps
            ballot_id_generator: Source of unique ballot identifiers
        """
        self.clock = clock
        self.registry = IdentityRegistry()
        self.gate = BallotIntegrityGate()
        self.ledger = VoteLedger(clock=clock)
        self.tally = TallyAggregator(self.registry, self.ledger)
        self.ballots = EncryptedBallotStore(
            self.gate,
            verifier=verifier,
            clock=clock,
            id_generator=ballot_id_generator
        )
        self._voter_locks = KeyedLock()

    # ═══════════════════════════════════════════════════════════════════
    # IDENTITY REGISTRY
    # ═══════════════════════════════════════════════════════════════════

    def _voter_view(self, voter: Voter) -> Dict[str, Any]:
        return voter.to_dict(has_voted=self.gate.has_voted(voter.voter_id))

    def register_voter(self, voter_id: str, name: str, age: int) -> Dict[str, Any]:
        voter = self.registry.register_voter(voter_id, name, age)
        registrations_total.labels(kind='voter').inc()
        return self._voter_view(voter)

    def get_voter(self, voter_id: str) -> Dict[str, Any]:
        return self._voter_view(self.registry.get_voter(voter_id))

    def list_voters(self) -> List[Dict[str, Any]]:
        return [self._voter_view(v) for v in self.registry.list_voters()]

    def update_voter(
        self,
        voter_id: str,
        name: Optional[str] = None,
        age: Optional[int] = None,
        status: Optional[str] = None
    ) -> Dict[str, Any]:
        with self._voter_locks.hold(voter_id):
            voter = self.registry.update_voter(voter_id, name=name, age=age, status=status)
        return self._voter_view(voter)

    def delete_voter(self, voter_id: str) -> Dict[str, Any]:
        """Delete a voter; votes they already cast stay counted."""
        with self._voter_locks.hold(voter_id):
            voter = self.registry.delete_voter(voter_id)
        return self._voter_view(voter)

    def register_candidate(
        self,
        candidate_id: str,
        name: str,
        party: str,
        age: Optional[int] = None
    ) -> Dict[str, Any]:
        candidate = self.registry.register_candidate(candidate_id, name, party, age)
        registrations_total.labels(kind='candidate').inc()
        return candidate.to_dict()

    def get_candidate(self, candidate_id: str) -> Dict[str, Any]:
        with self.ledger.lock:
            return self.registry.get_candidate(candidate_id).to_dict()

    def list_candidates(self, party: Optional[str] = None) -> List[Dict[str, Any]]:
        with self.ledger.lock:
            candidates = self.registry.list_candidates(party)
        return [c.to_dict() for c in candidates]

    # ═══════════════════════════════════════════════════════════════════
    # VOTE CASTING
    # ═══════════════════════════════════════════════════════════════════

    def cast_vote(self, voter_id: str, candidate_id: str) -> Dict[str, Any]:
        """
        Cast a simple vote of weight 1.

        Returns:
            dict: {vote_id, voter_id, candidate_id, timestamp}

        Raises:
            ValidationError: If an id is missing
            NotFoundError: If the voter or candidate is unknown
            DuplicateVoteError: If the voter already voted
        """
        return self._cast(voter_id, candidate_id, weighted=False).to_dict()

    def cast_weighted_vote(self, voter_id: str, candidate_id: str) -> Dict[str, Any]:
        """
        Cast a vote weighted by the voter's status.

        verified -> 2.0, inactive -> 0.5, anything else -> 1.0.

        Returns:
            dict: {vote_id, voter_id, candidate_id, weight, timestamp}
        """
        return self._cast(voter_id, candidate_id, weighted=True).to_dict()

    def _cast(self, voter_id: str, candidate_id: str, weighted: bool):
        kind = 'weighted' if weighted else 'simple'
        try:
            if not voter_id or not candidate_id:
                raise ValidationError("voter_id and candidate_id are required")

            with self._voter_locks.hold(voter_id):
                voter = self.registry.get_voter(voter_id)
                weight = weight_for_status(voter.status) if weighted else SIMPLE_VOTE_WEIGHT

                with self.ledger.lock:
                    # Resolve the candidate before any write so a miss changes nothing
                    self.registry.candidate_record(candidate_id)
                    self.gate.reserve_identity(voter_id)
                    try:
                        vote = self.ledger.append(voter_id, candidate_id, weight, weighted=weighted)
                        self.tally.apply(vote)
                    except Exception:
                        self.gate.release_identity(voter_id)
                        raise

        except TallyError as e:
            vote_rejections_total.labels(reason=type(e).__name__).inc()
            logger.warning(
                f"Vote rejected: voter_id={voter_id}, candidate_id={candidate_id}, "
                f"kind={kind}, reason={e.message}"
            )
            raise

        votes_cast_total.labels(kind=kind).inc()
        logger.info(
            f"Vote cast: vote_id={vote.vote_id}, candidate_id={candidate_id}, "
            f"kind={kind}, weight={weight}"
        )
        return vote

    # ═══════════════════════════════════════════════════════════════════
    # ENCRYPTED BALLOTS
    # ═══════════════════════════════════════════════════════════════════

    def submit_encrypted_ballot(
        self,
        election_id: str,
        ciphertext: str,
        zk_proof: str,
        voter_pubkey: str,
        nullifier: str,
        signature: str
    ) -> Dict[str, Any]:
        """
        Store an anonymous encrypted ballot.

        Returns:
            dict: {ballot_id, status, nullifier, anchored_at}
        """
        try:
            ballot = self.ballots.submit(
                election_id, ciphertext, zk_proof, voter_pubkey, nullifier, signature
            )
        except TallyError as e:
            ballot_rejections_total.labels(reason=type(e).__name__).inc()
            logger.warning(f"Encrypted ballot rejected: election_id={election_id}, reason={e.message}")
            raise

        ballots_submitted_total.inc()
        return ballot.to_receipt()

    def get_ballot(self, ballot_id: str) -> Dict[str, Any]:
        return self.ballots.get(ballot_id).to_dict()

    def list_ballots(self) -> List[Dict[str, Any]]:
        return [b.to_dict() for b in self.ballots.list_ballots()]

    # ═══════════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════════

    def results(self) -> List[Dict[str, Any]]:
        return self.tally.results()

    def winners(self) -> List[Dict[str, Any]]:
        return self.tally.winners()

    def votes_for_candidate(self, candidate_id: str) -> float:
        return self.tally.votes_for_candidate(candidate_id)

    def timeline(self, candidate_id: str) -> Dict[str, Any]:
        return self.tally.timeline(candidate_id)

    def votes_in_range(self, candidate_id: str, start, end) -> Dict[str, Any]:
        return self.tally.votes_in_range(candidate_id, start, end)

    def totals_consistent(self) -> bool:
        """True when every running total matches a recount of the ledger."""
        with self.ledger.lock:
            recounted = self.tally.recompute()
            running = {c.candidate_id: c.votes for c in self.registry.candidate_records()}
        if recounted != running:
            logger.error(f"Tally mismatch: running={running}, recounted={recounted}")
            return False
        return True

    # ═══════════════════════════════════════════════════════════════════
    # SNAPSHOTS
    # ═══════════════════════════════════════════════════════════════════

    def snapshot(self) -> Dict[str, Any]:
        """
        Serialize the full state to a JSON-compatible dictionary.

        Taken under the ledger and ballot store locks, so no vote or ballot
        is half-recorded in the result.
        """
        with self.ledger.lock, self.ballots.lock:
            data = {
                "version": SNAPSHOT_VERSION,
                "taken_at": format_timestamp(self.clock()),
                "ledger": self.ledger.snapshot(),
                "integrity": self.gate.snapshot(),
                "ballots": self.ballots.snapshot(),
            }
            data.update(self.registry.snapshot())
        logger.info(
            f"Snapshot taken: votes={len(data['ledger']['votes'])}, "
            f"ballots={len(data['ballots'])}"
        )
        return data

    @classmethod
    def restore(cls, data: Dict[str, Any], **kwargs) -> 'ElectionEngine':
        """
        Rebuild an engine from snapshot().

        Keyword arguments are passed to the constructor (verifier, clock, ...).

        Raises:
            ValidationError: If the snapshot is malformed, its vote ids are
                out of order, a ledger voter is missing from the voted
                identities, or totals do not match the ledger it carries
        """
        if not isinstance(data, dict) or data.get("version") != SNAPSHOT_VERSION:
            raise ValidationError("Unsupported snapshot format")

        engine = cls(**kwargs)
        try:
            engine.registry.restore(data)
            engine.gate.restore(data.get("integrity", {}))
            engine.ledger.restore(data.get("ledger", {}))
            engine.ballots.restore(data.get("ballots", []))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Malformed snapshot: {e}")

        votes = engine.ledger.votes()
        vote_ids = [v.vote_id for v in votes]
        if any(later <= earlier for earlier, later in zip(vote_ids, vote_ids[1:])):
            raise ValidationError("Snapshot vote ids are not strictly increasing")
        unreserved = sorted({v.voter_id for v in votes if not engine.gate.has_voted(v.voter_id)})
        if unreserved:
            raise ValidationError(f"Snapshot ledger voters missing from voted identities: {', '.join(unreserved)}")
        if not engine.totals_consistent():
            raise ValidationError("Snapshot totals do not match its ledger")
        logger.info(f"Engine restored: votes={len(engine.ledger)}, ballots={len(engine.ballots)}")
        return engine
