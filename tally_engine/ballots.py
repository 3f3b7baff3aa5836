"""
Encrypted ballot store.

Anonymous ballots are checked against the nullifier set, verified by an
injected verifier and stored opaquely. Nothing here touches candidate
totals; decrypting and tabulating these ballots happens elsewhere.
"""
import logging
import secrets
import threading
from datetime import datetime
from typing import Callable, Dict, Any, List, Optional, Protocol

from .config import settings
from .errors import (
    DuplicateVoteError,
    InvalidProofError,
    InvalidSignatureError,
    NotFoundError,
    ValidationError,
)
from .integrity import BallotIntegrityGate
from .locks import KeyedLock
from .models import EncryptedBallot, parse_timestamp, utc_now

logger = logging.getLogger(__name__)


class BallotVerifier(Protocol):
    """Checks ballot proofs and signatures; each method returns a bool."""

    def verify_proof(self, election_id: str, ciphertext: str, zk_proof: str, nullifier: str) -> bool:
        ...

    def verify_signature(self, voter_pubkey: str, message: str, signature: str) -> bool:
        ...


class PermissiveVerifier:
    """
    Accepts every proof and signature.

    Stand-in until a real verifier is wired in.
    """

    def __init__(self):
        logger.warning("PermissiveVerifier in use: ballot proofs and signatures are not checked")

    def verify_proof(self, election_id: str, ciphertext: str, zk_proof: str, nullifier: str) -> bool:
        return True

    def verify_signature(self, voter_pubkey: str, message: str, signature: str) -> bool:
        return True


def generate_ballot_id() -> str:
    """Random ballot identifier of the form ``b_<hex>``."""
    return f"b_{secrets.token_hex(settings.BALLOT_ID_BYTES)}"


def signed_message(election_id: str, ciphertext: str, nullifier: str) -> str:
    """Message a voter signs when submitting a ballot."""
    return f"{election_id}|{ciphertext}|{nullifier}"


class EncryptedBallotStore:
    """Holds encrypted ballots keyed by generated ballot id."""

    REQUIRED_FIELDS = ("election_id", "ciphertext", "zk_proof", "voter_pubkey", "nullifier", "signature")

    def __init__(
        self,
        gate: BallotIntegrityGate,
        verifier: Optional[BallotVerifier] = None,
        clock: Callable[[], datetime] = utc_now,
        id_generator: Callable[[], str] = generate_ballot_id
    ):
        self.gate = gate
        self.verifier = verifier or PermissiveVerifier()
        self.clock = clock
        self.id_generator = id_generator
        self.lock = threading.RLock()
        self._nullifier_locks = KeyedLock()
        self._ballots: Dict[str, EncryptedBallot] = {}

    def submit(
        self,
        election_id: str,
        ciphertext: str,
        zk_proof: str,
        voter_pubkey: str,
        nullifier: str,
        signature: str
    ) -> EncryptedBallot:
        """
        Verify and store an encrypted ballot.

        Raises:
            ValidationError: If any field is missing
            DuplicateVoteError: If the nullifier was already used
            InvalidProofError: If the verifier rejects the proof
            InvalidSignatureError: If the verifier rejects the signature
        """
        values = {
            "election_id": election_id,
            "ciphertext": ciphertext,
            "zk_proof": zk_proof,
            "voter_pubkey": voter_pubkey,
            "nullifier": nullifier,
            "signature": signature,
        }
        missing = [name for name in self.REQUIRED_FIELDS if values[name] in (None, "")]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        election_id = str(election_id)

        with self._nullifier_locks.hold(nullifier):
            if self.gate.is_nullifier_used(nullifier):
                raise DuplicateVoteError("Nullifier has already been used")

            if not self.verifier.verify_proof(election_id, ciphertext, zk_proof, nullifier):
                raise InvalidProofError("Zero-knowledge proof verification failed")
            message = signed_message(election_id, ciphertext, nullifier)
            if not self.verifier.verify_signature(voter_pubkey, message, signature):
                raise InvalidSignatureError("Ballot signature verification failed")

            anchored_at = parse_timestamp(self.clock(), "anchored_at")
            with self.lock:
                self.gate.reserve_nullifier(nullifier)
                ballot_id = self.id_generator()
                while ballot_id in self._ballots:
                    ballot_id = self.id_generator()
                ballot = EncryptedBallot(
                    ballot_id=ballot_id,
                    election_id=election_id,
                    ciphertext=ciphertext,
                    zk_proof=zk_proof,
                    voter_pubkey=voter_pubkey,
                    nullifier=nullifier,
                    anchored_at=anchored_at,
                )
                self._ballots[ballot_id] = ballot

        logger.info(f"Encrypted ballot stored: ballot_id={ballot.ballot_id}, election_id={election_id}")
        return ballot

    def get(self, ballot_id: str) -> EncryptedBallot:
        with self.lock:
            ballot = self._ballots.get(ballot_id)
        if ballot is None:
            raise NotFoundError("Ballot not found")
        return ballot

    def list_ballots(self) -> List[EncryptedBallot]:
        """All ballots in submission order."""
        with self.lock:
            return list(self._ballots.values())

    def __len__(self) -> int:
        with self.lock:
            return len(self._ballots)

    def snapshot(self) -> List[Dict[str, Any]]:
        with self.lock:
            return [b.to_dict() for b in self._ballots.values()]

    def restore(self, records: List[Dict[str, Any]]) -> None:
        with self.lock:
            self._ballots = {}
            for record in records:
                ballot = EncryptedBallot.from_dict(record)
                self._ballots[ballot.ballot_id] = ballot
