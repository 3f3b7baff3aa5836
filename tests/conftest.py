"""Pytest fixtures for engine and API tests.

Fixtures provide an engine with a controllable clock, a small seeded
election, and a scripted verifier for encrypted ballot tests.
"""

from datetime import datetime, timedelta
from typing import Optional

import pytest

from tally_engine import ElectionEngine, parse_timestamp


class FakeClock:
    """Clock that returns a settable time and then steps forward by ``step``."""

    def __init__(self, start: str = "2026-03-01T09:00:00Z", step: timedelta = timedelta(seconds=1)):
        self.now = parse_timestamp(start)
        self.step = step

    def set(self, value: str) -> None:
        self.now = parse_timestamp(value)

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current


class ScriptedVerifier:
    """Verifier whose answers are set by the test."""

    def __init__(self, proof_ok: bool = True, signature_ok: bool = True):
        self.proof_ok = proof_ok
        self.signature_ok = signature_ok
        self.signed_messages = []

    def verify_proof(self, election_id, ciphertext, zk_proof, nullifier) -> bool:
        return self.proof_ok

    def verify_signature(self, voter_pubkey, message, signature) -> bool:
        self.signed_messages.append(message)
        return self.signature_ok


class SequentialBallotIds:
    """Ballot id generator returning b_0001, b_0002, ..."""

    def __init__(self):
        self.count = 0

    def __call__(self) -> str:
        self.count += 1
        return f"b_{self.count:04x}"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def verifier() -> ScriptedVerifier:
    return ScriptedVerifier()


@pytest.fixture
def engine(clock: FakeClock, verifier: ScriptedVerifier) -> ElectionEngine:
    """Empty engine with a fake clock, scripted verifier and predictable ballot ids."""
    return ElectionEngine(verifier=verifier, clock=clock, ballot_id_generator=SequentialBallotIds())


@pytest.fixture
def seeded_engine(engine: ElectionEngine) -> ElectionEngine:
    """Engine with voters v1-v6 and candidates alice (Blue), bob (Red), carol (blue)."""
    for i in range(1, 7):
        engine.register_voter(f"v{i}", f"Voter {i}", 30 + i)
    engine.register_candidate("alice", "Alice", "Blue", 45)
    engine.register_candidate("bob", "Bob", "Red")
    engine.register_candidate("carol", "Carol", "blue", 38)
    return engine


@pytest.fixture
def ballot_fields():
    """Factory for keyword arguments of a well-formed encrypted ballot."""

    def make(nullifier: str = "nf-1", election_id: Optional[str] = "2026-general") -> dict:
        return {
            "election_id": election_id,
            "ciphertext": "ct-opaque",
            "zk_proof": "proof-opaque",
            "voter_pubkey": "pk-opaque",
            "nullifier": nullifier,
            "signature": "sig-opaque",
        }

    return make
