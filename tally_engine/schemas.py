"""Pydantic models for request/response validation.

Request fields are optional at this layer so the engine, not the schema,
decides what is missing and answers with its own 400 error.
"""
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class VoterCreateRequest(BaseModel):
    """Voter registration request model."""

    voter_id: Optional[str] = Field(None, description="Unique voter identifier")
    name: Optional[str] = Field(None, description="Voter name")
    age: Optional[int] = Field(None, description="Age, 0 to 150")

    model_config = ConfigDict(json_schema_extra={
        "example": {"voter_id": "v-001", "name": "Ada", "age": 34}
    })


class VoterUpdateRequest(BaseModel):
    """Voter update request model; omitted fields are left unchanged."""

    name: Optional[str] = None
    age: Optional[int] = Field(None, description="Age, 18 to 150")
    status: Optional[str] = Field(None, description="unverified, verified or inactive")


class VoterResponse(BaseModel):
    voter_id: str
    name: str
    age: int
    status: Literal["unverified", "verified", "inactive"]
    has_voted: bool


class CandidateCreateRequest(BaseModel):
    """Candidate registration request model."""

    candidate_id: Optional[str] = Field(None, description="Unique candidate identifier")
    name: Optional[str] = None
    party: Optional[str] = None
    age: Optional[int] = Field(None, description="Optional age, 18 to 150")

    model_config = ConfigDict(json_schema_extra={
        "example": {"candidate_id": "c-001", "name": "Grace", "party": "Blue", "age": 52}
    })


class CandidateResponse(BaseModel):
    candidate_id: str
    name: str
    party: str
    age: Optional[int] = None
    votes: float


class VoteRequest(BaseModel):
    """Vote submission request model."""

    voter_id: Optional[str] = None
    candidate_id: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {"voter_id": "v-001", "candidate_id": "c-001"}
    })


class VoteResponse(BaseModel):
    vote_id: int
    voter_id: str
    candidate_id: str
    timestamp: str


class WeightedVoteResponse(VoteResponse):
    weight: float


class CandidateVotesResponse(BaseModel):
    candidate_id: str
    votes: float


class ResultEntry(BaseModel):
    candidate_id: str
    name: str
    votes: float


class TimelineEntry(BaseModel):
    vote_id: int
    timestamp: str


class TimelineResponse(BaseModel):
    candidate_id: str
    timeline: list[TimelineEntry]


class RangeResponse(BaseModel):
    """Votes gained by a candidate within a time window."""

    model_config = ConfigDict(populate_by_name=True)

    candidate_id: str
    from_: str = Field(..., alias="from")
    to: str
    votes_gained: float


class EncryptedBallotRequest(BaseModel):
    """Encrypted ballot submission request model."""

    election_id: Optional[str] = None
    ciphertext: Optional[str] = None
    zk_proof: Optional[str] = None
    voter_pubkey: Optional[str] = None
    nullifier: Optional[str] = None
    signature: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "election_id": "2026-general",
            "ciphertext": "base64...",
            "zk_proof": "proof...",
            "voter_pubkey": "pk...",
            "nullifier": "0x9f1c...",
            "signature": "sig..."
        }
    })


class BallotReceipt(BaseModel):
    ballot_id: str
    status: str
    nullifier: str
    anchored_at: str


class BallotResponse(BaseModel):
    ballot_id: str
    election_id: str
    ciphertext: str
    zk_proof: str
    voter_pubkey: str
    nullifier: str
    anchored_at: str


class SnapshotResponse(BaseModel):
    key: str
    bytes: int


class HealthResponse(BaseModel):
    """Health check response model."""

    status: Literal["healthy", "unhealthy"]
    services: dict
    votes: int
    ballots: int


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
