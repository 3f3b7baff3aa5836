"""
FastAPI application exposing the election engine over HTTP.

Routes only translate between JSON and engine calls; every rule lives in
the engine. Engine errors map to their status codes through one handler.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, Histogram, generate_latest

from .config import settings, configure_logging
from .engine import ElectionEngine
from .errors import SnapshotError, TallyError
from .schemas import (
    BallotReceipt,
    BallotResponse,
    CandidateCreateRequest,
    CandidateResponse,
    CandidateVotesResponse,
    EncryptedBallotRequest,
    ErrorResponse,
    HealthResponse,
    RangeResponse,
    ResultEntry,
    SnapshotResponse,
    TimelineResponse,
    VoteRequest,
    VoteResponse,
    VoterCreateRequest,
    VoterResponse,
    VoterUpdateRequest,
    WeightedVoteResponse,
)
from .snapshot import RedisSnapshotStore

logger = logging.getLogger(__name__)

PREFIX = f"/api/{settings.API_VERSION}"

request_duration = Histogram(
    "tally_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"]
)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    404: {"model": ErrorResponse, "description": "Not found"},
    409: {"model": ErrorResponse, "description": "Conflict or duplicate vote"},
}


def route_label(request: Request) -> str:
    """
    Path template of the matched route, e.g. ``/api/v1/voters/{voter_id}``.

    Unmatched requests share one label so raw paths never become series.
    """
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path if path else "unmatched"


def create_app(
    engine: Optional[ElectionEngine] = None,
    snapshot_store: Optional[RedisSnapshotStore] = None
) -> FastAPI:
    """
    Build the API around an engine.

    Args:
        engine: Engine to serve; a fresh one is created when omitted
        snapshot_store: When given, state is loaded from it on startup
            (if a snapshot exists) and saved to it on shutdown
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown events."""
        logger.info(f"Starting {settings.SERVICE_NAME} service...")
        if snapshot_store is not None:
            restored = snapshot_store.load()
            if restored is not None:
                app.state.engine = restored
                logger.info("Engine state restored from snapshot")

        yield

        logger.info(f"Shutting down {settings.SERVICE_NAME} service...")
        if snapshot_store is not None:
            try:
                snapshot_store.save(app.state.engine)
            except SnapshotError as e:
                logger.error(f"Error saving snapshot during shutdown: {e}")

    app = FastAPI(
        title="Election Tally API",
        description="API for registering voters and candidates, casting votes and reading results",
        version=settings.API_VERSION,
        lifespan=lifespan
    )
    app.state.engine = engine or ElectionEngine()
    app.state.snapshot_store = snapshot_store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )

    @app.middleware("http")
    async def prometheus_middleware(request: Request, call_next):
        """Middleware to track request duration, labelled by route template."""
        started = time.perf_counter()
        response = await call_next(request)
        request_duration.labels(
            method=request.method, endpoint=route_label(request)
        ).observe(time.perf_counter() - started)
        return response

    @app.exception_handler(TallyError)
    async def tally_error_handler(request: Request, exc: TallyError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "ValidationError", "message": str(exc.errors())}
        )

    def engine_of(request: Request) -> ElectionEngine:
        return request.app.state.engine

    # ═══════════════════════════════════════════════════════════════════
    # VOTERS
    # ═══════════════════════════════════════════════════════════════════

    @app.post(f"{PREFIX}/voters", response_model=VoterResponse,
              status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
    def register_voter(request: Request, payload: VoterCreateRequest):
        """Register a voter: voter_id, name and age (0-150)."""
        return engine_of(request).register_voter(payload.voter_id, payload.name, payload.age)

    @app.get(f"{PREFIX}/voters", response_model=list[VoterResponse])
    def list_voters(request: Request):
        return engine_of(request).list_voters()

    @app.get(f"{PREFIX}/voters/{{voter_id}}", response_model=VoterResponse, responses=ERROR_RESPONSES)
    def get_voter(request: Request, voter_id: str):
        return engine_of(request).get_voter(voter_id)

    @app.put(f"{PREFIX}/voters/{{voter_id}}", response_model=VoterResponse, responses=ERROR_RESPONSES)
    def update_voter(request: Request, voter_id: str, payload: VoterUpdateRequest):
        """Update name, age (18-150) or status."""
        return engine_of(request).update_voter(
            voter_id, name=payload.name, age=payload.age, status=payload.status
        )

    @app.delete(f"{PREFIX}/voters/{{voter_id}}", response_model=VoterResponse, responses=ERROR_RESPONSES)
    def delete_voter(request: Request, voter_id: str):
        return engine_of(request).delete_voter(voter_id)

    # ═══════════════════════════════════════════════════════════════════
    # CANDIDATES
    # ═══════════════════════════════════════════════════════════════════

    @app.post(f"{PREFIX}/candidates", response_model=CandidateResponse,
              status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
    def register_candidate(request: Request, payload: CandidateCreateRequest):
        return engine_of(request).register_candidate(
            payload.candidate_id, payload.name, payload.party, payload.age
        )

    @app.get(f"{PREFIX}/candidates", response_model=list[CandidateResponse], responses=ERROR_RESPONSES)
    def list_candidates(request: Request, party: Optional[str] = None):
        """List candidates, optionally filtered by party (case-insensitive)."""
        return engine_of(request).list_candidates(party)

    @app.get(f"{PREFIX}/candidates/{{candidate_id}}", response_model=CandidateResponse,
             responses=ERROR_RESPONSES)
    def get_candidate(request: Request, candidate_id: str):
        return engine_of(request).get_candidate(candidate_id)

    @app.get(f"{PREFIX}/candidates/{{candidate_id}}/votes", response_model=CandidateVotesResponse,
             responses=ERROR_RESPONSES)
    def get_candidate_votes(request: Request, candidate_id: str):
        votes = engine_of(request).votes_for_candidate(candidate_id)
        return {"candidate_id": candidate_id, "votes": votes}

    @app.get(f"{PREFIX}/candidates/{{candidate_id}}/timeline", response_model=TimelineResponse,
             responses=ERROR_RESPONSES)
    def get_candidate_timeline(request: Request, candidate_id: str):
        return engine_of(request).timeline(candidate_id)

    @app.get(f"{PREFIX}/candidates/{{candidate_id}}/votes-in-range", response_model=RangeResponse,
             responses=ERROR_RESPONSES)
    def get_votes_in_range(
        request: Request,
        candidate_id: str,
        start: Optional[str] = Query(None, alias="from"),
        end: Optional[str] = Query(None, alias="to")
    ):
        """Votes gained between two ISO-8601 timestamps, inclusive."""
        return engine_of(request).votes_in_range(candidate_id, start, end)

    # ═══════════════════════════════════════════════════════════════════
    # VOTES & RESULTS
    # ═══════════════════════════════════════════════════════════════════

    @app.post(f"{PREFIX}/votes", response_model=VoteResponse,
              status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
    def cast_vote(request: Request, payload: VoteRequest):
        return engine_of(request).cast_vote(payload.voter_id, payload.candidate_id)

    @app.post(f"{PREFIX}/votes/weighted", response_model=WeightedVoteResponse,
              status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
    def cast_weighted_vote(request: Request, payload: VoteRequest):
        """Cast a vote weighted by voter status (verified 2.0, inactive 0.5, else 1.0)."""
        return engine_of(request).cast_weighted_vote(payload.voter_id, payload.candidate_id)

    @app.get(f"{PREFIX}/results", response_model=list[ResultEntry], responses=ERROR_RESPONSES)
    def get_results(request: Request):
        return engine_of(request).results()

    @app.get(f"{PREFIX}/results/winners", response_model=list[ResultEntry], responses=ERROR_RESPONSES)
    def get_winners(request: Request):
        return engine_of(request).winners()

    # ═══════════════════════════════════════════════════════════════════
    # ENCRYPTED BALLOTS
    # ═══════════════════════════════════════════════════════════════════

    @app.post(f"{PREFIX}/ballots/encrypted", response_model=BallotReceipt,
              status_code=status.HTTP_201_CREATED,
              responses={**ERROR_RESPONSES, 401: {"model": ErrorResponse, "description": "Bad signature"}})
    def submit_encrypted_ballot(request: Request, payload: EncryptedBallotRequest):
        return engine_of(request).submit_encrypted_ballot(
            payload.election_id,
            payload.ciphertext,
            payload.zk_proof,
            payload.voter_pubkey,
            payload.nullifier,
            payload.signature,
        )

    @app.get(f"{PREFIX}/ballots/{{ballot_id}}", response_model=BallotResponse, responses=ERROR_RESPONSES)
    def get_ballot(request: Request, ballot_id: str):
        return engine_of(request).get_ballot(ballot_id)

    # ═══════════════════════════════════════════════════════════════════
    # OPERATIONS
    # ═══════════════════════════════════════════════════════════════════

    @app.post(f"{PREFIX}/snapshot", response_model=SnapshotResponse,
              responses={503: {"model": ErrorResponse, "description": "Snapshot store unavailable"}})
    def save_snapshot(request: Request):
        store = request.app.state.snapshot_store
        if store is None:
            raise SnapshotError("Snapshot store not configured")
        size = store.save(engine_of(request))
        return {"key": store.key, "bytes": size}

    @app.get(f"{PREFIX}/health", response_model=HealthResponse,
             responses={503: {"model": HealthResponse, "description": "Service unhealthy"}})
    def health_check(request: Request):
        """Check tally consistency and, when configured, the snapshot store."""
        engine = engine_of(request)
        services = {"tally": "consistent" if engine.totals_consistent() else "inconsistent"}

        store = request.app.state.snapshot_store
        if store is not None:
            services["redis"] = "connected" if store.check_health() else "disconnected"

        all_healthy = all(value in ("consistent", "connected") for value in services.values())
        response = HealthResponse(
            status="healthy" if all_healthy else "unhealthy",
            services=services,
            votes=len(engine.ledger),
            ballots=len(engine.ballots),
        )
        return JSONResponse(
            status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(mode="json")
        )

    @app.get("/metrics")
    def metrics():
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app(snapshot_store=RedisSnapshotStore() if settings.SNAPSHOT_ENABLED else None)


if __name__ == "__main__":
    import uvicorn

    configure_logging()
    uvicorn.run(
        "tally_engine.api:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
