"""
Exception hierarchy for the tally engine.

Every error carries the HTTP status code the service layer answers with,
so callers outside HTTP can ignore it and the API can map it directly.
"""


class TallyError(Exception):
    """Base class for all engine errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        """Convert to the error response body."""
        return {"error": type(self).__name__, "message": self.message}


class ValidationError(TallyError):
    """Missing or out-of-range input, including malformed timestamps."""
    status_code = 400


class ConflictError(TallyError):
    """Duplicate voter or candidate registration."""
    status_code = 409


class NotFoundError(TallyError):
    """Unknown voter, candidate or ballot."""
    status_code = 404


class DuplicateVoteError(TallyError):
    """Voter identity or nullifier already consumed."""
    status_code = 409


class InvalidProofError(TallyError):
    """The verifier rejected a ballot's zero-knowledge proof."""
    status_code = 400


class InvalidSignatureError(TallyError):
    """The verifier rejected a ballot's signature."""
    status_code = 401


class EmptyResultError(TallyError):
    """Aggregate query over an election with no candidates."""
    status_code = 404


class SnapshotError(TallyError):
    """Snapshot could not be written to or read from the store."""
    status_code = 503
