from __future__ import annotations


class DaoError(Exception):
    """Base for errors surfaced to API callers as 4xx responses."""

    status_code = 500
    message = "Request failed"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.message
        super().__init__(self.detail)


class ValidationError(DaoError):
    status_code = 400
    message = "Invalid request"


class PredictionNotFound(DaoError):
    status_code = 404
    message = "Prediction not found"

    def __init__(self, prediction_id: int) -> None:
        self.prediction_id = prediction_id
        super().__init__(f"Prediction {prediction_id} not found")


class DuplicateVote(DaoError):
    status_code = 409
    message = "User has already voted"

    def __init__(self, prediction_id: int, voter: str) -> None:
        self.prediction_id = prediction_id
        self.voter = voter
        super().__init__(f"{voter} has already voted on prediction {prediction_id}")


class VotingClosed(DaoError):
    status_code = 410
    message = "Voting is closed"

    def __init__(self, prediction_id: int, reason: str) -> None:
        self.prediction_id = prediction_id
        self.reason = reason
        super().__init__(f"Voting on prediction {prediction_id} is closed: {reason}")


class UpstreamUnavailable(Exception):
    """The authoritative ledger could not be reached or rejected the call.

    Never surfaced to API callers; the reconciler logs it and carries on
    with the secondary store.
    """

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation}: {reason}")


class ProfileNotFound(DaoError):
    status_code = 404
    message = "Profile not found"
