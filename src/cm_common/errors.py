"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth / webhook authenticity
  2xxx: Payment
  3xxx: Mint intent / fulfillment
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth ---

class UnauthenticatedError(AppError):
    def __init__(self, detail: str = "Unauthenticated") -> None:
        super().__init__(1001, detail, 401)


class ReplaySuspectedError(AppError):
    def __init__(self, age_seconds: float) -> None:
        super().__init__(
            1002, f"Notification timestamp outside freshness window ({age_seconds:.0f}s)", 401
        )


class ForbiddenError(AppError):
    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(1003, detail, 403)


# --- 2xxx: Payment ---

class MalformedPayloadError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2001, f"Malformed payload: {detail}", 400)


class ConfigurationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2002, f"Configuration error: {detail}", 500)


class DuplicateIgnoredError(AppError):
    """Not a failure: a repeat delivery was collapsed by an idempotency guard."""

    def __init__(self, key: str) -> None:
        super().__init__(2003, f"Duplicate ignored: {key}", 200)


# --- 3xxx: Mint ---

class IntentNotFoundError(AppError):
    def __init__(self, key: str) -> None:
        super().__init__(3001, f"Mint intent not found: {key}", 404)


class InvalidTransitionError(AppError):
    def __init__(self, intent_id: str, current: str, target: str) -> None:
        super().__init__(
            3002, f"Intent {intent_id} cannot move from {current} to {target}", 409
        )


class RecipientUnresolvedError(AppError):
    def __init__(self, handle: str) -> None:
        super().__init__(3003, f"Recipient could not be resolved: {handle}", 422)


class PoolNotFoundError(AppError):
    def __init__(self, pool: str) -> None:
        super().__init__(3004, f"No items configured for pool: {pool}", 404)


class PoolSoldOutError(AppError):
    def __init__(self, pool: str) -> None:
        super().__init__(3005, f"Pool '{pool}' is sold out", 409)


class InvalidMintRequestError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3006, f"Invalid mint request: {detail}", 422)


class IntentBusyError(AppError):
    def __init__(self, intent_id: str) -> None:
        super().__init__(3007, f"Intent {intent_id} is being fulfilled by another worker", 409)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class DownstreamUnavailableError(AppError):
    def __init__(self, service: str, detail: str) -> None:
        self.service = service
        super().__init__(9003, f"{service} unavailable: {detail}", 502)
