"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Validation   (bad input shape/range, 422)
  2xxx: Not found    (unknown spot/session/payment id, 404)
  3xxx: Conflict     (state does not allow the operation, 409)
  4xxx: External     (payment provider failure or timeout, 502/504)
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


# --- 1xxx: Validation ---

class InvalidPlateError(AppError):
    def __init__(self, plate: str) -> None:
        super().__init__(
            1001,
            f"Invalid license plate {plate!r}: must be 2-8 letters or digits",
            422,
        )


class InvalidDurationError(AppError):
    def __init__(self, minutes: int) -> None:
        super().__init__(
            1002,
            f"Invalid duration: {minutes} minutes (must be between 1 and 1440)",
            422,
        )


class InvalidAmountError(AppError):
    def __init__(self, field: str, cents: int) -> None:
        super().__init__(1003, f"Invalid {field}: {cents} cents (must be >= 0)", 422)


# --- 2xxx: Not found ---

class SpotNotFoundError(AppError):
    def __init__(self, spot_id: str) -> None:
        super().__init__(2001, f"Parking spot not found: {spot_id}", 404)


class SessionNotFoundError(AppError):
    def __init__(self, session_id: str) -> None:
        super().__init__(2002, f"Parking session not found: {session_id}", 404)


class PaymentNotFoundError(AppError):
    def __init__(self, ref: str) -> None:
        super().__init__(2003, f"Payment not found: {ref}", 404)


# --- 3xxx: Conflict ---

class PlateAlreadyActiveError(AppError):
    def __init__(self, plate: str) -> None:
        super().__init__(
            3001, f"License plate {plate} already has an active parking session", 409
        )


class SpotUnavailableError(AppError):
    def __init__(self, spot_id: str, available_spots: int, is_active: bool) -> None:
        reason = "inactive" if not is_active else f"{available_spots} spots available"
        super().__init__(3002, f"Parking spot {spot_id} is not available ({reason})", 409)


class SessionNotActiveError(AppError):
    def __init__(self, session_id: str, status: str) -> None:
        super().__init__(
            3003, f"Session {session_id} is not active (status={status})", 409
        )


class PaymentStateConflictError(AppError):
    def __init__(self, payment_id: str, status: str, wanted: str) -> None:
        super().__init__(
            3004,
            f"Payment {payment_id} in status {status} cannot become {wanted}",
            409,
        )


# --- 4xxx: External service ---

class ChargeError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4001, f"Payment authorization failed: {detail}", 502)


class RefundError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4002, f"Refund failed: {detail}", 502)


class PaymentTimeoutError(AppError):
    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            4003, f"Payment provider did not answer within {timeout_seconds:g}s", 504
        )


class WebhookSignatureError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4004, f"Invalid webhook signature: {detail}", 400)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
