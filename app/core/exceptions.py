"""
Custom application exceptions
"""

from typing import Optional, Dict, Any, List


class BuslineException(Exception):
    """Base exception for Busline application"""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(BuslineException):
    """Authentication related errors"""

    def __init__(self, message: str = "Authentication required", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            code="AUTH_ERROR",
            status_code=401,
            details=details
        )


class AuthorizationError(BuslineException):
    """Acting on another user's resource or missing role"""

    def __init__(self, message: str = "Not authorized", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            code="FORBIDDEN",
            status_code=403,
            details=details
        )


class NotFoundError(BuslineException):
    """Resource not found errors"""

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id {identifier} not found"
        super().__init__(
            message=message,
            code="NOT_FOUND",
            status_code=404,
            details={"resource": resource}
        )


class ValidationError(BuslineException):
    """Bad input shape or range"""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
        details = dict(details or {})
        if field:
            details["field"] = field
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            details=details
        )


class ConflictError(BuslineException):
    """Resource conflict errors"""

    def __init__(self, message: str, code: str = "CONFLICT", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            code=code,
            status_code=409,
            details=details
        )


class SeatUnavailableError(ConflictError):
    """Requested seats were taken before the booking could commit"""

    def __init__(self, seat_numbers: List[str], message: Optional[str] = None):
        super().__init__(
            message=message or f"The following seats are not available: {', '.join(seat_numbers)}",
            code="SEATS_UNAVAILABLE",
            details={"unavailable_seats": list(seat_numbers)}
        )


class SeatLockConflictError(ConflictError):
    """Seats are held by another user's live lock"""

    def __init__(self, seat_numbers: List[str]):
        super().__init__(
            message=(
                "The following seats are currently locked by another user: "
                f"{', '.join(seat_numbers)}"
            ),
            code="SEATS_LOCKED",
            details={"locked_seats": list(seat_numbers)}
        )


class DuplicateBookingError(ConflictError):
    """User already holds an active booking for the trip"""

    def __init__(self, booking_id: Any = None):
        super().__init__(
            message="You already have an active booking for this trip",
            code="DUPLICATE_BOOKING",
            details={"booking_id": str(booking_id)} if booking_id else {}
        )


class BusinessRuleError(BuslineException):
    """Request is well formed but breaks a lifecycle rule"""

    def __init__(
        self,
        message: str,
        code: str = "BUSINESS_RULE_VIOLATION",
        details: Optional[Dict] = None
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=422,
            details=details
        )


class BookingFinalizedError(BusinessRuleError):
    """Booking reached a terminal state"""

    def __init__(self, booking_id: Any, status: str):
        super().__init__(
            message=f"Booking already finalized ({status})",
            code="BOOKING_FINALIZED",
            details={"booking_id": str(booking_id), "status": status}
        )


class InvalidTransitionError(BusinessRuleError):
    """Requested status change is not a legal transition"""

    def __init__(self, current: str, requested: str, reason: Optional[str] = None):
        message = f"Invalid status transition from {current} to {requested}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            code="INVALID_TRANSITION",
            details={"from": current, "to": requested}
        )


class BookingDeadlineError(BusinessRuleError):
    """Trip no longer accepts bookings or locks"""

    def __init__(self, message: str = "Booking deadline has passed for this trip"):
        super().__init__(message=message, code="BOOKING_CLOSED")


class PaymentPendingError(BusinessRuleError):
    """A payment attempt is already awaiting confirmation"""

    def __init__(self, payment_id: Any = None):
        super().__init__(
            message="Payment already pending for this bill",
            code="PAYMENT_PENDING",
            details={"payment_id": str(payment_id)} if payment_id else {}
        )


class BillAlreadyPaidError(BusinessRuleError):
    """Bill is already settled"""

    def __init__(self, bill_id: Any = None):
        super().__init__(
            message="Bill is already paid",
            code="BILL_PAID",
            details={"bill_id": str(bill_id)} if bill_id else {}
        )


class PaymentError(BuslineException):
    """Payment gateway declined the charge"""

    def __init__(self, message: str = "Payment processing failed", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            code="PAYMENT_FAILED",
            status_code=402,
            details=details
        )


class OperationFailedError(BuslineException):
    """Infrastructure failure surfaced without internal detail"""

    def __init__(self, message: str = "Operation failed"):
        super().__init__(
            message=message,
            code="OPERATION_FAILED",
            status_code=500
        )
