"""
Typed business outcomes raised by the inventory, ledger and booking services.

Each error carries the HTTP status the API layer should answer with and a
stable machine-readable code. Services never write to a transport channel
themselves; api/errors.py turns these into JSON responses.
"""

from typing import Optional, Sequence


class BookingError(Exception):
    status_code: int = 400
    code: str = "booking_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class NotFound(BookingError):
    status_code = 404
    code = "not_found"


class UnitNotFound(NotFound):
    code = "unit_not_found"

    def __init__(self, unit_numbers: Sequence[str]):
        self.unit_numbers = list(unit_numbers)
        super().__init__(f"Seats not found: {', '.join(self.unit_numbers)}")


class UnitUnavailable(BookingError):
    status_code = 409
    code = "unit_unavailable"

    def __init__(self, unit_numbers: Sequence[str]):
        self.unit_numbers = list(unit_numbers)
        super().__init__(f"Seats not available: {', '.join(self.unit_numbers)}")


class InsufficientCapacity(BookingError):
    status_code = 409
    code = "insufficient_capacity"

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(f"Not enough tickets. Requested: {requested}, Available: {available}")


class UnitNotHeldByUser(BookingError):
    status_code = 409
    code = "seats_not_held"

    def __init__(self, unit_numbers: Sequence[str]):
        self.unit_numbers = list(unit_numbers)
        super().__init__("Not enough seats available")


class InsufficientBalance(BookingError):
    code = "insufficient_balance"

    def __init__(self, message: str = "Insufficient wallet balance"):
        super().__init__(message)


class DuplicatePayment(BookingError):
    status_code = 409
    code = "duplicate_payment"

    def __init__(self, gateway_transaction_id: str):
        self.gateway_transaction_id = gateway_transaction_id
        super().__init__("This payment has already been processed")


class PaymentVerificationFailed(BookingError):
    code = "payment_verification_failed"

    def __init__(self, message: str = "Invalid payment signature"):
        super().__init__(message)


class CancellationWindowClosed(BookingError):
    code = "cancellation_window_closed"


class AlreadyCancelled(BookingError):
    code = "already_cancelled"

    def __init__(self, message: str = "Booking already cancelled"):
        super().__init__(message)


class InvalidBookingState(BookingError):
    status_code = 409
    code = "invalid_booking_state"


class BookingValidationError(BookingError):
    status_code = 422
    code = "validation_error"


class StorageError(BookingError):
    status_code = 503
    code = "storage_error"

    def __init__(self, message: str = "Storage temporarily unavailable, please retry"):
        super().__init__(message)
