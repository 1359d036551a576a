"""
Error taxonomy for the payments core.

Absence of a record is never an error: lookups return None. Everything
below is raised only for bad input or bad data.
"""


class TaskPayError(Exception):
    """Base class for all payments-layer errors."""


class ValidationError(TaskPayError):
    """Invalid input to a pure function. The caller must fix the call site."""


class InvalidTransitionError(ValidationError):
    """A status change that the lifecycle does not allow."""

    def __init__(self, record: str, current: str, requested: str):
        self.record = record
        self.current = current
        self.requested = requested
        super().__init__(f"{record} cannot move from '{current}' to '{requested}'")


class DataIntegrityError(TaskPayError):
    """A record exists but violates the enumerated statuses or terminal-field rules."""


class StaleSnapshotError(TaskPayError):
    """A mutation invalidated the snapshot and no refetch has succeeded since."""


class PaymentApiError(TaskPayError):
    """The remote payment service answered with an error or an unreadable body."""

    def __init__(self, message: str, status_code: int = None, data: dict = None):
        self.status_code = status_code
        self.data = data or {}
        super().__init__(message)
