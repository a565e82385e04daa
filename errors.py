"""Reportly domain errors.

Services raise these; the Streamlit layer catches ``ReportlyError`` at each
call site and turns it into an inline message.
"""


class ReportlyError(Exception):
    """Base class for all application errors."""


class ValidationError(ReportlyError):
    """Raised when user input is rejected before any side effect."""


class RecordError(ValidationError):
    """Raised when a stored value cannot be converted into a typed record."""


class PersistenceError(ReportlyError):
    """Raised when the database or the object store fails a call."""


class LimitExceededError(ReportlyError):
    """Raised when a plan limit blocks an action."""

    def __init__(self, message: str, upgrade_message: str = "Upgrade your plan to continue."):
        super().__init__(message)
        self.upgrade_message = upgrade_message


class NoDataError(ReportlyError):
    """Raised when a report is requested without a data table."""


class ImageDecodeError(ReportlyError):
    """Raised when a logo image cannot be decoded."""
