"""
Error kinds raised by the analysis pipeline and its collaborators.

Every error carries the message shown to the user and the HTTP status the
routers answer with.
"""
from typing import Optional


class AnalysisError(Exception):
    """Base class for errors surfaced to the user as a single message."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationMissing(AnalysisError):
    """Required remote configuration (API credential) is absent."""

    status_code = 503


class InputValidationError(AnalysisError):
    """Empty transcript, missing file or oversized upload."""

    status_code = 422


class RemoteCallFailure(AnalysisError):
    """The analysis service raised while processing the request."""

    status_code = 502

    @classmethod
    def from_exception(cls, exc: Optional[BaseException]) -> "RemoteCallFailure":
        detail = str(exc) if exc is not None else ""
        if detail:
            return cls(f"Analysis failed: {detail}")
        return cls("An unknown error occurred during analysis.")


class EmptyResult(AnalysisError):
    """The analysis service answered but produced nothing usable."""

    status_code = 502

    def __init__(self, message: str = (
        "Analysis failed to produce a result. "
        "The response might be empty or in an unexpected format."
    )):
        super().__init__(message)


class AnalysisInProgress(AnalysisError):
    """A submission arrived while another analysis is still running."""

    status_code = 409

    def __init__(self, message: str = "An analysis is already running. Please wait for it to finish."):
        super().__init__(message)


class SheetsError(AnalysisError):
    """Reading from or writing to Google Sheets failed."""

    status_code = 502


class NotSignedIn(AnalysisError):
    """An operation needs a signed-in Google user."""

    status_code = 401

    def __init__(self, message: str = "Please sign in with Google first."):
        super().__init__(message)


class ExportUnavailable(AnalysisError):
    """Nothing to export, or no spreadsheet to export to."""

    status_code = 400
