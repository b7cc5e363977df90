"""
Failure taxonomy of the ingestion pipeline.

Every error is terminal for the request that raised it; nothing in the
pipeline retries automatically.
"""


class PipelineError(Exception):
    """Base class for all pipeline failures."""


class ValidationError(PipelineError):
    """The upload was rejected (bad extension, oversize, missing field)."""


class ConversionError(PipelineError):
    """The external converter failed; ``diagnostics`` holds its stderr verbatim."""

    def __init__(
        self, message: str, diagnostics: str = "", returncode: int | None = None
    ):
        super().__init__(message)
        self.diagnostics = diagnostics
        self.returncode = returncode


class NotFoundError(PipelineError):
    """The referenced project (or record) does not exist."""


class AccountingError(PipelineError):
    """A counter update against the user store failed."""


class PermissionDeniedError(PipelineError):
    """The caller may not act on a project it does not own."""


class ConversionInProgressError(PipelineError):
    """The project directory belongs to a conversion that is still running."""
