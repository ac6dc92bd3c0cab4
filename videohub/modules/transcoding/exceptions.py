"""Errors raised while accepting or running a transcode job."""

from typing import Optional


class TranscodeError(Exception):
    """Base exception for transcode errors.

    ``status_code`` is the HTTP status the error maps to when it reaches a
    request handler; ``code`` is a stable machine-readable name.
    """

    code = "transcode_error"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class EncoderUnavailableError(TranscodeError):
    """Exception raised when the encoder binary cannot be executed."""

    code = "encoder_unavailable"


class SourceNotFoundError(TranscodeError):
    """Exception raised when the source upload does not exist."""

    code = "source_not_found"
    status_code = 404


class PipeCreationError(TranscodeError):
    """Exception raised when the encoder's output pipes cannot be created."""

    code = "pipe_creation_failed"


class ProcessStartError(TranscodeError):
    """Exception raised when the encoder process cannot be started."""

    code = "process_start_failed"


class ProcessExecutionError(TranscodeError):
    """Exception raised when the encoder exits with a non-zero status.

    ``diagnostics`` holds everything the encoder wrote to its diagnostic
    stream. It is for operator logs only and is never sent to clients.
    """

    code = "process_execution_failed"

    def __init__(self, message: str, returncode: Optional[int] = None, diagnostics: str = ""):
        self.returncode = returncode
        self.diagnostics = diagnostics
        super().__init__(message)


class DurationProbeError(TranscodeError):
    """Exception raised when the source duration cannot be determined.

    Never aborts a job: the runner continues without percentages.
    """

    code = "duration_probe_failed"


class TranscodeConflictError(TranscodeError):
    """Exception raised when a job for the same video is still running."""

    code = "transcode_in_progress"
    status_code = 409
