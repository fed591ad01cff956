"""
Error taxonomy for the worker.

Startup problems are fatal (ConfigError).  Fetch problems are retried by the
worker loop (FetchError).  Job problems become a "Failed" result (JobError).
Result delivery problems are only logged and never raised.
"""

from __future__ import annotations


class WorkerError(Exception):
    """Base class for every error the worker raises on purpose."""
    pass


class ConfigError(WorkerError):
    """Startup configuration is missing or unreadable."""
    pass


# ---------------------------------------------------------------------------
# Fetching jobs
# ---------------------------------------------------------------------------

class FetchError(WorkerError):
    """The next job could not be obtained from the queue."""
    pass


class TransportError(FetchError):
    """Connection failure, timeout or other transport-level problem."""
    pass


class DeserializationError(FetchError):
    """The queue answered 200 with a body that is not a valid job."""
    pass


# ---------------------------------------------------------------------------
# Processing a job
# ---------------------------------------------------------------------------

class JobError(WorkerError):
    """A job could not be processed.

    Closed set: DecodeError, DetectorError and EncodeError.  ``str()`` of an
    instance is ``"<kind> failed: <detail>"`` and is reported as the text of
    the failed result.
    """

    kind = "job"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"{self.kind} failed: {detail}")


class DecodeError(JobError):
    """Invalid base64 or an image Pillow cannot load."""

    kind = "decode"


class DetectorError(JobError):
    """The detector raised while analysing the image."""

    kind = "detector"


class EncodeError(JobError):
    """Drawing the annotations or encoding the output image failed."""

    kind = "encode"
