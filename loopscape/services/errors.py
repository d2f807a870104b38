"""
Errors raised by the Luma gateway and the generation poller.

Prompt generation never raises these; it falls back to the base prompt.
"""

from typing import Optional


class LumaError(Exception):
    pass


class TransportError(LumaError):
    """Network failure or non-2xx HTTP response."""


class MalformedResponseError(LumaError):
    """Response is missing an expected field (job id, status, video URL)."""


class RemoteFailureStatus(LumaError):
    """The remote job settled into the "failed" state."""

    def __init__(self, job_id: str, reason: Optional[str] = None):
        self.job_id = job_id
        self.reason = reason
        super().__init__(f"Generation {job_id} failed: {reason or 'no reason given'}")


class PollTimeoutError(LumaError):
    pass


class PollCancelledError(LumaError):
    pass
