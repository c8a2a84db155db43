from __future__ import annotations


class PipelineError(Exception):
    pass


class PipelineRequestError(PipelineError):
    """Raised when the processing service call does not yield a usable body."""

    def __init__(
        self,
        message: str,
        *,
        detail: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.detail = detail
        self.status_code = status_code


class ResponseDecodeError(PipelineRequestError):
    pass


class HandleReleasedError(PipelineError):
    pass
