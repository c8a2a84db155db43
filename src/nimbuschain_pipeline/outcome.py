from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from nimbuschain_pipeline.handles import ImageHandle
from nimbuschain_pipeline.models import TemporalItem

INITIAL_MESSAGE = "Select an area and define a processing job."
PENDING_MESSAGE = "Submitting job to Sentinel pipeline..."
NO_IMAGES_MESSAGE = "No images found for the selected criteria."
CANCELLED_MESSAGE = "Submission cancelled."
UNKNOWN_ERROR_DETAIL = "An unknown error occurred. Check the backend logs."
FAILURE_PREFIX = "Pipeline failed: "


@dataclass(frozen=True)
class Idle:
    message: str = INITIAL_MESSAGE
    kind = "idle"

    @property
    def status(self) -> str:
        return self.message


@dataclass(frozen=True)
class Pending:
    kind = "pending"

    @property
    def status(self) -> str:
        return PENDING_MESSAGE


@dataclass(frozen=True)
class Failed:
    message: str
    kind = "failed"

    @classmethod
    def from_detail(cls, detail: str | None) -> "Failed":
        return cls(f"{FAILURE_PREFIX}{detail or UNKNOWN_ERROR_DETAIL}")

    @property
    def status(self) -> str:
        return ""


@dataclass(frozen=True)
class SingleResult:
    handle: ImageHandle
    kind = "single"

    @property
    def status(self) -> str:
        return "Successfully processed and loaded image."


@dataclass(frozen=True)
class TemporalResult:
    items: tuple[TemporalItem, ...]
    kind = "temporal"

    @property
    def status(self) -> str:
        return f"Successfully fetched {len(self.items)} images."


SubmissionOutcome = Union[Idle, Pending, Failed, SingleResult, TemporalResult]


def release_outcome(outcome: SubmissionOutcome | None) -> None:
    """Release any client-side resource owned by ``outcome``."""
    if isinstance(outcome, SingleResult):
        outcome.handle.release()
