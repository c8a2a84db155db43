from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from nimbuschain_pipeline.handles import ImageHandle
from nimbuschain_pipeline.models import TemporalItem
from nimbuschain_pipeline.outcome import (
    Failed,
    Idle,
    Pending,
    SingleResult,
    SubmissionOutcome,
    TemporalResult,
)

ERROR_HEADING = "Pipeline Error"
SINGLE_ALT = "Processed satellite view"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class TemporalEntry:
    image: str
    caption: str
    alt: str


@dataclass(frozen=True)
class ViewState:
    kind: str
    heading: str = ""
    message: str = ""
    entries: tuple[TemporalEntry, ...] = ()
    handle: ImageHandle | None = None
    alt: str = ""
    fit: str = ""
    centered: bool = False


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone()
    return value.strftime(TIMESTAMP_FORMAT)


def _raw_date(item: TemporalItem) -> str:
    return item.raw_date or item.date.isoformat()


def resolve_view(
    *,
    pending: bool = False,
    error: str = "",
    temporal_items: Iterable[TemporalItem] = (),
    single: ImageHandle | None = None,
    info: str = "",
) -> ViewState:
    """Pick the one view to render when stale display state coexists.

    Precedence is progress, then error, then the temporal list, then the
    single image, then the informational text.
    """
    if pending:
        return ViewState(kind="progress")
    if error:
        return ViewState(kind="error", heading=ERROR_HEADING, message=error)

    items = tuple(temporal_items)
    if items:
        entries = tuple(
            TemporalEntry(
                image=item.image,
                caption=format_timestamp(item.date),
                alt=f"Scene from {_raw_date(item)}",
            )
            for item in items
        )
        return ViewState(kind="temporal", entries=entries)

    if single is not None and not single.released:
        return ViewState(kind="single", handle=single, alt=SINGLE_ALT, fit="contain")

    return ViewState(kind="info", message=info, centered=True)


def present(outcome: SubmissionOutcome) -> ViewState:
    if isinstance(outcome, Pending):
        return resolve_view(pending=True)
    if isinstance(outcome, Failed):
        return resolve_view(error=outcome.message)
    if isinstance(outcome, TemporalResult):
        return resolve_view(temporal_items=outcome.items)
    if isinstance(outcome, SingleResult):
        return resolve_view(single=outcome.handle)
    if isinstance(outcome, Idle):
        return resolve_view(info=outcome.message)
    raise TypeError(f"Unsupported outcome: {outcome!r}")
