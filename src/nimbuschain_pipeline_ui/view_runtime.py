from __future__ import annotations

import base64
import datetime as dt
import html
import math
from typing import Any

from nimbuschain_pipeline.handles import ImageHandle
from nimbuschain_pipeline.models import MODE_LABELS, ProcessingMode
from nimbuschain_pipeline.presenter import TemporalEntry

MODE_OPTIONS: list[str] = [MODE_LABELS[mode] for mode in ProcessingMode]
POLL_INTERVAL_SECONDS = 0.5


def mode_from_label(label: str) -> ProcessingMode:
    for mode, mode_label in MODE_LABELS.items():
        if mode_label == label:
            return mode
    return ProcessingMode(label)


def mode_index(mode: Any) -> int:
    try:
        return list(ProcessingMode).index(ProcessingMode(getattr(mode, "value", mode)))
    except ValueError:
        return 0


def parse_map_event(value: Any) -> tuple[float, float, int | None] | None:
    """Validate a value sent back by the Leaflet component."""
    if not isinstance(value, dict) or value.get("type") != "click":
        return None
    try:
        lat = float(value["lat"])
        lng = float(value["lng"])
    except (KeyError, TypeError, ValueError):
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None

    seq = value.get("seq")
    try:
        seq_value = int(seq) if seq is not None else None
    except (TypeError, ValueError):
        seq_value = None
    return lat, lng, seq_value


def build_form_patch(
    *,
    latitude: Any,
    longitude: Any,
    start_date: dt.date | str,
    end_date: dt.date | str,
    mode_label: str,
) -> dict[str, Any]:
    return {
        "latitude": latitude,
        "longitude": longitude,
        "start_date": start_date,
        "end_date": end_date,
        "mode": mode_from_label(mode_label),
    }


def as_date(value: Any, fallback: dt.date) -> dt.date:
    if isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value))
    except ValueError:
        return fallback


def as_float(value: Any, fallback: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return number if math.isfinite(number) else fallback


def handle_data_uri(handle: ImageHandle) -> str:
    encoded = base64.b64encode(handle.content).decode("ascii")
    return f"data:{handle.content_type};base64,{encoded}"


def single_image_html(handle: ImageHandle, *, alt: str, height: int) -> str:
    return (
        f"<img src='{handle_data_uri(handle)}' alt='{html.escape(alt, quote=True)}' "
        f"style='width:100%;height:{int(height)}px;object-fit:contain;display:block;'/>"
    )


def temporal_entry_html(entry: TemporalEntry) -> str:
    return (
        "<div style='background:#111827;border-radius:10px;padding:8px;margin-bottom:14px;'>"
        f"<img src='{html.escape(entry.image, quote=True)}' alt='{html.escape(entry.alt, quote=True)}' "
        "style='width:100%;height:auto;object-fit:contain;border-radius:6px;'/>"
        "<p style='font-size:.72rem;text-align:center;color:#94a3b8;margin-top:4px;'>"
        f"{html.escape(entry.caption)}</p></div>"
    )
