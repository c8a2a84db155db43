from __future__ import annotations

import datetime as dt
import threading
from dataclasses import dataclass, field, fields, replace
from typing import Any

from loguru import logger

from nimbuschain_pipeline.models import ProcessingMode

DEFAULT_LATITUDE = 6.5244
DEFAULT_LONGITUDE = 3.3792
DEFAULT_LOOKBACK_DAYS = 7
COORDINATE_DECIMALS = 4


def _today() -> dt.date:
    return dt.date.today()


@dataclass
class JobParameters:
    latitude: Any = DEFAULT_LATITUDE
    longitude: Any = DEFAULT_LONGITUDE
    start_date: Any = field(default_factory=lambda: _today() - dt.timedelta(days=DEFAULT_LOOKBACK_DAYS))
    end_date: Any = field(default_factory=_today)
    mode: Any = ProcessingMode.true_color

    @classmethod
    def defaults(
        cls,
        *,
        latitude: float = DEFAULT_LATITUDE,
        longitude: float = DEFAULT_LONGITUDE,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
        today: dt.date | None = None,
    ) -> "JobParameters":
        end = today or _today()
        return cls(
            latitude=latitude,
            longitude=longitude,
            start_date=end - dt.timedelta(days=lookback_days),
            end_date=end,
            mode=ProcessingMode.true_color,
        )

    def to_payload(self) -> dict[str, Any]:
        mode = self.mode.value if isinstance(self.mode, ProcessingMode) else self.mode
        return {
            "lat": self.latitude,
            "lon": self.longitude,
            "startDate": _iso_date(self.start_date),
            "endDate": _iso_date(self.end_date),
            "scriptType": mode,
        }


def _iso_date(value: Any) -> Any:
    if isinstance(value, dt.datetime):
        return value.date().isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    return value


def _coerce_float(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("bool is not a coordinate")
    return float(value)


def _coerce_date(value: Any) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    return dt.date.fromisoformat(str(value).strip())


def _coerce_mode(value: Any) -> ProcessingMode:
    if isinstance(value, ProcessingMode):
        return value
    return ProcessingMode(str(value).strip())


_COERCERS = {
    "latitude": _coerce_float,
    "longitude": _coerce_float,
    "start_date": _coerce_date,
    "end_date": _coerce_date,
    "mode": _coerce_mode,
}


def coerce_patch(patch: dict[str, Any]) -> dict[str, Any]:
    """Coerce form values to their field types, passing malformed values through."""
    known = {f.name for f in fields(JobParameters)}
    coerced: dict[str, Any] = {}
    for name, value in patch.items():
        if name not in known:
            raise KeyError(f"Unknown job parameter: {name}")
        try:
            coerced[name] = _COERCERS[name](value)
        except (TypeError, ValueError):
            logger.warning("Keeping uncoerced value for {}: {!r}", name, value)
            coerced[name] = value
    return coerced


class ParameterStore:
    """Owns the job parameters of one operator session."""

    def __init__(self, initial: JobParameters | None = None):
        self._lock = threading.Lock()
        self._params = initial or JobParameters.defaults()

    def get(self) -> JobParameters:
        with self._lock:
            return replace(self._params)

    def set(self, **patch: Any) -> JobParameters:
        coerced = coerce_patch(patch)
        with self._lock:
            for name, value in coerced.items():
                setattr(self._params, name, value)
            return replace(self._params)


class CoordinatePicker:
    """Applies map clicks to the AOI of a parameter store."""

    def __init__(self, store: ParameterStore, *, decimals: int = COORDINATE_DECIMALS):
        self.store = store
        self.decimals = decimals
        self._lock = threading.Lock()
        self._last_seq: int | None = None

    @property
    def last_seq(self) -> int | None:
        return self._last_seq

    def on_click(self, latitude: float, longitude: float, seq: int | None = None) -> bool:
        with self._lock:
            if seq is not None:
                if self._last_seq is not None and seq <= self._last_seq:
                    return False
                self._last_seq = seq
            lat = round(float(latitude), self.decimals)
            lon = round(float(longitude), self.decimals)
            self.store.set(latitude=lat, longitude=lon)
        logger.debug("AOI set from map click: {}, {}", lat, lon)
        return True
