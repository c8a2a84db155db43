from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


PROCESS_PATH = "/api/sentinel-hub/process"


class ProcessingMode(str, Enum):
    true_color = "true_color"
    ndvi = "ndvi"
    temporal_list = "temporal_list"

    @property
    def expects_binary(self) -> bool:
        return self is not ProcessingMode.temporal_list

    @property
    def label(self) -> str:
        return MODE_LABELS[self]


MODE_LABELS: dict[ProcessingMode, str] = {
    ProcessingMode.true_color: "Single Image (True Color)",
    ProcessingMode.ndvi: "Single Image (NDVI)",
    ProcessingMode.temporal_list: "Image List (Temporal)",
}


class TemporalItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: datetime
    image: str = Field(min_length=1)
    # Date exactly as the service sent it; used for alt text.
    raw_date: str = Field(default="", exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _keep_raw_date(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("date"), str) and not data.get("raw_date"):
            return {**data, "raw_date": data["date"]}
        return data


class TemporalResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: list[TemporalItem] = Field(default_factory=list)

    @field_validator("results", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        if value is None:
            return []
        return value


class ErrorBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    detail: Any = None

    @property
    def message(self) -> str | None:
        if isinstance(self.detail, str) and self.detail:
            return self.detail
        return None
