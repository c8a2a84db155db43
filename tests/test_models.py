from __future__ import annotations

import pytest
from pydantic import ValidationError

from nimbuschain_pipeline.models import ErrorBody, ProcessingMode, TemporalResponse


def test_modes_pick_response_decoding() -> None:
    assert ProcessingMode.true_color.expects_binary
    assert ProcessingMode.ndvi.expects_binary
    assert not ProcessingMode.temporal_list.expects_binary
    assert ProcessingMode.temporal_list.label == "Image List (Temporal)"


def test_temporal_response_treats_missing_results_as_empty() -> None:
    assert TemporalResponse.model_validate({}).results == []
    assert TemporalResponse.model_validate({"results": None}).results == []


def test_temporal_response_keeps_server_order() -> None:
    parsed = TemporalResponse.model_validate(
        {
            "results": [
                {"date": "2025-03-02T10:00:00Z", "image": "https://img/b.png"},
                {"date": "2025-03-01T10:00:00Z", "image": "https://img/a.png"},
            ]
        }
    )
    assert [item.image for item in parsed.results] == ["https://img/b.png", "https://img/a.png"]


def test_temporal_item_keeps_date_as_sent() -> None:
    item = TemporalResponse.model_validate(
        {"results": [{"date": "2025-03-02T10:00:00Z", "image": "https://img/b.png"}]}
    ).results[0]

    assert item.raw_date == "2025-03-02T10:00:00Z"
    assert item.date.isoformat() == "2025-03-02T10:00:00+00:00"
    assert "raw_date" not in item.model_dump()


def test_temporal_response_rejects_items_without_image() -> None:
    with pytest.raises(ValidationError):
        TemporalResponse.model_validate({"results": [{"date": "2025-03-01T10:00:00Z"}]})


def test_error_body_only_surfaces_string_detail() -> None:
    assert ErrorBody.model_validate({"detail": "No data"}).message == "No data"
    assert ErrorBody.model_validate({"detail": "  "}).message == "  "
    assert ErrorBody.model_validate({"detail": ""}).message is None
    assert ErrorBody.model_validate({"detail": [{"loc": ["body"], "msg": "bad"}]}).message is None
    assert ErrorBody.model_validate({}).message is None
