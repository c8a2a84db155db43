from __future__ import annotations

import json

from nimbuschain_pipeline.cli import build_parser, run
from nimbuschain_pipeline.client import ProcessingClient

from conftest import PNG_BYTES, TEST_API_URL, image_response, make_response, temporal_response


def _client(session) -> ProcessingClient:
    return ProcessingClient(service_url=TEST_API_URL, timeout=5, session=session)


def _args(*extra: str):
    return build_parser().parse_args(
        [
            "--api-url",
            TEST_API_URL,
            "--lat",
            "48.8566",
            "--lon",
            "2.3522",
            "--start-date",
            "2025-01-01",
            "--end-date",
            "2025-01-08",
            *extra,
        ]
    )


def test_single_image_is_written_to_output(tmp_path, fake_session, capsys) -> None:
    output = tmp_path / "out" / "scene.png"
    fake_session.queue(image_response())

    code = run(_args("--mode", "ndvi", "--output", str(output)), client=_client(fake_session))

    assert code == 0
    assert output.read_bytes() == PNG_BYTES
    record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert record["outcome"] == "single"
    assert record["bytes"] == len(PNG_BYTES)
    body = fake_session.calls[0]["json"]
    assert body == {
        "lat": 48.8566,
        "lon": 2.3522,
        "startDate": "2025-01-01",
        "endDate": "2025-01-08",
        "scriptType": "ndvi",
    }


def test_temporal_list_prints_items(fake_session, capsys) -> None:
    fake_session.queue(
        temporal_response(
            [
                {"date": "2025-01-02T10:00:00Z", "image": "https://img/2.png"},
                {"date": "2025-01-05T10:00:00Z", "image": "https://img/5.png"},
            ]
        )
    )

    code = run(_args("--mode", "temporal_list"), client=_client(fake_session))

    lines = capsys.readouterr().out.strip().splitlines()
    assert code == 0
    assert [json.loads(line)["image"] for line in lines[:2]] == ["https://img/2.png", "https://img/5.png"]
    assert json.loads(lines[-1])["status"] == "Successfully fetched 2 images."


def test_failure_exits_non_zero(fake_session, capsys) -> None:
    fake_session.queue(make_response(400, json_body={"detail": "Outside coverage"}))

    code = run(_args("--mode", "true_color"), client=_client(fake_session))

    record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert code == 1
    assert record["outcome"] == "failed"
    assert record["error"] == "Pipeline failed: Outside coverage"
