from __future__ import annotations

import argparse
import datetime as dt
import json
import sys
from pathlib import Path
from typing import Any

from nimbuschain_pipeline.controller import PipelineController, PipelineRuntime, ProcessingBackend
from nimbuschain_pipeline.logging_config import configure_logging
from nimbuschain_pipeline.models import ProcessingMode
from nimbuschain_pipeline.outcome import Failed, SingleResult, SubmissionOutcome, TemporalResult
from nimbuschain_pipeline.settings import get_settings


def _default_output(args: argparse.Namespace) -> Path:
    return Path(f"{args.mode}_{args.start_date}_{args.end_date}.png")


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    today = dt.date.today()
    start = today - dt.timedelta(days=settings.nimbus_pipeline_lookback_days)

    parser = argparse.ArgumentParser(description="NimbusChain Pipeline CLI")

    parser.add_argument("--api-url", default=settings.api_url)
    parser.add_argument("--timeout", type=float, default=settings.nimbus_pipeline_timeout_seconds)

    parser.add_argument("--lat", default=settings.nimbus_pipeline_default_lat)
    parser.add_argument("--lon", default=settings.nimbus_pipeline_default_lon)
    parser.add_argument("--start-date", default=start.isoformat())
    parser.add_argument("--end-date", default=today.isoformat())
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in ProcessingMode],
        default=ProcessingMode.true_color.value,
    )
    parser.add_argument("--output", default=None, help="Image path for single-image modes.")

    parser.add_argument("--log-level", default=settings.nimbus_log_level)
    parser.add_argument("--json-logs", action="store_true", default=settings.nimbus_log_json)
    return parser


def _outcome_record(outcome: SubmissionOutcome) -> dict[str, Any]:
    record: dict[str, Any] = {"outcome": outcome.kind, "status": outcome.status}
    if isinstance(outcome, Failed):
        record["error"] = outcome.message
    return record


def run(args: argparse.Namespace, *, client: ProcessingBackend | None = None) -> int:
    settings = get_settings().model_copy(
        update={
            "nimbus_pipeline_api_url": args.api_url,
            "nimbus_pipeline_timeout_seconds": args.timeout,
        }
    )
    controller = PipelineController(settings=settings, client=client)

    with PipelineRuntime(controller=controller) as runtime:
        runtime.params.set(
            latitude=args.lat,
            longitude=args.lon,
            start_date=args.start_date,
            end_date=args.end_date,
            mode=args.mode,
        )
        outcome = runtime.submit_and_wait()

        if isinstance(outcome, SingleResult):
            output = Path(args.output) if args.output else _default_output(args)
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_bytes(outcome.handle.content)
            record = _outcome_record(outcome)
            record.update({"path": str(output), "bytes": outcome.handle.size})
            print(json.dumps(record))
        elif isinstance(outcome, TemporalResult):
            for item in outcome.items:
                print(item.model_dump_json())
            print(json.dumps(_outcome_record(outcome)))
        else:
            print(json.dumps(_outcome_record(outcome)))

    return 1 if isinstance(outcome, Failed) else 0


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    configure_logging(level=args.log_level, json_logs=args.json_logs, log_file=get_settings().nimbus_log_file)
    try:
        code = run(args)
    except Exception as exc:
        print(json.dumps({"error": str(exc)}), file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
