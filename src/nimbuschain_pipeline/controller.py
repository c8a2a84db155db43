from __future__ import annotations

import time
from concurrent.futures import Future
from contextlib import AbstractContextManager
from typing import Protocol

import anyio
import anyio.to_thread
from anyio.abc import TaskStatus
from anyio.from_thread import BlockingPortal, start_blocking_portal
from loguru import logger

from nimbuschain_pipeline import observability
from nimbuschain_pipeline.client import BinaryImage, ProcessingClient
from nimbuschain_pipeline.errors import PipelineRequestError
from nimbuschain_pipeline.handles import HandleRegistry
from nimbuschain_pipeline.models import TemporalResponse
from nimbuschain_pipeline.outcome import (
    CANCELLED_MESSAGE,
    NO_IMAGES_MESSAGE,
    Failed,
    Idle,
    Pending,
    SingleResult,
    SubmissionOutcome,
    TemporalResult,
    release_outcome,
)
from nimbuschain_pipeline.params import CoordinatePicker, JobParameters, ParameterStore
from nimbuschain_pipeline.presenter import ViewState, present
from nimbuschain_pipeline.settings import Settings, get_settings


class ProcessingBackend(Protocol):
    def process(self, payload: dict) -> BinaryImage | TemporalResponse: ...

    def close(self) -> None: ...


class PipelineController:
    """Owns the job parameters and the current submission outcome.

    Outcome writes happen only on the event loop running ``submit_job``.
    Each submission gets a sequence number and only the latest one may
    write its result; older results are dropped and their handles released.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        client: ProcessingBackend | None = None,
        store: ParameterStore | None = None,
        registry: HandleRegistry | None = None,
        enable_metrics: bool | None = None,
    ):
        self.settings = settings or get_settings()
        self.store = store or ParameterStore(
            JobParameters.defaults(
                latitude=self.settings.nimbus_pipeline_default_lat,
                longitude=self.settings.nimbus_pipeline_default_lon,
                lookback_days=self.settings.nimbus_pipeline_lookback_days,
            )
        )
        self.picker = CoordinatePicker(self.store)
        self.registry = registry or HandleRegistry()
        self._owns_client = client is None
        self.client: ProcessingBackend = client or ProcessingClient(
            service_url=self.settings.api_url,
            timeout=self.settings.nimbus_pipeline_timeout_seconds,
        )
        self._metrics = (
            self.settings.nimbus_enable_metrics if enable_metrics is None else enable_metrics
        )
        self._outcome: SubmissionOutcome = Idle()
        self._sequence = 0
        self._scopes: dict[int, anyio.CancelScope] = {}
        self._closed = False

    @property
    def outcome(self) -> SubmissionOutcome:
        return self._outcome

    @property
    def sequence(self) -> int:
        return self._sequence

    @property
    def is_pending(self) -> bool:
        return isinstance(self._outcome, Pending)

    def view(self) -> ViewState:
        return present(self._outcome)

    def _write(self, outcome: SubmissionOutcome) -> None:
        previous = self._outcome
        self._outcome = outcome
        if previous is not outcome:
            release_outcome(previous)
        if self._metrics:
            observability.set_live_handles(self.registry.live_count)

    def _classify(self, result: BinaryImage | TemporalResponse) -> SubmissionOutcome:
        if isinstance(result, BinaryImage):
            handle = self.registry.allocate(result.content, result.content_type)
            return SingleResult(handle)
        if not result.results:
            return Idle(NO_IMAGES_MESSAGE)
        return TemporalResult(tuple(result.results))

    async def _run(self, params: JobParameters) -> SubmissionOutcome:
        try:
            payload = params.to_payload()
            logger.debug("Processing payload: {}", payload)
            result = await anyio.to_thread.run_sync(
                self.client.process,
                payload,
                abandon_on_cancel=True,
            )
            return self._classify(result)
        except PipelineRequestError as exc:
            logger.warning(
                "Processing request failed: {} (status={}, detail={!r})",
                exc,
                exc.status_code,
                exc.detail,
            )
            return Failed.from_detail(exc.detail)
        except Exception:
            logger.exception("Fetch image error")
            return Failed.from_detail(None)

    async def submit_job(
        self,
        params: JobParameters | None = None,
        *,
        task_status: TaskStatus[int] = anyio.TASK_STATUS_IGNORED,
    ) -> SubmissionOutcome:
        if self._closed:
            raise RuntimeError("controller is closed")

        snapshot = params or self.store.get()
        self._sequence += 1
        seq = self._sequence
        self._write(Pending())
        # Pending must be observable before the caller regains control.
        task_status.started(seq)
        if self._metrics:
            observability.record_submission(snapshot.mode)
        logger.info(
            "Submitting job #{} mode={} at ({}, {}) {}..{}",
            seq,
            getattr(snapshot.mode, "value", snapshot.mode),
            snapshot.latitude,
            snapshot.longitude,
            snapshot.start_date,
            snapshot.end_date,
        )

        started = time.monotonic()
        scope = anyio.CancelScope()
        self._scopes[seq] = scope
        outcome: SubmissionOutcome | None = None
        try:
            with scope:
                outcome = await self._run(snapshot)
        finally:
            self._scopes.pop(seq, None)
            if outcome is None and seq == self._sequence and self.is_pending:
                self._write(Idle(CANCELLED_MESSAGE))

        if outcome is None:
            return self._outcome

        if seq != self._sequence:
            logger.info("Discarding result of job #{}; job #{} is newer", seq, self._sequence)
            release_outcome(outcome)
            return self._outcome

        self._write(outcome)
        if self._metrics:
            observability.record_outcome(snapshot.mode, outcome.kind, time.monotonic() - started)
        logger.info("Job #{} finished as {}", seq, outcome.kind)
        return outcome

    def cancel(self) -> bool:
        """Cancel the in-flight submission, if any."""
        scope = self._scopes.get(self._sequence)
        if scope is None or not self.is_pending:
            return False
        scope.cancel()
        self._sequence += 1
        self._write(Idle(CANCELLED_MESSAGE))
        logger.info("Cancelled job #{}", self._sequence - 1)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for scope in list(self._scopes.values()):
            scope.cancel()
        self._sequence += 1
        self._write(Idle())
        self.registry.release_all()
        if self._owns_client:
            self.client.close()


class PipelineRuntime(AbstractContextManager["PipelineRuntime"]):
    """Runs a controller on an event loop thread for synchronous callers.

    By default the runtime starts and owns its own blocking portal. Passing
    ``portal`` lets many runtimes share one event loop thread; a shared
    portal is left running when the runtime closes.
    """

    def __init__(
        self,
        *,
        controller: PipelineController | None = None,
        settings: Settings | None = None,
        portal: BlockingPortal | None = None,
    ):
        self._portal_cm = None if portal is not None else start_blocking_portal()
        self._portal: BlockingPortal | None = (
            portal if self._portal_cm is None else self._portal_cm.__enter__()
        )
        self.controller = controller or PipelineController(settings=settings)

    @property
    def params(self) -> ParameterStore:
        return self.controller.store

    @property
    def picker(self) -> CoordinatePicker:
        return self.controller.picker

    @property
    def outcome(self) -> SubmissionOutcome:
        return self.controller.outcome

    @property
    def is_pending(self) -> bool:
        return self.controller.is_pending

    def view(self) -> ViewState:
        return self.controller.view()

    def submit(self, params: JobParameters | None = None) -> Future[SubmissionOutcome]:
        assert self._portal is not None, "runtime is closed"
        snapshot = params or self.params.get()
        future, _ = self._portal.start_task(self.controller.submit_job, snapshot)
        return future

    def submit_and_wait(
        self,
        params: JobParameters | None = None,
        *,
        timeout: float | None = None,
    ) -> SubmissionOutcome:
        return self.submit(params).result(timeout=timeout)

    def cancel(self) -> bool:
        assert self._portal is not None, "runtime is closed"
        return bool(self._portal.call(self.controller.cancel))

    def close(self) -> None:
        if self._portal is None:
            return
        self._portal.call(self.controller.close)
        if self._portal_cm is not None:
            self._portal_cm.__exit__(None, None, None)
        self._portal = None

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
