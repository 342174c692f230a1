"""
Upload cycle coordination.

One cycle = assemble batch -> POST -> reconcile. Cycles are serialized behind
a single mutex, and may run inline on the caller's thread or on a single
background worker.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from core.buffer.batch import BatchAssembler
from core.buffer.store import EventStore
from core.exceptions import KeenError
from core.models.results import UploadReport, UploadStatus
from core.upload.reconciler import ResponseReconciler
from core.upload.transport import UploadTransport

logger = logging.getLogger(__name__)

UploadFinishedCallback = Callable[[], None]


class UploadCoordinator:
    """
    Runs upload cycles against an EventStore.

    Features:
    - At most one cycle in flight per coordinator
    - No network call when nothing is queued
    - Never raises to the caller: every failure ends up in the UploadReport and the log
    - Completion callback invoked exactly once per upload() call
    """

    def __init__(
        self,
        store: EventStore,
        transport: UploadTransport,
        background: bool = True,
        reconciler: Optional[ResponseReconciler] = None
    ):
        """
        Initialize the coordinator.

        Args:
            store: Local event queue
            transport: HTTP transport for batch requests
            background: Run cycles on a worker thread instead of inline
            reconciler: Response reconciler (defaults to one bound to store)
        """
        self.store = store
        self.transport = transport
        self.background = background
        self.assembler = BatchAssembler(store)
        self.reconciler = reconciler or ResponseReconciler(store)

        self._cycle_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()
        self.last_report: Optional[UploadReport] = None

    def upload(self, callback: Optional[UploadFinishedCallback] = None) -> Optional[Future]:
        """
        Run one upload cycle.

        Returns:
            Future resolving to the UploadReport in background mode, None inline
        """
        if not self.background:
            self._run_and_notify(callback)
            return None

        return self._get_executor().submit(self._run_and_notify, callback)

    def run_cycle(self) -> UploadReport:
        """Assemble, send and reconcile one batch; blocks other cycles meanwhile"""
        with self._cycle_lock:
            report = self._run_cycle_locked()
            self.last_report = report
            logger.debug(f"Upload cycle finished: {report.to_dict()}")
            return report

    def shutdown(self, wait: bool = True) -> None:
        """Stop the background worker, optionally waiting for queued cycles"""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    def _run_cycle_locked(self) -> UploadReport:
        batch = self.assembler.build_batch()

        if batch.is_empty:
            logger.info("No API calls were made because there were no events to upload")
            return UploadReport(status=UploadStatus.NO_EVENTS, quarantined=batch.quarantined)

        report = UploadReport(
            status=UploadStatus.COMPLETED,
            events_sent=batch.event_count,
            collections=batch.collections,
            quarantined=batch.quarantined
        )

        try:
            response = self.transport.send(batch.events)
        except KeenError as e:
            logger.error(f"There was an error while sending events: {e}")
            report.status = UploadStatus.TRANSPORT_ERROR
            report.error = str(e)
            return report

        report.status_code = response.status_code
        if not response.ok:
            logger.error(f"Response code was NOT 200. It was: {response.status_code}")
            logger.error(f"Response body was: {response.text}")
            report.status = UploadStatus.HTTP_ERROR
            report.error = response.text
            return report

        try:
            body = response.json()
        except ValueError as e:
            logger.error(f"Could not decode upload response as JSON: {e}; body was: {response.text}")
            report.status = UploadStatus.MALFORMED_RESPONSE
            report.error = str(e)
            return report

        report.reconciliation = self.reconciler.reconcile(body, batch)
        return report

    def _run_and_notify(self, callback: Optional[UploadFinishedCallback]) -> UploadReport:
        try:
            report = self.run_cycle()
        except Exception as e:
            # Keep the worker and the caller alive; the queue is untouched for the next call
            logger.exception(f"Unexpected error during upload cycle: {e}")
            report = UploadReport(status=UploadStatus.TRANSPORT_ERROR, error=str(e))
            self.last_report = report

        if callback is not None:
            try:
                callback()
            except Exception as e:
                logger.exception(f"Upload finished callback raised: {e}")
        return report

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="keen-upload")
            return self._executor
