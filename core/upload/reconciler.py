"""
Per-event reconciliation of an upload response against the local queue.

Each queued record starts as queued and ends either deleted (accepted, or
rejected for a reason that can never succeed) or retained (kept for the next
upload cycle). Results are matched to records by position within each
collection.
"""

import logging
from pathlib import Path
from typing import Any, FrozenSet, List, Optional

from pydantic import ValidationError

from config.defaults import NON_RETRYABLE_ERRORS
from core.buffer.batch import EventBatch
from core.buffer.store import EventStore
from core.models.results import EventResult, ReconciliationReport, RecordOutcome

logger = logging.getLogger(__name__)


class ResponseReconciler:
    """
    Applies a structured upload response to the queued records it refers to.

    Malformed parts of the response are logged and leave the affected records
    in place. Deletions already made are never rolled back.
    """

    def __init__(
        self,
        store: EventStore,
        non_retryable_errors: FrozenSet[str] = NON_RETRYABLE_ERRORS
    ):
        self.store = store
        self.non_retryable_errors = frozenset(non_retryable_errors)

    def classify(self, result: EventResult) -> RecordOutcome:
        """Decide the final state of one record from its result"""
        if result.success:
            return RecordOutcome.DELETED

        if result.error_name in self.non_retryable_errors:
            logger.warning(
                f"An invalid event was found. Deleting it. "
                f"Error: {result.error_name}: {result.error_description}"
            )
            return RecordOutcome.DELETED

        logger.warning(
            f"The event could not be inserted for some reason. "
            f"Error name and description: {result.error_name} {result.error_description}"
        )
        return RecordOutcome.RETAINED

    def reconcile(self, response_body: Any, batch: EventBatch) -> ReconciliationReport:
        """
        Walk the per-collection results and delete or retain each record.

        Args:
            response_body: Decoded JSON body of a 200 response
            batch: The batch that was sent

        Returns:
            ReconciliationReport describing every decision taken
        """
        report = ReconciliationReport()

        if not isinstance(response_body, dict):
            self._anomaly(
                report,
                f"Upload response is not a JSON object (got {type(response_body).__name__}); "
                f"keeping all {batch.event_count} record(s)"
            )
            report.retained.extend(p for c in batch.collections for p in batch.records_for(c))
            return report

        for collection in batch.collections:
            records = batch.records_for(collection)
            if collection not in response_body:
                self._anomaly(
                    report,
                    f"Upload response has no results for collection '{collection}'; "
                    f"leaving its {len(records)} record(s) untouched"
                )
                report.retained.extend(records)
                continue

            self._reconcile_collection(collection, response_body[collection], records, report)

        for collection in response_body:
            if collection not in batch.events:
                self._anomaly(report, f"Upload response contains unexpected collection '{collection}'")

        logger.info(
            f"Reconciled upload: {len(report.deleted)} deleted "
            f"({report.dropped_invalid} invalid), {len(report.retained)} retained"
        )
        return report

    def _reconcile_collection(
        self,
        collection: str,
        results: Any,
        records: List[Path],
        report: ReconciliationReport
    ) -> None:
        if not isinstance(results, list):
            self._anomaly(
                report,
                f"Results for collection '{collection}' are not a list; "
                f"leaving its {len(records)} record(s) untouched"
            )
            report.retained.extend(records)
            return

        if len(results) != len(records):
            self._anomaly(
                report,
                f"Collection '{collection}' sent {len(records)} event(s) "
                f"but received {len(results)} result(s)"
            )

        for index, record in enumerate(records):
            if index >= len(results):
                report.retained.append(record)
                continue

            result = self._parse_result(collection, index, results[index], report)
            if result is None:
                report.retained.append(record)
                continue

            outcome = self.classify(result)
            if outcome is RecordOutcome.DELETED:
                if not result.success:
                    report.dropped_invalid += 1
                if self.store.delete(record):
                    logger.debug(f"Successfully deleted file: {record}")
                else:
                    report.delete_failures += 1
                    logger.critical(f"Could not remove event at {record}")
            report.record(record, outcome)

    def _parse_result(
        self,
        collection: str,
        index: int,
        raw: Any,
        report: ReconciliationReport
    ) -> Optional[EventResult]:
        try:
            return EventResult.model_validate(raw)
        except ValidationError as e:
            self._anomaly(
                report,
                f"Malformed result #{index} for collection '{collection}': {e.errors()}"
            )
            return None

    @staticmethod
    def _anomaly(report: ReconciliationReport, message: str) -> None:
        logger.error(message)
        report.anomalies.append(message)
