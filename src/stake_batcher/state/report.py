"""
Result sinks for group outcomes.

A sink receives the final list of GroupResults for a run and returns where
it persisted them.
"""

import csv
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

import structlog

from stake_batcher.config import OperationKind
from stake_batcher.core.models import AuthorityPair, GroupResult

logger = structlog.get_logger(__name__)


class ResultSink(ABC):
    """Abstract destination for run results."""

    @abstractmethod
    async def write(
        self,
        results: Sequence[GroupResult],
        authorities: AuthorityPair,
        operation: OperationKind,
    ) -> str:
        """
        Persist the results of a run.

        Args:
            results: One result per attempted group, in group order
            authorities: Authorities used by the run
            operation: Operation that was run

        Returns:
            Location of the persisted results
        """
        pass


class CsvReportSink(ResultSink):
    """
    Writes one CSV file per run.

    Files are named `<operation>-results-<timestamp>.csv` inside the report
    directory. The New Authority column only appears for authority changes.
    """

    def __init__(self, report_dir: str = "reports"):
        self.report_dir = Path(report_dir)

    def _headers(self, operation: OperationKind) -> List[str]:
        headers = ["Timestamp", "Transaction Hash", "Status", "Error Message", "Current Authority"]
        if operation == OperationKind.CHANGE_AUTHORITY:
            headers.append("New Authority")
        headers.append("Stake Accounts")
        return headers

    def _row(self, result: GroupResult, authorities: AuthorityPair, operation: OperationKind) -> List[str]:
        row = [
            result.timestamp.isoformat(),
            result.transaction_id or "",
            result.status.value,
            result.error_message or "",
            authorities.current.address,
        ]
        if operation == OperationKind.CHANGE_AUTHORITY:
            row.append(authorities.new.address if authorities.new else "")
        row.append("; ".join(result.accounts))
        return row

    async def write(
        self,
        results: Sequence[GroupResult],
        authorities: AuthorityPair,
        operation: OperationKind,
        now: Optional[datetime] = None,
    ) -> str:
        self.report_dir.mkdir(parents=True, exist_ok=True)

        stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%S%fZ")
        path = self.report_dir / f"{operation.value}-results-{stamp}.csv"

        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(self._headers(operation))
            for result in results:
                writer.writerow(self._row(result, authorities, operation))

        logger.info("report_written", path=str(path), rows=len(results))
        return str(path)
