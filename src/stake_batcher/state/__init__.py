"""
Result persistence.

Writes the per-group outcome of a run to a CSV report or a database.
"""

from stake_batcher.config import BatcherConfig, ReportBackend
from stake_batcher.state.report import ResultSink, CsvReportSink
from stake_batcher.state.database import Database, DatabaseResultSink


def create_result_sink(config: BatcherConfig) -> ResultSink:
    """Create the result sink selected by the configuration."""
    if config.report_backend == ReportBackend.DATABASE:
        return DatabaseResultSink(Database(config))
    return CsvReportSink(config.report_dir)


__all__ = [
    "ResultSink",
    "CsvReportSink",
    "Database",
    "DatabaseResultSink",
    "create_result_sink",
]
