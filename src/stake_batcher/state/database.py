"""
Database module for persistent run results.

Uses SQLAlchemy for async database operations with SQLite by default.
"""

import json
import uuid
from typing import List, Optional, Sequence

import structlog
from sqlalchemy import Column, String, Integer, DateTime, Text, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from stake_batcher.config import BatcherConfig, OperationKind, get_config
from stake_batcher.core.models import AuthorityPair, GroupResult, GroupStatus, utcnow
from stake_batcher.state.report import ResultSink

logger = structlog.get_logger(__name__)

Base = declarative_base()


class RunRecord(Base):
    """Database model for batch runs."""

    __tablename__ = "runs"

    run_id = Column(String(36), primary_key=True)
    operation = Column(String(30), nullable=False)
    current_authority = Column(String(64), nullable=False)
    new_authority = Column(String(64), nullable=True)

    group_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class GroupResultRecord(Base):
    """Database model for group results."""

    __tablename__ = "group_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(36), nullable=False, index=True)
    group_index = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False)
    transaction_id = Column(String(100), nullable=True)
    error_message = Column(Text, nullable=True)
    accounts_json = Column(Text, nullable=False)  # JSON encoded

    recorded_at = Column(DateTime(timezone=True), nullable=False)


class Database:
    """
    Async database interface for result persistence.

    Provides methods to save and load run results.
    """

    def __init__(self, config: Optional[BatcherConfig] = None, url: Optional[str] = None):
        """
        Initialize database connection.

        Args:
            config: Batcher configuration
            url: Database URL, overriding the configured one
        """
        self.config = config or get_config()
        self.url = url or self.config.database_url
        self._engine = None
        self._session_factory = None

    async def connect(self) -> None:
        """Initialize database connection and create tables."""
        if self._engine is not None:
            return

        self._engine = create_async_engine(self.url, echo=False)

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        # Create tables
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("database_connected", url=self.url.split("///")[0])

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("database_disconnected")

    def _get_session(self) -> AsyncSession:
        """Get a new database session."""
        if not self._session_factory:
            raise RuntimeError("Database not connected")
        return self._session_factory()

    async def save_run(
        self,
        run_id: str,
        results: Sequence[GroupResult],
        authorities: AuthorityPair,
        operation: OperationKind,
    ) -> None:
        """Save a run and all of its group results in one transaction."""
        async with self._get_session() as session:
            session.add(
                RunRecord(
                    run_id=run_id,
                    operation=operation.value,
                    current_authority=authorities.current.address,
                    new_authority=authorities.new.address if authorities.new else None,
                    group_count=len(results),
                )
            )
            for result in results:
                session.add(
                    GroupResultRecord(
                        run_id=run_id,
                        group_index=result.group_index,
                        status=result.status.value,
                        transaction_id=result.transaction_id,
                        error_message=result.error_message,
                        accounts_json=json.dumps(list(result.accounts)),
                        recorded_at=result.timestamp,
                    )
                )
            await session.commit()

    async def load_results(self, run_id: str) -> List[GroupResult]:
        """Load the group results of a run, in group order."""
        async with self._get_session() as session:
            run = await session.get(RunRecord, run_id)
            if not run:
                return []

            result = await session.execute(
                select(GroupResultRecord)
                .where(GroupResultRecord.run_id == run_id)
                .order_by(GroupResultRecord.group_index)
            )
            records = result.scalars().all()

            authorities = {
                "current_authority": run.current_authority,
                "new_authority": run.new_authority,
            }
            return [self._record_to_result(r, authorities) for r in records]

    def _record_to_result(self, record: GroupResultRecord, authorities: dict) -> GroupResult:
        """Convert database record to GroupResult."""
        return GroupResult(
            group_index=record.group_index,
            accounts=tuple(json.loads(record.accounts_json)),
            status=GroupStatus(record.status),
            transaction_id=record.transaction_id,
            error_message=record.error_message,
            authorities=authorities,
            timestamp=record.recorded_at,
        )


class DatabaseResultSink(ResultSink):
    """Persists each run's results as rows in the results database."""

    def __init__(self, database: Database):
        self.database = database

    async def write(
        self,
        results: Sequence[GroupResult],
        authorities: AuthorityPair,
        operation: OperationKind,
    ) -> str:
        run_id = str(uuid.uuid4())

        await self.database.connect()
        try:
            await self.database.save_run(run_id, results, authorities, operation)
        finally:
            await self.database.disconnect()

        logger.info("results_saved", run_id=run_id, rows=len(results))
        return f"{self.database.url}#run={run_id}"
