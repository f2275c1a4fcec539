"""
Durable aggregate of API call counts (SQLite via SQLAlchemy).

One row per decomposed aggregate key and API label.  Writes are
upserts that *add* to ``num_calls``, so flushing the same
observations twice counts them twice and flushing batches in any
order gives the same totals.

Absent key components are stored as empty strings: SQL treats NULLs
as distinct in unique indexes, which would split identical keys
into separate rows.
"""

from __future__ import annotations

import pathlib

from sqlalchemy import Column, Index, Integer, Text, create_engine, select
from sqlalchemy.dialects import sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from apiusage.analysis.accumulator import ApiUsageAccumulator
from apiusage.models.aggregate import AggregateKey, AggregateRow
from apiusage.utils import logger
from apiusage.utils.errors import StoreUnavailableError, StoreWriteError

log = logger.create_logger("AggregateStore")

Base = declarative_base()

TABLE_NAME = "analysis"

IDENTITY_COLUMNS = (
    "first_party_origin",
    "first_party_url",
    "third_party_origin",
    "third_party_url",
    "script_origin",
    "script_url_no_query",
    "script_url",
    "valid_script_origin",
    "valid_script_url_no_query",
    "valid_script_url",
    "api_called",
)


class ApiUsageRecord(Base):
    __tablename__ = TABLE_NAME

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_party_origin = Column(Text, nullable=False, default="")
    first_party_url = Column(Text, nullable=False, default="")
    third_party_origin = Column(Text, nullable=False, default="")
    third_party_url = Column(Text, nullable=False, default="")
    script_origin = Column(Text, nullable=False, default="")
    script_url_no_query = Column(Text, nullable=False, default="")
    script_url = Column(Text, nullable=False, default="")
    valid_script_origin = Column(Text, nullable=False, default="")
    valid_script_url_no_query = Column(Text, nullable=False, default="")
    valid_script_url = Column(Text, nullable=False, default="")
    api_called = Column(Text, nullable=False)
    num_calls = Column(Integer, nullable=False)


Index("idx_source", *(getattr(ApiUsageRecord, name) for name in IDENTITY_COLUMNS), unique=True)


class AggregationStore:
    """Insert-or-add store for aggregated API call counts."""

    def __init__(self, db_path: str | pathlib.Path) -> None:
        self._db_path = pathlib.Path(db_path)
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._engine = create_engine(
                f"sqlite:///{self._db_path}",
                connect_args={"timeout": 20, "check_same_thread": False},
            )
            Base.metadata.create_all(bind=self._engine)
        except (OSError, SQLAlchemyError) as exc:
            raise StoreUnavailableError(f"Cannot open aggregate store at {self._db_path}: {exc}") from exc

        self._session_factory = sessionmaker(bind=self._engine, autoflush=False)
        table = ApiUsageRecord.__table__
        upsert = sqlite.insert(table)
        self._upsert = upsert.on_conflict_do_update(
            index_elements=[table.c[name] for name in IDENTITY_COLUMNS],
            set_={"num_calls": table.c.num_calls + upsert.excluded.num_calls},
        )
        log.debug("Aggregate store opened", {"path": str(self._db_path)})

    @property
    def db_path(self) -> pathlib.Path:
        return self._db_path

    # ==========================================================================
    # Writes
    # ==========================================================================

    def _write(self, rows: list[AggregateRow]) -> None:
        if not rows:
            return
        try:
            with self._session_factory.begin() as session:
                session.execute(self._upsert, [row.model_dump() for row in rows])
        except SQLAlchemyError as exc:
            raise StoreWriteError(f"Failed to write {len(rows)} rows: {exc}") from exc

    def upsert_increment(self, key: AggregateKey, api_called: str, count: int) -> None:
        """Add *count* calls of *api_called* under *key*."""
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        self._write([AggregateRow.from_key(key, api_called, count)])

    def flush(self, accumulator: ApiUsageAccumulator) -> int:
        """Write every count in *accumulator* in a single transaction.

        Returns:
            The number of (key, API) rows written.

        Raises:
            StoreWriteError: If the transaction fails; nothing is written.
        """
        rows = [
            AggregateRow.from_key(key, api, count)
            for key, api, count in accumulator
            if count > 0
        ]
        self._write(rows)
        log.info("Counts flushed", {"rows": len(rows), "calls": accumulator.total_calls})
        return len(rows)

    # ==========================================================================
    # Reads
    # ==========================================================================

    def fetch_all(self) -> list[AggregateRow]:
        """Return every stored row, oldest first."""
        with self._session_factory() as session:
            records = session.scalars(select(ApiUsageRecord).order_by(ApiUsageRecord.id)).all()
            return [AggregateRow.model_validate(record, from_attributes=True) for record in records]

    def num_calls_for(self, key: AggregateKey, api_called: str) -> int:
        """Return the stored count for *key* and *api_called*, or 0."""
        identity = AggregateRow.from_key(key, api_called, 0).identity()
        query = select(ApiUsageRecord.num_calls).where(
            *(getattr(ApiUsageRecord, name) == value for name, value in identity.items())
        )
        with self._session_factory() as session:
            return session.scalar(query) or 0

    def close(self) -> None:
        self._engine.dispose()
