"""SQLAlchemy-backed observation store and vineyard repository.

Schema:

- ``observations``: one row per observation of any kind.  ``kind``,
  ``vineyard_id`` and ``observed_at`` (the kind-specific timestamp) are
  columns so range queries run in the database; the geometry is kept as
  its bounding box (points are degenerate boxes) for the spatial
  filter; the full observation is stored as JSON in ``payload``.
- ``vineyards``: id, name, location and an optional bounding box.

Timestamps are stored as naive UTC and re-tagged on load, since SQLite
does not keep time zone information.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    and_,
    create_engine,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.types import TypeDecorator

from vine_harvester.core.exceptions import UnavailableError
from vine_harvester.models.geometry import BoundingBox
from vine_harvester.models.observation import Observation, ObservationKind, observation_from_dict
from vine_harvester.models.vineyard import Vineyard
from vine_harvester.storage.base import ObservationStore, VineyardNotFoundError, VineyardRepository
from vine_harvester.utils.helpers import ensure_utc

if TYPE_CHECKING:
    from vine_harvester.core.context import OperationContext

logger = logging.getLogger("vine_harvester.storage.sql")


class UTCDateTime(TypeDecorator[datetime]):
    """Naive-UTC storage for aware datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        return ensure_utc(value).replace(tzinfo=None)

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        return value.replace(tzinfo=UTC)


class Base(DeclarativeBase):
    pass


class ObservationRow(Base):
    __tablename__ = "observations"
    __table_args__ = (Index("ix_observations_kind_vineyard_time", "kind", "vineyard_id", "observed_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    vineyard_id: Mapped[int] = mapped_column(Integer, nullable=False)
    observed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    min_x: Mapped[float] = mapped_column(Float, nullable=False)
    min_y: Mapped[float] = mapped_column(Float, nullable=False)
    max_x: Mapped[float] = mapped_column(Float, nullable=False)
    max_y: Mapped[float] = mapped_column(Float, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<ObservationRow id={self.id} kind={self.kind!r} vineyard={self.vineyard_id}>"


class VineyardRow(Base):
    __tablename__ = "vineyards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    location: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    min_x: Mapped[float | None] = mapped_column(Float, nullable=True)
    min_y: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_x: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_y: Mapped[float | None] = mapped_column(Float, nullable=True)


def create_db_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections may be shared across threads."""
    connect_args: dict[str, Any] = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args)


def create_store(database_url: str) -> tuple[SqlObservationStore, SqlVineyardRepository]:
    """Build the engine, create the schema and return both repositories."""
    engine = create_db_engine(database_url)
    Base.metadata.create_all(engine)
    logger.info("SQL store ready | url=%s", engine.url.render_as_string(hide_password=True))
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    return SqlObservationStore(factory), SqlVineyardRepository(factory)


class SqlObservationStore(ObservationStore):
    """Observation store over a SQLAlchemy session factory.

    Database errors surface as ``UnavailableError``.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._sessions = session_factory

    def _insert(self, observation: Observation) -> int:
        row = ObservationRow(kind=observation.kind.value, vineyard_id=observation.vineyard_id)
        _fill_row(row, observation)
        with self._session() as session, session.begin():
            session.add(row)
            session.flush()
            new_id = row.id
            row.payload = {**row.payload, "id": new_id}
        return new_id

    def _fetch(self, kind: ObservationKind, observation_id: int) -> Observation | None:
        with self._session() as session:
            row = session.get(ObservationRow, observation_id)
            if row is None or row.kind != kind.value:
                return None
            return _to_observation(row)

    def _replace(self, observation: Observation) -> bool:
        with self._session() as session, session.begin():
            row = session.get(ObservationRow, observation.id)
            if row is None or row.kind != observation.kind.value:
                return False
            row.vineyard_id = observation.vineyard_id
            _fill_row(row, observation)
        return True

    def _remove(self, kind: ObservationKind, observation_id: int) -> bool:
        with self._session() as session, session.begin():
            row = session.get(ObservationRow, observation_id)
            if row is None or row.kind != kind.value:
                return False
            session.delete(row)
        return True

    def _query(
        self,
        kind: ObservationKind,
        vineyard_id: int,
        start: datetime | None,
        end: datetime | None,
        bbox: BoundingBox | None,
    ) -> list[Observation]:
        conditions = [ObservationRow.kind == kind.value, ObservationRow.vineyard_id == vineyard_id]
        if start is not None:
            conditions.append(ObservationRow.observed_at >= start)
        if end is not None:
            conditions.append(ObservationRow.observed_at <= end)
        if bbox is not None:
            conditions.extend(
                [
                    ObservationRow.min_x <= bbox.max_x,
                    ObservationRow.max_x >= bbox.min_x,
                    ObservationRow.min_y <= bbox.max_y,
                    ObservationRow.max_y >= bbox.min_y,
                ]
            )
        stmt = (
            select(ObservationRow)
            .where(and_(*conditions))
            .order_by(ObservationRow.observed_at, ObservationRow.id)
        )
        with self._session() as session:
            return [_to_observation(row) for row in session.scalars(stmt)]

    def _session(self) -> _GuardedSession:
        return _GuardedSession(self._sessions)


class SqlVineyardRepository(VineyardRepository):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._sessions = session_factory

    def get(self, vineyard_id: int, ctx: OperationContext | None = None) -> Vineyard:
        if ctx is not None:
            ctx.raise_if_cancelled("get vineyard")
        with _GuardedSession(self._sessions) as session:
            row = session.get(VineyardRow, vineyard_id)
            if row is None:
                raise VineyardNotFoundError(vineyard_id)
            bbox = None
            if row.min_x is not None:
                bbox = BoundingBox(row.min_x, row.min_y, row.max_x, row.max_y)  # type: ignore[arg-type]
            return Vineyard(id=row.id, name=row.name, location=row.location, bounding_box=bbox)

    def add(self, vineyard: Vineyard) -> None:
        bounds: tuple[float | None, ...] = (
            vineyard.bounding_box.bounds if vineyard.bounding_box else (None, None, None, None)
        )
        with _GuardedSession(self._sessions) as session, session.begin():
            session.merge(
                VineyardRow(
                    id=vineyard.id,
                    name=vineyard.name,
                    location=vineyard.location,
                    min_x=bounds[0],
                    min_y=bounds[1],
                    max_x=bounds[2],
                    max_y=bounds[3],
                )
            )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _GuardedSession:
    """Session context manager translating driver errors to ``UnavailableError``."""

    def __init__(self, factory: sessionmaker[Session]) -> None:
        self._factory = factory
        self._session: Session | None = None

    def __enter__(self) -> Session:
        self._session = self._factory()
        return self._session

    def __exit__(self, exc_type: Any, exc: BaseException | None, tb: Any) -> None:
        if self._session is not None:
            self._session.close()
        if isinstance(exc, SQLAlchemyError):
            msg = f"Database error: {exc}"
            raise UnavailableError(msg, stage="observation_store") from exc


def _fill_row(row: ObservationRow, observation: Observation) -> None:
    min_x, min_y, max_x, max_y = observation.geometry.bounds
    row.observed_at = observation.timestamp  # type: ignore[assignment]
    row.min_x, row.min_y, row.max_x, row.max_y = min_x, min_y, max_x, max_y
    row.payload = observation.to_dict()


def _to_observation(row: ObservationRow) -> Observation:
    return observation_from_dict(row.kind, {**row.payload, "id": row.id})
