"""Single-record transactional writer for build stage rows."""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .models import STAGE_ID_UNIQUE_CONSTRAINT, BuildStageRow

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from stagestore.decoding import BuildStageRecord

type SessionFactory = async_sessionmaker[AsyncSession]

# SQLSTATE for unique_violation on PostgreSQL drivers (asyncpg, psycopg)
_UNIQUE_VIOLATION_SQLSTATE = "23505"
_SQLITE_STAGE_ID_UNIQUE_MESSAGE = (
    f"UNIQUE constraint failed: {BuildStageRow.__tablename__}.stage_id"
)


class PersistStatus(enum.StrEnum):
    """Result tag for a single insert attempt."""

    COMMITTED = "committed"
    DUPLICATE_CONFLICT = "duplicate_conflict"
    STORAGE_ERROR = "storage_error"


@dc.dataclass(frozen=True, slots=True)
class PersistResult:
    """Outcome of persisting one build stage record.

    Attributes
    ----------
    status
        Which of the three insert outcomes occurred.
    row_id
        Surrogate key of the committed row; ``None`` unless committed.
    error
        Exception raised by the storage layer, for conflicts and errors.

    """

    status: PersistStatus
    row_id: int | None = None
    error: BaseException | None = None

    @property
    def detail(self) -> str | None:
        """Return a one-line description of the storage failure, if any."""
        if self.error is None:
            return None
        return f"{type(self.error).__name__}: {self.error}"

    @classmethod
    def committed(cls, row_id: int) -> PersistResult:
        """Return a result for a durably committed row."""
        return cls(PersistStatus.COMMITTED, row_id=row_id)

    @classmethod
    def duplicate(cls, error: IntegrityError) -> PersistResult:
        """Return a result for an insert rejected by the uniqueness constraint."""
        return cls(PersistStatus.DUPLICATE_CONFLICT, error=error)

    @classmethod
    def storage_error(cls, error: BaseException) -> PersistResult:
        """Return a result for any other storage failure."""
        return cls(PersistStatus.STORAGE_ERROR, error=error)


def _constraint_name(orig: BaseException | None) -> str | None:
    """Return the violated constraint name reported by a PostgreSQL driver."""
    # asyncpg errors arrive wrapped by SQLAlchemy's adapter; psycopg uses diag
    for source in (orig, getattr(orig, "__cause__", None)):
        name = getattr(source, "constraint_name", None)
        if name:
            return name
    return getattr(getattr(orig, "diag", None), "constraint_name", None)


def is_unique_violation(exc: IntegrityError) -> bool:
    """Return True when ``exc`` violates the ``stage_id`` uniqueness constraint.

    PostgreSQL drivers expose the SQLSTATE on the wrapped DBAPI error
    (``sqlstate`` for asyncpg and psycopg, ``pgcode`` for psycopg2) and name
    the violated constraint; a unique violation on any other constraint is not
    a duplicate delivery. SQLite names the offending column in its message.
    """
    orig = exc.orig
    for attr in ("sqlstate", "pgcode"):
        code = getattr(orig, attr, None)
        if code is not None:
            if code != _UNIQUE_VIOLATION_SQLSTATE:
                return False
            constraint = _constraint_name(orig)
            return constraint is None or constraint == STAGE_ID_UNIQUE_CONSTRAINT
    return _SQLITE_STAGE_ID_UNIQUE_MESSAGE in str(orig)


class BuildStagePersister:
    """Insert build stage records one transaction at a time.

    Idempotency under redelivery comes from the ``stage_id`` uniqueness
    constraint: a second insert of the same key is rolled back and reported as
    :attr:`PersistStatus.DUPLICATE_CONFLICT`, leaving the stored row untouched.
    Nothing is retried here; redelivery belongs to the broker.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        """Store the session factory used to open one session per record."""
        self._session_factory = session_factory

    async def persist(self, record: BuildStageRecord) -> PersistResult:
        """Insert ``record`` and commit, or roll back and classify the failure."""
        row = BuildStageRow.from_record(record)
        try:
            async with self._session_factory() as session, session.begin():
                session.add(row)
                await session.flush()
                row_id = row.id
        except IntegrityError as exc:
            if is_unique_violation(exc):
                return PersistResult.duplicate(exc)
            return PersistResult.storage_error(exc)
        except (SQLAlchemyError, OSError) as exc:
            return PersistResult.storage_error(exc)
        return PersistResult.committed(row_id)
