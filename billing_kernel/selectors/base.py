"""
Module: billing_kernel.selectors.base
Responsibility: Shared plumbing of the read-only billing selectors.
Architecture position: Kernel > Selectors.  May import from models/ and
    domain/dtos.py, never from services/.

Selectors run queries on the caller's session and hand back frozen DTOs
(``PanelInfo``, ``EventInfo``, ``BillingRecordInfo`` ...), never ORM rows, so
nothing a selector returns can be flushed back by accident.
"""

from typing import Any, Callable, Generic, TypeVar

from sqlalchemy import Select
from sqlalchemy.orm import Session

from billing_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)
DTO = TypeVar("DTO")


class BaseSelector(Generic[ModelType]):
    """Holds the session; never adds, flushes or commits."""

    def __init__(self, session: Session):
        self.session = session

    def _first_dto(self, query: Select, to_dto: Callable[[Any], DTO]) -> DTO | None:
        row = self.session.execute(query).scalar_one_or_none()
        return None if row is None else to_dto(row)

    def _all_dtos(self, query: Select, to_dto: Callable[[Any], DTO]) -> list[DTO]:
        return [to_dto(row) for row in self.session.execute(query).scalars()]
