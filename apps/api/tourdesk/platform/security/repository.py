from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from sqlalchemy import inspect, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from tourdesk.metrics import observe_scope_excluded
from tourdesk.platform.security.context import Principal
from tourdesk.platform.security.errors import ForbiddenError, NotFoundError
from tourdesk.platform.security.rls import Predicate, ScopePolicy


ModelT = TypeVar("ModelT")


class ScopedRepository(Generic[ModelT]):
    """Base resource model whose every statement carries the scope predicate."""

    module = ""
    model: type[ModelT]
    not_found_detail = "record not found"

    def __init__(self, scope_policy: ScopePolicy) -> None:
        self._scope_policy = scope_policy

    def predicate_for(self, principal: Principal) -> Predicate:
        return self._scope_policy.scope_filter(self.module, principal)

    def apply_scope_query(self, query: Select[Any], principal: Principal) -> Select[Any]:
        return self.predicate_for(principal).apply(query, self.model)

    def list(
        self,
        session: Session,
        principal: Principal,
        filters: Mapping[str, Any] | None = None,
        *,
        offset: int = 0,
        limit: int = 100,
    ) -> list[ModelT]:
        stmt = self.apply_scope_query(select(self.model), principal)
        for field_name, value in (filters or {}).items():
            if value is None:
                continue
            column = getattr(self.model, field_name, None)
            if column is None:
                continue
            stmt = stmt.where(column == value)
        stmt = stmt.order_by(*inspect(self.model).primary_key).offset(offset).limit(limit)
        return list(session.scalars(stmt).all())

    def get(self, session: Session, principal: Principal, record_id: Any, *, operation: str = "read") -> ModelT:
        primary_key = inspect(self.model).primary_key[0]
        stmt = self.apply_scope_query(select(self.model).where(primary_key == record_id), principal)
        record = session.scalar(stmt)
        if record is None:
            observe_scope_excluded(self.module, operation)
            raise NotFoundError(self.not_found_detail)
        return record

    def update(self, session: Session, principal: Principal, record_id: Any, payload: Mapping[str, Any]) -> ModelT:
        record = self.get(session, principal, record_id, operation="update")
        if not payload:
            return record

        merged = {**self.to_row(record), **payload}
        if not self.predicate_for(principal).matches(merged):
            raise ForbiddenError(
                f"Update would move the record out of scope for module: {self.module}",
                module=self.module,
                action="update",
                reason="out of scope write",
            )

        for field_name, value in payload.items():
            setattr(record, field_name, value)
        session.commit()
        session.refresh(record)
        return record

    def delete(self, session: Session, principal: Principal, record_id: Any) -> None:
        record = self.get(session, principal, record_id, operation="delete")
        session.delete(record)
        session.commit()

    def to_row(self, record: ModelT) -> dict[str, Any]:
        return {attr.key: getattr(record, attr.key) for attr in inspect(self.model).column_attrs}
