from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import and_, false, or_, true
from sqlalchemy.sql import ColumnElement, Select

from tourdesk.platform.security.context import Principal
from tourdesk.platform.security.errors import NotFoundError, ScopeConfigurationError


class Predicate:
    """Boolean condition over a row, renderable to a SQLAlchemy clause."""

    unrestricted = False

    def matches(self, row: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def to_clause(self, model: type[Any]) -> ColumnElement[bool]:
        raise NotImplementedError

    def apply(self, query: Select[Any], model: type[Any]) -> Select[Any]:
        if self.unrestricted:
            return query
        return query.where(self.to_clause(model))


@dataclass(frozen=True, slots=True)
class Unrestricted(Predicate):
    unrestricted = True

    def matches(self, row: Mapping[str, Any]) -> bool:
        return True

    def to_clause(self, model: type[Any]) -> ColumnElement[bool]:
        return true()


@dataclass(frozen=True, slots=True)
class ColumnEquals(Predicate):
    column: str
    value: str

    def matches(self, row: Mapping[str, Any]) -> bool:
        current = row.get(self.column)
        return current is not None and str(current) == self.value

    def to_clause(self, model: type[Any]) -> ColumnElement[bool]:
        column = getattr(model, self.column, None)
        if column is None:
            raise ScopeConfigurationError(
                f"Scope column '{self.column}' is not defined on {getattr(model, '__name__', model)!r}",
                details={"column": self.column},
            )
        return column == self.value


@dataclass(frozen=True, slots=True)
class AnyOf(Predicate):
    predicates: tuple[Predicate, ...]

    def matches(self, row: Mapping[str, Any]) -> bool:
        return any(predicate.matches(row) for predicate in self.predicates)

    def to_clause(self, model: type[Any]) -> ColumnElement[bool]:
        return or_(false(), *(predicate.to_clause(model) for predicate in self.predicates))


@dataclass(frozen=True, slots=True)
class AllOf(Predicate):
    predicates: tuple[Predicate, ...]

    def matches(self, row: Mapping[str, Any]) -> bool:
        return all(predicate.matches(row) for predicate in self.predicates)

    def to_clause(self, model: type[Any]) -> ColumnElement[bool]:
        return and_(true(), *(predicate.to_clause(model) for predicate in self.predicates))


UNRESTRICTED = Unrestricted()

ScopeRule = Callable[[Principal], Predicate]


def owned_by(column: str) -> ScopeRule:
    """Rule restricting rows to ``column = principal.id``."""

    def rule(principal: Principal) -> Predicate:
        return ColumnEquals(column, principal.id)

    return rule


def owned_by_any(*columns: str) -> ScopeRule:
    """Rule restricting rows to those where any of ``columns`` equals the principal id."""

    def rule(principal: Principal) -> Predicate:
        return AnyOf(tuple(ColumnEquals(column, principal.id) for column in columns))

    return rule


DEFAULT_SCOPE_RULES: dict[tuple[str, str], ScopeRule] = {
    ("customers", "customer"): owned_by("id"),
    ("customers", "agent"): owned_by("assigned_staff_id"),
    ("leads", "agent"): owned_by("agent_id"),
    ("leads", "sales"): owned_by("agent_id"),
    ("reservations", "customer"): owned_by("customer_id"),
    ("payments", "customer"): owned_by("customer_id"),
    ("invoices", "customer"): owned_by("customer_id"),
    ("support_tickets", "customer"): owned_by("customer_id"),
    ("support_tickets", "agent"): owned_by_any("assigned_to", "created_by"),
    ("support_tickets", "sales"): owned_by("assigned_to"),
    ("sales_cases", "agent"): owned_by_any("assigned_to", "created_by"),
    ("sales_cases", "sales"): owned_by_any("assigned_to", "created_by"),
    ("operations", "operations"): owned_by("assigned_to"),
}


class ScopePolicy:
    """Row-scoping rules keyed by (module, role)."""

    def __init__(
        self,
        rules: Mapping[tuple[str, str], ScopeRule] | None = None,
        *,
        admin_role: str = "admin",
    ) -> None:
        self._rules = dict(DEFAULT_SCOPE_RULES if rules is None else rules)
        self._admin_role = admin_role

    def scope_filter(self, module: str, principal: Principal) -> Predicate:
        if principal.role == self._admin_role:
            return UNRESTRICTED
        rule = self._rules.get((module, principal.role))
        if rule is None:
            return UNRESTRICTED
        return rule(principal)

    def ensure_in_scope(self, module: str, principal: Principal, row: Mapping[str, Any]) -> None:
        """Raise ``NotFoundError`` when ``row`` is excluded for ``principal``."""

        if not self.scope_filter(module, principal).matches(row):
            raise NotFoundError()
