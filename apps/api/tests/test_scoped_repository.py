from __future__ import annotations

from collections.abc import Generator

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tourdesk.core.database import Base
from tourdesk.crm.models import Customer, Lead, SupportTicket
from tourdesk.crm.repositories import CustomerRepository, LeadRepository, SupportTicketRepository
from tourdesk.platform.security.context import Principal
from tourdesk.platform.security.errors import ForbiddenError, NotFoundError
from tourdesk.platform.security.rls import ScopePolicy


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def scope_policy() -> ScopePolicy:
    return ScopePolicy()


def _seed_customers(session: Session) -> None:
    session.add_all(
        [
            Customer(id="41", name="Ana", assigned_staff_id="7"),
            Customer(id="42", name="Ben", assigned_staff_id="7"),
            Customer(id="43", name="Cleo", assigned_staff_id="8"),
        ]
    )
    session.commit()


def _seed_leads(session: Session) -> None:
    session.add_all(
        [
            Lead(id="lead-1", name="Lisbon tour", agent_id="7"),
            Lead(id="lead-2", name="Porto tour", agent_id="8"),
            Lead(id="lead-3", name="Faro tour", agent_id="7", status="qualified"),
        ]
    )
    session.commit()


def test_customer_lists_only_own_row(db_session: Session, scope_policy: ScopePolicy) -> None:
    _seed_customers(db_session)
    repository = CustomerRepository(scope_policy)

    rows = repository.list(db_session, Principal(id="42", role="customer"))

    assert [row.id for row in rows] == ["42"]


def test_customer_without_matching_row_gets_empty_list(db_session: Session, scope_policy: ScopePolicy) -> None:
    _seed_customers(db_session)

    rows = CustomerRepository(scope_policy).list(db_session, Principal(id="99", role="customer"))

    assert rows == []


def test_admin_and_manager_see_every_row(db_session: Session, scope_policy: ScopePolicy) -> None:
    _seed_leads(db_session)
    repository = LeadRepository(scope_policy)

    assert len(repository.list(db_session, Principal(id="1", role="admin"))) == 3
    assert len(repository.list(db_session, Principal(id="5", role="manager"))) == 3


def test_list_filters_combine_with_scope(db_session: Session, scope_policy: ScopePolicy) -> None:
    _seed_leads(db_session)
    agent = Principal(id="7", role="agent")

    rows = LeadRepository(scope_policy).list(db_session, agent, {"status": "qualified", "unknown": "x"})

    assert [row.id for row in rows] == ["lead-3"]


def test_agent_update_of_foreign_lead_is_not_found(db_session: Session, scope_policy: ScopePolicy) -> None:
    _seed_leads(db_session)
    repository = LeadRepository(scope_policy)
    agent = Principal(id="7", role="agent")

    with pytest.raises(NotFoundError) as existing:
        repository.update(db_session, agent, "lead-2", {"status": "won"})
    with pytest.raises(NotFoundError) as missing:
        repository.update(db_session, agent, "lead-404", {"status": "won"})

    assert existing.value.message == missing.value.message
    assert db_session.scalar(select(Lead.status).where(Lead.id == "lead-2")) == "new"


def test_agent_updates_own_lead(db_session: Session, scope_policy: ScopePolicy) -> None:
    _seed_leads(db_session)

    updated = LeadRepository(scope_policy).update(db_session, Principal(id="7", role="agent"), "lead-1", {"status": "won"})

    assert updated.status == "won"


def test_update_that_would_leave_scope_is_forbidden(db_session: Session, scope_policy: ScopePolicy) -> None:
    _seed_leads(db_session)

    with pytest.raises(ForbiddenError):
        LeadRepository(scope_policy).update(db_session, Principal(id="7", role="agent"), "lead-1", {"agent_id": "8"})

    assert db_session.scalar(select(Lead.agent_id).where(Lead.id == "lead-1")) == "7"


def test_delete_outside_scope_is_not_found(db_session: Session, scope_policy: ScopePolicy) -> None:
    _seed_leads(db_session)
    repository = LeadRepository(scope_policy)

    with pytest.raises(NotFoundError):
        repository.delete(db_session, Principal(id="7", role="agent"), "lead-2")
    repository.delete(db_session, Principal(id="7", role="agent"), "lead-1")

    remaining = db_session.scalars(select(Lead.id).order_by(Lead.id)).all()
    assert remaining == ["lead-2", "lead-3"]


def test_support_agent_sees_assigned_or_created_tickets(db_session: Session, scope_policy: ScopePolicy) -> None:
    db_session.add_all(
        [
            SupportTicket(id="t-1", subject="Lost luggage", assigned_to="7", created_by="1"),
            SupportTicket(id="t-2", subject="Refund", assigned_to="8", created_by="7"),
            SupportTicket(id="t-3", subject="Visa", assigned_to="8", created_by="8"),
        ]
    )
    db_session.commit()

    rows = SupportTicketRepository(scope_policy).list(db_session, Principal(id="7", role="agent"))

    assert sorted(row.id for row in rows) == ["t-1", "t-2"]
