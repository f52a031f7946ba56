from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from tourdesk.core.database import get_db
from tourdesk.core.rbac import get_scope_policy, require_delete, require_read, require_update
from tourdesk.crm.repositories import (
    CustomerRepository,
    LeadRepository,
    OperationsTripRepository,
    PaymentRepository,
    PropertyRepository,
    ReservationRepository,
    SupportTicketRepository,
)
from tourdesk.crm.schemas import (
    CustomerRead,
    CustomerUpdate,
    LeadRead,
    LeadUpdate,
    OperationsTripRead,
    OperationsTripUpdate,
    PaymentRead,
    PaymentUpdate,
    PropertyRead,
    PropertyUpdate,
    ReservationRead,
    ReservationUpdate,
    SupportTicketRead,
    SupportTicketUpdate,
)
from tourdesk.platform.security.context import Principal
from tourdesk.platform.security.repository import ScopedRepository
from tourdesk.platform.security.rls import ScopePolicy


def build_resource_router(
    *,
    prefix: str,
    tag: str,
    repository_cls: type[ScopedRepository[Any]],
    read_schema: type[BaseModel],
    update_schema: type[BaseModel],
) -> APIRouter:
    """List/detail/update/delete routes gated on the repository's module and scoped per principal."""

    module = repository_cls.module
    router = APIRouter(prefix=prefix, tags=[tag])

    def get_repository(scope_policy: ScopePolicy = Depends(get_scope_policy)) -> ScopedRepository[Any]:
        return repository_cls(scope_policy)

    @router.get("", response_model=list[read_schema])  # type: ignore[valid-type]
    def list_records(
        status_filter: str | None = Query(default=None, alias="status"),
        offset: int = Query(default=0, ge=0),
        limit: int = Query(default=100, ge=1, le=500),
        db: Session = Depends(get_db),
        principal: Principal = Depends(require_read(module)),
        repository: ScopedRepository[Any] = Depends(get_repository),
    ) -> list[Any]:
        rows = repository.list(db, principal, {"status": status_filter}, offset=offset, limit=limit)
        return [read_schema.model_validate(row) for row in rows]

    @router.get("/{record_id}", response_model=read_schema)
    def get_record(
        record_id: str,
        db: Session = Depends(get_db),
        principal: Principal = Depends(require_read(module)),
        repository: ScopedRepository[Any] = Depends(get_repository),
    ) -> Any:
        return read_schema.model_validate(repository.get(db, principal, record_id))

    @router.patch("/{record_id}", response_model=read_schema)
    def patch_record(
        record_id: str,
        dto: update_schema,  # type: ignore[valid-type]
        db: Session = Depends(get_db),
        principal: Principal = Depends(require_update(module)),
        repository: ScopedRepository[Any] = Depends(get_repository),
    ) -> Any:
        payload = dto.model_dump(exclude_unset=True)
        return read_schema.model_validate(repository.update(db, principal, record_id, payload))

    @router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_record(
        record_id: str,
        db: Session = Depends(get_db),
        principal: Principal = Depends(require_delete(module)),
        repository: ScopedRepository[Any] = Depends(get_repository),
    ) -> None:
        repository.delete(db, principal, record_id)

    return router


customers_router = build_resource_router(
    prefix="/api/customers",
    tag="crm.customers",
    repository_cls=CustomerRepository,
    read_schema=CustomerRead,
    update_schema=CustomerUpdate,
)
leads_router = build_resource_router(
    prefix="/api/leads",
    tag="crm.leads",
    repository_cls=LeadRepository,
    read_schema=LeadRead,
    update_schema=LeadUpdate,
)
reservations_router = build_resource_router(
    prefix="/api/reservations",
    tag="crm.reservations",
    repository_cls=ReservationRepository,
    read_schema=ReservationRead,
    update_schema=ReservationUpdate,
)
payments_router = build_resource_router(
    prefix="/api/payments",
    tag="crm.payments",
    repository_cls=PaymentRepository,
    read_schema=PaymentRead,
    update_schema=PaymentUpdate,
)
support_tickets_router = build_resource_router(
    prefix="/api/support-tickets",
    tag="crm.support_tickets",
    repository_cls=SupportTicketRepository,
    read_schema=SupportTicketRead,
    update_schema=SupportTicketUpdate,
)
properties_router = build_resource_router(
    prefix="/api/properties",
    tag="crm.properties",
    repository_cls=PropertyRepository,
    read_schema=PropertyRead,
    update_schema=PropertyUpdate,
)
operations_trips_router = build_resource_router(
    prefix="/api/operations/trips",
    tag="crm.operations",
    repository_cls=OperationsTripRepository,
    read_schema=OperationsTripRead,
    update_schema=OperationsTripUpdate,
)

routers = [
    customers_router,
    leads_router,
    reservations_router,
    payments_router,
    support_tickets_router,
    properties_router,
    operations_trips_router,
]
