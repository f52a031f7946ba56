from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class CustomerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str | None
    phone: str | None
    status: str
    assigned_staff_id: str | None
    created_at: datetime
    updated_at: datetime


class CustomerUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    email: str | None = None
    phone: str | None = None
    status: str | None = None
    assigned_staff_id: str | None = None


class LeadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str | None
    source: str | None
    status: str
    agent_id: str | None
    created_at: datetime
    updated_at: datetime


class LeadUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    email: str | None = None
    source: str | None = None
    status: str | None = None
    agent_id: str | None = None


class ReservationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reference: str
    customer_id: str
    status: str
    travel_date: date | None
    total_amount: Decimal | None
    created_at: datetime
    updated_at: datetime


class ReservationUpdate(BaseModel):
    status: str | None = None
    travel_date: date | None = None
    total_amount: Decimal | None = None


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reservation_id: str | None
    customer_id: str
    amount: Decimal
    currency: str
    method: str | None
    status: str
    created_at: datetime


class PaymentUpdate(BaseModel):
    method: str | None = None
    status: str | None = None


class SupportTicketRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    subject: str
    description: str | None
    status: str
    priority: str
    customer_id: str | None
    assigned_to: str | None
    created_by: str | None
    created_at: datetime
    updated_at: datetime


class SupportTicketUpdate(BaseModel):
    subject: str | None = Field(default=None, min_length=1)
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    assigned_to: str | None = None


class PropertyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    city: str | None
    owner_id: str | None
    status: str
    created_at: datetime


class PropertyUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    city: str | None = None
    owner_id: str | None = None
    status: str | None = None


class OperationsTripRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    trip_code: str
    destination: str | None
    departure_date: date | None
    reservation_id: str | None
    assigned_to: str | None
    status: str
    created_at: datetime


class OperationsTripUpdate(BaseModel):
    destination: str | None = None
    departure_date: date | None = None
    assigned_to: str | None = None
    status: str | None = None
