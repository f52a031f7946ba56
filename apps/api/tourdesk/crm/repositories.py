from __future__ import annotations

from tourdesk.crm.models import Customer, Lead, OperationsTrip, Payment, Property, Reservation, SupportTicket
from tourdesk.platform.security.repository import ScopedRepository


class CustomerRepository(ScopedRepository[Customer]):
    module = "customers"
    model = Customer
    not_found_detail = "customer not found"


class LeadRepository(ScopedRepository[Lead]):
    module = "leads"
    model = Lead
    not_found_detail = "lead not found"


class ReservationRepository(ScopedRepository[Reservation]):
    module = "reservations"
    model = Reservation
    not_found_detail = "reservation not found"


class PaymentRepository(ScopedRepository[Payment]):
    module = "payments"
    model = Payment
    not_found_detail = "payment not found"


class SupportTicketRepository(ScopedRepository[SupportTicket]):
    module = "support_tickets"
    model = SupportTicket
    not_found_detail = "support ticket not found"


class PropertyRepository(ScopedRepository[Property]):
    module = "properties"
    model = Property
    not_found_detail = "property not found"


class OperationsTripRepository(ScopedRepository[OperationsTrip]):
    module = "operations"
    model = OperationsTrip
    not_found_detail = "trip not found"
