"""Customer access, scoped by the caller's `customers` grant.

Customers carry no assignee; `assigned` visibility follows `owner_id`.
"""

from __future__ import annotations

from app.auth.permissions import CUSTOMERS
from app.models.customer import Customer
from app.schemas.customer import CustomerFilters
from app.services.scoped import ScopedAccessor


class CustomerAccessor(ScopedAccessor[Customer]):
    module = CUSTOMERS
    model = Customer
    entity_type = "customer"
    assignment_field = "owner_id"
    search_fields = ("name", "email", "company")

    def filter_predicates(self, filters):
        predicates = super().filter_predicates(filters)
        if not isinstance(filters, CustomerFilters):
            return predicates
        if filters.language:
            predicates.append(Customer.language == filters.language)
        if filters.currency:
            predicates.append(Customer.currency == filters.currency)
        if filters.min_total_value is not None:
            predicates.append(Customer.total_value >= filters.min_total_value)
        if filters.max_total_value is not None:
            predicates.append(Customer.total_value <= filters.max_total_value)
        return predicates


customers = CustomerAccessor()
