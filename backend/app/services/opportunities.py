"""Opportunity access, scoped by the caller's `opportunities` grant."""

from __future__ import annotations

from app.auth.permissions import OPPORTUNITIES
from app.models.opportunity import Opportunity
from app.schemas.opportunity import OpportunityFilters
from app.services.scoped import ScopedAccessor


class OpportunityAccessor(ScopedAccessor[Opportunity]):
    module = OPPORTUNITIES
    model = Opportunity
    entity_type = "opportunity"
    assignment_field = "assigned_to"
    search_fields = ("name", "description")

    def filter_predicates(self, filters):
        predicates = super().filter_predicates(filters)
        if not isinstance(filters, OpportunityFilters):
            return predicates
        if filters.stage:
            predicates.append(Opportunity.stage == filters.stage)
        # Narrows within the view scope; never widens `assigned`
        if filters.assigned_to:
            predicates.append(Opportunity.assigned_to == filters.assigned_to)
        if filters.min_value is not None:
            predicates.append(Opportunity.value >= filters.min_value)
        if filters.max_value is not None:
            predicates.append(Opportunity.value <= filters.max_value)
        if filters.expected_close_after:
            predicates.append(
                Opportunity.expected_close_date >= filters.expected_close_after
            )
        if filters.expected_close_before:
            predicates.append(
                Opportunity.expected_close_date <= filters.expected_close_before
            )
        return predicates


opportunities = OpportunityAccessor()
