"""Routes classified pages to an inference model tier."""
from __future__ import annotations

from dataclasses import dataclass

from lotflow.constants import ROUTE_MIXED_TO_HIGH_CAPABILITY
from lotflow.domain.value_objects.classification import PageCategory


@dataclass(frozen=True)
class ModelRouter:
    """
    Decide which model extracts a page given its classification.

    ``handwritten`` pages always go to the high-capability model and ``typed``
    pages to the low-cost model. ``mixed`` follows
    ``route_mixed_to_high_capability``.
    """

    high_capability_model: str
    low_cost_model: str
    route_mixed_to_high_capability: bool = ROUTE_MIXED_TO_HIGH_CAPABILITY

    def route(self, category: PageCategory) -> str:
        category = PageCategory.parse(category)
        if category is PageCategory.HANDWRITTEN:
            return self.high_capability_model
        if category is PageCategory.MIXED and self.route_mixed_to_high_capability:
            return self.high_capability_model
        return self.low_cost_model
