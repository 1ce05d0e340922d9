"""Pipeline stage identifier."""
from __future__ import annotations

from enum import Enum

from lotflow.domain.value_objects.page_status import PageStatus


class Stage(str, Enum):
    CLASSIFICATION = "classification"
    EXTRACTION = "extraction"

    @property
    def eligible_status(self) -> PageStatus:
        """Page status a page must have to be worked on in this stage."""
        if self is Stage.CLASSIFICATION:
            return PageStatus.PENDING
        return PageStatus.CLASSIFIED
