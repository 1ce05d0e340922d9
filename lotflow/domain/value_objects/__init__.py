"""
Domain Value Objects

Immutable value objects that encapsulate domain concepts with validation.
"""
from .classification import PageCategory
from .lot_status import LotStatus, TERMINAL_LOT_STATUSES
from .page_counts import PageCounts
from .page_status import PageStatus
from .stage import Stage

__all__ = [
    'LotStatus',
    'TERMINAL_LOT_STATUSES',
    'PageCategory',
    'PageCounts',
    'PageStatus',
    'Stage',
]
