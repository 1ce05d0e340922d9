"""Domain entities package"""

from .lot import Lot
from .page_document import ClassificationVerdict, ExtractionPayload, PageDocument
from .source_document import SourceDocument

__all__ = ["Lot", "SourceDocument", "PageDocument", "ClassificationVerdict", "ExtractionPayload"]
