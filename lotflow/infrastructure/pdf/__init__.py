"""PDF infrastructure utilities."""

from .pdf_renderer import PdfRenderError, PdfRenderer, RenderedPage

__all__ = ["PdfRenderError", "PdfRenderer", "RenderedPage"]
