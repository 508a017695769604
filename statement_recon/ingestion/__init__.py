"""Ingestion module for parsing statement pages from positioned text."""

from .domain import TextItem, Row, ColumnBoundary, ColumnLayout, PageParseResult, DocumentParseResult
from .layout_parser import LayoutTableParser
from .templates import LayoutTemplate, get_template, load_template_file
from .text_layer import TextLayerError, extract_text_items

__all__ = [
    "TextItem",
    "Row",
    "ColumnBoundary",
    "ColumnLayout",
    "PageParseResult",
    "DocumentParseResult",
    "LayoutTableParser",
    "LayoutTemplate",
    "get_template",
    "load_template_file",
    "TextLayerError",
    "extract_text_items",
]
