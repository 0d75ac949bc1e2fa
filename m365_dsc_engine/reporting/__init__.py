"""Reporting package — declarative output formats for exports."""

from .dsc_block import DscBlockFormatter
from .json_export import JsonFormatter, load_document, write_document

__all__ = [
    "DscBlockFormatter",
    "JsonFormatter",
    "load_document",
    "write_document",
]
