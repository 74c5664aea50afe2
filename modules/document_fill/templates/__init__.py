"""
Template management for the document fill module.
"""

from modules.document_fill.templates.loader import TemplateLoader
from modules.document_fill.templates.registry import (
    ITemplateStore,
    InMemoryTemplateStore,
    FileTemplateStore,
)

__all__ = [
    "TemplateLoader",
    "ITemplateStore",
    "InMemoryTemplateStore",
    "FileTemplateStore",
]
