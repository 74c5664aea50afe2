"""
Field resolution, conditions and transformations.
"""

from modules.document_fill.resolution.paths import MISSING, get_path, is_missing
from modules.document_fill.resolution.conditions import compile_condition, evaluate, parse_condition
from modules.document_fill.resolution.transformations import (
    LOOKUP_TABLES,
    apply_transformation,
    build,
    check_transformation,
)
from modules.document_fill.resolution.resolver import FieldResolver, FillContext, ResolvedFields

__all__ = [
    "MISSING",
    "get_path",
    "is_missing",
    "compile_condition",
    "evaluate",
    "parse_condition",
    "LOOKUP_TABLES",
    "apply_transformation",
    "build",
    "check_transformation",
    "FieldResolver",
    "FillContext",
    "ResolvedFields",
]
