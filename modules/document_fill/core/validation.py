"""
Template validation.

Checks a template before any document is touched: mapping consistency per
source type, duplicate field ids, rule targets, condition syntax and
transformation structure.
"""

from typing import List, Optional

from modules.document_fill.core.exceptions import (
    ConditionSyntaxError,
    TemplateValidationException,
    TransformationError,
)
from modules.document_fill.core.interfaces import FileCategory
from modules.document_fill.models.template import CONTEXT_TRANSFORMATIONS, FieldMapping, Template
from modules.document_fill.resolution.conditions import compile_condition
from modules.document_fill.resolution.transformations import check_transformation
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

RECORD_SOURCES = ("provider", "office", "mailing", "custom")

DOCUMENT_TYPE_CATEGORIES = {
    "pdf": FileCategory.PDF,
    "docx": FileCategory.WORD,
    "xlsx": FileCategory.EXCEL,
}


def _has_static_value(mapping: FieldMapping) -> bool:
    return mapping.static_value is not None


def mapping_issues(mapping: FieldMapping) -> List[str]:
    """Consistency problems of one mapping."""
    label = mapping.document_field_id
    issues: List[str] = []

    if mapping.source_type == "static":
        if mapping.source_path:
            issues.append(f"{label}: static mapping must not have a source path")
        if mapping.provider_slot is not None:
            issues.append(f"{label}: static mapping must not have a provider slot")

    elif mapping.source_type == "provider-slot":
        if mapping.provider_slot is None or mapping.provider_slot < 1:
            issues.append(f"{label}: provider-slot mapping requires provider_slot >= 1")
        if not (mapping.slot_field or mapping.source_path):
            issues.append(f"{label}: provider-slot mapping requires slot_field")
        if _has_static_value(mapping):
            issues.append(f"{label}: provider-slot mapping must not have a static value")

    elif mapping.source_type in RECORD_SOURCES:
        computed = (
            mapping.transformation is not None
            and mapping.transformation.type in CONTEXT_TRANSFORMATIONS
        )
        if not mapping.source_path and not computed:
            issues.append(f"{label}: {mapping.source_type} mapping requires a source path")
        if _has_static_value(mapping):
            issues.append(f"{label}: {mapping.source_type} mapping must not have a static value")
        if mapping.provider_slot is not None:
            issues.append(f"{label}: {mapping.source_type} mapping must not have a provider slot")

    if mapping.transformation is not None:
        try:
            check_transformation(mapping.transformation)
        except TransformationError as e:
            issues.append(f"{label}: invalid {mapping.transformation.type} transformation: {e}")

    return issues


def validate_template(template: Template) -> List[str]:
    """
    Collect every problem with ``template``.

    Returns:
        Human-readable issues; empty when the template is usable
    """
    issues: List[str] = []

    seen = set()
    for mapping in template.mappings:
        if mapping.document_field_id in seen:
            issues.append(f"Duplicate mapping for field {mapping.document_field_id}")
        seen.add(mapping.document_field_id)
        issues.extend(mapping_issues(mapping))

    for index, rule in enumerate(template.conditional_rules, start=1):
        if not rule.target_field_id:
            issues.append(f"Rule {index}: missing target field")
        elif rule.target_field_id not in seen:
            issues.append(f"Rule {index}: target field {rule.target_field_id} is not mapped")
        try:
            compile_condition(rule.condition)
        except ConditionSyntaxError as e:
            issues.append(f"Rule {index}: {e}")

    return issues


def ensure_valid_template(template: Template) -> Template:
    """
    Raise when ``template`` has any issue.

    Raises:
        TemplateValidationException: Carries the full issue list
    """
    issues = validate_template(template)
    if issues:
        logger.warning(f"Template {template.id} failed validation with {len(issues)} issue(s)")
        raise TemplateValidationException(
            f"Template {template.name or template.id} is invalid: {issues[0]}",
            issues,
        )
    return template


def check_document_type(template: Template, category: FileCategory) -> Optional[str]:
    """
    Compare the template's document type with a file's category.

    Returns:
        An issue message, or None when they agree
    """
    expected = DOCUMENT_TYPE_CATEGORIES.get(template.document_type)
    if expected != category:
        return (
            f"Template {template.name or template.id} targets {template.document_type} "
            f"documents but the file is {category.value}"
        )
    return None
