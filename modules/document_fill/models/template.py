"""
Template data model.

Templates, field mappings, transformations and conditional rules are
immutable pydantic models. Field names are snake_case; camelCase aliases
keep templates exported by the desktop application loadable as-is.
"""

import hashlib
import uuid
from datetime import datetime, timezone
from typing import Any, Annotated, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_document_hash(data: bytes) -> str:
    """Content hash recorded on a template for the document it was built against."""
    return hashlib.sha256(data).hexdigest()


class FrozenModel(BaseModel):
    """Immutable model accepting both snake_case and camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )


FieldType = Literal["text", "checkbox", "radio", "dropdown", "date"]
SourceType = Literal["provider", "provider-slot", "office", "mailing", "custom", "static"]
DocumentType = Literal["pdf", "docx", "xlsx"]
RuleAction = Literal["setValue", "hideField", "showField"]

ConditionOperator = Literal[
    "equals",
    "notEquals",
    "contains",
    "startsWith",
    "endsWith",
    "greaterThan",
    "lessThan",
    "greaterOrEqual",
    "lessOrEqual",
    "exists",
    "empty",
]


class Condition(FrozenModel):
    """Structured predicate over the fill context."""

    field: str
    operator: ConditionOperator
    value: Any = None


# ==============================================================================
# TRANSFORMATION CONFIGS
# ==============================================================================

class FormatConfig(FrozenModel):
    """
    Config for ``format`` transformations.

    ``pattern`` holds ``{value}`` and ``{path.to.field}`` placeholders.
    ``date_format`` uses ``yyyy``/``MM``/``dd`` style tokens.
    ``number_format`` is a Python format spec such as ``,.2f``.
    """

    pattern: Optional[str] = None
    date_format: Optional[str] = None
    number_format: Optional[str] = None
    phone_format: Optional[Literal["xxx-xxx-xxxx", "(xxx) xxx-xxxx", "xxxxxxxxxx"]] = None
    ssn_format: Optional[Literal["xxx-xx-xxxx", "xxxxxxxxx"]] = None
    case_transform: Optional[Literal["upper", "lower", "title", "sentence"]] = None
    prefix: Optional[str] = None
    suffix: Optional[str] = None


class ConcatenateConfig(FrozenModel):
    sources: Tuple[str, ...] = ()
    separator: str = " "
    skip_empty: bool = True


class ConditionalConfig(FrozenModel):
    condition: Union[Condition, str, None] = None
    true_value: Any = None
    false_value: Any = ""


class LookupConfig(FrozenModel):
    """Either an inline ``lookup_table`` or a built-in ``table_name``."""

    lookup_table: Optional[Dict[str, Any]] = None
    table_name: Optional[str] = None
    key_path: Optional[str] = None
    default_value: Any = None


class BooleanConfig(FrozenModel):
    true_values: Tuple[str, ...] = ("true", "yes", "y", "1", "on", "checked", "active")
    false_values: Tuple[str, ...] = ("false", "no", "n", "0", "off", "", "inactive")
    default_value: Optional[bool] = None
    output: Optional[Tuple[str, str]] = None


NameFormat = Literal[
    "full", "firstLast", "lastFirst", "lastFirstMI", "firstMI",
    "first", "last", "middle", "initial", "custom",
]


class NameFormatConfig(FrozenModel):
    format: NameFormat = "firstLast"
    custom_template: Optional[str] = None
    separator: str = " "
    source: Optional[str] = None


NamePart = Literal["firstName", "middleName", "lastName", "middleInitial", "suffix"]


class ExtractConfig(FrozenModel):
    """
    Config for ``extract`` transformations.

    Exactly one strategy applies, checked in this order: ``pattern`` (regex
    group), ``start``/``end`` (substring), ``part`` (name part).
    """

    part: Optional[NamePart] = None
    pattern: Optional[str] = None
    group: Union[int, str] = 0
    start: Optional[int] = None
    end: Optional[int] = None
    from_path: Optional[str] = Field(None, alias="from")
    fallback: str = ""


class FormatTransformation(FrozenModel):
    type: Literal["format"]
    config: FormatConfig = Field(default_factory=FormatConfig)


class ConcatenateTransformation(FrozenModel):
    type: Literal["concatenate"]
    config: ConcatenateConfig = Field(default_factory=ConcatenateConfig)


class ConditionalTransformation(FrozenModel):
    type: Literal["conditional"]
    config: ConditionalConfig = Field(default_factory=ConditionalConfig)


class LookupTransformation(FrozenModel):
    type: Literal["lookup"]
    config: LookupConfig = Field(default_factory=LookupConfig)


class BooleanTransformation(FrozenModel):
    type: Literal["boolean"]
    config: BooleanConfig = Field(default_factory=BooleanConfig)


class NameFormatTransformation(FrozenModel):
    type: Literal["nameFormat"]
    config: NameFormatConfig = Field(default_factory=NameFormatConfig)


class ExtractTransformation(FrozenModel):
    type: Literal["extract"]
    config: ExtractConfig = Field(default_factory=ExtractConfig)


FieldTransformation = Annotated[
    Union[
        FormatTransformation,
        ConcatenateTransformation,
        ConditionalTransformation,
        LookupTransformation,
        BooleanTransformation,
        NameFormatTransformation,
        ExtractTransformation,
    ],
    Field(discriminator="type"),
]

# Transformations that compute from the whole context rather than the mapped value
CONTEXT_TRANSFORMATIONS = frozenset({"concatenate", "conditional", "nameFormat", "extract"})


# ==============================================================================
# MAPPINGS, RULES, TEMPLATES
# ==============================================================================

class FieldMapping(FrozenModel):
    """Binds one document field to a data source."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    document_field_id: str
    document_field_name: str = ""
    document_field_type: FieldType = "text"
    source_type: SourceType
    source_path: Optional[str] = None
    static_value: Any = None
    provider_slot: Optional[int] = None
    slot_field: Optional[str] = None
    transformation: Optional[FieldTransformation] = None
    default_value: Any = None
    is_required: bool = False

    @property
    def label(self) -> str:
        return self.document_field_name or self.document_field_id


class ConditionalRule(FrozenModel):
    """Post-resolution override for one document field."""

    condition: Union[Condition, str]
    action: RuleAction
    value: Any = None
    target_field_id: Optional[str] = None


class ExcelColumnMapping(FrozenModel):
    column_letter: str
    provider_field_path: Optional[str] = None
    header_text: Optional[str] = None
    column_index: Optional[int] = None
    mapped_field: Optional[str] = None


class ExcelConfiguration(FrozenModel):
    """Row layout of a roster spreadsheet."""

    sheet_name: Optional[str] = None
    header_row: int = Field(1, ge=1)
    data_start_row: int = Field(2, ge=1)
    column_mappings: Tuple[ExcelColumnMapping, ...] = ()


class ProcessingOptions(FrozenModel):
    """Options recognized by processors. Unknown keys are ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    detect_fields: bool = True
    preserve_form_fields: bool = True
    flatten_output: bool = False
    ocr_fallback: bool = False
    excel: Optional[ExcelConfiguration] = None

    @classmethod
    def coerce(cls, options: Union["ProcessingOptions", Dict[str, Any], None]) -> "ProcessingOptions":
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        return cls.model_validate(options)


class Template(FrozenModel):
    """
    Ordered field mappings for one document type.

    Never mutated once referenced by a fill; ``revise`` returns a new version.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    description: str = ""
    document_type: DocumentType
    document_hash: Optional[str] = None
    mappings: Tuple[FieldMapping, ...] = ()
    conditional_rules: Tuple[ConditionalRule, ...] = ()
    version: int = Field(1, ge=1)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def revise(self, **changes: Any) -> "Template":
        """Return a new template version with ``changes`` applied."""
        data = self.model_dump(exclude_unset=True)
        data.update(changes)
        data["id"] = self.id
        data["created_at"] = self.created_at
        data["version"] = self.version + 1
        data["updated_at"] = _utcnow()
        return Template.model_validate(data)

    def matches_document(self, data: bytes) -> bool:
        """False when the document changed since the template was built."""
        if not self.document_hash:
            return True
        return self.document_hash == compute_document_hash(data)

    def mapping_for(self, field_id: str) -> Optional[FieldMapping]:
        for mapping in self.mappings:
            if mapping.document_field_id == field_id:
                return mapping
        return None

    @property
    def mapped_field_ids(self) -> List[str]:
        return [m.document_field_id for m in self.mappings]
