"""
Tests for field transformations.
"""

import pytest

from modules.document_fill.core.exceptions import TransformationError
from modules.document_fill.models.template import (
    ExtractConfig,
    ExtractTransformation,
    FormatConfig,
    FormatTransformation,
    LookupConfig,
    LookupTransformation,
)
from modules.document_fill.resolution.resolver import FillContext
from modules.document_fill.resolution.transformations import (
    apply_transformation,
    build,
    check_transformation,
    format_date,
    parse_date,
    split_full_name,
)
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


@pytest.fixture
def context(provider, office):
    return FillContext(provider=provider, office=office, custom={"plan": "Gold"})


def _apply(transformation, value, context, record=None):
    return apply_transformation(
        transformation, value, context.lookup, record=record if record is not None else context.provider
    )


# ==============================================================================
# FORMAT
# ==============================================================================

def test_date_format(context):
    assert _apply(build.format_date("MM/dd/yyyy"), "1980-05-17", context) == "05/17/1980"
    assert _apply(build.format_date("MMMM d, yyyy"), "05/17/1980", context) == "May 17, 1980"
    assert _apply(build.format_date("MM/dd/yyyy"), "May 17, 1980", context) == "05/17/1980"


def test_date_format_leaves_non_dates(context):
    assert _apply(build.format_date("MM/dd/yyyy"), "pending", context) == "pending"


def test_format_date_literal_text():
    parsed = parse_date("2024-01-09T08:05:00")
    assert format_date(parsed, "yyyy-MM-dd 'at' HH:mm") == "2024-01-09 at 08:05"
    assert format_date(parsed, "EEE M/d/yy") == "Tue 1/9/24"


def test_phone_and_ssn_formats(context):
    assert _apply(build.format_phone(), "5551234567", context) == "555-123-4567"
    assert _apply(build.format_phone("(xxx) xxx-xxxx"), "1-555-123-4567", context) == "(555) 123-4567"
    assert _apply(build.format_phone(), "12345", context) == "12345"
    assert _apply(build.format_ssn(), "123456789", context) == "123-45-6789"


def test_pattern_reads_context(context):
    transformation = build.pattern("{value} ({office.city})")
    assert _apply(transformation, "Smith", context) == "Smith (Reno)"


def test_number_case_prefix_suffix(context):
    transformation = FormatTransformation(
        type="format", config=FormatConfig(number_format=",.2f", prefix="$", suffix=" USD")
    )
    assert _apply(transformation, "1234.5", context) == "$1,234.50 USD"

    upper = FormatTransformation(type="format", config=FormatConfig(case_transform="upper"))
    assert _apply(upper, "smith", context) == "SMITH"
    title = FormatTransformation(type="format", config=FormatConfig(case_transform="title"))
    assert _apply(title, "main STREET clinic", context) == "Main Street Clinic"


def test_format_missing_value_is_empty(context):
    assert _apply(build.format_phone(), None, context) == ""


# ==============================================================================
# CONTEXT TRANSFORMATIONS
# ==============================================================================

def test_concatenate_skips_empty(context):
    transformation = build.concatenate(["provider.firstName", "provider.deaNumber", "provider.lastName"])
    assert _apply(transformation, None, context) == "John Smith"

    address = build.concatenate(["office.city", "office.state", "office.zipCode"], separator=", ")
    assert _apply(address, None, context) == "Reno, NV, 89501"


def test_conditional(context):
    transformation = build.conditional("value", "equals", "Y", "Yes", "No")
    assert _apply(transformation, "Y", context) == "Yes"
    assert _apply(transformation, "N", context) == "No"

    by_state = build.conditional("office.state", "equals", "NV", "In state", "Out of state")
    assert _apply(by_state, None, context) == "In state"


def test_name_formats(context, provider):
    assert _apply(build.name_format("lastFirstMI"), None, context) == "Smith, John Q."
    assert _apply(build.name_format("full"), None, context) == "John Quincy Smith"
    assert _apply(build.name_format("firstMI"), None, context) == "John Q."
    assert _apply(build.name_format("initial"), None, context) == "J"
    custom = build.name_format("custom", custom_template="{last}/{first}")
    assert _apply(custom, None, context) == "Smith/John"


def test_name_format_custom_requires_template(context):
    with pytest.raises(TransformationError):
        _apply(build.name_format("custom"), None, context)


def test_split_full_name():
    assert split_full_name("John Q Public Jr.") == {
        "firstName": "John", "middleName": "Q", "lastName": "Public", "suffix": "Jr.",
    }
    assert split_full_name("Cher")["lastName"] == ""


def test_extract_parts_and_patterns(context):
    assert _apply(build.extract("middleInitial"), None, context) == "Q."
    assert _apply(build.extract("lastName", from_path="custom.plan"), None, context) == ""

    regex = ExtractTransformation(type="extract", config=ExtractConfig(pattern=r"(\d{3})$", group=1))
    assert _apply(regex, "1234567890", context) == "890"

    substring = ExtractTransformation(type="extract", config=ExtractConfig(start=0, end=4))
    assert _apply(substring, "1234567890", context) == "1234"

    no_match = ExtractTransformation(
        type="extract", config=ExtractConfig(pattern=r"[a-z]+", fallback="n/a")
    )
    assert _apply(no_match, "12345", context) == "n/a"


# ==============================================================================
# LOOKUP / BOOLEAN
# ==============================================================================

def test_state_abbreviation(context):
    transformation = build.state_abbreviation()
    assert _apply(transformation, "California", context) == "CA"
    assert _apply(transformation, "nevada", context) == "NV"
    assert _apply(transformation, "Atlantis", context) == "Atlantis"


def test_inline_lookup_with_default(context):
    transformation = build.lookup({"MD": "Medical Doctor"}, default_value="Other")
    assert _apply(transformation, "MD", context) == "Medical Doctor"
    assert _apply(transformation, "DO", context) == "Other"


def test_unknown_lookup_table_raises(context):
    transformation = LookupTransformation(type="lookup", config=LookupConfig(table_name="planets"))
    with pytest.raises(TransformationError):
        _apply(transformation, "Mars", context)


def test_boolean(context):
    assert _apply(build.boolean(), "Yes", context) is True
    assert _apply(build.boolean(), "inactive", context) is False
    assert _apply(build.boolean(default_value=False), "maybe", context) is False

    marks = build.boolean()
    marks = marks.model_copy(update={"config": marks.config.model_copy(update={"output": ("X", "")})})
    assert _apply(marks, "checked", context) == "X"


# ==============================================================================
# STRUCTURAL CHECKS
# ==============================================================================

def test_check_transformation_flags_invalid_configs():
    from modules.document_fill.models.template import ConcatenateConfig, ConcatenateTransformation

    with pytest.raises(TransformationError):
        check_transformation(ConcatenateTransformation(type="concatenate", config=ConcatenateConfig()))
    with pytest.raises(TransformationError):
        check_transformation(ExtractTransformation(type="extract", config=ExtractConfig()))
    with pytest.raises(TransformationError):
        check_transformation(ExtractTransformation(type="extract", config=ExtractConfig(pattern="(")))

    check_transformation(build.state_abbreviation())
    check_transformation(build.format_date("yyyy"))
