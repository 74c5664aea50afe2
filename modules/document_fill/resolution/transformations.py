"""
Field transformations.

Each transformation type has one apply function. Value-shaped
transformations (format, lookup, boolean) work on the mapped value;
context-shaped ones (concatenate, conditional, nameFormat, extract) read
other paths through a lookup callable.

Formatting never consults the runtime locale.
"""

import re
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from dateutil import parser as date_parser

from modules.document_fill.core.exceptions import ConditionSyntaxError, TransformationError
from modules.document_fill.models.template import (
    BooleanConfig,
    BooleanTransformation,
    ConcatenateConfig,
    ConcatenateTransformation,
    Condition,
    ConditionalConfig,
    ConditionalTransformation,
    ExtractConfig,
    ExtractTransformation,
    FormatConfig,
    FormatTransformation,
    LookupConfig,
    LookupTransformation,
    NameFormatConfig,
    NameFormatTransformation,
)
from modules.document_fill.resolution.conditions import compile_condition, evaluate
from modules.document_fill.resolution.paths import MISSING, get_path, is_missing
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

Lookup = Callable[[str], Any]


# ==============================================================================
# LOOKUP TABLES
# ==============================================================================

STATE_ABBREVIATIONS: Dict[str, str] = {
    "Alabama": "AL", "Alaska": "AK", "Arizona": "AZ", "Arkansas": "AR", "California": "CA",
    "Colorado": "CO", "Connecticut": "CT", "Delaware": "DE", "Florida": "FL", "Georgia": "GA",
    "Hawaii": "HI", "Idaho": "ID", "Illinois": "IL", "Indiana": "IN", "Iowa": "IA",
    "Kansas": "KS", "Kentucky": "KY", "Louisiana": "LA", "Maine": "ME", "Maryland": "MD",
    "Massachusetts": "MA", "Michigan": "MI", "Minnesota": "MN", "Mississippi": "MS", "Missouri": "MO",
    "Montana": "MT", "Nebraska": "NE", "Nevada": "NV", "New Hampshire": "NH", "New Jersey": "NJ",
    "New Mexico": "NM", "New York": "NY", "North Carolina": "NC", "North Dakota": "ND", "Ohio": "OH",
    "Oklahoma": "OK", "Oregon": "OR", "Pennsylvania": "PA", "Rhode Island": "RI", "South Carolina": "SC",
    "South Dakota": "SD", "Tennessee": "TN", "Texas": "TX", "Utah": "UT", "Vermont": "VT",
    "Virginia": "VA", "Washington": "WA", "West Virginia": "WV", "Wisconsin": "WI", "Wyoming": "WY",
}

STATE_NAMES: Dict[str, str] = {abbr: name for name, abbr in STATE_ABBREVIATIONS.items()}

LOOKUP_TABLES: Dict[str, Dict[str, Any]] = {
    "stateAbbreviations": STATE_ABBREVIATIONS,
    "stateNames": STATE_NAMES,
}


# ==============================================================================
# FORMAT
# ==============================================================================

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

_DATE_TOKEN_RE = re.compile(r"'[^']*'|yyyy|yy|MMMM|MMM|MM|M|dd|d|EEEE|EEE|HH|H|mm|ss")
_PLACEHOLDER_RE = re.compile(r"\{([^{}]+)\}")

_DATE_INPUT_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m-%d-%Y", "%Y/%m/%d", "%m/%d/%y")


def parse_date(value: Any) -> Optional[datetime]:
    """Best-effort date parsing; None if the value is not a date."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _DATE_INPUT_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    # Fall back to dateutil for free-form dates ("May 17, 1980")
    try:
        return date_parser.parse(text)
    except (ValueError, OverflowError):
        return None


def format_date(value: datetime, pattern: str) -> str:
    """Render ``value`` with ``MM/dd/yyyy`` style tokens and English names."""
    def render(match: "re.Match[str]") -> str:
        token = match.group(0)
        if token.startswith("'"):
            return token[1:-1]
        return {
            "yyyy": f"{value.year:04d}",
            "yy": f"{value.year % 100:02d}",
            "MMMM": MONTH_NAMES[value.month - 1],
            "MMM": MONTH_NAMES[value.month - 1][:3],
            "MM": f"{value.month:02d}",
            "M": str(value.month),
            "dd": f"{value.day:02d}",
            "d": str(value.day),
            "EEEE": DAY_NAMES[value.weekday()],
            "EEE": DAY_NAMES[value.weekday()][:3],
            "HH": f"{value.hour:02d}",
            "H": str(value.hour),
            "mm": f"{value.minute:02d}",
            "ss": f"{value.second:02d}",
        }[token]

    return _DATE_TOKEN_RE.sub(render, pattern)


def _digits(text: str) -> str:
    return re.sub(r"\D", "", text)


def _format_phone(text: str, style: str) -> str:
    digits = _digits(text)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) != 10:
        return text
    if style == "xxx-xxx-xxxx":
        return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"
    if style == "(xxx) xxx-xxxx":
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return digits


def _format_ssn(text: str, style: str) -> str:
    digits = _digits(text)
    if len(digits) != 9:
        return text
    if style == "xxx-xx-xxxx":
        return f"{digits[:3]}-{digits[3:5]}-{digits[5:]}"
    return digits


def _apply_case(text: str, case: str) -> str:
    if case == "upper":
        return text.upper()
    if case == "lower":
        return text.lower()
    if case == "title":
        return re.sub(r"\w\S*", lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), text)
    if case == "sentence":
        return text[:1].upper() + text[1:].lower()
    return text


def _render_pattern(pattern: str, value: Any, lookup: Lookup) -> str:
    def replace(match: "re.Match[str]") -> str:
        key = match.group(1).strip()
        found = value if key == "value" else lookup(key)
        return "" if is_missing(found) else str(found)

    return _PLACEHOLDER_RE.sub(replace, pattern)


def apply_format(value: Any, config: FormatConfig, lookup: Lookup) -> str:
    if is_missing(value) and not config.pattern:
        return ""

    result = "" if is_missing(value) else str(value)

    if config.date_format and not is_missing(value):
        parsed = parse_date(value)
        if parsed is not None:
            result = format_date(parsed, config.date_format)
        else:
            logger.debug(f"Value {value!r} is not a date, leaving unformatted")

    if config.number_format and not is_missing(value):
        try:
            result = format(float(str(value).replace(",", "")), config.number_format)
        except (TypeError, ValueError):
            logger.debug(f"Value {value!r} is not numeric, leaving unformatted")

    if config.phone_format and result:
        result = _format_phone(result, config.phone_format)

    if config.ssn_format and result:
        result = _format_ssn(result, config.ssn_format)

    if config.pattern:
        result = _render_pattern(config.pattern, result, lookup)

    if config.case_transform:
        result = _apply_case(result, config.case_transform)

    if config.prefix:
        result = config.prefix + result
    if config.suffix:
        result = result + config.suffix

    return result


# ==============================================================================
# CONTEXT TRANSFORMATIONS
# ==============================================================================

def apply_concatenate(config: ConcatenateConfig, lookup: Lookup) -> str:
    values: List[str] = []
    for source in config.sources:
        found = lookup(source)
        text = "" if is_missing(found) else str(found)
        if not config.skip_empty or text.strip():
            values.append(text)
    return config.separator.join(values)


def apply_conditional(value: Any, config: ConditionalConfig, lookup: Lookup) -> Any:
    node = _compile(config.condition)

    def scoped(path: str) -> Any:
        return value if path == "value" else lookup(path)

    return config.true_value if evaluate(node, scoped) else config.false_value


def _lookup_table(config: LookupConfig) -> Dict[str, Any]:
    if config.lookup_table is not None:
        return config.lookup_table
    if config.table_name:
        if config.table_name not in LOOKUP_TABLES:
            raise TransformationError(
                f"Unknown lookup table '{config.table_name}'. Available: {list(LOOKUP_TABLES)}",
                "lookup",
            )
        return LOOKUP_TABLES[config.table_name]
    raise TransformationError("Lookup requires lookup_table or table_name", "lookup")


def apply_lookup(value: Any, config: LookupConfig, lookup: Lookup) -> Any:
    table = _lookup_table(config)
    key = lookup(config.key_path) if config.key_path else value
    if is_missing(key):
        return config.default_value if config.default_value is not None else ""

    text = str(key).strip()
    if text in table:
        return table[text]
    folded = text.casefold()
    for candidate, mapped in table.items():
        if str(candidate).casefold() == folded:
            return mapped

    if config.default_value is not None:
        return config.default_value
    return key


def apply_boolean(value: Any, config: BooleanConfig) -> Any:
    true_values = {v.lower() for v in config.true_values}
    false_values = {v.lower() for v in config.false_values}

    text = "" if is_missing(value) else str(value).strip().lower()
    if text in true_values:
        result = True
    elif text in false_values:
        result = False
    elif config.default_value is not None:
        result = config.default_value
    else:
        result = bool(value)

    if config.output:
        return config.output[0] if result else config.output[1]
    return result


NAME_SUFFIXES = {"jr", "jr.", "sr", "sr.", "ii", "iii", "iv", "v"}


def split_full_name(full_name: str) -> Dict[str, str]:
    """Split ``"John Q Public Jr."`` into name parts."""
    parts = full_name.strip().split()
    suffix = ""
    if len(parts) > 2 and parts[-1].lower() in NAME_SUFFIXES:
        suffix = parts.pop()
    return {
        "firstName": parts[0] if parts else "",
        "middleName": " ".join(parts[1:-1]) if len(parts) > 2 else "",
        "lastName": parts[-1] if len(parts) > 1 else "",
        "suffix": suffix,
    }


def name_parts(source: Any) -> Dict[str, str]:
    if isinstance(source, str):
        return split_full_name(source)

    parts = {}
    for key in ("firstName", "middleName", "lastName", "suffix"):
        found = get_path(source, key)
        parts[key] = "" if is_missing(found) else str(found)
    return parts


def _middle_initial(middle: str) -> str:
    return f"{middle[0].upper()}." if middle else ""


def apply_name_format(config: NameFormatConfig, record: Any, lookup: Lookup) -> str:
    source = lookup(config.source) if config.source else record
    parts = name_parts(source)
    first, middle, last, suffix = parts["firstName"], parts["middleName"], parts["lastName"], parts["suffix"]
    mi = _middle_initial(middle)
    sep = config.separator

    def joined(*items: str, separator: str = sep) -> str:
        return separator.join(p for p in items if p)

    fmt = config.format
    if fmt == "full":
        return joined(first, middle, last, suffix)
    if fmt == "firstLast":
        return joined(first, last)
    if fmt == "lastFirst":
        return f"{last}, {first}" if last and first else joined(last, first)
    if fmt == "lastFirstMI":
        first_mi = f"{first} {mi}" if mi else first
        return f"{last}, {first_mi}" if last and first_mi else joined(last, first_mi)
    if fmt == "firstMI":
        return joined(first, mi, separator=" ")
    if fmt == "first":
        return first
    if fmt == "last":
        return last
    if fmt == "middle":
        return middle
    if fmt == "initial":
        return first[:1].upper()
    if fmt == "custom":
        if not config.custom_template:
            raise TransformationError("Custom name format requires custom_template", "nameFormat")
        result = config.custom_template
        for token, part in (("{first}", first), ("{middle}", middle), ("{last}", last),
                            ("{mi}", mi), ("{suffix}", suffix)):
            result = result.replace(token, part)
        return result.strip()
    return first


def apply_extract(value: Any, config: ExtractConfig, record: Any, lookup: Lookup) -> str:
    if config.pattern is not None:
        text = lookup(config.from_path) if config.from_path else value
        if is_missing(text):
            return config.fallback
        try:
            match = re.search(config.pattern, str(text))
        except re.error as e:
            raise TransformationError(f"Invalid extract pattern {config.pattern!r}: {e}", "extract")
        if not match:
            return config.fallback
        try:
            extracted = match.group(config.group)
        except IndexError as e:
            raise TransformationError(f"Invalid extract group {config.group!r}: {e}", "extract")
        return extracted if extracted is not None else config.fallback

    if config.start is not None or config.end is not None:
        text = lookup(config.from_path) if config.from_path else value
        if is_missing(text):
            return config.fallback
        return str(text)[config.start:config.end] or config.fallback

    if config.part is not None:
        source = lookup(config.from_path) if config.from_path else record
        if is_missing(source):
            return config.fallback
        parts = name_parts(source)
        if config.part == "middleInitial":
            return _middle_initial(parts["middleName"]) or config.fallback
        return parts.get(config.part) or config.fallback

    raise TransformationError("Extract requires part, pattern or start/end", "extract")


# ==============================================================================
# DISPATCH
# ==============================================================================

def _compile(condition: Any):
    if condition is None:
        raise TransformationError("Conditional transformation requires a condition", "conditional")
    try:
        return compile_condition(condition)
    except ConditionSyntaxError as e:
        raise TransformationError(str(e), "conditional")


def check_transformation(transformation: Any) -> None:
    """
    Verify a transformation's config is structurally usable.

    Raises:
        TransformationError: If the config cannot be applied to any data
    """
    config = transformation.config
    kind = transformation.type

    if kind == "lookup":
        _lookup_table(config)
    elif kind == "conditional":
        _compile(config.condition)
    elif kind == "concatenate":
        if not config.sources:
            raise TransformationError("Concatenate requires at least one source", kind)
    elif kind == "nameFormat":
        if config.format == "custom" and not config.custom_template:
            raise TransformationError("Custom name format requires custom_template", kind)
    elif kind == "extract":
        if config.pattern is not None:
            try:
                re.compile(config.pattern)
            except re.error as e:
                raise TransformationError(f"Invalid extract pattern {config.pattern!r}: {e}", kind)
        elif config.start is None and config.end is None and config.part is None:
            raise TransformationError("Extract requires part, pattern or start/end", kind)


def apply_transformation(
    transformation: Any,
    value: Any,
    lookup: Lookup,
    record: Any = MISSING
) -> Any:
    """
    Apply ``transformation`` to ``value``.

    Args:
        transformation: Typed transformation model
        value: Post-default resolved value
        lookup: Resolves full-context paths (``provider.lastName``)
        record: The mapping's own source record, used for name parts

    Raises:
        TransformationError: If the config is structurally invalid
    """
    kind = transformation.type
    config = transformation.config

    if kind == "format":
        return apply_format(value, config, lookup)
    if kind == "concatenate":
        check_transformation(transformation)
        return apply_concatenate(config, lookup)
    if kind == "conditional":
        return apply_conditional(value, config, lookup)
    if kind == "lookup":
        return apply_lookup(value, config, lookup)
    if kind == "boolean":
        return apply_boolean(value, config)
    if kind == "nameFormat":
        return apply_name_format(config, record, lookup)
    if kind == "extract":
        return apply_extract(value, config, record, lookup)

    raise TransformationError(f"Unknown transformation type: {kind}", kind)


# ==============================================================================
# BUILDERS
# ==============================================================================

class TransformationBuilder:
    """Shortcuts for common transformations."""

    @staticmethod
    def format_date(date_format: str) -> FormatTransformation:
        return FormatTransformation(type="format", config=FormatConfig(date_format=date_format))

    @staticmethod
    def format_phone(phone_format: str = "xxx-xxx-xxxx") -> FormatTransformation:
        return FormatTransformation(type="format", config=FormatConfig(phone_format=phone_format))

    @staticmethod
    def format_ssn(ssn_format: str = "xxx-xx-xxxx") -> FormatTransformation:
        return FormatTransformation(type="format", config=FormatConfig(ssn_format=ssn_format))

    @staticmethod
    def pattern(pattern: str) -> FormatTransformation:
        return FormatTransformation(type="format", config=FormatConfig(pattern=pattern))

    @staticmethod
    def concatenate(sources: Sequence[str], separator: str = " ") -> ConcatenateTransformation:
        return ConcatenateTransformation(
            type="concatenate",
            config=ConcatenateConfig(sources=tuple(sources), separator=separator, skip_empty=True),
        )

    @staticmethod
    def lookup(table: Dict[str, Any], default_value: Any = None) -> LookupTransformation:
        return LookupTransformation(
            type="lookup", config=LookupConfig(lookup_table=table, default_value=default_value)
        )

    @staticmethod
    def state_abbreviation() -> LookupTransformation:
        return LookupTransformation(type="lookup", config=LookupConfig(table_name="stateAbbreviations"))

    @staticmethod
    def conditional(
        field: str,
        operator: str,
        value: Any,
        true_value: Any,
        false_value: Any = ""
    ) -> ConditionalTransformation:
        return ConditionalTransformation(
            type="conditional",
            config=ConditionalConfig(
                condition=Condition(field=field, operator=operator, value=value),
                true_value=true_value,
                false_value=false_value,
            ),
        )

    @staticmethod
    def boolean(
        true_values: Optional[Sequence[str]] = None,
        false_values: Optional[Sequence[str]] = None,
        default_value: Optional[bool] = None
    ) -> BooleanTransformation:
        config: Dict[str, Any] = {"default_value": default_value}
        if true_values is not None:
            config["true_values"] = tuple(true_values)
        if false_values is not None:
            config["false_values"] = tuple(false_values)
        return BooleanTransformation(type="boolean", config=BooleanConfig(**config))

    @staticmethod
    def name_format(name_format: str, custom_template: Optional[str] = None) -> NameFormatTransformation:
        return NameFormatTransformation(
            type="nameFormat",
            config=NameFormatConfig(format=name_format, custom_template=custom_template),
        )

    @staticmethod
    def extract(part: str, from_path: Optional[str] = None, fallback: str = "") -> ExtractTransformation:
        return ExtractTransformation(
            type="extract",
            config=ExtractConfig(part=part, from_path=from_path, fallback=fallback),
        )


build = TransformationBuilder
