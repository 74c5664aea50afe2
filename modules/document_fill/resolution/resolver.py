"""
Field resolution.

Computes a value for every field mapping from an explicit, immutable fill
context, applies transformations, then applies conditional rules.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from modules.document_fill.core.exceptions import (
    ConditionSyntaxError,
    ResolutionWarning,
    TransformationError,
)
from modules.document_fill.models.template import CONTEXT_TRANSFORMATIONS, ConditionalRule, FieldMapping
from modules.document_fill.resolution.conditions import compile_condition, evaluate
from modules.document_fill.resolution.paths import MISSING, get_path, is_missing, strip_prefix
from modules.document_fill.resolution.transformations import apply_transformation
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

_SOURCE_PREFIXES = {
    "provider": ("provider",),
    "office": ("office",),
    "mailing": ("mailing", "mailingAddress"),
    "custom": ("custom",),
}


@dataclass(frozen=True)
class FillContext:
    """
    Data available to one fill.

    ``roster`` holds the providers of a roster fill in slot order.
    """
    provider: Any = None
    office: Any = None
    mailing: Any = None
    custom: Mapping[str, Any] = field(default_factory=dict)
    roster: Tuple[Any, ...] = ()

    @classmethod
    def from_data(cls, data: Any) -> "FillContext":
        """
        Build a context from a loosely-typed dict.

        Accepts ``provider``, ``office``, ``mailingAddress``/``mailing``,
        ``custom`` and ``providers``/``roster`` keys.
        """
        if isinstance(data, FillContext):
            return data
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise TypeError(f"Fill data must be a FillContext or a mapping, got {type(data).__name__}")

        mailing = data.get("mailingAddress")
        if mailing is None:
            mailing = data.get("mailing")
        roster = data.get("providers")
        if roster is None:
            roster = data.get("roster")

        return cls(
            provider=data.get("provider"),
            office=data.get("office"),
            mailing=mailing,
            custom=dict(data.get("custom") or {}),
            roster=tuple(roster or ()),
        )

    def namespace(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "office": self.office,
            "mailing": self.mailing,
            "mailingAddress": self.mailing,
            "custom": self.custom,
            "roster": list(self.roster),
            "providers": list(self.roster),
        }

    def lookup(self, path: str) -> Any:
        """Resolve a full-context path such as ``office.city``."""
        return get_path(self.namespace(), path)


@dataclass
class ResolvedFields:
    """Outcome of resolving a template against a context."""
    values: Dict[str, Any] = field(default_factory=dict)
    hidden: Set[str] = field(default_factory=set)
    warnings: List[ResolutionWarning] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def visible_values(self) -> Dict[str, Any]:
        return {k: v for k, v in self.values.items() if k not in self.hidden}

    def warning_messages(self) -> List[str]:
        return [str(w) for w in self.warnings]


class FieldResolver:
    """
    Resolves field mappings against a FillContext.

    Missing data never raises; only structurally invalid transformation
    configs raise TransformationError.
    """

    def source_value(self, mapping: FieldMapping, context: FillContext) -> Any:
        """Raw value from the mapping's source, or MISSING."""
        source_type = mapping.source_type

        if source_type == "static":
            return mapping.static_value

        if source_type == "provider-slot":
            record = self.slot_provider(mapping, context)
            path = mapping.slot_field or mapping.source_path
            if record is MISSING or not path:
                return MISSING
            return get_path(record, strip_prefix(path, "provider"))

        if not mapping.source_path:
            return MISSING

        path = mapping.source_path
        for prefix in _SOURCE_PREFIXES.get(source_type, ()):
            path = strip_prefix(path, prefix)

        root = {
            "provider": context.provider,
            "office": context.office,
            "mailing": context.mailing,
            "custom": context.custom,
        }.get(source_type)
        return get_path(root, path)

    def slot_provider(self, mapping: FieldMapping, context: FillContext) -> Any:
        slot = mapping.provider_slot
        if not slot or slot < 1 or slot > len(context.roster):
            return MISSING
        record = context.roster[slot - 1]
        return MISSING if record is None else record

    def source_record(self, mapping: FieldMapping, context: FillContext) -> Any:
        """Record that name-shaped transformations read from."""
        if mapping.source_type == "provider-slot":
            return self.slot_provider(mapping, context)
        return context.provider if context.provider is not None else MISSING

    def resolve(self, mapping: FieldMapping, context: FillContext) -> Any:
        """
        Resolve one mapping.

        Returns:
            The resolved value, or MISSING when there is no data, no default
            and no transformation produced a value

        Raises:
            TransformationError: If the transformation config is invalid
        """
        return self.resolve_source(mapping, context, self.source_value(mapping, context))

    def resolve_source(self, mapping: FieldMapping, context: FillContext, value: Any) -> Any:
        """Apply the default and the transformation to a raw source value."""
        if mapping.source_type != "static" and is_missing(value) and self.has_default(mapping):
            value = mapping.default_value

        if mapping.transformation is not None:
            value = apply_transformation(
                mapping.transformation,
                value,
                context.lookup,
                record=self.source_record(mapping, context),
            )

        return value

    @staticmethod
    def has_default(mapping: FieldMapping) -> bool:
        return "default_value" in mapping.model_fields_set

    def has_no_data(self, mapping: FieldMapping, raw: Any, value: Any) -> bool:
        """
        True when the mapping had no data and no default.

        Context-shaped transformations compute from other paths, so only
        their output counts.
        """
        if mapping.source_type == "static" or self.has_default(mapping):
            return False
        transformation = mapping.transformation
        if transformation is not None and transformation.type in CONTEXT_TRANSFORMATIONS:
            return is_missing(value)
        return is_missing(raw)

    def resolve_all(
        self,
        mappings: Sequence[FieldMapping],
        rules: Sequence[ConditionalRule],
        context: FillContext
    ) -> ResolvedFields:
        """
        Resolve every mapping, then apply conditional rules in order.

        A TransformationError is recorded in ``errors`` and only that field
        is skipped.
        """
        resolved = ResolvedFields()

        for mapping in mappings:
            field_id = mapping.document_field_id
            raw = self.source_value(mapping, context)
            try:
                value = self.resolve_source(mapping, context, raw)
            except TransformationError as e:
                message = f"Transformation failed for field '{mapping.label}': {e}"
                logger.warning(message)
                resolved.errors.append(message)
                continue

            no_data = self.has_no_data(mapping, raw, value)
            if no_data and mapping.is_required:
                warning = ResolutionWarning(
                    field_id, f"Required field '{mapping.label}' has no data and no default"
                )
                logger.warning(str(warning))
                resolved.warnings.append(warning)
                resolved.skipped.append(field_id)
                continue

            # A transformed value is kept even without source data
            if value is MISSING or (no_data and mapping.transformation is None):
                logger.debug(f"No data for field '{mapping.label}', writing empty value")
                value = None

            resolved.values[field_id] = value

        self.apply_rules(rules, context, resolved)
        return resolved

    def apply_rules(
        self,
        rules: Sequence[ConditionalRule],
        context: FillContext,
        resolved: ResolvedFields
    ) -> None:
        def lookup(path: str) -> Any:
            if path.startswith("fields."):
                return resolved.values.get(path[len("fields."):], MISSING)
            return context.lookup(path)

        for index, rule in enumerate(rules):
            target = rule.target_field_id
            if not target:
                resolved.errors.append(f"Conditional rule {index + 1} has no target field")
                continue
            try:
                matched = evaluate(compile_condition(rule.condition), lookup)
            except ConditionSyntaxError as e:
                resolved.errors.append(f"Conditional rule {index + 1}: {e}")
                logger.warning(f"Skipping conditional rule {index + 1}: {e}")
                continue

            if not matched:
                continue

            logger.debug(f"Rule {index + 1} matched: {rule.action} on '{target}'")
            if rule.action == "setValue":
                resolved.values[target] = rule.value
                if target in resolved.skipped:
                    resolved.skipped.remove(target)
            elif rule.action == "hideField":
                resolved.hidden.add(target)
            elif rule.action == "showField":
                resolved.hidden.discard(target)
