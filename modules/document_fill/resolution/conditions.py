"""
Condition expressions for conditional rules and transformations.

Grammar::

    expr    := and_expr ("or" and_expr)*
    and_expr:= clause ("and" clause)*
    clause  := "(" expr ")" | path op literal | path ("exists" | "empty")

Operators: ``==``, ``!=``, ``>``, ``>=``, ``<``, ``<=``, ``contains``,
``startsWith``, ``endsWith``. Literals: quoted strings, numbers, ``true``,
``false``, ``null``.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, List, Tuple, Union

from modules.document_fill.core.exceptions import ConditionSyntaxError
from modules.document_fill.models.template import Condition
from modules.document_fill.resolution.paths import MISSING, is_missing

Lookup = Callable[[str], Any]

SYMBOL_OPERATORS = {
    "==": "equals",
    "!=": "notEquals",
    ">": "greaterThan",
    ">=": "greaterOrEqual",
    "<": "lessThan",
    "<=": "lessOrEqual",
}
WORD_OPERATORS = {
    "contains": "contains",
    "startsWith": "startsWith",
    "endsWith": "endsWith",
    "equals": "equals",
    "notEquals": "notEquals",
}
UNARY_OPERATORS = {"exists", "empty"}

_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
      | (?P<number>-?\d+(?:\.\d+)?(?![\w.\[]))
      | (?P<op>==|!=|>=|<=|>|<)
      | (?P<paren>[()])
      | (?P<word>[A-Za-z_][\w.\[\]-]*)
    )
    """,
    re.VERBOSE,
)


# ==============================================================================
# AST
# ==============================================================================

@dataclass(frozen=True)
class Clause:
    path: str
    operator: str
    value: Any = None


@dataclass(frozen=True)
class AllOf:
    parts: Tuple["Node", ...]


@dataclass(frozen=True)
class AnyOf:
    parts: Tuple["Node", ...]


Node = Union[Clause, AllOf, AnyOf]


# ==============================================================================
# PARSER
# ==============================================================================

def _tokenize(expression: str) -> List[Tuple[str, str]]:
    tokens = []
    position = 0
    text = expression.rstrip()
    while position < len(text):
        match = _TOKEN_RE.match(text, position)
        if not match or match.end() == position:
            raise ConditionSyntaxError(
                f"Unexpected character at position {position} in condition: {expression!r}",
                expression,
            )
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        position = match.end()
    return tokens


class _Parser:
    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = _tokenize(expression)
        self.index = 0

    def error(self, message: str) -> ConditionSyntaxError:
        return ConditionSyntaxError(f"{message} in condition: {self.expression!r}", self.expression)

    def peek(self) -> Tuple[str, str]:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return ("end", "")

    def take(self) -> Tuple[str, str]:
        token = self.peek()
        self.index += 1
        return token

    def parse(self) -> Node:
        if not self.tokens:
            raise self.error("Empty expression")
        node = self.parse_or()
        if self.peek()[0] != "end":
            raise self.error(f"Unexpected token {self.peek()[1]!r}")
        return node

    def parse_or(self) -> Node:
        parts = [self.parse_and()]
        while self.peek() == ("word", "or"):
            self.take()
            parts.append(self.parse_and())
        return parts[0] if len(parts) == 1 else AnyOf(tuple(parts))

    def parse_and(self) -> Node:
        parts = [self.parse_clause()]
        while self.peek() == ("word", "and"):
            self.take()
            parts.append(self.parse_clause())
        return parts[0] if len(parts) == 1 else AllOf(tuple(parts))

    def parse_clause(self) -> Node:
        kind, text = self.take()
        if (kind, text) == ("paren", "("):
            node = self.parse_or()
            if self.take() != ("paren", ")"):
                raise self.error("Missing closing parenthesis")
            return node
        if kind != "word" or text in ("and", "or"):
            raise self.error(f"Expected a field path, got {text or 'end of expression'!r}")

        path = text
        kind, op = self.take()
        if kind == "word" and op in UNARY_OPERATORS:
            return Clause(path, op)
        if kind == "op":
            operator = SYMBOL_OPERATORS[op]
        elif kind == "word" and op in WORD_OPERATORS:
            operator = WORD_OPERATORS[op]
        else:
            raise self.error(f"Expected an operator after {path!r}")

        return Clause(path, operator, self.parse_literal())

    def parse_literal(self) -> Any:
        kind, text = self.take()
        if kind == "string":
            body = text[1:-1]
            return re.sub(r"\\(.)", r"\1", body)
        if kind == "number":
            return float(text) if "." in text else int(text)
        if kind == "word" and text in ("true", "false"):
            return text == "true"
        if kind == "word" and text == "null":
            return None
        raise self.error(f"Expected a literal, got {text or 'end of expression'!r}")


@lru_cache(maxsize=256)
def parse_condition(expression: str) -> Node:
    """
    Parse a condition expression.

    Raises:
        ConditionSyntaxError: If the expression is malformed
    """
    return _Parser(expression).parse()


def compile_condition(condition: Union[str, Condition]) -> Node:
    """Normalize a string or structured condition into a node."""
    if isinstance(condition, Condition):
        return Clause(condition.field, condition.operator, condition.value)
    if isinstance(condition, dict):
        structured = Condition.model_validate(condition)
        return Clause(structured.field, structured.operator, structured.value)
    return parse_condition(str(condition))


# ==============================================================================
# EVALUATION
# ==============================================================================

def _as_number(value: Any):
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


def _equals(actual: Any, expected: Any) -> bool:
    if expected is None:
        return is_missing(actual)
    if is_missing(actual):
        return expected == ""
    if actual == expected:
        return True
    if isinstance(expected, bool):
        return str(actual).strip().lower() == str(expected).lower()
    if isinstance(expected, (int, float)):
        number = _as_number(actual)
        return number is not None and number == expected
    return str(actual) == str(expected)


def _compare(actual: Any, expected: Any, op: Callable[[Any, Any], bool]) -> bool:
    left, right = _as_number(actual), _as_number(expected)
    if left is not None and right is not None:
        return op(left, right)
    if is_missing(actual) or expected is None:
        return False
    # ISO dates compare correctly as strings
    return op(str(actual), str(expected))


def evaluate_clause(actual: Any, operator: str, expected: Any = None) -> bool:
    """Apply one operator to a looked-up value."""
    if operator == "exists":
        return not is_missing(actual)
    if operator == "empty":
        return is_missing(actual) or (isinstance(actual, (list, tuple, dict)) and not actual)
    if operator == "equals":
        return _equals(actual, expected)
    if operator == "notEquals":
        return not _equals(actual, expected)
    if operator == "greaterThan":
        return _compare(actual, expected, lambda a, b: a > b)
    if operator == "greaterOrEqual":
        return _compare(actual, expected, lambda a, b: a >= b)
    if operator == "lessThan":
        return _compare(actual, expected, lambda a, b: a < b)
    if operator == "lessOrEqual":
        return _compare(actual, expected, lambda a, b: a <= b)

    if is_missing(actual):
        return False
    if operator == "contains":
        if isinstance(actual, (list, tuple, set)):
            return any(str(item) == str(expected) for item in actual)
        return str(expected) in str(actual)
    if operator == "startsWith":
        return str(actual).startswith(str(expected))
    if operator == "endsWith":
        return str(actual).endswith(str(expected))

    raise ConditionSyntaxError(f"Unknown operator: {operator}")


def evaluate(node: Node, lookup: Lookup) -> bool:
    """Evaluate a parsed condition, resolving paths through ``lookup``."""
    if isinstance(node, AllOf):
        return all(evaluate(part, lookup) for part in node.parts)
    if isinstance(node, AnyOf):
        return any(evaluate(part, lookup) for part in node.parts)
    value = lookup(node.path)
    return evaluate_clause(MISSING if value is None else value, node.operator, node.value)


def referenced_paths(node: Node) -> List[str]:
    """Paths read by a condition, in order."""
    if isinstance(node, Clause):
        return [node.path]
    paths: List[str] = []
    for part in node.parts:
        paths.extend(referenced_paths(part))
    return paths
