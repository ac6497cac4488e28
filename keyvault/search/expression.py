from dataclasses import dataclass
from typing import TypeAlias


# Nodes hold logical (unescaped) strings. Escaping for a target language happens when
# the tree is rendered, never while it is built.


@dataclass(frozen=True)
class Or:
    children: tuple["Expression", ...]


@dataclass(frozen=True)
class And:
    children: tuple["Expression", ...]


@dataclass(frozen=True)
class Not:
    operand: "Expression"


@dataclass(frozen=True)
class Group:
    """
    Explicit parentheses in the query. Kept as its own node so that rendering can reproduce the parentheses
    even where operator precedence alone wouldn't need them.
    """

    operand: "Expression"


@dataclass(frozen=True)
class KeyValue:
    key: str
    value: str


@dataclass(frozen=True)
class Phrase:
    text: str


@dataclass(frozen=True)
class Term:
    text: str


Expression: TypeAlias = Or | And | Not | Group | KeyValue | Phrase | Term


def format_expression_tree(expr: Expression, indent: int = 0) -> str:
    prefix = "  " * indent
    if isinstance(expr, (Or, And)):
        return "\n".join(
            [f"{prefix}{type(expr).__name__}"]
            + [format_expression_tree(c, indent + 1) for c in expr.children]
        )
    if isinstance(expr, (Not, Group)):
        return (
            f"{prefix}{type(expr).__name__}\n"
            + format_expression_tree(expr.operand, indent + 1)
        )
    if isinstance(expr, KeyValue):
        return f"{prefix}KeyValue {expr.key!r}: {expr.value!r}"
    return f"{prefix}{type(expr).__name__} {expr.text!r}"
