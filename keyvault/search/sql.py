from typing import Final

from keyvault.search.errors import QueryInternalError
from keyvault.search.errors import nesting_too_deep_error
from keyvault.search.expression import And
from keyvault.search.expression import Expression
from keyvault.search.expression import Group
from keyvault.search.expression import KeyValue
from keyvault.search.expression import Not
from keyvault.search.expression import Or
from keyvault.search.expression import Phrase
from keyvault.search.expression import Term
from keyvault.search.parser import parse_search_query

SECRET_KEY_FIELD: Final = "secret_key"
SECRET_VALUE_FIELD: Final = "secret_value"

MATCH_EVERYTHING: Final = "TRUE"


def like_escape(s: str) -> str:
    """Escape the LIKE/ILIKE pattern characters, so the string only ever matches itself"""
    return s.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def json_escape(s: str) -> str:
    """Escape a string so it can be put between double quotes in a JSON document"""
    return s.replace("\\", "\\\\").replace('"', '\\"')


def quote_sql_literal(s: str) -> str:
    # Has to be the last step, after the LIKE or JSON escaping
    return s.replace("'", "''")


def _like_pattern(s: str) -> str:
    return f"'%{quote_sql_literal(like_escape(s))}%'"


def _json_containment_document(key: str, value: str) -> str:
    return quote_sql_literal(f'{{"{json_escape(key)}": "{json_escape(value)}"}}')


def _render_key_value(kv: KeyValue) -> str:
    if kv.key == SECRET_KEY_FIELD:
        return f"secret_key ILIKE {_like_pattern(kv.value)}"
    if kv.key == SECRET_VALUE_FIELD:
        return f"secret_value::text ILIKE {_like_pattern(kv.value)}"
    # Either the key name matches and the value is somewhere in the document, or the
    # document has this exact top-level key/value pair.
    return (
        f"(secret_key ILIKE {_like_pattern(kv.key)}"
        f" AND secret_value::text ILIKE {_like_pattern(kv.value)}"
        f" OR secret_value @> '{_json_containment_document(kv.key, kv.value)}')"
    )


def _render_text_search(text: str) -> str:
    pattern = _like_pattern(text)
    return f"(secret_key ILIKE {pattern} OR secret_value::text ILIKE {pattern})"


def _render(expr: Expression) -> str:
    if isinstance(expr, (Or, And)) and not expr.children:
        raise QueryInternalError(f"{type(expr).__name__} node without children")
    if isinstance(expr, Or):
        return " OR ".join(_render(c) for c in expr.children)
    if isinstance(expr, And):
        return " AND ".join(_render(c) for c in expr.children)
    if isinstance(expr, Not):
        # Every operand either is a Group or renders its own parentheses when it has more than one clause
        return f"NOT {_render(expr.operand)}"
    if isinstance(expr, Group):
        return f"({_render(expr.operand)})"
    if isinstance(expr, KeyValue):
        return _render_key_value(expr)
    if isinstance(expr, (Phrase, Term)):
        return _render_text_search(expr.text)
    raise QueryInternalError(f"Unexpected expression node: {expr!r}")


def render_sql(expr: Expression) -> str:
    try:
        return _render(expr)
    except RecursionError as e:
        raise nesting_too_deep_error() from e


def compile_search_query(raw: str) -> str:
    if not raw.strip():
        return MATCH_EVERYTHING
    return render_sql(parse_search_query(raw))
