import re
from typing import Any
from typing import Final

from lark.exceptions import UnexpectedCharacters
from lark.exceptions import UnexpectedInput
from lark.exceptions import UnexpectedToken
from lark.exceptions import VisitError
from lark.lark import Lark
from lark.lexer import Token
from lark.visitors import Transformer

from keyvault.search.errors import QueryInternalError
from keyvault.search.errors import QuerySyntaxError
from keyvault.search.errors import nesting_too_deep_error
from keyvault.search.expression import And
from keyvault.search.expression import Expression
from keyvault.search.expression import Group
from keyvault.search.expression import KeyValue
from keyvault.search.expression import Not
from keyvault.search.expression import Or
from keyvault.search.expression import Phrase
from keyvault.search.expression import Term

# Precedence is encoded in the rule nesting: "or" binds loosest, then "and" (explicit or
# just two atoms next to each other), then negation, which takes exactly one atom.
#
# Two things to keep in mind when changing this:
#
# - We use the contextual lexer, which only tries terminals the parser can accept in the
#   current state. That's why IDENT must never match the keywords themselves: otherwise
#   "a OR AND b" would lex the "AND" as a plain word and be accepted.
# - VALUE is only acceptable right after the colon, so it may start with a "-"
#   ("port:-1"), whereas IDENT may not (that's the negation shorthand).
_search_query_parser: Final = Lark(
    r"""
?start: or_expr

?or_expr: and_expr (_OR and_expr)*

?and_expr: not_expr (_AND? not_expr)*

?not_expr: (_NOT | _NEG) atom -> negation
         | atom

?atom: "(" or_expr ")" -> group
     | key_value
     | STRING          -> phrase
     | IDENT           -> term

key_value: (STRING | IDENT) ":" (STRING | VALUE)

_AND: "AND"
_OR: "OR"
_NOT: "NOT"
_NEG: /-(?=\S)/

STRING: /"(?:[^"\\]|\\[\s\S])*"/
IDENT: /(?!(?:AND|OR|NOT)(?![^\s:()"]))[^\s:()"\-][^\s:()"]*/
VALUE: /[^\s:()"]+/

// Unicode whitespace too, IDENT and VALUE stop at it as well
WS: /\s+/
%ignore WS
""",
    parser="lalr",
)

_TERMINAL_DESCRIPTIONS: Final = {
    "_AND": '"AND"',
    "_OR": '"OR"',
    "_NOT": '"NOT"',
    "_NEG": '"-"',
    "LPAR": '"("',
    "RPAR": '")"',
    "COLON": '":"',
    "STRING": "quoted string",
    "IDENT": "word",
    "VALUE": "value",
    "$END": "end of query",
}

# Only \\ and \" are escape sequences, everything else inside quotes is taken literally
_ESCAPE_SEQUENCE: Final = re.compile(r'\\([\\"])')


def _unquote(token: Token) -> str:
    return _ESCAPE_SEQUENCE.sub(r"\1", token.value[1:-1])  # type: ignore


def _describe_terminals(names: set[str] | frozenset[str]) -> list[str]:
    return sorted(_TERMINAL_DESCRIPTIONS.get(n, n) for n in names)


def _key_value_part(token: Token, what: str) -> str:
    if token.type == "STRING":
        result = _unquote(token)
        if not result:
            raise QuerySyntaxError(
                detail=f"empty {what} at position {token.start_pos}",
                position=token.start_pos or 0,
                line=token.line or 1,
                column=token.column or 1,
                expected=[f"non-empty {what}"],
            )
        return result
    return token.value  # type: ignore


# noinspection PyMethodMayBeStatic
class _ExpressionBuilder(Transformer[Token, Expression]):
    def or_expr(self, items: list[Expression]) -> Expression:
        return Or(tuple(items))

    def and_expr(self, items: list[Expression]) -> Expression:
        return And(tuple(items))

    def negation(self, items: list[Expression]) -> Expression:
        return Not(items[0])

    def group(self, items: list[Expression]) -> Expression:
        return Group(items[0])

    def key_value(self, items: list[Token]) -> Expression:
        return KeyValue(
            key=_key_value_part(items[0], "key"),
            value=_key_value_part(items[1], "value"),
        )

    def phrase(self, items: list[Token]) -> Expression:
        return Phrase(_unquote(items[0]))

    def term(self, items: list[Token]) -> Expression:
        return Term(items[0].value)


def _syntax_error_from_lark(raw: str, e: UnexpectedInput) -> QuerySyntaxError:
    expected: list[str] = []
    if isinstance(e, UnexpectedCharacters):
        position = e.pos_in_stream
        if e.char == '"':
            what = "unterminated quoted string"
        else:
            what = f"unexpected character {e.char!r}"
        expected = _describe_terminals(e.allowed or set())
    elif isinstance(e, UnexpectedToken):
        if e.token.type == "$END":
            position = len(raw)
            what = "unexpected end of query"
        else:
            position = e.token.start_pos or 0
            what = f"unexpected {_TERMINAL_DESCRIPTIONS.get(e.token.type, e.token.type)} {e.token.value!r}"
        expected = _describe_terminals(e.expected)
    else:
        position = len(raw)
        what = "unexpected input"
    detail = f"{what} at position {position}"
    if expected:
        detail += f", expected one of: {', '.join(expected)}"
    line_start = raw.rfind("\n", 0, position) + 1
    return QuerySyntaxError(
        detail=detail,
        position=position,
        line=raw.count("\n", 0, position) + 1,
        column=position - line_start + 1,
        expected=expected,
        context=(
            e.get_context(raw)
            if isinstance(e.pos_in_stream, int) and e.pos_in_stream >= 0
            else ""
        ),
    )


def parse_search_query(raw: str) -> Expression:
    try:
        tree = _search_query_parser.parse(raw)
    except UnexpectedInput as e:
        raise _syntax_error_from_lark(raw, e) from e
    try:
        result: Any = _ExpressionBuilder().transform(tree)
    except RecursionError as e:
        raise nesting_too_deep_error() from e
    except VisitError as e:
        if isinstance(e.orig_exc, QuerySyntaxError):
            raise e.orig_exc from None
        if isinstance(e.orig_exc, RecursionError):
            raise nesting_too_deep_error() from e
        raise QueryInternalError(f"cannot build expression: {e.orig_exc}") from e
    if isinstance(result, Token):
        raise QueryInternalError(f"parse tree collapsed to token {result.type}")
    return result  # type: ignore
