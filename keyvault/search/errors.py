from dataclasses import dataclass
from dataclasses import field


class QueryError(Exception):
    pass


@dataclass(eq=False)
class QuerySyntaxError(QueryError):
    """
    The user typed something our grammar doesn't accept. The message is meant to be shown to the user as-is,
    so it shouldn't contain anything but the position and what we expected there.
    """

    detail: str
    position: int = 0
    line: int = 1
    column: int = 1
    expected: list[str] = field(default_factory=list)
    context: str = ""

    def __post_init__(self) -> None:
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"Invalid query syntax: {self.detail}"


def nesting_too_deep_error() -> QuerySyntaxError:
    # Tree building and rendering are recursive, so a few hundred nested parentheses exhaust the stack
    return QuerySyntaxError(
        detail="query nested too deeply",
        expected=["fewer nested parentheses or negations"],
    )


class QueryInternalError(QueryError):
    """Parser and renderer disagree about the shape of the tree. Never the user's fault."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Internal parser error: {message}")
