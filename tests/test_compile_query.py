import pytest

from keyvault.cli.compile_query import Arguments
from keyvault.cli.compile_query import compile_main


def _args(*argv: str) -> Arguments:
    return Arguments(underscores_to_dashes=True).parse_args(list(argv))


def test_prints_sql(capsys: pytest.CaptureFixture[str]) -> None:
    assert compile_main(_args("--query", "secret_key:abc")) == 0

    assert capsys.readouterr().out == "secret_key ILIKE '%abc%'\n"


def test_empty_query_prints_match_everything(
    capsys: pytest.CaptureFixture[str],
) -> None:
    assert compile_main(_args("--query", "")) == 0

    assert capsys.readouterr().out == "TRUE\n"


def test_prints_tree(capsys: pytest.CaptureFixture[str]) -> None:
    assert compile_main(_args("--query", "a b", "--show-tree")) == 0

    assert capsys.readouterr().out == "And\n  Term 'a'\n  Term 'b'\n"


def test_syntax_error_goes_to_stderr(capsys: pytest.CaptureFixture[str]) -> None:
    assert compile_main(_args("--query", "a AND")) == 1

    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.startswith("Invalid query syntax")
