import sys

from tap import Tap

from keyvault.search.errors import QuerySyntaxError
from keyvault.search.expression import format_expression_tree
from keyvault.search.parser import parse_search_query
from keyvault.search.sql import compile_search_query


class Arguments(Tap):
    query: str  # Search query, for example 'foo:bar AND -baz'
    show_tree: bool = False  # Print the parsed expression tree instead of the SQL


def compile_main(args: Arguments) -> int:
    try:
        if args.show_tree:
            if not args.query.strip():
                print("(empty query, matches everything)")
            else:
                print(format_expression_tree(parse_search_query(args.query)))
        else:
            print(compile_search_query(args.query))
    except QuerySyntaxError as e:
        print(e, file=sys.stderr)
        if e.context:
            print(e.context, file=sys.stderr)
        return 1
    return 0


def main() -> None:
    sys.exit(compile_main(Arguments(underscores_to_dashes=True).parse_args()))


if __name__ == "__main__":
    main()
