import re
from functools import lru_cache
from typing import Any, List, Mapping, Sequence, Tuple

from dbhelpers.exception import BindError

DOLLAR_POSITIONAL = re.compile(r"\$(\d+)")
COLON_NAMED = re.compile(r"::|:([A-Za-z0-9_]+(?:\.[A-Za-z0-9_]+)*)")

_MISSING = object()


@lru_cache(maxsize=256)
def compile_named(query: str) -> Tuple[str, Tuple[str, ...]]:
    """Replace `:name` placeholders with `$1..$n` in order of appearance.

    A doubled colon (`::`) is a literal colon.

    Args:
        query (str): The query using named placeholders

    Returns:
        Tuple[str, Tuple[str, ...]]: The positional query and the names
            bound to each position
    """
    names: List[str] = []

    def _sub(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name is None:
            return ":"
        names.append(name)
        return f"${len(names)}"

    text = COLON_NAMED.sub(_sub, query)
    return text, tuple(names)


def lookup(arg: Any, name: str) -> Any:
    if isinstance(arg, Mapping) and name in arg:
        return arg[name]

    value = arg
    for part in name.split("."):
        if isinstance(value, Mapping):
            value = value.get(part, _MISSING)
        else:
            value = getattr(value, part, _MISSING)
        if value is _MISSING:
            raise KeyError(name)
    return value


def bind_named(query: str, arg: Any) -> Tuple[str, List[Any]]:
    """Expand named placeholders into positional form.

    Example:

    ```python
    bind_named(
        "SELECT * FROM users WHERE login=:login", {"login": "petrov"}
    )
    # ("SELECT * FROM users WHERE login=$1", ["petrov"])
    ```

    Args:
        query (str): The query using `:name` placeholders
        arg (Any): A mapping, or an object whose attributes are the
            parameter values. Dotted names traverse nested values.

    Raises:
        BindError: When a name cannot be found in `arg`, or when the query
            mixes named and positional placeholders

    Returns:
        Tuple[str, List[Any]]: The query using `$n` placeholders and the
            positional arguments
    """
    if DOLLAR_POSITIONAL.search(query):
        raise BindError(
            query,
            cause=ValueError(
                "cannot mix named and positional parameters"
            ),
        )

    text, names = compile_named(query)
    args = []
    for name in names:
        try:
            args.append(lookup(arg, name))
        except KeyError:
            raise BindError(
                query,
                args,
                LookupError(f"could not find name {name} in {arg!r}"),
            ) from None
    return text, args


def rebind(
    query: str,
    args: Sequence[Any],
    positional_sub: str = r"%s",
    escape_percent: bool = False,
) -> Tuple[str, List[Any]]:
    """Rewrite `$n` placeholders into the driver bindvar.

    Arguments are reordered to follow the placeholders, so a placeholder
    may be repeated or appear out of order. A query without `$n`
    placeholders is returned untouched.

    Args:
        query (str): The query
        args (Sequence[Any]): The positional arguments
        positional_sub (str, optional): The driver bindvar.
            Defaults to `%s`.
        escape_percent (bool, optional): Whether literal `%` must be
            doubled for the driver. Defaults to `False`.

    Raises:
        BindError: When a placeholder has no matching argument

    Returns:
        Tuple[str, List[Any]]: The driver query and its arguments
    """
    if not DOLLAR_POSITIONAL.search(query):
        return query, list(args)

    original = query
    if escape_percent:
        query = query.replace("%", "%%")

    ordered: List[Any] = []

    def _sub(match: "re.Match[str]") -> str:
        index = int(match.group(1))
        if not 0 < index <= len(args):
            raise BindError(
                original, args, IndexError(f"no argument for ${index}")
            )
        ordered.append(args[index - 1])
        return positional_sub

    text = DOLLAR_POSITIONAL.sub(_sub, query)
    return text, ordered
