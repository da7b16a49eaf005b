"""Small templating helpers for the Lisp printer.

Templates use ``$name$`` placeholders, as in the protoc printer; ``$$``
stands for a literal dollar sign.
"""

import re
from typing import Iterable, Mapping

from cl_protogen.errors import TemplateError

_PLACEHOLDER = re.compile(r"\$(\w*)\$")


def fill(template: str, values: Mapping[str, str]) -> str:
    """Substitute the placeholders of ``template`` with ``values``.

    Raises
    ------
    TemplateError
        If the template references a placeholder missing in ``values``.

    Example
    -------
    >>> fill('(cl:in-package "$package$")', {"package": "CL-USER"})
    '(cl:in-package "CL-USER")'
    """

    def substitute(m: "re.Match") -> str:
        name = m.group(1)
        if name == "":
            return "$"
        if name not in values:
            raise TemplateError(f"unknown placeholder ${name}$ in {template!r}")
        return str(values[name])

    return _PLACEHOLDER.sub(substitute, template)


def lisp_list(items: Iterable[str], hang: int) -> str:
    """Join ``items`` into a Lisp list, one item per line.

    Every item after the first is indented by ``hang`` spaces, so that it
    lines up with the first item when the list starts at column ``hang - 1``.

    >>> lisp_list(["a", "b"], 2)
    '(a\\n  b)'
    """
    return "(" + ("\n" + " " * hang).join(items) + ")"


def lisp_string(value: str) -> str:
    """Quote ``value`` as a Lisp string literal.

    Only ``\\`` and ``"`` are escaped. Other characters, newlines included,
    stand for themselves inside a Lisp string.

    >>> lisp_string('say "hi"')
    '"say \\\\"hi\\\\""'
    """
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def plist(pairs: Iterable) -> str:
    """Join ``(key, value)`` pairs into a property list without parentheses.

    >>> plist([(":index", 1), (":type", "cl:string")])
    ':index 1 :type cl:string'
    """
    return " ".join(f"{k} {v}" for k, v in pairs)
