"""Mapping of proto names to Lisp identifiers.

All functions in this module are pure: the same proto name always maps to
the same Lisp identifier. Uniqueness of the mapped identifiers within a
scope is checked with :class:`SymbolScope`.
"""

import enum
import re
from typing import Dict

import cl_protogen._case
from cl_protogen.errors import IdentifierCollisionError


class Role(enum.Enum):
    """The kind of schema name to map."""

    PACKAGE = 1
    TYPE = 2
    FIELD = 3
    ENUM_VALUE = 4
    METHOD = 5


DEFAULT_PACKAGE_PREFIX = "cl-protobufs"

# Symbols that must not be shadowed by generated names.
_RESERVED = frozenset(["t", "nil"])

_ILLEGAL = re.compile(r"[^A-Za-z0-9_.]")

# File names commonly contain hyphens, which are valid in Lisp symbols.
_ILLEGAL_IN_SCHEMA_NAME = re.compile(r"[^A-Za-z0-9_.-]")

# Tokens the Lisp reader might read as a number instead of a symbol.
_POTENTIAL_NUMBER = re.compile(r"^[+-]?\.?[0-9]")


def _escape(name: str, illegal: "re.Pattern" = _ILLEGAL) -> str:
    return illegal.sub(lambda m: "%{:02x}".format(ord(m.group(0))), name)


def _is_reserved_name(value: str) -> bool:
    if value in _RESERVED:
        return True
    return _POTENTIAL_NUMBER.match(value) is not None and not value.endswith(
        ("-", "+")
    )


def _sanitize_name(value: str) -> str:
    return f"{value}-" if _is_reserved_name(value) else value


def lisp_name(name: str, role: Role) -> str:
    """Map a proto name to a Lisp identifier.

    Arguments
    ---------
    name : str
        The (simple) proto name. For :attr:`Role.PACKAGE` the dotted proto
        package.
    role : Role
        What the name is used for.

    Returns
    -------
    str
        Lower-case kebab case for types, fields, enum values and methods, an
        upper-case package name for packages.

    Example
    -------
    >>> lisp_name("PhoneNumber", Role.TYPE)
    'phone-number'
    >>> lisp_name("tutorial.v1", Role.PACKAGE)
    'TUTORIAL.V1'
    """
    name = _escape(name)
    if role == Role.PACKAGE:
        return name.upper()
    return _sanitize_name(cl_protogen._case.kebab_case(name))


def nested_lisp_name(parent: str, name: str) -> str:
    """Name a type nested in the type with the Lisp name ``parent``."""
    return parent + "." + lisp_name(name, Role.TYPE)


def enum_constant_name(enum_name: str, value_name: str) -> str:
    """Name the constant holding the number of an enum value."""
    return "+" + enum_name + "-" + lisp_name(value_name, Role.ENUM_VALUE) + "+"


def rpc_names(method_name: str):
    """Return the client stub and server implementation names of a method."""
    return "call-" + method_name, method_name + "-impl"


def schema_name(path: str) -> str:
    """Derive the schema name of a proto file.

    The schema name is the lower-cased base name of the file without its
    extension. Both ``/`` and ``\\`` are accepted as path separators. Other
    characters than letters, digits, ``_``, ``.`` and ``-`` are escaped as
    ``%xx`` and reserved names are suffixed like any other Lisp identifier, so
    ``1.proto`` gets the schema name ``1-``.

    >>> schema_name("examples/AddressBook.proto")
    'addressbook'
    """
    slash = max(path.rfind("/"), path.rfind("\\"))
    name = path[slash + 1 :]
    period = name.rfind(".")
    if period != -1:
        name = name[:period]
    return _sanitize_name(_escape(name, _ILLEGAL_IN_SCHEMA_NAME).lower())


def default_lisp_package_func(
    filename: str, package: str, prefix: str = DEFAULT_PACKAGE_PREFIX
) -> str:
    """Return the Lisp package for a proto file.

    Files without a proto package are not placed in a Lisp package of their
    own; an empty string is returned for them.

    Arguments
    ---------
    filename : str
        Filename of the proto file.
    package : str
        Proto package of the file.
    prefix : str, optional
        Prefix prepended to the package, separated with a dot.

    Example
    -------
    >>> default_lisp_package_func("addressbook.proto", "tutorial")
    'CL-PROTOBUFS.TUTORIAL'
    """
    if not package:
        return ""
    name = lisp_name(package, Role.PACKAGE)
    if prefix:
        name = prefix.upper() + "." + name
    return name


class SymbolScope:
    """Keeps track of the Lisp identifiers declared in a scope.

    Two different schema symbols claiming the same identifier is an error;
    the same schema symbol may claim its identifier any number of times.
    """

    def __init__(self, name: str):
        self.name = name
        self._owners: Dict[str, str] = {}

    def claim(self, identifier: str, owner: str) -> str:
        """Claim ``identifier`` for the schema symbol ``owner``.

        Returns
        -------
        str
            The identifier.

        Raises
        ------
        IdentifierCollisionError
            If the identifier has been claimed by another schema symbol.
        """
        first = self._owners.setdefault(identifier, owner)
        if first != owner:
            raise IdentifierCollisionError(self.name, identifier, first, owner)
        return identifier

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._owners
