"""Resolution of field types to Lisp type symbols.

Resolution only looks at the resolved descriptor graph (see
:class:`cl_protogen.Registry`); it never depends on which files have been
generated already.
"""

from typing import NamedTuple, Optional

import cl_protogen
from cl_protogen import CL, FLOAT_FEATURES, PROTO, Field, File, Kind, LispPackage
from cl_protogen.errors import InvalidDescriptorError
from cl_protogen.template import lisp_string

SCALAR_TYPES = {
    Kind.DOUBLE: CL.symbol("double-float"),
    Kind.FLOAT: CL.symbol("float"),
    Kind.INT32: PROTO.symbol("int32"),
    Kind.INT64: PROTO.symbol("int64"),
    Kind.UINT32: PROTO.symbol("uint32"),
    Kind.UINT64: PROTO.symbol("uint64"),
    Kind.SINT32: PROTO.symbol("sint32"),
    Kind.SINT64: PROTO.symbol("sint64"),
    Kind.FIXED32: PROTO.symbol("fixed32"),
    Kind.FIXED64: PROTO.symbol("fixed64"),
    Kind.SFIXED32: PROTO.symbol("sfixed32"),
    Kind.SFIXED64: PROTO.symbol("sfixed64"),
    Kind.BOOL: CL.symbol("boolean"),
    Kind.STRING: CL.symbol("string"),
    Kind.BYTES: PROTO.symbol("byte-vector"),
}


class FieldType(NamedTuple):
    """The Lisp type of a field.

    Attributes
    ----------
    symbol : LispSymbol
        The type symbol.
    origin : LispPackage
        The package the type symbol is interned in.
    requires_import : bool
        Whether the type is declared in another file than the field.
    """

    symbol: cl_protogen.LispSymbol
    origin: LispPackage
    requires_import: bool


class MapType(NamedTuple):
    """The Lisp key and value types of a map field."""

    key: FieldType
    value: FieldType


def kind_keyword(field: Field) -> str:
    """Return the ``:kind`` of a field as printed in a field declaration."""
    if field.kind == Kind.ENUM:
        return ":enum"
    if field.kind == Kind.MESSAGE:
        return ":message"
    if field.kind == Kind.GROUP:
        return ":group"
    return ":scalar"


def resolve_field_type(field: Field, file: File) -> FieldType:
    """Resolve the Lisp type of ``field`` as referred to from ``file``.

    Scalar fields resolve to symbols of the Lisp runtime. Message, group and
    enum fields resolve to the symbol of the referenced type, which names
    every message enclosing the type.

    Arguments
    ---------
    field : Field
        A resolved field.
    file : File
        The file the type is referred to from.

    Returns
    -------
    FieldType
        The resolved type.
    """
    if field.kind in SCALAR_TYPES:
        symbol = SCALAR_TYPES[field.kind]
        return FieldType(symbol, symbol.package, False)
    if field.kind == Kind.ENUM:
        declared = field.enum
    else:
        declared = field.message
    if declared is None:
        raise InvalidDescriptorError(field.full_name, "field type is not resolved")
    symbol = declared.lisp_symbol
    requires_import = declared.parent_file is not file
    return FieldType(symbol, symbol.package, requires_import)


def resolve_map_type(field: Field, file: File) -> MapType:
    """Resolve key and value type of a map field independently."""
    if not field.is_map():
        raise InvalidDescriptorError(field.full_name, "is not a map field")
    return MapType(
        resolve_field_type(field.map_key(), file),
        resolve_field_type(field.map_value(), file),
    )


_FLOAT_SPECIALS = {
    "inf": "positive-infinity",
    "-inf": "negative-infinity",
    "nan": "nan",
}

_C_ESCAPES = {
    "n": 10,
    "r": 13,
    "t": 9,
    "a": 7,
    "b": 8,
    "f": 12,
    "v": 11,
    "\\": 92,
    "'": 39,
    '"': 34,
    "?": 63,
}


def unescape_bytes(text: str) -> bytes:
    """Decode the C-escaped representation protoc uses for bytes defaults.

    >>> unescape_bytes("a\\\\001\\\\x02")
    b'a\\x01\\x02'
    """
    out = bytearray()
    i = 0
    while i < len(text):
        c = text[i]
        if c != "\\" or i + 1 == len(text):
            out.extend(c.encode("utf-8"))
            i += 1
            continue
        nxt = text[i + 1]
        if nxt in _C_ESCAPES:
            out.append(_C_ESCAPES[nxt])
            i += 2
        elif nxt in "01234567":
            j = i + 1
            while j < len(text) and j < i + 4 and text[j] in "01234567":
                j += 1
            out.append(int(text[i + 1 : j], 8) & 0xFF)
            i = j
        elif nxt == "x":
            j = i + 2
            while j < len(text) and j < i + 4 and text[j] in "0123456789abcdefABCDEF":
                j += 1
            if j == i + 2:
                raise ValueError(f"invalid hex escape in {text!r}")
            out.append(int(text[i + 2 : j], 16))
            i = j
        else:
            out.append(ord(nxt))
            i += 2
    return bytes(out)


def _float_literal(text: str, kind: Kind) -> str:
    if text in _FLOAT_SPECIALS:
        width = "double-float" if kind == Kind.DOUBLE else "single-float"
        return f"{FLOAT_FEATURES.qualifier}:{width}-{_FLOAT_SPECIALS[text]}"
    mantissa, e, exponent = text.lower().partition("e")
    if "." not in mantissa:
        mantissa += ".0"
    if kind == Kind.DOUBLE:
        return mantissa + "d" + (exponent if e else "0")
    return mantissa + ("f" + exponent if e else "")


def default_value(field: Field) -> Optional[str]:
    """Render the default value of a proto2 field.

    Returns
    -------
    str or None
        The Lisp literal of the default, or ``None`` if the field has no
        default. Fields of proto3 files and repeated fields have no default.
        A singular proto2 enum field without an explicit default defaults to
        the first value of the enum.
    """
    if field.parent_file.syntax != "proto2":
        return None
    if field.cardinality == cl_protogen.Cardinality.REPEATED:
        return None
    text = field.proto.default_value
    if field.kind == Kind.ENUM:
        if not field.enum.values:
            raise InvalidDescriptorError(field.enum.full_name, "enum has no values")
        if not field.proto.HasField("default_value"):
            return field.enum.values[0].lisp_keyword
        for value in field.enum.values:
            if value.proto.name == text:
                return value.lisp_keyword
        raise InvalidDescriptorError(
            field.full_name, f'default "{text}" is not a value of {field.enum.full_name}'
        )
    if not field.proto.HasField("default_value"):
        return None
    if field.kind == Kind.STRING:
        return lisp_string(text)
    if field.kind == Kind.BYTES:
        try:
            octets = " ".join(str(b) for b in unescape_bytes(text))
        except ValueError as e:
            raise InvalidDescriptorError(field.full_name, str(e)) from e
        return "(cl:coerce #(" + octets + ") 'proto:byte-vector)"
    if field.kind == Kind.BOOL:
        return "cl:t" if text == "true" else "cl:nil"
    if field.kind in (Kind.DOUBLE, Kind.FLOAT):
        return _float_literal(text, field.kind)
    if field.kind in (Kind.MESSAGE, Kind.GROUP):
        raise InvalidDescriptorError(
            field.full_name, "message fields can not declare a default"
        )
    return text
