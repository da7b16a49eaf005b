import pytest
from google.protobuf.descriptor_pb2 import (
    FieldDescriptorProto as F,
    FileDescriptorProto,
)

import cl_protogen
from cl_protogen.errors import InvalidDescriptorError
from cl_protogen.names import default_lisp_package_func
from cl_protogen.resolver import (
    default_value,
    kind_keyword,
    resolve_field_type,
    resolve_map_type,
    unescape_bytes,
)


def resolve(*protos):
    registry = cl_protogen.Registry()
    files = [cl_protogen.File(p, True, default_lisp_package_func) for p in protos]
    for f in files:
        f._register(registry)
    for f in files:
        f._resolve(registry)
    return files


def field_by_name(message, name):
    for field in message.fields:
        if field.proto.name == name:
            return field
    raise KeyError(name)


@pytest.mark.parametrize(
    "type_,want",
    [
        (F.TYPE_DOUBLE, "cl:double-float"),
        (F.TYPE_FLOAT, "cl:float"),
        (F.TYPE_INT32, "proto:int32"),
        (F.TYPE_INT64, "proto:int64"),
        (F.TYPE_UINT32, "proto:uint32"),
        (F.TYPE_UINT64, "proto:uint64"),
        (F.TYPE_SINT32, "proto:sint32"),
        (F.TYPE_SINT64, "proto:sint64"),
        (F.TYPE_FIXED32, "proto:fixed32"),
        (F.TYPE_FIXED64, "proto:fixed64"),
        (F.TYPE_SFIXED32, "proto:sfixed32"),
        (F.TYPE_SFIXED64, "proto:sfixed64"),
        (F.TYPE_BOOL, "cl:boolean"),
        (F.TYPE_STRING, "cl:string"),
        (F.TYPE_BYTES, "proto:byte-vector"),
    ],
)
def test_scalar_types(type_, want):
    proto = FileDescriptorProto(name="s.proto", package="s", syntax="proto3")
    proto.message_type.add(name="M").field.add(
        name="f", number=1, type=type_, label=F.LABEL_OPTIONAL
    )
    (file,) = resolve(proto)
    field = file.messages[0].fields[0]

    got = resolve_field_type(field, file)
    g = cl_protogen.GeneratedFile("s.lisp", file.lisp_package)
    assert g.qualified_symbol(got.symbol) == want
    assert got.origin.external
    assert not got.requires_import
    assert kind_keyword(field) == ":scalar"


def test_message_and_enum_types(addressbook):
    (file,) = resolve(addressbook)
    person = file.messages[0]
    phones = field_by_name(person, "phones")

    got = resolve_field_type(phones, file)
    assert got.symbol.name == "person.phone-number"
    assert got.origin.name == "CL-PROTOBUFS.TUTORIAL"
    assert not got.requires_import
    assert kind_keyword(phones) == ":message"
    assert phones.is_list()

    type_field = field_by_name(person.messages[0], "type")
    got = resolve_field_type(type_field, file)
    assert got.symbol.name == "phone-type"
    assert kind_keyword(type_field) == ":enum"


def test_cross_file_types(base, shop):
    _, shop_file = resolve(base, shop)
    order = shop_file.messages[0]

    total = resolve_field_type(field_by_name(order, "total"), shop_file)
    assert total.symbol.name == "money"
    assert total.origin.name == "CL-PROTOBUFS.ACME.BASE"
    assert total.requires_import

    status = resolve_field_type(field_by_name(order, "status"), shop_file)
    assert status.symbol.name == "status"
    assert status.requires_import


def test_map_type(base):
    shop = FileDescriptorProto(
        name="acme/catalog.proto",
        package="acme.shop",
        syntax="proto3",
        dependency=["acme/base.proto"],
    )
    catalog = shop.message_type.add(name="Catalog")
    entry = catalog.nested_type.add(name="PricesEntry")
    entry.options.map_entry = True
    entry.field.add(name="key", number=1, type=F.TYPE_STRING, label=F.LABEL_OPTIONAL)
    entry.field.add(
        name="value",
        number=2,
        type=F.TYPE_MESSAGE,
        label=F.LABEL_OPTIONAL,
        type_name=".acme.base.Money",
    )
    catalog.field.add(
        name="prices",
        number=1,
        type=F.TYPE_MESSAGE,
        label=F.LABEL_REPEATED,
        type_name=".acme.shop.Catalog.PricesEntry",
    )
    _, file = resolve(base, shop)
    message = file.messages[0]
    prices = message.fields[0]

    assert prices.is_map()
    assert not prices.is_list()
    # No declaration is generated for the entry.
    assert message.messages == []

    got = resolve_map_type(prices, file)
    assert got.key.symbol == cl_protogen.CL.symbol("string")
    assert not got.key.requires_import
    assert got.value.symbol.name == "money"
    assert got.value.requires_import

    with pytest.raises(InvalidDescriptorError):
        resolve_map_type(field_by_name(resolve(base)[0].messages[0], "units"), file)


@pytest.fixture
def defaults() -> FileDescriptorProto:
    f = FileDescriptorProto(name="defaults.proto", package="d", syntax="proto2")
    color = f.enum_type.add(name="Color")
    color.value.add(name="RED", number=1)
    color.value.add(name="GREEN", number=2)

    m = f.message_type.add(name="Defaults")

    def add(name, type_, default=None, **kwargs):
        field = m.field.add(
            name=name,
            number=len(m.field) + 1,
            type=type_,
            label=kwargs.pop("label", F.LABEL_OPTIONAL),
            **kwargs,
        )
        if default is not None:
            field.default_value = default

    add("color", F.TYPE_ENUM, type_name=".d.Color")
    add("green", F.TYPE_ENUM, "GREEN", type_name=".d.Color")
    add("quoted", F.TYPE_STRING, 'a"b')
    add("multiline", F.TYPE_STRING, "line1\nline2")
    add("raw", F.TYPE_BYTES, "\\001x")
    add("ratio", F.TYPE_DOUBLE, "1.5")
    add("big", F.TYPE_DOUBLE, "1e10")
    add("small", F.TYPE_FLOAT, "1e10")
    add("single", F.TYPE_FLOAT, "2.25")
    add("forever", F.TYPE_FLOAT, "inf")
    add("never", F.TYPE_DOUBLE, "-inf")
    add("unknown", F.TYPE_DOUBLE, "nan")
    add("flag", F.TYPE_BOOL, "true")
    add("off", F.TYPE_BOOL, "false")
    add("delta", F.TYPE_SINT32, "-3")
    add("plain", F.TYPE_INT32)
    add("many", F.TYPE_INT32, label=F.LABEL_REPEATED)
    add("colors", F.TYPE_ENUM, label=F.LABEL_REPEATED, type_name=".d.Color")
    add("bad_bytes", F.TYPE_BYTES, "\\xzz")
    add("bad_color", F.TYPE_ENUM, "BLUE", type_name=".d.Color")
    return f


@pytest.mark.parametrize(
    "name,want",
    [
        ("color", ":red"),
        ("green", ":green"),
        ("quoted", '"a\\"b"'),
        ("multiline", '"line1\nline2"'),
        ("raw", "(cl:coerce #(1 120) 'proto:byte-vector)"),
        ("ratio", "1.5d0"),
        ("big", "1.0d10"),
        ("small", "1.0f10"),
        ("single", "2.25"),
        ("forever", "float-features:single-float-positive-infinity"),
        ("never", "float-features:double-float-negative-infinity"),
        ("unknown", "float-features:double-float-nan"),
        ("flag", "cl:t"),
        ("off", "cl:nil"),
        ("delta", "-3"),
        ("plain", None),
        ("many", None),
        ("colors", None),
    ],
)
def test_default_value(defaults, name, want):
    (file,) = resolve(defaults)
    assert default_value(field_by_name(file.messages[0], name)) == want


@pytest.mark.parametrize("name", ["bad_bytes", "bad_color"])
def test_invalid_default_value(defaults, name):
    (file,) = resolve(defaults)
    with pytest.raises(InvalidDescriptorError):
        default_value(field_by_name(file.messages[0], name))


def test_proto3_fields_have_no_default(addressbook):
    (file,) = resolve(addressbook)
    for field in file.messages[0].fields:
        assert default_value(field) is None


def test_unescape_bytes():
    assert unescape_bytes("abc") == b"abc"
    assert unescape_bytes("\\n\\t\\\\") == b"\n\t\\"
    assert unescape_bytes("\\0\\377") == b"\x00\xff"
    assert unescape_bytes("\\x41\\x4a") == b"AJ"
    assert unescape_bytes("\\1234") == b"S4"
    with pytest.raises(ValueError):
        unescape_bytes("\\xg")
