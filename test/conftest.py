import pytest
from google.protobuf.descriptor_pb2 import (
    FieldDescriptorProto as F,
    FileDescriptorProto,
)


@pytest.fixture
def addressbook() -> FileDescriptorProto:
    f = FileDescriptorProto(
        name="addressbook.proto", package="tutorial", syntax="proto3"
    )
    phone_type = f.enum_type.add(name="PhoneType")
    phone_type.value.add(name="MOBILE", number=0)
    phone_type.value.add(name="HOME", number=1)
    phone_type.value.add(name="WORK", number=2)

    person = f.message_type.add(name="Person")
    person.field.add(name="name", number=1, type=F.TYPE_STRING, label=F.LABEL_OPTIONAL)
    person.field.add(name="id", number=2, type=F.TYPE_INT32, label=F.LABEL_OPTIONAL)
    person.field.add(
        name="phones",
        number=4,
        type=F.TYPE_MESSAGE,
        label=F.LABEL_REPEATED,
        type_name=".tutorial.Person.PhoneNumber",
    )
    phone_number = person.nested_type.add(name="PhoneNumber")
    phone_number.field.add(
        name="number", number=1, type=F.TYPE_STRING, label=F.LABEL_OPTIONAL
    )
    phone_number.field.add(
        name="type",
        number=2,
        type=F.TYPE_ENUM,
        label=F.LABEL_OPTIONAL,
        type_name=".tutorial.PhoneType",
    )
    return f


@pytest.fixture
def greeter() -> FileDescriptorProto:
    f = FileDescriptorProto(name="demo/greeter.proto", package="demo", syntax="proto3")
    request = f.message_type.add(name="HelloRequest")
    request.field.add(name="name", number=1, type=F.TYPE_STRING, label=F.LABEL_OPTIONAL)
    reply = f.message_type.add(name="HelloReply")
    reply.field.add(name="message", number=1, type=F.TYPE_STRING, label=F.LABEL_OPTIONAL)

    service = f.service.add(name="Greeter")
    service.method.add(
        name="SayHello",
        input_type=".demo.HelloRequest",
        output_type=".demo.HelloReply",
    )
    service.method.add(
        name="SayHellos",
        input_type=".demo.HelloRequest",
        output_type=".demo.HelloReply",
        server_streaming=True,
    )
    service.method.add(
        name="Chat",
        input_type=".demo.HelloRequest",
        output_type=".demo.HelloReply",
        client_streaming=True,
        server_streaming=True,
    )
    return f


@pytest.fixture
def base() -> FileDescriptorProto:
    f = FileDescriptorProto(name="acme/base.proto", package="acme.base", syntax="proto3")
    f.message_type.add(name="Money").field.add(
        name="units", number=1, type=F.TYPE_INT64, label=F.LABEL_OPTIONAL
    )
    status = f.enum_type.add(name="Status")
    status.value.add(name="STATUS_UNKNOWN", number=0)
    status.value.add(name="STATUS_OK", number=1)
    return f


@pytest.fixture
def shop() -> FileDescriptorProto:
    f = FileDescriptorProto(
        name="acme/shop.proto",
        package="acme.shop",
        syntax="proto3",
        dependency=["acme/base.proto"],
    )
    order = f.message_type.add(name="Order")
    order.field.add(
        name="total",
        number=1,
        type=F.TYPE_MESSAGE,
        label=F.LABEL_OPTIONAL,
        type_name=".acme.base.Money",
    )
    order.field.add(
        name="status",
        number=2,
        type=F.TYPE_ENUM,
        label=F.LABEL_OPTIONAL,
        type_name=".acme.base.Status",
    )
    return f


@pytest.fixture
def features() -> FileDescriptorProto:
    f = FileDescriptorProto(name="features.proto", package="feat", syntax="proto2")
    shape = f.message_type.add(name="Shape")
    kind = shape.enum_type.add(name="Kind")
    kind.value.add(name="KIND_CIRCLE", number=0)
    kind.value.add(name="KIND_SQUARE", number=1)

    shape.oneof_decl.add(name="size")
    shape.field.add(
        name="radius",
        number=1,
        type=F.TYPE_INT32,
        label=F.LABEL_OPTIONAL,
        oneof_index=0,
    )
    shape.field.add(
        name="side", number=2, type=F.TYPE_INT32, label=F.LABEL_OPTIONAL, oneof_index=0
    )

    tags = shape.nested_type.add(name="TagsEntry")
    tags.options.map_entry = True
    tags.field.add(name="key", number=1, type=F.TYPE_STRING, label=F.LABEL_OPTIONAL)
    tags.field.add(name="value", number=2, type=F.TYPE_INT32, label=F.LABEL_OPTIONAL)
    shape.field.add(
        name="tags",
        number=3,
        type=F.TYPE_MESSAGE,
        label=F.LABEL_REPEATED,
        type_name=".feat.Shape.TagsEntry",
    )
    shape.field.add(
        name="kind",
        number=4,
        type=F.TYPE_ENUM,
        label=F.LABEL_OPTIONAL,
        type_name=".feat.Shape.Kind",
    )
    points = shape.field.add(
        name="points", number=5, type=F.TYPE_INT32, label=F.LABEL_REPEATED
    )
    points.options.packed = True

    shape.extension_range.add(start=100, end=200)
    shape.extension.add(
        name="note",
        number=101,
        type=F.TYPE_STRING,
        label=F.LABEL_OPTIONAL,
        extendee=".feat.Shape",
    )

    f.extension.add(
        name="label",
        number=100,
        type=F.TYPE_STRING,
        label=F.LABEL_OPTIONAL,
        extendee=".feat.Shape",
    )
    return f
