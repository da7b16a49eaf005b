import cl_protogen
import google.protobuf.descriptor_pb2
from cl_protogen.names import default_lisp_package_func


def test_registry_resolve_message_type():
    registry = cl_protogen.Registry()

    acme_hello_file = cl_protogen.File(
        google.protobuf.descriptor_pb2.FileDescriptorProto(
            name="acme/hello.proto", package="acme"
        ),
        False,
        default_lisp_package_func,
    )

    acme_hello_message = cl_protogen.Message(
        google.protobuf.descriptor_pb2.DescriptorProto(name="Hello"),
        acme_hello_file,
        None,
    )

    acme_hello_world_message = cl_protogen.Message(
        google.protobuf.descriptor_pb2.DescriptorProto(name="World"),
        acme_hello_file,
        acme_hello_message,
    )

    acme_cloud_library_v1_library_file = cl_protogen.File(
        google.protobuf.descriptor_pb2.FileDescriptorProto(
            name="acme/cloud/library/v1/library.proto", package="acme.cloud.library.v1"
        ),
        False,
        default_lisp_package_func,
    )

    acme_cloud_library_v1_hello_message = cl_protogen.Message(
        google.protobuf.descriptor_pb2.DescriptorProto(name="Hello"),
        acme_cloud_library_v1_library_file,
        None,
    )

    acme_cloud_library_v1_hello_world_message = cl_protogen.Message(
        google.protobuf.descriptor_pb2.DescriptorProto(name="World"),
        acme_cloud_library_v1_library_file,
        acme_cloud_library_v1_hello_message,
    )

    google_protobuf_empty_file = cl_protogen.File(
        google.protobuf.descriptor_pb2.FileDescriptorProto(
            name="google/protobuf/empty.proto", package="google.protobuf"
        ),
        False,
        default_lisp_package_func,
    )

    google_protobuf_empty_message = cl_protogen.Message(
        google.protobuf.descriptor_pb2.DescriptorProto(name="Empty"),
        google_protobuf_empty_file,
        None,
    )

    registry._register_message(acme_hello_message)
    registry._register_message(acme_hello_world_message)
    registry._register_message(acme_cloud_library_v1_hello_message)
    registry._register_message(acme_cloud_library_v1_hello_world_message)
    registry._register_message(google_protobuf_empty_message)

    got = registry.resolve_message_type("acme.cloud.library.v1.Hello", "World")
    assert got is not None
    assert got.full_name == "acme.cloud.library.v1.Hello.World"

    got = registry.resolve_message_type("acme.Hello", "World")
    assert got is not None
    assert got.full_name == "acme.Hello.World"

    got = registry.resolve_message_type("acme.cloud.library.v1.Hello", "Hello")
    assert got is not None
    assert got.full_name == "acme.cloud.library.v1.Hello"

    got = registry.resolve_message_type("acme.cloud.library.Something", "Hello")
    assert got is not None
    assert got.full_name == "acme.Hello"

    got = registry.resolve_message_type(
        "acme.cloud.library.v1.Hello", "google.protobuf.Empty"
    )
    assert got is not None
    assert got.full_name == "google.protobuf.Empty"

    got = registry.resolve_message_type("acme.Hello", ".acme.cloud.library.v1.Hello")
    assert got is acme_cloud_library_v1_hello_message

    assert registry.resolve_message_type("acme.Hello", "Missing") is None
    assert registry.resolve_message_type("acme", ".Hello") is None


def test_registry_nested_lisp_symbols():
    proto = google.protobuf.descriptor_pb2.FileDescriptorProto(
        name="outer.proto", package="acme"
    )
    outer = proto.message_type.add(name="Outer")
    inner = outer.nested_type.add(name="InnerMessage")
    inner.enum_type.add(name="Kind").value.add(name="KIND_A", number=0)

    file = cl_protogen.File(proto, True, default_lisp_package_func)
    registry = cl_protogen.Registry()
    file._register(registry)
    file._resolve(registry)

    message = registry.message_by_name("acme.Outer.InnerMessage")
    assert message.lisp_symbol.name == "outer.inner-message"
    assert message.lisp_symbol.package.name == "CL-PROTOBUFS.ACME"

    enum = registry.resolve_enum_type("acme.Outer.InnerMessage", "Kind")
    assert enum.lisp_symbol.name == "outer.inner-message.kind"
    assert enum.values[0].full_name == "acme.Outer.InnerMessage.KIND_A"
    assert enum.values[0].lisp_keyword == ":kind-a"
    assert enum.values[0].lisp_constant.name == "+outer.inner-message.kind-kind-a+"


def test_file_without_package():
    proto = google.protobuf.descriptor_pb2.FileDescriptorProto(name="bare.proto")
    proto.message_type.add(name="Thing")
    file = cl_protogen.File(proto, True, default_lisp_package_func)
    registry = cl_protogen.Registry()
    file._register(registry)

    assert file.lisp_package.name == ""
    assert file.lisp_rpc_package is None
    assert file.syntax == "proto2"
    assert registry.message_by_name("Thing") is file.messages[0]
    assert registry.resolve_message_type("", ".Thing") is file.messages[0]


def test_registry_lookups(addressbook, greeter):
    registry = cl_protogen.Registry()
    files = [
        cl_protogen.File(proto, True, default_lisp_package_func)
        for proto in (greeter, addressbook)
    ]
    for file in files:
        file._register(registry)
    for file in files:
        file._resolve(registry)

    assert registry.all_files() == files
    assert registry.file_by_name("demo/greeter.proto") is files[0]

    service = registry.service_by_name("demo.Greeter")
    assert service is files[0].services[0]
    assert service.lisp_symbol.name == "greeter"
    assert [m.input.full_name for m in service.methods] == ["demo.HelloRequest"] * 3

    enum = registry.enum_by_name("tutorial.PhoneType")
    assert enum is files[1].enums[0]
    assert enum.lisp_symbol.name == "phone-type"

    assert registry.service_by_name("tutorial.Greeter") is None
    assert registry.enum_by_name("demo.PhoneType") is None
