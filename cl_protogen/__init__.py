"""Package cl_protogen generates Common Lisp code for cl-protobufs from protoc.

A protoc plugin turns a CodeGeneratorRequest from protoc into a
CodeGeneratorResponse. The CodeGeneratorRequest contains the raw proto
descriptors of the proto definitions contained in the files code generation is
requested for (and the descriptors of every file that is imported). The
CodeGeneratorResponse is returned by the plugin to protoc. It contains a list
of files (name and content) the plugin wants protoc to write to disk.

``cl_protogen`` wraps the raw descriptors into classes that carry their Lisp
names. :class:`File` represents a proto FileDescriptor, :class:`Message` a
proto Descriptor, :class:`Service` a proto ServiceDescriptor etc. Every type
is addressed by its fully qualified proto name in a :class:`Registry`, and
references between descriptors are resolved by looking them up there, so the
order files are generated in does not matter.

The classes :class:`Options`, :class:`Plugin` and :class:`GeneratedFile` make
up the framework to generate Lisp files from a CodeGeneratorRequest. The Lisp
generator itself lives in :mod:`cl_protogen.files`:

.. code-block:: python

    import cl_protogen
    import cl_protogen.files

    if __name__ == "__main__":
        opts = cl_protogen.Options()
        opts.run(cl_protogen.files.generate)

"""

import contextlib
import enum
import functools
import logging
import sys
from typing import BinaryIO, Callable, Dict, Iterator, List, Optional, Set, Tuple, Union
import google.protobuf.descriptor_pb2
import google.protobuf.compiler.plugin_pb2

import cl_protogen._case
from cl_protogen.config import Config
from cl_protogen.errors import GenerationError, InvalidDescriptorError, ResolutionError
from cl_protogen.names import (
    Role,
    default_lisp_package_func,
    lisp_name,
    nested_lisp_name,
    enum_constant_name,
    schema_name,
)
from cl_protogen.template import fill

logger = logging.getLogger(__name__)


def _join(scope: str, name: str) -> str:
    return scope + "." + name if scope else name


class Registry:
    """A registry for cl_protogen types.

    A registry holds references to :class:`File`, :class:`Service`,
    :class:`Enum` and :class:`Message` objects by their fully qualified proto
    names. Every file of a request is registered before any reference is
    resolved (see :meth:`Options.run`).
    """

    def __init__(self):
        """Create a new, empty registry."""
        self._services_by_name: Dict[str, "Service"] = {}
        self._messages_by_name: Dict[str, "Message"] = {}
        self._enums_by_name: Dict[str, "Enum"] = {}
        self._files_by_name: Dict[str, "File"] = {}

    def _register_file(self, file: "File"):
        self._files_by_name[file.proto.name] = file

    def _register_service(self, service: "Service"):
        self._services_by_name[service.full_name] = service

    def _register_message(self, message: "Message"):
        self._messages_by_name[message.full_name] = message

    def _register_enum(self, enum: "Enum"):
        self._enums_by_name[enum.full_name] = enum

    def file_by_name(self, name: str) -> Optional["File"]:
        """Get a file by its full name.

        Arguments
        ---------
        name : str
            The full (proto) name of the file to retrieve.

        Returns
        -------
        file: File or None
            The file or `None` if no file with that name has been registered.
        """
        return self._files_by_name.get(name)

    def service_by_name(self, name: str) -> Optional["Service"]:
        """Get a service by its full name."""
        return self._services_by_name.get(name)

    def message_by_name(self, name: str) -> Optional["Message"]:
        """Get a message by its full name.

        Arguments
        ---------
        name : str
            The full (proto) name of the message to retrieve.

        Returns
        -------
        message: Message or None
            The message or `None` if no message with that name has been registered.
        """
        return self._messages_by_name.get(name)

    def enum_by_name(self, name: str) -> Optional["Enum"]:
        """Get an enum by its full name."""
        return self._enums_by_name.get(name)

    def resolve_message_type(self, scope: str, name: str) -> Optional["Message"]:
        """Resolve a message name as seen from ``scope``.

        Fully qualified names (with a leading dot) are looked up directly.
        Relative names are searched from the innermost scope outwards, the
        way protoc resolves type names.

        Arguments
        ---------
        scope : str
            Full name of the message or package the reference is made from.
        name : str
            The referenced name, e.g. ``.acme.Hello``, ``Hello.World``.

        Returns
        -------
        Message or None
            The message or `None` if the name does not resolve.
        """
        return self._resolve(self._messages_by_name, scope, name)

    def resolve_enum_type(self, scope: str, name: str) -> Optional["Enum"]:
        """Resolve an enum name as seen from ``scope``.

        See :meth:`resolve_message_type`.
        """
        return self._resolve(self._enums_by_name, scope, name)

    @staticmethod
    def _resolve(by_name: Dict, scope: str, name: str):
        if name.startswith("."):
            return by_name.get(name[1:])
        parts = scope.split(".") if scope else []
        while True:
            candidate = _join(".".join(parts), name)
            if candidate in by_name:
                return by_name[candidate]
            if not parts:
                return None
            parts.pop()

    def all_files(self) -> List["File"]:
        """Get all registered files."""
        return list(self._files_by_name.values())


class LispPackage:
    """A Lisp package.

    Every generated symbol is interned in a Lisp package. Symbols of the
    package a :class:`GeneratedFile` is written in are printed without a
    package prefix; symbols of other packages are printed fully qualified and
    the package is recorded, so the generated file can make sure it exists
    before the symbol is read.

    External packages (``CL``, ``PROTO``) belong to the Lisp runtime; their
    symbols are printed with a single colon and the packages are never
    declared by generated code.

    Attributes
    ----------
    name : str
        Name of the package, e.g. ``CL-PROTOBUFS.TUTORIAL``. The empty string
        stands for ``COMMON-LISP-USER``, the package of files without a proto
        package.
    external : bool
        Whether the package belongs to the Lisp runtime.
    """

    def __init__(self, name: str, external: bool = False):
        self.name = name
        self.external = external

    def symbol(self, name: str) -> "LispSymbol":
        """Create a :class:`LispSymbol` named ``name`` in this package."""
        return LispSymbol(self, name)

    @property
    def qualifier(self) -> str:
        """The package prefix printed in front of qualified symbols."""
        return self.name.lower() if self.name else "cl-user"

    def __eq__(self, o: object) -> bool:
        if type(o) != LispPackage:
            return NotImplemented
        return self.name == o.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:
        return f"LispPackage({self.name!r})"


CL = LispPackage("CL", external=True)
PROTO = LispPackage("PROTO", external=True)
FLOAT_FEATURES = LispPackage("FLOAT-FEATURES", external=True)


class LispSymbol:
    """A Lisp symbol naming a generated class, enum, service or extension.

    Attributes
    ----------
    package : LispPackage
        The package the symbol is interned in.
    name : str
        Name of the symbol, e.g. ``person.phone-number``.
    """

    def __init__(self, package: LispPackage, name: str):
        self.package = package
        self.name = name

    def __eq__(self, o: object) -> bool:
        if type(o) != LispSymbol:
            return NotImplemented
        return self.package == o.package and self.name == o.name

    def __hash__(self) -> int:
        return hash((self.package, self.name))

    def __repr__(self) -> str:
        return f"LispSymbol({self.package.name!r}, {self.name!r})"


class Kind(enum.Enum):
    """Kind is an enumeration of the different value types of a field."""

    DOUBLE = 1
    FLOAT = 2
    INT64 = 3
    UINT64 = 4
    INT32 = 5
    FIXED64 = 6
    FIXED32 = 7
    BOOL = 8
    STRING = 9
    GROUP = 10
    MESSAGE = 11
    BYTES = 12
    UINT32 = 13
    ENUM = 14
    SFIXED32 = 15
    SFIXED64 = 16
    SINT32 = 17
    SINT64 = 18


class Cardinality(enum.Enum):
    """Cardinality specifies whether a field is optional, required or repeated."""

    OPTIONAL = 1
    REQUIRED = 2
    REPEATED = 3


class EnumValue:
    """A proto enum value.

    Attributes
    ----------
    proto : google.protobuf.descriptor_pb2.EnumValueDescriptorProto
        The raw EnumValueDescriptor of the enum value.
    full_name : str
        Full proto name of the enum value. Enum values live in the namespace
        of their enum's parent: a value ``MOBILE`` of the enum
        ``tutorial.PhoneType`` has the full name ``tutorial.MOBILE``.
    lisp_keyword : str
        The keyword the value is represented with, e.g. ``:mobile``.
    lisp_constant : LispSymbol
        The constant holding the number of the value, e.g.
        ``+phone-type-mobile+``.
    number : int
        The enum number.
    parent : Enum
        The enum the enum value is declared in.
    """

    def __init__(
        self,
        proto: google.protobuf.descriptor_pb2.EnumValueDescriptorProto,
        parent: "Enum",
    ):
        self.proto = proto
        scope = parent.full_name.rpartition(".")[0]
        self.full_name = _join(scope, proto.name)
        self.lisp_keyword = ":" + lisp_name(proto.name, Role.ENUM_VALUE)
        self.lisp_constant = parent.lisp_symbol.package.symbol(
            enum_constant_name(parent.lisp_symbol.name, proto.name)
        )
        self.number = proto.number
        self.parent = parent


class Enum:
    """A proto enum.

    Attributes
    ----------
    proto : google.protobuf.descriptor_pb2.EnumDescriptorProto
        The raw EnumDescriptor of the enum.
    lisp_symbol : LispSymbol
        The symbol naming the enum type. Nested enums are named after the
        message they are declared in, e.g. ``person.phone-type``.
    full_name : str
        Full proto name of the enum.
    parent_file : File
        The File the enum is declared in.
    parent : Message or None
        For nested enums, the message the enum is declared in. ``None`` otherwise.
    values : List[EnumValue]
        Values of the enum.
    """

    def __init__(
        self,
        proto: google.protobuf.descriptor_pb2.EnumDescriptorProto,
        parent_file: "File",
        parent: Optional["Message"],
    ):
        self.proto = proto
        if parent is None:
            self.full_name = _join(parent_file.proto.package, proto.name)
            self.lisp_symbol = parent_file.lisp_package.symbol(
                lisp_name(proto.name, Role.TYPE)
            )
        else:
            self.full_name = parent.full_name + "." + proto.name
            self.lisp_symbol = parent_file.lisp_package.symbol(
                nested_lisp_name(parent.lisp_symbol.name, proto.name)
            )
        self.parent_file = parent_file
        self.parent = parent
        self.values: List[EnumValue] = [EnumValue(v, self) for v in proto.value]


def _is_map(message: "Message") -> bool:
    return message.proto.HasField("options") and message.proto.options.map_entry


class Field:
    """A proto field.

    Represents a Protobuf field declared within a Protobuf message
    definition. It is also used to describe protobuf extensions.

    Attributes
    ----------
    proto : google.protobuf.descriptor_pb2.FieldDescriptorProto
        The raw FieldDescriptor of the field.
    lisp_name : str
        Lisp name of the field, e.g. ``phone-number``.
    lisp_symbol : LispSymbol
        For extensions, the symbol naming the extension. Named after the
        message the extension is declared in for nested extensions.
    json_name : str
        JSON name of the field.
    full_name : str
        Full proto name of the field.
    parent : Message or None
        The message the field is declared in. Or ``None`` for top-level
        extensions.
    parent_file : File
        The file the field is declared in.
    oneof : OneOf or None
        The oneof in case the field is contained in a oneof. ``None`` otherwise.
    kind : Kind
        The field kind.
    cardinality : Cardinality
        Cardinality of the field.
    enum : Enum or None
        The enum type of the field in case the fields :attr:`kind` is
        :attr:`Kind.ENUM`. ``None`` otherwise.
    message : Message or None
        The message type of the field in case the fields :attr:`kind` is
        :attr:`Kind.MESSAGE` or :attr:`Kind.GROUP`. ``None`` otherwise.
    extendee : Message or None
        The extended message in case this is an extension. ``None`` otherwise.
    """

    def __init__(
        self,
        proto: google.protobuf.descriptor_pb2.FieldDescriptorProto,
        parent: Optional["Message"],
        parent_file: "File",
        oneof: Optional["OneOf"],
    ):
        self.proto = proto
        self.lisp_name = lisp_name(proto.name, Role.FIELD)
        if parent is not None:
            self.full_name = parent.full_name + "." + proto.name
            self.lisp_symbol = parent_file.lisp_package.symbol(
                parent.lisp_symbol.name + "." + self.lisp_name
            )
        else:
            # top-level-extension
            self.full_name = _join(parent_file.proto.package, proto.name)
            self.lisp_symbol = parent_file.lisp_package.symbol(self.lisp_name)
        if proto.HasField("json_name"):
            self.json_name = proto.json_name
        else:
            self.json_name = cl_protogen._case.json_name(proto.name)
        self.parent = parent
        self.parent_file = parent_file
        self.oneof = oneof
        self.kind = Kind(proto.type)
        self.cardinality = Cardinality(proto.label)
        self.message: Optional["Message"] = None
        self.enum: Optional["Enum"] = None
        self.extendee: Optional["Message"] = None

    @property
    def _scope(self) -> str:
        # Type names are resolved relative to the message the field is
        # declared in, or the package for top-level extensions.
        if self.parent is not None:
            return self.parent.full_name
        return self.parent_file.proto.package

    def is_map(self) -> bool:
        """Whether the field is a map field."""
        if self.message is None:
            return False
        return _is_map(self.message)

    def is_list(self) -> bool:
        """Whether the field is a list field.

        A list fields has a :attr:`cardinality` of ``Cardinality.REPEATED`` and
        is not a map field.
        """
        return self.cardinality == Cardinality.REPEATED and not self.is_map()

    def is_extension(self) -> bool:
        """Whether the field is an extension."""
        return self.proto.HasField("extendee")

    def map_key(self) -> Optional["Field"]:
        """Return the map key if the field is a map field.

        Returns
        -------
        Field or None
            The field of the map key if :meth:`is_map` is ``True``. ``None``
            otherwise.
        """
        if not self.is_map():
            return None
        return self.message.fields[0]

    def map_value(self) -> Optional["Field"]:
        """Return the map value if the field is a map field."""
        if not self.is_map():
            return None
        return self.message.fields[1]

    def _resolve(self, registry: Registry):
        if self.is_extension():
            self.extendee = registry.resolve_message_type(
                self._scope, self.proto.extendee
            )
            if self.extendee is None:
                raise ResolutionError(
                    file=self.parent_file.proto.name,
                    desc=self.full_name,
                    ref=self.proto.extendee,
                )

        if self.kind == Kind.ENUM:
            if not self.proto.HasField("type_name"):
                raise InvalidDescriptorError(
                    full_name=self.full_name,
                    msg="is of kind ENUM but has no `type_name` set",
                )
            self.enum = registry.resolve_enum_type(self._scope, self.proto.type_name)
            if self.enum is None:
                raise ResolutionError(
                    file=self.parent_file.proto.name,
                    desc=self.full_name,
                    ref=self.proto.type_name,
                )

        if self.kind in (Kind.MESSAGE, Kind.GROUP):
            if not self.proto.HasField("type_name"):
                raise InvalidDescriptorError(
                    full_name=self.full_name,
                    msg=f"is of kind {self.kind.name} but has no `type_name` set",
                )
            self.message = registry.resolve_message_type(
                self._scope, self.proto.type_name
            )
            if self.message is None:
                raise ResolutionError(
                    file=self.parent_file.proto.name,
                    desc=self.full_name,
                    ref=self.proto.type_name,
                )


class OneOf:
    """A proto oneof.

    Attributes
    ----------
    proto : google.protobuf.descriptor_pb2.OneofDescriptorProto
        The raw OneofDescriptor of the oneof.
    full_name : str
        Full proto name of the oneof.
    lisp_name : str
        Lisp name of the oneof.
    parent : Message
        The message the oneof is declared in.
    fields : List[Field]
        Fields that are part of the oneof.
    """

    def __init__(
        self,
        proto: google.protobuf.descriptor_pb2.OneofDescriptorProto,
        parent: "Message",
    ):
        self.proto = proto
        self.full_name = parent.full_name + "." + proto.name
        self.lisp_name = lisp_name(proto.name, Role.FIELD)
        self.parent = parent
        self.fields: List[Field] = []

    @property
    def synthetic(self) -> bool:
        """Whether protoc made up the oneof for a proto3 ``optional`` field."""
        return len(self.fields) == 1 and self.fields[0].proto.proto3_optional


Extension = Field
"""A protobuf extension.

Protobuf extensions are described using FieldDescriptors. See :class:`Field`.
"""


class Message:
    """A proto message.

    Attributes
    ----------
    proto : google.protobuf.descriptor_pb2.DescriptorProto
        The raw Descriptor of the message.
    lisp_symbol : LispSymbol
        The symbol naming the message class. Nested messages are named after
        every enclosing message, outermost first: ``person.phone-number``.
    full_name : str
        Full proto name of the message.
    parent_file : File
        The file the message is defined in.
    parent : Message or None
        The parent message in case this is a nested message. ``None``, for
        top-level messages.
    fields : List[Field]
        Message field declarations. This includes fields defined within oneofs.
    oneofs : List[OneOf]
        Oneof declarations.
    enums : List[Enum]
        Nested enum declarations.
    messages : List[Message]
        Nested message declarations, without the entries of map fields.
    extensions : List[Extension]
        Nested extension declarations.
    """

    def __init__(
        self,
        proto: google.protobuf.descriptor_pb2.DescriptorProto,
        parent_file: "File",
        parent: Optional["Message"],
    ):
        self.proto = proto
        if parent is not None:
            self.full_name = parent.full_name + "." + proto.name
            self.lisp_symbol = parent_file.lisp_package.symbol(
                nested_lisp_name(parent.lisp_symbol.name, proto.name)
            )
        else:
            self.full_name = _join(parent_file.proto.package, proto.name)
            self.lisp_symbol = parent_file.lisp_package.symbol(
                lisp_name(proto.name, Role.TYPE)
            )
        self.parent_file = parent_file
        self.parent = parent

        self.oneofs: List[OneOf] = [OneOf(o, self) for o in proto.oneof_decl]

        self.fields: List[Field] = []
        for field_proto in proto.field:
            # The `oneof_index` indicates to which oneof the field belongs.
            oneof = None
            if field_proto.HasField("oneof_index"):
                oneof = self.oneofs[field_proto.oneof_index]
            field = Field(field_proto, self, parent_file, oneof)
            if oneof is not None:
                oneof.fields.append(field)
            self.fields.append(field)

        self.messages: List[Message] = [
            Message(m, parent_file, self) for m in proto.nested_type
        ]
        self.enums: List[Enum] = [Enum(e, parent_file, self) for e in proto.enum_type]
        self.extensions: List[Extension] = [
            Extension(e, self, parent_file, None) for e in proto.extension
        ]

    def _register(self, registry: Registry):
        """Register the message and its nested messages and enums onto the registry."""
        registry._register_message(self)
        for message in self.messages:
            message._register(registry)
        for enum in self.enums:
            registry._register_enum(enum)

    def _resolve(self, registry: Registry):
        """Resolve dependencies of the message."""
        for message in self.messages:
            message._resolve(registry)
        for field in self.fields:
            field._resolve(registry)
        for extension in self.extensions:
            extension._resolve(registry)

        # No code is generated for the entries of map fields.
        self.messages = [m for m in self.messages if not _is_map(m)]


class Method:
    """A proto service method.

    Attributes
    ----------
    proto : google.protobuf.descriptor_pb2.MethodDescriptorProto
        The raw MethodDescriptor of the method.
    lisp_name : str
        Lisp name of the method. A kebab cased version of the proto name.
    full_name : str
        Full proto name of the method.
    parent : Service
        The service the method is declared in.
    input : Message
        The input message of the method.
    output : Message
        The output message of the method.
    """

    def __init__(
        self,
        proto: google.protobuf.descriptor_pb2.MethodDescriptorProto,
        parent: "Service",
    ):
        self.proto = proto
        self.lisp_name = lisp_name(proto.name, Role.METHOD)
        self.full_name = parent.full_name + "." + proto.name
        self.parent = parent
        self.input: Optional[Message] = None
        self.output: Optional[Message] = None

    @property
    def client_streaming(self) -> bool:
        return self.proto.client_streaming

    @property
    def server_streaming(self) -> bool:
        return self.proto.server_streaming

    def _resolve(self, registry: Registry):
        scope = self.parent.parent_file.proto.package
        self.input = registry.resolve_message_type(scope, self.proto.input_type)
        if self.input is None:
            raise ResolutionError(
                file=self.parent.parent_file.proto.name,
                desc=self.full_name,
                ref=self.proto.input_type,
            )
        self.output = registry.resolve_message_type(scope, self.proto.output_type)
        if self.output is None:
            raise ResolutionError(
                file=self.parent.parent_file.proto.name,
                desc=self.full_name,
                ref=self.proto.output_type,
            )


class Service:
    """A proto service.

    Attributes
    ----------
    proto : google.protobuf.descriptor_pb2.ServiceDescriptorProto
        The raw ServiceDescriptor of the service.
    lisp_symbol : LispSymbol
        The symbol naming the service.
    full_name : str
        Full proto name of the service.
    parent_file : File
        The file the Service is defined in.
    methods : List[Method]
        Service method declarations.
    """

    def __init__(
        self,
        proto: google.protobuf.descriptor_pb2.ServiceDescriptorProto,
        parent: "File",
    ):
        self.proto = proto
        self.lisp_symbol = parent.lisp_package.symbol(lisp_name(proto.name, Role.TYPE))
        self.full_name = _join(parent.proto.package, proto.name)
        self.parent_file = parent
        self.methods: List[Method] = [Method(m, self) for m in proto.method]

    def _register(self, registry: Registry):
        registry._register_service(self)

    def _resolve(self, registry: Registry):
        for method in self.methods:
            method._resolve(registry)


class File:
    """A proto file.

    Attributes
    ----------
    proto : google.protobuf.descriptor_pb2.FileDescriptorProto
        The raw FileDescriptor of the file.
    generated_filename_prefix : str
        Name of the original proto file (without ``.proto`` extension).
    schema_name : str
        Name of the Lisp schema; the lower-cased base name of the file.
    syntax : str
        ``proto2`` or ``proto3``; whatever else the descriptor declares.
        Checked by the file generator.
    lisp_package : LispPackage
        Lisp package of the file, derived from the proto package by the
        ``lisp_package_func`` of :class:`Options`.
    lisp_rpc_package : LispPackage or None
        Lisp package of the RPC stubs of the file, if the file declares
        services and has a package.
    generate : bool
        Whether Lisp code should be generated for the file.
    dependencies : List[File]
        Files imported by the file.
    enums : List[Enum]
        Top-level enum declarations.
    messages : List[Message]
        Top-level message declarations.
    services : List[Service]
        Service declarations.
    extensions : List[Extension]
        Top-level extension declarations.
    """

    def __init__(
        self,
        proto: google.protobuf.descriptor_pb2.FileDescriptorProto,
        generate: bool,
        lisp_package_func: Callable[[str, str], str],
    ):
        self.proto = proto
        if proto.name.endswith(".proto"):
            self.generated_filename_prefix = proto.name[: -len(".proto")]
        else:
            self.generated_filename_prefix = proto.name
        self.schema_name = schema_name(proto.name)
        # protoc leaves the syntax empty for proto2 files.
        self.syntax = proto.syntax or "proto2"
        self.lisp_package = LispPackage(lisp_package_func(proto.name, proto.package))
        self.lisp_rpc_package: Optional[LispPackage] = None
        if self.lisp_package.name and len(proto.service) > 0:
            self.lisp_rpc_package = LispPackage(self.lisp_package.name + "-RPC")
        self.generate = generate
        self.dependencies: List[File] = []

        self.enums: List[Enum] = [Enum(e, self, None) for e in proto.enum_type]
        self.messages: List[Message] = [
            Message(m, self, None) for m in proto.message_type
        ]
        self.services: List[Service] = [Service(s, self) for s in proto.service]
        self.extensions: List[Extension] = [
            Extension(e, None, self, None) for e in proto.extension
        ]

    def _register(self, registry: Registry):
        """Register the file, all messages, enums and services on the registry."""
        registry._register_file(self)

        for message in self.messages:
            message._register(registry)
        for enum in self.enums:
            registry._register_enum(enum)
        for service in self.services:
            service._register(registry)

    def _resolve(self, registry: Registry):
        """Resolve dependencies."""
        for dep_name in self.proto.dependency:
            dep = registry.file_by_name(dep_name)
            if dep is None:
                raise ResolutionError(self.proto.name, self.proto.name, dep_name)
            self.dependencies.append(dep)

        for message in self.messages:
            message._resolve(registry)
        for service in self.services:
            service._resolve(registry)
        for extension in self.extensions:
            extension._resolve(registry)


def _split_lines(text: str) -> List[Tuple[str, bool]]:
    """Split ``text`` into lines.

    Each line is paired with whether it starts inside a Lisp string literal,
    that is, whether the preceding newline is part of the string.
    """
    lines: List[Tuple[str, bool]] = []
    start = 0
    in_string = False
    continues_string = False
    i = 0
    while i < len(text):
        c = text[i]
        if c == "\\" and in_string:
            i += 2
            continue
        if c == '"':
            in_string = not in_string
        elif c == "\n":
            lines.append((text[start:i], continues_string))
            start = i + 1
            continues_string = in_string
        i += 1
    lines.append((text[start:], continues_string))
    return lines


_DEFPACKAGE = """\
(cl:eval-when (:compile-toplevel :load-toplevel :execute)
  (cl:unless (cl:find-package "$package_name$")
    (cl:defpackage "$package_name$" (:use))))"""


class GeneratedFile:
    """An output buffer to write generated code to.

    A generated file is a buffer. New lines can be added to the output buffer by
    calling :func:`P` or :func:`emit`.

    Additionally, the generated file keeps track of the Lisp packages the
    code it contains refers to. Every :class:`LispSymbol` printed through
    :meth:`P`, :meth:`emit` or :meth:`qualified_symbol` that is interned in a
    package other than the file's own package is printed fully qualified, and
    its package is added to the set of packages the file declares. Use
    :meth:`print_packages` to mark the position in the output buffer the
    package declarations will be printed at.

    Attributes
    ----------
    name : str
        Name of the generated file.
    """

    def __init__(self, name: str, lisp_package: LispPackage):
        self.name = name
        self._lisp_package = lisp_package
        self._buf: List[str] = []
        self._package_mark = -1
        self._packages: Set[LispPackage] = set()
        self._indent = 0

    def set_indent(self, level: int) -> int:
        """Set the indentation level.

        Set the indentation level such that consecutive calls to :func:`P` are
        indented automatically to that level.

        Arguments
        ---------
        level : int
            The new indentation level.

        Returns
        -------
        int
            The old indentation level.

        Raises
        ------
        ValueError
            If level is less than zero.
        """
        if level < 0:
            raise ValueError("indent must be greater or equal zero")
        old = self._indent
        self._indent = level
        return old

    @contextlib.contextmanager
    def indent(self, width: int = 2) -> Iterator[None]:
        """Indent the lines printed within the ``with`` block by ``width``.

        Example
        -------
        >>> g.P("(proto:define-message person")
        >>> with g.indent(2):
        ...     g.P("(name :index 1)")
        """
        reset = self.set_indent(self._indent + width)
        try:
            yield
        finally:
            self.set_indent(reset)

    def P(self, *args):
        """Add a new line to the output buffer.

        Add a new line to the output buffer containing a stringified version of
        the passed arguments. :class:`LispSymbol` arguments are printed using
        :meth:`qualified_symbol`. Multi-line arguments are indented line by
        line, except for lines continuing a Lisp string literal, which are
        printed verbatim.

        Arguments
        ---------
        *args
            Items that make up the content of the new line. All args are printed
            on the same line. There is no whitespace added between the
            individual args.
        """
        line = ""
        for arg in args:
            if type(arg) == LispSymbol:
                line += self.qualified_symbol(arg)
            else:
                line += str(arg)
        prefix = " " * self._indent
        for part, in_string in _split_lines(line):
            self._buf.append(prefix + part if part and not in_string else part)

    def emit(self, template: str, **values: Union[str, int, LispSymbol]):
        """Fill ``template`` with ``values`` and add the result to the buffer.

        See :func:`cl_protogen.template.fill` for the template syntax.
        :class:`LispSymbol` values are printed using :meth:`qualified_symbol`.
        """
        strs = {
            k: self.qualified_symbol(v) if type(v) == LispSymbol else str(v)
            for k, v in values.items()
        }
        self.P(fill(template, strs))

    def close_form(self, count: int = 1):
        """Close ``count`` open Lisp forms at the end of the last line.

        Raises
        ------
        ValueError
            If nothing has been printed yet.
        """
        for i in range(len(self._buf) - 1, -1, -1):
            if self._buf[i]:
                self._buf[i] += ")" * count
                return
        raise ValueError("no form to close")

    def qualified_symbol(self, symbol: LispSymbol) -> str:
        """Obtain the name of a symbol as seen from the generated file.

        Symbols of the file's own package are printed by name only. Symbols of
        external packages are printed with their package and a single colon.
        Symbols of any other package are printed with their package and two
        colons, and the package is added to the packages the file declares.

        Arguments
        ---------
        symbol : LispSymbol
            The symbol to obtain the qualified name for.

        Returns
        -------
        str
            The qualified symbol name.
        """
        package = symbol.package
        if package.external:
            return package.qualifier + ":" + symbol.name
        if package == self._lisp_package:
            return symbol.name
        self.declare_package(package)
        return package.qualifier + "::" + symbol.name

    def declare_package(self, package: LispPackage):
        """Add ``package`` to the packages the generated file declares."""
        if package.name and not package.external:
            self._packages.add(package)

    def packages(self) -> List[LispPackage]:
        """Return the packages the file declares, sorted by name."""
        return sorted(self._packages, key=lambda p: p.name)

    def print_packages(self):
        """Set the mark to print the package declarations in the output buffer.

        The current location in the output buffer will be used to print the
        declarations of the packages collected by :meth:`qualified_symbol` and
        :meth:`declare_package`. Only one location can be set. Consecutive
        calls will overwrite previous calls.
        """
        self._package_mark = len(self._buf)

    def content(self) -> str:
        """Return the content of the generated file."""
        if self._package_mark > -1:
            declarations: List[str] = []
            for package in self.packages():
                declarations.append("")
                declarations.extend(
                    fill(_DEFPACKAGE, {"package_name": package.name}).split("\n")
                )
            lines = (
                self._buf[: self._package_mark]
                + declarations
                + self._buf[self._package_mark :]
            )
        else:
            lines = self._buf
        return "\n".join(lines) + "\n"

    def _proto(self) -> google.protobuf.compiler.plugin_pb2.CodeGeneratorResponse.File:
        return google.protobuf.compiler.plugin_pb2.CodeGeneratorResponse.File(
            name=self.name,
            content=self.content(),
        )


class Plugin:
    """An invocation of a protoc plugin.

    Provides access to the resolved ``cl_protogen`` classes as parsed from the
    CodeGeneratorRequest read from protoc and is used to create a
    CodeGeneratorResponse that is returned back to protoc.
    To add a new generated file to the response, use :meth:`new_generated_file`.

    Attributes
    ----------
    parameter : Dict[str, str]
        Parameter passed to the plugin using ``{plugin name}_opt=<key>=<value>``
        or ``<plugin>_out=<key>=<value>`` command line flags.
    config : Config
        The validated parameters.
    files_to_generate : List[File]
        Set of files to code generation is request for. These are the files
        explicitly passed to protoc as command line arguments.
    """

    def __init__(
        self,
        parameter: Dict[str, str],
        files_to_generate: List[File],
        config: Optional[Config] = None,
    ):
        self.parameter = parameter
        self.files_to_generate = files_to_generate
        self.config = config if config is not None else Config()

        self._error: Optional[str] = None
        self._generated_files: List[GeneratedFile] = []

    def _response(self) -> google.protobuf.compiler.plugin_pb2.CodeGeneratorResponse:
        response = google.protobuf.compiler.plugin_pb2.CodeGeneratorResponse()
        response.supported_features = (
            google.protobuf.compiler.plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL
        )
        if self._error is not None:
            response.error = self._error
            return response
        for f in self._generated_files:
            response.file.append(f._proto())
        return response

    def new_generated_file(self, name: str, lisp_package: LispPackage) -> GeneratedFile:
        """Create a new generated file.

        The generated file will be added to the output of the plugin.

        Arguments
        ---------
        name : str
            Filename of the generated file.
        lisp_package : LispPackage
            Lisp package the code of the generated file is read in. This is
            used to decide whether to print the fully qualified name or the
            simple name of a symbol. See :class:`GeneratedFile`.

        Returns
        -------
        GeneratedFile
            The new generated file.
        """
        g = GeneratedFile(name, lisp_package)
        self._generated_files.append(g)
        return g

    def error(self, msg: str):
        """Record an error.

        The error will be reported back to protoc. No output will be produced
        in case of an error. Will act as a no-op for consecutive calls; only
        the first error is reported back.

        Arguments
        ---------
        msg : str
            Error message to report back to protoc. This will appear on the
            command line when the error is displayed.
        """
        if self._error is None:
            self._error = msg


def _parse_parameter(raw: str) -> Dict[str, str]:
    # Parameters are given as flags to protoc:
    #
    #   --plugin_opt=key1=value1
    #   --plugin_opt=key2=value2,key3=value3
    #   --plugin_out=key4:./path
    #
    # All `plugin_opt`s are joined with a "," in the CodeGeneratorRequest.
    # Follow the convention of parameter pairs separated by commas in the form
    # {k}={v}. For {k} without value, write an empty string. For {k}={v}={v2}
    # write {k} as key and {v}={v2} as value.
    parameter: Dict[str, str] = {}
    for param in raw.split(","):
        if param == "":
            continue
        splits = param.split("=", 1)
        if len(splits) == 1:
            k, v = splits[0], ""
        else:
            k, v = splits
        parameter[k] = v
    return parameter


class Options:
    """Options for resolving a raw CodeGeneratorRequest to ``cl_protogen`` classes.

    In the resolution process, the raw FileDescriptors, Descriptors,
    ServiceDescriptors etc. that are contained in the CodeGeneratorRequest
    provided by protoc are turned into their corresponding ``cl_protogen``
    classes (:class:`File`, :class:`Message`, :class:`Service`).

    Use :meth:`run` to run a code generation function.
    """

    def __init__(
        self,
        *,
        lisp_package_func: Optional[Callable[[str, str], str]] = None,
        input: Optional[BinaryIO] = None,
        output: Optional[BinaryIO] = None,
    ):
        """Create options for the resolution process.

        Arguments
        ---------
        lisp_package_func : Callable[[str, str], str], optional
            Defines how to derive the :class:`LispPackage` of a :class:`File`
            from its filename and proto package. The symbols of the messages,
            enums and services of a file are interned in its package.
            Defaults to :func:`cl_protogen.names.default_lisp_package_func`
            with the ``package_prefix`` plugin parameter.
        input : BinaryIO, optional
            The input stream to read the CodeGeneratorRequest from. Defaults
            to :attr:`sys.stdin.buffer`.
        output : BinaryIO, optional
            The output stream to write the CodeGeneratorResponse to.
            Defaults to :attr:`sys.stdout.buffer`.
        """
        self._input = input if input is not None else sys.stdin.buffer
        self._output = output if output is not None else sys.stdout.buffer
        self._lisp_package_func = lisp_package_func

    def run(self, f: Callable[[Plugin], None]):
        """Start resolution process and run ``f`` with the :class:`Plugin` containing the resolved classes.

        run waits for protoc to write the CodeGeneratorRequest to
        :attr:`input`, resolves the raw FileDescriptors, Descriptors,
        ServiceDescriptors etc. contained in it to their corresponding
        ``cl_protogen`` classes and creates a new :class:`Plugin` with the
        resolved classes. ``f`` is then called with the :class:`Plugin` as
        argument. Once ``f`` returns, the CodeGeneratorResponse is collected
        from the :class:`Plugin` and written to :attr:`output`.

        A :class:`GenerationError` raised while resolving or by ``f`` is
        reported back to protoc as the error of the response; no file is
        generated in that case.

        Arguments
        ---------
        f : Callable[[Plugin], None]
            Function to run with the Plugin containing the resolved classes.
        """
        req = google.protobuf.compiler.plugin_pb2.CodeGeneratorRequest.FromString(
            self._input.read()
        )
        plugin = Plugin(_parse_parameter(req.parameter), [])
        try:
            plugin.config = Config.from_parameter(plugin.parameter)
            logging.getLogger(__name__).setLevel(plugin.config.log_level)
            plugin.files_to_generate = self._resolve(req, plugin.config)
            f(plugin)
        except GenerationError as e:
            logger.error("%s", e)
            plugin.error(str(e))

        resp = plugin._response()
        self._output.write(resp.SerializeToString())

    def _resolve(
        self,
        req: google.protobuf.compiler.plugin_pb2.CodeGeneratorRequest,
        config: Config,
    ) -> List[File]:
        lisp_package_func = self._lisp_package_func
        if lisp_package_func is None:
            lisp_package_func = functools.partial(
                default_lisp_package_func, prefix=config.package_prefix
            )

        # Register every file before resolving any, so that references
        # resolve regardless of the order of the files in the request.
        registry = Registry()
        files: List[File] = []
        for proto in req.proto_file:
            file = File(proto, proto.name in req.file_to_generate, lisp_package_func)
            file._register(registry)
            files.append(file)
        for file in files:
            logger.debug("resolving %s", file.proto.name)
            file._resolve(registry)
        return [file for file in files if file.generate]
