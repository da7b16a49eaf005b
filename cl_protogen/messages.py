"""Generation of ``proto:define-message`` and ``proto:define-extend`` forms."""

import logging
from typing import List, Set

from cl_protogen import Cardinality, Extension, Field, GeneratedFile, Kind, Message
from cl_protogen.enums import EnumGenerator
from cl_protogen.names import SymbolScope
from cl_protogen.resolver import (
    default_value,
    kind_keyword,
    resolve_field_type,
    resolve_map_type,
)
from cl_protogen.template import lisp_string, plist

logger = logging.getLogger(__name__)


def _label(field: Field) -> str:
    if field.cardinality == Cardinality.REQUIRED:
        return "(:required)"
    if field.cardinality == Cardinality.REPEATED:
        return "(:repeated :list)"
    # proto3 scalars without `optional` have no presence.
    if (
        field.parent_file.syntax == "proto3"
        and not field.proto.proto3_optional
        and field.oneof is None
        and field.kind not in (Kind.MESSAGE, Kind.GROUP)
    ):
        return "(:singular)"
    return "(:optional)"


def generate_field(g: GeneratedFile, field: Field, name: str):
    """Print the declaration of ``field`` under the Lisp name ``name``."""
    file = field.parent_file
    if field.is_map():
        map_type = resolve_map_type(field, file)
        g.P("(proto:define-map ", name)
        g.P(
            " ",
            plist(
                [
                    (":key-type", g.qualified_symbol(map_type.key.symbol)),
                    (":value-type", g.qualified_symbol(map_type.value.symbol)),
                    (":val-kind", kind_keyword(field.map_value())),
                    (":json-name", lisp_string(field.json_name)),
                    (":index", field.proto.number),
                ]
            ),
            ")",
        )
        return

    field_type = resolve_field_type(field, file)
    if field_type.requires_import:
        logger.debug(
            "%s refers to %s of package %r",
            field.full_name,
            field_type.symbol.name,
            field_type.origin.name,
        )
    props = [
        (":index", field.proto.number),
        (":type", g.qualified_symbol(field_type.symbol)),
        (":kind", kind_keyword(field)),
        (":label", _label(field)),
        (":json-name", lisp_string(field.json_name)),
    ]
    options = field.proto.options
    if options.HasField("packed"):
        props.append((":packed", "cl:t" if options.packed else "cl:nil"))
    if options.lazy:
        props.append((":lazy", "cl:t"))
    default = default_value(field)
    if default is not None:
        props.append((":default", default))
    g.P("(", name)
    g.P(" ", plist(props), ")")


class ExtensionGenerator:
    """Generates the declaration of one extension.

    The extension is named after its field; extensions nested in a message
    are prefixed with the message symbol.
    """

    def __init__(self, extension: Extension, type_scope: SymbolScope):
        self.extension = extension
        type_scope.claim(extension.lisp_symbol.name, extension.full_name)

    def generate(self, g: GeneratedFile):
        g.emit("(proto:define-extend $extendee$", extendee=self.extension.extendee.lisp_symbol)
        g.P("    ()")
        with g.indent(2):
            generate_field(g, self.extension, self.extension.lisp_symbol.name)
        g.close_form()

    def add_exports(self, exports: List[str]):
        exports.append(self.extension.lisp_symbol.name)


class MessageGenerator:
    """Generates the declaration of one message and its nested types.

    Nested enums and messages are declared inside the message form, before
    its fields. The symbols of the message and every nested declaration are
    claimed in ``type_scope``; field and oneof names are claimed in a scope
    of the message's own.
    """

    def __init__(self, message: Message, type_scope: SymbolScope):
        self.message = message
        type_scope.claim(message.lisp_symbol.name, message.full_name)
        field_scope = SymbolScope(message.full_name)
        for field in message.fields:
            field_scope.claim(field.lisp_name, field.full_name)
        for oneof in message.oneofs:
            if not oneof.synthetic:
                field_scope.claim(oneof.lisp_name, oneof.full_name)

        self.enums = [EnumGenerator(e, type_scope) for e in message.enums]
        self.messages = [MessageGenerator(m, type_scope) for m in message.messages]
        self.extensions = [
            ExtensionGenerator(e, type_scope) for e in message.extensions
        ]

    def generate(self, g: GeneratedFile):
        message = self.message
        g.emit("(proto:define-message $name$", name=message.lisp_symbol)
        g.emit("    (:name $proto_name$)", proto_name=lisp_string(message.proto.name))
        with g.indent(2):
            if self.enums:
                g.P(";; Nested enums.")
                for e in self.enums:
                    e.generate(g)
            if self.messages:
                g.P(";; Nested messages.")
                for m in self.messages:
                    m.generate(g)
            if message.fields:
                g.P(";; Fields.")
                self._generate_fields(g)
            if len(message.proto.extension_range) > 0:
                g.P(";; Extension ranges.")
                for r in message.proto.extension_range:
                    # Descriptor ranges are end-exclusive.
                    g.P("(proto:define-extension ", r.start, " ", r.end - 1, ")")
            if self.extensions:
                g.P(";; Extensions.")
                for x in self.extensions:
                    x.generate(g)
        g.close_form()

    def _generate_fields(self, g: GeneratedFile):
        done: Set[int] = set()
        for field in self.message.fields:
            oneof = field.oneof
            if oneof is None or oneof.synthetic:
                generate_field(g, field, field.lisp_name)
                continue
            # A oneof is declared at the position of its first field.
            if id(oneof) in done:
                continue
            done.add(id(oneof))
            g.P("(proto:define-oneof ", oneof.lisp_name)
            g.emit("    (:name $proto_name$)", proto_name=lisp_string(oneof.proto.name))
            with g.indent(2):
                for member in oneof.fields:
                    generate_field(g, member, member.lisp_name)
            g.close_form()

    def add_exports(self, exports: List[str]):
        exports.append(self.message.lisp_symbol.name)
        for e in self.enums:
            e.add_exports(exports)
        for m in self.messages:
            m.add_exports(exports)
        for x in self.extensions:
            x.add_exports(exports)
