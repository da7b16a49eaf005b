"""Generation of ``proto:define-enum`` forms."""

from typing import List

from cl_protogen import Enum, GeneratedFile
from cl_protogen.errors import InvalidDescriptorError
from cl_protogen.names import SymbolScope
from cl_protogen.template import lisp_string


class EnumGenerator:
    """Generates the declaration of one enum.

    The enum symbol and the constants of its values are claimed in
    ``type_scope``, the value keywords in a scope of the enum's own.
    """

    def __init__(self, enum: Enum, type_scope: SymbolScope):
        self.enum = enum
        type_scope.claim(enum.lisp_symbol.name, enum.full_name)
        value_scope = SymbolScope(enum.full_name)
        for value in enum.values:
            value_scope.claim(value.lisp_keyword, value.full_name)
            type_scope.claim(value.lisp_constant.name, value.full_name)

        if enum.parent_file.syntax == "proto3":
            if not enum.values or enum.values[0].number != 0:
                raise InvalidDescriptorError(
                    enum.full_name, "the first value of a proto3 enum must be zero"
                )

    def generate(self, g: GeneratedFile):
        g.emit("(proto:define-enum $name$", name=self.enum.lisp_symbol)
        g.emit("    (:name $proto_name$)", proto_name=lisp_string(self.enum.proto.name))
        with g.indent(2):
            for value in self.enum.values:
                g.P("(", value.lisp_keyword, " :index ", value.number, ")")
        g.close_form()

    def add_exports(self, exports: List[str]):
        exports.append(self.enum.lisp_symbol.name)
        for value in self.enum.values:
            exports.append(value.lisp_constant.name)
