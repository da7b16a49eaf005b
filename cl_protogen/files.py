"""Generation of one Lisp file per proto file.

A generated file declares the Lisp packages it needs, defines the schema of
the proto file, declares its enums, messages, extensions and services, and
exports their symbols:

.. code-block:: lisp

    (cl:in-package "CL-PROTOBUFS.TUTORIAL")

    (cl:eval-when (:compile-toplevel :load-toplevel :execute)
      (proto:define-schema 'addressbook
          :syntax :proto3
          :package "tutorial"))

    ;; Top-Level messages.
    (proto:define-message person
        (:name "Person")
      ...)

    (cl:export '(addressbook
                 person))
"""

import logging
from typing import Dict, List, Optional, Sequence

from cl_protogen import File, GeneratedFile, LispPackage, Plugin
from cl_protogen.config import Config
from cl_protogen.enums import EnumGenerator
from cl_protogen.errors import UnknownSyntaxError
from cl_protogen.messages import ExtensionGenerator, MessageGenerator
from cl_protogen.names import SymbolScope
from cl_protogen.services import ServiceGenerator
from cl_protogen.template import lisp_list, lisp_string

logger = logging.getLogger(__name__)

SYNTAXES = ("proto2", "proto3")

_HEADER = """\
;;; $file_name$
;;;
;;; Generated by the protocol buffer compiler. DO NOT EDIT!"""

_DECLAIM = (
    "#+sbcl (cl:declaim (cl:optimize (cl:debug 0) (sb-c:store-coverage-data 0)))"
)

_REGISTRATION = """\
(cl:eval-when (:compile-toplevel :load-toplevel :execute)
  (cl:setf (cl:gethash #P$file_name$ proto-impl::*all-schemas*)
           (proto:find-schema '$schema_name$)))"""

_EXPORT = "(cl:export '"


def _scope_name(package: LispPackage) -> str:
    return package.name or "COMMON-LISP-USER"


def _unique(symbols: List[str]) -> List[str]:
    seen = set()
    out = []
    for s in symbols:
        if s not in seen:
            seen.add(s)
            out.append(s)
    return out


class FileGenerator:
    """Generates the Lisp code of one proto file.

    All entity generators of the file are created up front, so that invalid
    descriptors and clashing Lisp identifiers are reported before anything is
    printed.

    Arguments
    ---------
    file : File
        The file to generate.
    config : Config
        The plugin configuration.
    type_scope : SymbolScope, optional
        The scope the symbols of the file's types, enum constants, extensions
        and services are claimed in. Files sharing a Lisp package must share
        this scope. Defaults to a scope of the file's own.

    Raises
    ------
    UnknownSyntaxError
        If the file is neither proto2 nor proto3.
    IdentifierCollisionError
        If two declarations map to the same Lisp identifier.
    """

    def __init__(
        self, file: File, config: Config, type_scope: Optional[SymbolScope] = None
    ):
        if file.syntax not in SYNTAXES:
            raise UnknownSyntaxError(file.proto.name, file.proto.syntax)
        self.file = file
        self.config = config

        if type_scope is None:
            type_scope = SymbolScope(_scope_name(file.lisp_package))
        self.enums = [EnumGenerator(e, type_scope) for e in file.enums]
        self.messages = [MessageGenerator(m, type_scope) for m in file.messages]
        self.extensions = [ExtensionGenerator(e, type_scope) for e in file.extensions]
        self.services = [ServiceGenerator(s, type_scope) for s in file.services]

    @property
    def filename(self) -> str:
        """Name of the generated file."""
        return self.file.generated_filename_prefix + self.config.file_suffix

    def generate(self, g: GeneratedFile):
        f = self.file
        logger.debug("generating %s for %s", g.name, f.proto.name)
        g.emit(_HEADER, file_name=g.name)
        g.P()
        # Just in case multiple schemas are written to the same file.
        g.P("(cl:in-package #:common-lisp-user)")
        if self.config.sbcl_declaim:
            g.P()
            g.P(_DECLAIM)

        g.declare_package(f.lisp_package)
        if f.lisp_rpc_package is not None:
            g.declare_package(f.lisp_rpc_package)
        g.print_packages()

        if f.lisp_package.name:
            g.P()
            g.emit('(cl:in-package "$package_name$")', package_name=f.lisp_package.name)

        self._generate_schema(g)

        exports: List[str] = [f.schema_name]
        rpc_exports: List[str] = []
        self._generate_block(g, ";; Top-Level enums.", self.enums, exports)
        self._generate_block(g, ";; Top-Level messages.", self.messages, exports)
        self._generate_block(g, ";; Top-Level extensions.", self.extensions, exports)
        self._generate_block(g, ";; Services.", self.services, exports)
        for s in self.services:
            s.add_rpc_exports(rpc_exports)

        g.P()
        g.emit(
            _REGISTRATION,
            file_name=lisp_string(f.proto.name),
            schema_name=f.schema_name,
        )

        # Without a package of its own the file is read in CL-USER, whose
        # symbols are not exported.
        if not f.lisp_package.name:
            return
        self._generate_export(g, exports)
        if f.lisp_rpc_package is not None and rpc_exports:
            g.P()
            g.emit(
                '(cl:in-package "$package_name$")',
                package_name=f.lisp_rpc_package.name,
            )
            self._generate_export(g, rpc_exports)

    def _generate_schema(self, g: GeneratedFile):
        f = self.file
        g.P()
        g.P("(cl:eval-when (:compile-toplevel :load-toplevel :execute)")
        with g.indent(2):
            g.emit("(proto:define-schema '$schema_name$", schema_name=f.schema_name)
            with g.indent(4):
                g.emit(":syntax :$syntax$", syntax=f.syntax)
                if f.proto.package:
                    g.emit(":package $package$", package=lisp_string(f.proto.package))
                if len(f.proto.dependency) > 0:
                    imports = [lisp_string(d) for d in f.proto.dependency]
                    g.P(":import '", lisp_list(imports, len(":import '(")))
        g.close_form(2)

    @staticmethod
    def _generate_block(
        g: GeneratedFile, comment: str, generators: Sequence, exports: List[str]
    ):
        if not generators:
            return
        g.P()
        g.P(comment)
        for i, generator in enumerate(generators):
            if i > 0:
                g.P()
            generator.generate(g)
            generator.add_exports(exports)

    @staticmethod
    def _generate_export(g: GeneratedFile, symbols: List[str]):
        symbols = _unique(symbols)
        if not symbols:
            return
        g.P()
        g.P(_EXPORT, lisp_list(symbols, len(_EXPORT) + 1), ")")


def generate(gen: Plugin):
    """Generate a Lisp file for every file to generate of ``gen``.

    Files of the same proto package share a Lisp package, so their symbols
    are claimed in one scope per package. Every file is checked before any
    output is produced.
    """
    type_scopes: Dict[str, SymbolScope] = {}
    schema_scopes: Dict[str, SymbolScope] = {}
    generators = []
    for f in gen.files_to_generate:
        package = f.lisp_package.name
        if package not in type_scopes:
            type_scopes[package] = SymbolScope(_scope_name(f.lisp_package))
            schema_scopes[package] = SymbolScope(_scope_name(f.lisp_package))
        schema_scopes[package].claim(f.schema_name, f.proto.name)
        generators.append(FileGenerator(f, gen.config, type_scopes[package]))

    for generator in generators:
        g = gen.new_generated_file(generator.filename, generator.file.lisp_package)
        generator.generate(g)
