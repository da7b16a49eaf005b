"""Generation of ``proto:define-service`` forms."""

import logging
from typing import List

from cl_protogen import GeneratedFile, Method, Service
from cl_protogen.names import SymbolScope, rpc_names
from cl_protogen.template import lisp_string

logger = logging.getLogger(__name__)


def streaming(method: Method) -> str:
    """Name the streaming cardinality of a method.

    Returns one of ``unary``, ``client-streaming``, ``server-streaming`` and
    ``bidirectional``.
    """
    if method.client_streaming and method.server_streaming:
        return "bidirectional"
    if method.client_streaming:
        return "client-streaming"
    if method.server_streaming:
        return "server-streaming"
    return "unary"


class ServiceGenerator:
    """Generates the declaration of one service.

    The service symbol is exported from the file's package. The RPC stubs of
    its methods are exported from the file's RPC package (see
    :meth:`add_rpc_exports`), so they can not clash with the data types of
    the file.
    """

    def __init__(self, service: Service, type_scope: SymbolScope):
        self.service = service
        type_scope.claim(service.lisp_symbol.name, service.full_name)
        method_scope = SymbolScope(service.full_name)
        for method in service.methods:
            method_scope.claim(method.lisp_name, method.full_name)

    def generate(self, g: GeneratedFile):
        g.emit("(proto:define-service $name$", name=self.service.lisp_symbol)
        g.emit("    (:name $proto_name$)", proto_name=lisp_string(self.service.proto.name))
        with g.indent(2):
            for method in self.service.methods:
                self._generate_method(g, method)
        g.close_form()

    def _generate_method(self, g: GeneratedFile, method: Method):
        logger.debug("%s is %s", method.full_name, streaming(method))
        g.P("(", method.lisp_name)
        g.emit(" ($input$ => $output$)", input=method.input.lisp_symbol, output=method.output.lisp_symbol)
        g.emit(" :name $proto_name$", proto_name=lisp_string(method.proto.name))
        if method.client_streaming:
            g.P(" :client-streaming cl:t")
        if method.server_streaming:
            g.P(" :server-streaming cl:t")
        g.close_form()

    def add_exports(self, exports: List[str]):
        exports.append(self.service.lisp_symbol.name)

    def add_rpc_exports(self, rpc_exports: List[str]):
        for method in self.service.methods:
            rpc_exports.extend(rpc_names(method.lisp_name))
