"""Helpers to test protoc plugins without running protoc.

:func:`run_plugin` feeds a CodeGeneratorRequest built from raw
FileDescriptorProtos to :meth:`cl_protogen.Options.run` in-process and
returns the CodeGeneratorResponse.
"""

import io
from typing import Callable, Dict, List, Optional, Tuple

import google.protobuf.descriptor_pb2
import google.protobuf.compiler.plugin_pb2

import cl_protogen
import cl_protogen.files


class Response:
    """A CodeGeneratorResponse returned by a plugin.

    Attributes
    ----------
    proto : google.protobuf.compiler.plugin_pb2.CodeGeneratorResponse
        The raw response.
    """

    def __init__(
        self, proto: google.protobuf.compiler.plugin_pb2.CodeGeneratorResponse
    ):
        self.proto = proto

    @property
    def file(self):
        """The generated files of the response."""
        return self.proto.file

    def file_content(self, name: str) -> Tuple[str, bool]:
        """Get the content of the generated file ``name``.

        Returns
        -------
        Tuple[str, bool]
            The content and ``True``, or an empty string and ``False`` if the
            response contains no such file.
        """
        for f in self.proto.file:
            if f.name == name:
                return f.content, True
        return "", False


def run_plugin(
    proto_files: List[google.protobuf.descriptor_pb2.FileDescriptorProto],
    files_to_generate: Optional[List[str]] = None,
    generate: Callable[[cl_protogen.Plugin], None] = cl_protogen.files.generate,
    parameter: Optional[Dict[str, str]] = None,
    lisp_package_func: Optional[Callable[[str, str], str]] = None,
) -> Response:
    """Run a generate function against a set of proto files.

    Arguments
    ---------
    proto_files : List[FileDescriptorProto]
        Every file of the request, including the imported ones.
    files_to_generate : List[str], optional
        Names of the files to generate code for. Defaults to all files.
    generate : Callable[[Plugin], None], optional
        The generate function. Defaults to :func:`cl_protogen.files.generate`.
    parameter : Dict[str, str], optional
        Plugin parameters.
    lisp_package_func : Callable[[str, str], str], optional
        See :class:`cl_protogen.Options`.

    Returns
    -------
    Response
        The response of the plugin.
    """
    if files_to_generate is None:
        files_to_generate = [f.name for f in proto_files]
    params = []
    for k, v in (parameter or {}).items():
        params.append(f"{k}={v}" if v else k)
    req = google.protobuf.compiler.plugin_pb2.CodeGeneratorRequest(
        file_to_generate=files_to_generate,
        parameter=",".join(params),
        proto_file=proto_files,
    )
    output = io.BytesIO()
    opts = cl_protogen.Options(
        lisp_package_func=lisp_package_func,
        input=io.BytesIO(req.SerializeToString()),
        output=output,
    )
    opts.run(generate)
    return Response(
        google.protobuf.compiler.plugin_pb2.CodeGeneratorResponse.FromString(
            output.getvalue()
        )
    )
