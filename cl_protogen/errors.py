"""Errors raised while resolving descriptors and generating Lisp code.

Every error is a :class:`GenerationError`. :meth:`cl_protogen.Options.run`
reports a :class:`GenerationError` back to protoc instead of writing any
generated file; there is no partial output.
"""


class GenerationError(Exception):
    """Base class of all errors reported back to protoc."""


class ResolutionError(GenerationError):
    """Error raised when a type, enum or file name can not be resolved.

    This error is raised if a reference to a message, enum or file could not
    be resolved. References to messages and enums might be declared in
    MethodDescriptors or FieldDescriptors, references to files in the
    ``dependency`` list of a FileDescriptor.

    Attributes
    ----------
    file : str
        The proto file that contains the descriptor that refers to a type that
        could not be resolved.
    desc : str
        The full name of the descriptor that holds the reference.
    ref : str
        The type, enum or file reference that can not be resolved.
    """

    def __init__(self, file: str, desc: str, ref: str):
        msg = f'{file}: Failed to resolve "{ref}" from "{desc}".'
        super().__init__(msg)
        self.file = file
        self.desc = desc
        self.ref = ref


class InvalidDescriptorError(GenerationError):
    """Error raised when a descriptor is invalid.

    This error is raised if a descriptor is considered invalid. A descriptor
    might be considered invalid for various reasons. For example:
    * a FieldDescriptor may be of TYPE_ENUM but not declare a type_name
    * a FieldDescriptor may be of TYPE_MESSAGE but not declare a type_name
    * a proto3 enum may not start with a zero value
    """

    def __init__(self, full_name: str, msg: str):
        super().__init__(f"invalid descriptor error ({full_name}): {msg}")
        self.full_name = full_name


class UnknownSyntaxError(InvalidDescriptorError):
    """Error raised for a file with a syntax other than proto2 or proto3."""

    def __init__(self, file: str, syntax: str):
        super().__init__(file, f'unknown syntax "{syntax}"')
        self.syntax = syntax


class IdentifierCollisionError(GenerationError):
    """Error raised when two schema symbols map to the same Lisp identifier.

    Attributes
    ----------
    scope : str
        Name of the scope both symbols were declared in.
    identifier : str
        The Lisp identifier both symbols map to.
    first : str
        The schema symbol that claimed the identifier first.
    second : str
        The schema symbol that claimed the identifier second.
    """

    def __init__(self, scope: str, identifier: str, first: str, second: str):
        super().__init__(
            f'{scope}: "{first}" and "{second}" both map to the Lisp '
            f'identifier "{identifier}"'
        )
        self.scope = scope
        self.identifier = identifier
        self.first = first
        self.second = second


class InvalidParameterError(GenerationError):
    """Error raised for an unknown or malformed plugin parameter."""

    def __init__(self, key: str, msg: str):
        super().__init__(f"invalid parameter {key!r}: {msg}")
        self.key = key


class TemplateError(GenerationError):
    """Error raised when a template references an unknown placeholder."""
