"""Plugin configuration.

The plugin is configured with protoc plugin parameters:

.. code-block:: shell

    protoc --cl-pb_out=out --cl-pb_opt=package_prefix=,file_suffix=.lsp foo.proto

The parameters are parsed into a ``Dict[str, str]`` by
:meth:`cl_protogen.Options.run` and validated by :meth:`Config.from_parameter`.
"""

import logging
from typing import Dict

from cl_protogen.errors import InvalidParameterError
from cl_protogen.names import DEFAULT_PACKAGE_PREFIX

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_BOOLEANS = {"true": True, "1": True, "false": False, "0": False}


class Config:
    """Validated plugin configuration.

    Attributes
    ----------
    package_prefix : str
        Prefix of the Lisp package names derived from proto packages. May be
        empty.
    file_suffix : str
        Suffix of the generated files; replaces the ``.proto`` extension.
    sbcl_declaim : bool
        Whether to emit the ``#+sbcl`` optimize declamation.
    log_level : int
        Level of the plugin's logging to stderr.
    """

    def __init__(
        self,
        package_prefix: str = DEFAULT_PACKAGE_PREFIX,
        file_suffix: str = ".lisp",
        sbcl_declaim: bool = True,
        log_level: int = logging.WARNING,
    ):
        self.package_prefix = package_prefix
        self.file_suffix = file_suffix
        self.sbcl_declaim = sbcl_declaim
        self.log_level = log_level

    @classmethod
    def from_parameter(cls, parameter: Dict[str, str]) -> "Config":
        """Create a configuration from plugin parameters.

        Raises
        ------
        InvalidParameterError
            If a parameter is unknown or its value is malformed.
        """
        config = cls()
        for key, value in parameter.items():
            if key == "package_prefix":
                config.package_prefix = value
            elif key == "file_suffix":
                if not value:
                    raise InvalidParameterError(key, "must not be empty")
                config.file_suffix = value
            elif key == "sbcl_declaim":
                if value.lower() not in _BOOLEANS:
                    raise InvalidParameterError(key, f"not a boolean: {value!r}")
                config.sbcl_declaim = _BOOLEANS[value.lower()]
            elif key == "log_level":
                if value.lower() not in _LOG_LEVELS:
                    raise InvalidParameterError(
                        key, f"must be one of {', '.join(_LOG_LEVELS)}"
                    )
                config.log_level = _LOG_LEVELS[value.lower()]
            else:
                raise InvalidParameterError(key, "unknown parameter")
        return config
