"""Entry point of the ``protoc-gen-cl-pb`` protoc plugin.

.. code-block:: shell

    protoc --plugin=protoc-gen-cl-pb --cl-pb_out=out addressbook.proto
"""

import logging
import sys

import cl_protogen
import cl_protogen.files


def main():
    # stdout carries the CodeGeneratorResponse; log to stderr.
    logging.basicConfig(
        stream=sys.stderr, format="protoc-gen-cl-pb: %(levelname)s: %(message)s"
    )
    opts = cl_protogen.Options()
    opts.run(cl_protogen.files.generate)


if __name__ == "__main__":
    main()
