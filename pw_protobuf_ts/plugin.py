# Copyright 2024 The Pigweed Authors
#
# Licensed under the Apache License, Version 2.0 (the "License"); you may not
# use this file except in compliance with the License. You may obtain a copy of
# the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
# WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
# License for the specific language governing permissions and limitations under
# the License.
"""pw_protobuf_ts compiler plugin.

This file implements a protobuf compiler plugin which generates TypeScript
classes with binary and proto3 JSON codecs for protobuf messages.
"""

import logging
import sys

from google.protobuf.compiler import plugin_pb2

from pw_protobuf_ts import codegen_ts
from pw_protobuf_ts.context import Context
from pw_protobuf_ts.errors import CodegenError
from pw_protobuf_ts.options import parse_parameter_options

_LOG = logging.getLogger(__name__)


def process_proto_request(
    req: plugin_pb2.CodeGeneratorRequest, res: plugin_pb2.CodeGeneratorResponse
) -> bool:
    """Handles a protoc CodeGeneratorRequest message.

    Generates code for the files in the request and writes the output to the
    specified CodeGeneratorResponse message. Every file in the request is
    registered first, so files to generate may refer to types from any of
    their dependencies.

    Args:
      req: A CodeGeneratorRequest for a proto compilation.
      res: A CodeGeneratorResponse to populate with the plugin's output.

    Returns:
      False if generation failed, in which case res is left untouched.
    """
    ctx = Context(parse_parameter_options(req.parameter))

    try:
        packages = {
            proto_file.name: codegen_ts.register_proto_file(ctx, proto_file)
            for proto_file in req.proto_file
        }
        ctx.freeze()

        to_generate = [
            proto_file
            for proto_file in req.proto_file
            if proto_file.name in req.file_to_generate
        ]
        output_files = codegen_ts.generate_files(
            ctx,
            to_generate,
            [packages[proto_file.name] for proto_file in to_generate],
        )
    except CodegenError as e:
        print(e.formatted_message(), file=sys.stderr)
        return False

    for output_file in output_files:
        fd = res.file.add()
        fd.name = output_file.name()
        fd.content = output_file.content()

    _LOG.debug('Generated %d files', len(output_files))
    return True


def main() -> int:
    """Protobuf compiler plugin entrypoint.

    Reads a CodeGeneratorRequest proto from stdin and writes a
    CodeGeneratorResponse to stdout.
    """
    # stdout carries the response to protoc.
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.WARNING,
        format='%(name)s: %(levelname)s: %(message)s',
    )

    data = sys.stdin.buffer.read()
    request = plugin_pb2.CodeGeneratorRequest.FromString(data)
    response = plugin_pb2.CodeGeneratorResponse()

    # Declare that this plugin supports optional fields in proto3.
    response.supported_features |= (  # type: ignore[attr-defined]
        response.FEATURE_PROTO3_OPTIONAL
    )  # type: ignore[attr-defined]

    if not process_proto_request(request, response):
        print(
            'pw_protobuf_ts failed to generate protobuf code', file=sys.stderr
        )
        return 1

    sys.stdout.buffer.write(response.SerializeToString())
    return 0


if __name__ == '__main__':
    sys.exit(main())
