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
"""Generator options passed through the protoc parameter string."""

from argparse import ArgumentParser
from dataclasses import dataclass
from shlex import shlex

DEFAULT_RUNTIME_PACKAGE = 'google-protobuf'
DEFAULT_BASE64_PACKAGE = 'js-base64'


@dataclass(frozen=True)
class GeneratorOptions:
    """Options which change the shape of the generated TypeScript.

    Attributes:
      with_namespace: Name types by their fully-qualified proto name joined
          with underscores (foo_bar_Baz) instead of the short name (Baz).
      namespaces: Wrap each generated file in an `export namespace` matching
          its proto package.
      import_suffix: Appended to relative import paths, e.g. '.js'.
      with_sendable: Emit repeated-field loops and bytes copies that are safe
          to transfer between isolates.
      runtime_package: Module providing BinaryReader and BinaryWriter.
      base64_package: Module providing fromUint8Array and toUint8Array.
      jobs: Number of files generated in parallel.
    """

    with_namespace: bool = False
    namespaces: bool = False
    import_suffix: str = ''
    with_sendable: bool = False
    runtime_package: str = DEFAULT_RUNTIME_PACKAGE
    base64_package: str = DEFAULT_BASE64_PACKAGE
    jobs: int = 1


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise ValueError(f'expected a positive integer, got {value}')
    return number


def parse_parameter_options(parameter: str) -> GeneratorOptions:
    """Parses parameters passed through from protoc.

    These parameters come in via passing `--${NAME}_opt` parameters to protoc,
    where protoc-gen-${NAME} is the supplied name of the plugin.
    """
    parser = ArgumentParser(prog='protoc-gen-ts_pw')
    parser.add_argument(
        '--with-namespace',
        dest='with_namespace',
        action='store_true',
        help='Name types by their fully-qualified, underscore-joined name',
    )
    parser.add_argument(
        '--namespaces',
        dest='namespaces',
        action='store_true',
        help='Wrap generated declarations in a namespace per proto package',
    )
    parser.add_argument(
        '--import-suffix',
        dest='import_suffix',
        default='',
        help='Suffix appended to relative import paths, e.g. ".js"',
    )
    parser.add_argument(
        '--with-sendable',
        dest='with_sendable',
        action='store_true',
        help='Generate isolate-transferable loops for repeated fields',
    )
    parser.add_argument(
        '--runtime-package',
        dest='runtime_package',
        default=DEFAULT_RUNTIME_PACKAGE,
        help='Module providing the BinaryReader and BinaryWriter classes',
    )
    parser.add_argument(
        '--base64-package',
        dest='base64_package',
        default=DEFAULT_BASE64_PACKAGE,
        help='Module providing the base64 helpers',
    )
    parser.add_argument(
        '-j',
        '--jobs',
        dest='jobs',
        default=1,
        type=_positive_int,
        help='Number of files to generate in parallel',
    )

    # protoc passes the custom arguments in shell quoted form, separated by
    # commas. Use shlex to split them, correctly handling quoted sections, with
    # equivalent options to IFS=","
    lex = shlex(parameter)
    lex.whitespace_split = True
    lex.whitespace = ','
    lex.commenters = ''
    args = parser.parse_args(list(lex))

    return GeneratorOptions(
        with_namespace=args.with_namespace,
        namespaces=args.namespaces,
        import_suffix=args.import_suffix,
        with_sendable=args.with_sendable,
        runtime_package=args.runtime_package,
        base64_package=args.base64_package,
        jobs=args.jobs,
    )
