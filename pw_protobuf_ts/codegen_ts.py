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
"""This module defines the generated code for TypeScript message classes."""

import concurrent.futures
import logging
import os
from typing import Iterable, Sequence, cast

from google.protobuf import descriptor_pb2

from pw_protobuf_ts.context import Context, Syntax
from pw_protobuf_ts.errors import CodegenError
from pw_protobuf_ts.field_kind import (
    FieldKind,
    classify,
    proto3_default,
    ts_type,
)
from pw_protobuf_ts.json_codec import generate_from_json, generate_to_json
from pw_protobuf_ts.methods import ClassMethod, ClassProperty, ts_string
from pw_protobuf_ts.output_file import OutputFile
from pw_protobuf_ts.proto_tree import (
    ProtoEnum,
    ProtoMessage,
    ProtoMessageField,
    ProtoNode,
    ProtoPackage,
    build_node_tree,
)
from pw_protobuf_ts.wire_codec import generate_from_binary, generate_to_binary

_LOG = logging.getLogger(__name__)

PROTO_TS_EXTENSION = '.ts'

# Spellings of special floating point defaults in descriptors.
_FLOAT_DEFAULTS = {
    'inf': 'Infinity',
    '-inf': '-Infinity',
    'nan': 'NaN',
}


def _proto_filename_to_generated_file(proto_file: str) -> str:
    """Returns the generated TypeScript file name for a .proto file."""
    return os.path.splitext(proto_file)[0] + PROTO_TS_EXTENSION


def _register_children(ctx: Context, node: ProtoNode) -> None:
    for child in node.children():
        if child.type() == ProtoNode.Type.ENUM:
            ctx.register_type_name(child.name())
            ctx.register_leading_enum_member(cast(ProtoEnum, child))
            continue

        message = cast(ProtoMessage, child)
        if message.is_map_entry():
            ctx.register_map_type(message)
            continue

        ctx.register_type_name(message.name())
        _register_children(ctx.descend(message.name()), message)


def register_proto_file(
    ctx: Context, proto_file: descriptor_pb2.FileDescriptorProto
) -> ProtoPackage:
    """Registers the types a .proto file defines into the shared registry.

    Every file of a request must be registered before any is generated, since
    fields may refer to types defined in other files.

    Returns:
      The root of the file's node tree, for use during generation.
    """
    package = build_node_tree(proto_file)
    file_ctx = ctx.fork(proto_file.name, Syntax.from_str(proto_file.syntax))
    package_ctx = file_ctx.descend_if_necessary(proto_file.package)
    _register_children(package_ctx, package)
    _LOG.debug('Registered %s', proto_file.name)
    return package


def _default_value_literal(
    field: ProtoMessageField, ctx: Context, kind: FieldKind
) -> str | None:
    """Literal for an explicit [default = ...] option, where one applies."""
    default = field.default_value()
    if default is None or ctx.syntax is Syntax.PROTO3:
        return None

    if kind is FieldKind.STRING:
        return ts_string(default)
    if kind is FieldKind.BOOL:
        return default
    if kind is FieldKind.BIGINT:
        return f'{default}n'
    if kind is FieldKind.NUMBER:
        return _FLOAT_DEFAULTS.get(default, default)
    if kind is FieldKind.ENUM:
        return f'{ctx.lazy_type_ref(field.type_name())}.{default}'

    # Bytes defaults are C-escaped in descriptors; they start out empty.
    return None


def _field_initializer(
    field: ProtoMessageField, ctx: Context, kind: FieldKind
) -> str:
    explicit = _default_value_literal(field, ctx, kind)
    if explicit is not None:
        return explicit

    if kind is FieldKind.BYTES:
        return 'new Uint8Array()'
    if kind is FieldKind.ENUM and ctx.syntax is not Syntax.PROTO3:
        return str(ctx.get_leading_enum_member(field.type_name()))

    initializer = proto3_default(field, ctx)
    if initializer is None:
        raise CodegenError(
            'field has no default value',
            field.type_name() or None,
            field.name(),
        )
    return initializer


def class_property(field: ProtoMessageField, ctx: Context) -> ClassProperty:
    """Declares the class property holding a field's value."""
    kind = classify(field, ctx)
    value_type = ts_type(field, ctx)

    if kind is FieldKind.MAP:
        return ClassProperty(field.name(), value_type, 'new Map()')
    if field.is_repeated():
        return ClassProperty(field.name(), f'{value_type}[]', '[]')
    if field.has_oneof_index() or kind in (
        FieldKind.MESSAGE,
        FieldKind.WELL_KNOWN,
    ):
        return ClassProperty(field.name(), value_type, optional=True)

    return ClassProperty(
        field.name(), value_type, _field_initializer(field, ctx, kind)
    )


def generate_code_for_enum(
    ctx: Context, proto_enum: ProtoEnum, output: OutputFile
) -> None:
    """Creates a TypeScript enum for a proto enum."""
    enum_name = ctx.normalize_name(proto_enum.name())
    output.write_line(f'export enum {enum_name} {{')
    with output.indent():
        for name, number in proto_enum.values():
            output.write_line(f'{name} = {number},')
    output.write_line('}')


def generate_class_for_message(
    ctx: Context, message: ProtoMessage, output: OutputFile
) -> None:
    """Creates a TypeScript class for a proto message.

    The class holds one property per field along with its binary and JSON
    codecs.
    """
    class_name = ctx.normalize_name(message.name())
    properties = [class_property(field, ctx) for field in message.fields()]

    methods: list[ClassMethod] = [
        generate_to_binary(ctx, message),
        generate_from_binary(ctx, message, class_name),
        *generate_to_json(ctx, message),
        *generate_from_json(ctx, message, class_name),
    ]

    output.write_line(f'export class {class_name} {{')
    with output.indent():
        for prop in properties:
            output.write_line(prop.declaration())

        for method in methods:
            output.write_line()
            output.write_lines(method.lines())
    output.write_line('}')


def generate_code_for_node(
    ctx: Context, node: ProtoNode, output: OutputFile
) -> None:
    """Generates declarations for the children of a package or message."""
    for child in node.children():
        if child.type() == ProtoNode.Type.ENUM:
            output.write_line()
            generate_code_for_enum(ctx, cast(ProtoEnum, child), output)
            continue

        message = cast(ProtoMessage, child)
        if message.is_map_entry():
            continue

        output.write_line()
        generate_class_for_message(ctx, message, output)
        generate_code_for_node(ctx.descend(message.name()), message, output)


def process_proto_file(
    ctx: Context,
    proto_file: descriptor_pb2.FileDescriptorProto,
    package: ProtoPackage,
) -> OutputFile:
    """Generates the TypeScript file for a single registered .proto file."""
    file_ctx = ctx.fork(proto_file.name, Syntax.from_str(proto_file.syntax))
    package_ctx = file_ctx.descend_if_necessary(proto_file.package)

    # Imports and helpers are only known once the body is generated.
    body = OutputFile(proto_file.name)
    generate_code_for_node(package_ctx, package, body)
    body_lines = package_ctx.wrap_if_needed(
        file_ctx.drain_helpers() + body.lines()
    )

    output = OutputFile(_proto_filename_to_generated_file(proto_file.name))
    output.write_header(proto_file.name)

    imports = file_ctx.drain_imports()
    if imports:
        output.write_line()
        output.write_lines(imports)

    output.write_lines(body_lines)

    _LOG.debug('Generated %s with %d imports', output.name(), len(imports))
    return output


def generate_files(
    ctx: Context,
    proto_files: Sequence[descriptor_pb2.FileDescriptorProto],
    packages: Iterable[ProtoPackage],
) -> list[OutputFile]:
    """Generates registered files, in parallel when ctx.options.jobs > 1.

    The registry must be frozen. Output files are returned in the order of
    proto_files regardless of which finishes first.
    """
    work = list(zip(proto_files, packages))
    jobs = ctx.options.jobs

    if jobs == 1 or len(work) < 2:
        return [
            process_proto_file(ctx, proto_file, package)
            for proto_file, package in work
        ]

    _LOG.debug('Generating %d files with %d workers', len(work), jobs)
    with concurrent.futures.ThreadPoolExecutor(max_workers=jobs) as executor:
        futures = [
            executor.submit(process_proto_file, ctx, proto_file, package)
            for proto_file, package in work
        ]
        return [future.result() for future in futures]
