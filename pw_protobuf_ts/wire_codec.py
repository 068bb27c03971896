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
"""Generates the binary wire codec of a message class.

Encoding goes through the runtime's BinaryWriter and decoding through its
BinaryReader. Both are imported into every file that contains a message.
"""

from typing import Callable, Iterable

from pw_protobuf_ts.context import Context
from pw_protobuf_ts.field_kind import (
    FieldKind,
    classify,
    is_packable,
    is_packed,
    is_split_fixed64,
    map_element_type,
    map_entry_fields,
    presence_expr,
    rw_function_name,
    zero_value,
)
from pw_protobuf_ts.methods import INDENT, ClassMethod, block, if_stmt
from pw_protobuf_ts.proto_tree import ProtoMessage, ProtoMessageField

# BinaryWriter has no packed writer for 64-bit strings of fixed width, so these
# are written as two 32-bit halves.
_SPLIT_FIXED64_LOW = '(i: bigint) => Number(i & 4294967295n)'
_SPLIT_FIXED64_HIGH = '(i: bigint) => Number((i >> 32n) & 4294967295n)'


def _write_value_stmt(
    ctx: Context, field: ProtoMessageField, value: str
) -> str:
    """Writes one value, or a whole array for packed fields."""
    number = field.number()
    kind = classify(field, ctx)

    if kind in (FieldKind.MESSAGE, FieldKind.WELL_KNOWN):
        return f'bw.writeBytes({number}, {value}.toBinary());'

    if is_split_fixed64(field, ctx):
        return (
            f'bw.writePackedSplitFixed64({number}, {value}, '
            f'{_SPLIT_FIXED64_LOW}, {_SPLIT_FIXED64_HIGH});'
        )

    if kind is FieldKind.BIGINT:
        if is_packed(field, ctx):
            value = f'{value}.map((v) => v.toString())'
        else:
            value = f'{value}.toString()'
    elif kind is FieldKind.BYTES and ctx.options.with_sendable:
        value = f'Uint8Array.from({value})'

    return f'bw.{rw_function_name("write", field, ctx)}({number}, {value});'


def _map_write_stmts(
    ctx: Context, field: ProtoMessageField, accessor: str
) -> list[str]:
    key, value = map_entry_fields(field, ctx)
    entry_stmts = [f'bw.beginSubMessage({field.number()});']
    # Entries always carry both the key and the value, even when zero.
    entry_stmts.extend(
        serialize_fields(ctx, (key, value), lambda f: f.name(), False)
    )
    entry_stmts.append('bw.endSubMessage();')
    return block(
        f'for (const [key, value] of {accessor}.entries())', entry_stmts
    )


def serialize_field(
    ctx: Context,
    field: ProtoMessageField,
    accessor: str,
    skip_defaults: bool = True,
) -> list[str]:
    """Statements writing a single field through the BinaryWriter `bw`."""
    kind = classify(field, ctx)

    if kind is FieldKind.MAP:
        stmts = _map_write_stmts(ctx, field, accessor)
    elif field.is_repeated() and not is_packed(field, ctx):
        write = _write_value_stmt(ctx, field, 'item')
        if ctx.options.with_sendable:
            stmts = [
                f'{accessor}.forEach((item) => {{',
                INDENT + write,
                '});',
            ]
        else:
            stmts = block(f'for (const item of {accessor})', [write])
    else:
        stmts = [_write_value_stmt(ctx, field, accessor)]

    if skip_defaults:
        return if_stmt(presence_expr(field, ctx, accessor), stmts)
    return stmts


def serialize_fields(
    ctx: Context,
    fields: Iterable[ProtoMessageField],
    accessor: Callable[[ProtoMessageField], str],
    skip_defaults: bool = True,
) -> list[str]:
    stmts: list[str] = []
    for field in fields:
        stmts.extend(
            serialize_field(ctx, field, accessor(field), skip_defaults)
        )
    return stmts


def generate_to_binary(ctx: Context, message: ProtoMessage) -> ClassMethod:
    """Builds the toBinary() method of a message class."""
    ctx.get_protobuf_import()

    body = ['const bw: BinaryWriter = new BinaryWriter();']
    body.extend(
        serialize_fields(ctx, message.fields(), lambda f: f'this.{f.name()}')
    )
    body.append('return bw.getResultBuffer();')
    return ClassMethod('toBinary', return_type='Uint8Array', body=body)


def _read_value_expr(
    ctx: Context, field: ProtoMessageField, reader: str, packed: bool = False
) -> str:
    kind = classify(field, ctx)
    if kind in (FieldKind.MESSAGE, FieldKind.WELL_KNOWN):
        type_ref = ctx.lazy_type_ref(field.type_name())
        return f'{type_ref}.fromBinary({reader}.readBytes())'

    read = f'{reader}.{rw_function_name("read", field, ctx, packed)}()'
    if kind is FieldKind.BIGINT:
        if packed:
            return f'{read}.map((v) => BigInt(v))'
        return f'BigInt({read})'
    return read


def _map_read_stmts(
    ctx: Context, field: ProtoMessageField, target: str
) -> list[str]:
    key, value = map_entry_fields(field, ctx)

    cases: list[str] = []
    for entry_field, local in ((key, 'key'), (value, 'value')):
        cases.append(f'case {entry_field.number()}:')
        cases.append(
            f'{INDENT}{local} = {_read_value_expr(ctx, entry_field, "entry")};'
        )
        cases.append(f'{INDENT}break;')
    cases.extend(['default:', f'{INDENT}entry.skipField();'])

    return [
        'const entry = new BinaryReader(br.readBytes());',
        f'let key: {map_element_type(key, ctx)} = {zero_value(key, ctx)};',
        (
            f'let value: {map_element_type(value, ctx)} = '
            f'{zero_value(value, ctx)};'
        ),
        *block(
            'while (entry.nextField())',
            block('switch (entry.getFieldNumber())', cases),
        ),
        f'{target}.set(key, value);',
    ]


def deserialize_field(
    ctx: Context, field: ProtoMessageField, target: str
) -> list[str]:
    """Statements reading one record of a field from the BinaryReader `br`."""
    if classify(field, ctx) is FieldKind.MAP:
        return _map_read_stmts(ctx, field, target)

    if not field.is_repeated():
        return [f'{target} = {_read_value_expr(ctx, field, "br")};']

    push_one = f'{target}.push({_read_value_expr(ctx, field, "br")});'
    if not is_packable(field, ctx):
        return [push_one]

    # Packable fields are accepted in both encodings.
    push_packed = (
        f'{target}.push(...{_read_value_expr(ctx, field, "br", True)});'
    )
    return [
        'if (br.isDelimited()) {',
        INDENT + push_packed,
        '} else {',
        INDENT + push_one,
        '}',
    ]


def generate_from_binary(
    ctx: Context, message: ProtoMessage, class_name: str
) -> ClassMethod:
    """Builds the static fromBinary() method of a message class."""
    ctx.get_protobuf_import()

    cases: list[str] = []
    for field in message.fields():
        cases.extend(
            block(
                f'case {field.number()}:',
                [
                    *deserialize_field(ctx, field, f'message.{field.name()}'),
                    'break;',
                ],
            )
        )
    cases.extend(['default:', f'{INDENT}br.skipField();'])

    body = [
        'const br: BinaryReader = new BinaryReader(bytes);',
        f'const message: {class_name} = new {class_name}();',
        *block(
            'while (br.nextField())',
            [
                *if_stmt('br.isEndGroup()', ['break;']),
                *block('switch (br.getFieldNumber())', cases),
            ],
        ),
        'return message;',
    ]
    return ClassMethod(
        'fromBinary',
        params=[('bytes', 'Uint8Array')],
        return_type=class_name,
        body=body,
        static=True,
    )
