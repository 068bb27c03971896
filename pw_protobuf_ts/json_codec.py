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
"""Generates the proto3 JSON codec of a message class.

Field handling is split across helper methods of at most
JSON_METHOD_MAX_FIELDS fields each, toJson_<n>() and fromJson_<n>(), which the
public toJson() and fromJson() call in order. Large messages would otherwise
produce functions too big for some JavaScript engines to optimize.

Decoding validates every value against the JSON shape of its field and throws
`illegal value for <key>` on a mismatch. Setting two members of one oneof
throws `duplicate oneof field <key>`.
"""

from typing import Iterator, Sequence

from google.protobuf import descriptor_pb2

from pw_protobuf_ts import well_known
from pw_protobuf_ts.context import Context
from pw_protobuf_ts.field_kind import (
    NUMERIC_RANGES,
    FieldKind,
    WellKnownJson,
    classify,
    map_entry_fields,
    presence_expr,
    well_known_json,
    wrapped_value_field,
)
from pw_protobuf_ts.methods import (
    ClassMethod,
    and_all,
    block,
    if_stmt,
    indent_lines,
    or_any,
    throw_error,
    ts_string,
)
from pw_protobuf_ts.proto_tree import ProtoMessage, ProtoMessageField

_FieldType = descriptor_pb2.FieldDescriptorProto

JSON_METHOD_MAX_FIELDS = 30

_FLOATING_POINT_TYPES = frozenset(
    (_FieldType.TYPE_FLOAT, _FieldType.TYPE_DOUBLE)
)


def chunk_fields(
    fields: Sequence[ProtoMessageField],
    size: int = JSON_METHOD_MAX_FIELDS,
) -> Iterator[Sequence[ProtoMessageField]]:
    """Splits fields into consecutive groups of at most size fields."""
    for start in range(0, len(fields), size):
        yield fields[start : start + size]


def _typeof(value: str, js_type: str) -> str:
    return f'typeof {value} === "{js_type}"'


def _numeric_string(value: str) -> str:
    # Empty and padded strings would otherwise convert to numbers.
    return (
        f'({_typeof(value, "string")} && {value} !== "" && '
        f'{value}.trim() === {value})'
    )


def _shape_check(value: str, shape: WellKnownJson) -> str:
    if shape is WellKnownJson.UNKNOWN:
        return or_any(
            _typeof(value, 'number'),
            _typeof(value, 'string'),
            _typeof(value, 'boolean'),
            _typeof(value, 'object'),
            f'{value} === null',
        )
    if shape is WellKnownJson.NUMBER_OR_STRING:
        return or_any(_typeof(value, 'number'), _typeof(value, 'string'))
    if shape is WellKnownJson.ARRAY:
        return f'Array.isArray({value})'
    if shape is WellKnownJson.NULL:
        return f'{value} === null'
    if shape is WellKnownJson.OBJECT:
        return f'({_typeof(value, "object")} && {value} !== null)'
    return _typeof(value, shape.value)


def type_check(field: ProtoMessageField, ctx: Context, value: str) -> str:
    """Condition that a JSON value has the right shape for a field."""
    wrapped = wrapped_value_field(field)
    if wrapped is not None:
        return type_check(wrapped, ctx, value)

    kind = classify(field, ctx)
    if kind is FieldKind.WELL_KNOWN:
        return _shape_check(value, well_known_json(field))
    if kind in (FieldKind.STRING, FieldKind.BYTES):
        return _shape_check(value, WellKnownJson.STRING)
    if kind is FieldKind.BOOL:
        return _shape_check(value, WellKnownJson.BOOLEAN)
    if kind is FieldKind.MESSAGE:
        return _shape_check(value, WellKnownJson.OBJECT)
    if kind is FieldKind.MAP:
        return and_all(
            _shape_check(value, WellKnownJson.OBJECT),
            f'!Array.isArray({value})',
        )
    if kind is FieldKind.ENUM:
        # Reverse mappings and inherited properties are not member names.
        enum_type = ctx.lazy_type_ref(field.type_name())
        return or_any(
            f'({_typeof(value, "number")} && Number.isInteger({value}))',
            f'({_typeof(value, "string")} && '
            f'Object.prototype.hasOwnProperty.call({enum_type}, {value}) && '
            f'typeof {enum_type}[{value} as keyof typeof {enum_type}] '
            '=== "number")',
        )
    if field.is_integer():
        return and_all(
            or_any(_typeof(value, 'number'), _numeric_string(value)),
            f'Number.isInteger(+{value})',
        )
    return or_any(_typeof(value, 'number'), _numeric_string(value))


def range_check(field: ProtoMessageField, value: str) -> str | None:
    """Condition that a numeric JSON value fits the field's type."""
    field = wrapped_value_field(field) or field
    bounds = NUMERIC_RANGES.get(field.type())
    if bounds is None:
        return None

    low, high = bounds
    return or_any(
        f'{value} === "NaN"',
        f'{value} === "Infinity"',
        f'{value} === "-Infinity"',
        f'({value} >= {low} && {value} <= {high})',
    )


def value_check_stmts(
    field: ProtoMessageField, ctx: Context, value: str
) -> list[str]:
    """Throws unless value is acceptable for a single element of field."""
    conditions = [type_check(field, ctx, value)]
    in_range = range_check(field, value)
    if in_range is not None:
        conditions.append(in_range)

    return if_stmt(
        f'!({and_all(*conditions)})',
        [throw_error(f'illegal value for {field.json_key_name()}')],
    )


def to_json_expr(field: ProtoMessageField, ctx: Context, value: str) -> str:
    """Converts a single element of a field to its JSON representation."""
    kind = classify(field, ctx)
    if kind is FieldKind.BYTES:
        ctx.get_base64_import()
        return f'fromUint8Array({value})'
    if kind is FieldKind.BIGINT:
        return f'{value}.toString()'
    if kind is FieldKind.NUMBER and field.type() in _FLOATING_POINT_TYPES:
        # NaN and the infinities are written as strings.
        return f'Number.isFinite({value}) ? {value} : {value}.toString()'
    if kind is FieldKind.WELL_KNOWN:
        wrapped = wrapped_value_field(field)
        if wrapped is not None:
            return to_json_expr(wrapped, ctx, f'{value}.value')
        return well_known.to_json_expr(field, ctx, value)
    if kind is FieldKind.MESSAGE:
        return f'{value}.toJson()'
    return value


def from_json_expr(field: ProtoMessageField, ctx: Context, value: str) -> str:
    """Converts a validated JSON value to a single element of a field."""
    kind = classify(field, ctx)
    if kind is FieldKind.ENUM:
        enum_type = ctx.lazy_type_ref(field.type_name())
        return (
            f'{_typeof(value, "number")} ? {value} : '
            f'{enum_type}[{value} as keyof typeof {enum_type}]'
        )
    if kind is FieldKind.BYTES:
        ctx.get_base64_import()
        return f'toUint8Array({value})'
    if kind is FieldKind.BIGINT:
        return f'BigInt({value})'
    if kind is FieldKind.NUMBER:
        return f'Number({value})'
    if kind is FieldKind.WELL_KNOWN:
        wrapped = wrapped_value_field(field)
        if wrapped is None:
            return well_known.from_json_expr(field, ctx, value)
        wrapper = ctx.lazy_type_ref(field.type_name())
        return (
            f'Object.assign(new {wrapper}(), '
            f'{{ value: {from_json_expr(wrapped, ctx, value)} }})'
        )
    if kind is FieldKind.MESSAGE:
        type_ref = ctx.lazy_type_ref(field.type_name())
        return f'{type_ref}.fromJson({value})'
    return value


def _map_key_from_json(key: ProtoMessageField, ctx: Context) -> str:
    kind = classify(key, ctx)
    if kind is FieldKind.BOOL:
        return 'key === "true"'
    if kind is FieldKind.BIGINT:
        return 'BigInt(key)'
    if kind is FieldKind.NUMBER:
        return 'Number(key)'
    return 'key'


def _json_key(field: ProtoMessageField) -> str:
    return f'json[{ts_string(field.json_key_name())}]'


def _to_json_stmts(field: ProtoMessageField, ctx: Context) -> list[str]:
    accessor = f'this.{field.name()}'
    target = _json_key(field)
    kind = classify(field, ctx)

    if kind is FieldKind.MAP:
        key, value = map_entry_fields(field, ctx)
        key_expr = 'String(key)'
        if classify(key, ctx) is FieldKind.STRING:
            key_expr = 'key'
        stmts = [
            'const entries: { [key: string]: unknown } = {};',
            *block(
                f'for (const [key, value] of {accessor}.entries())',
                [f'entries[{key_expr}] = {to_json_expr(value, ctx, "value")};'],
            ),
            f'{target} = entries;',
        ]
    elif field.is_repeated():
        element = to_json_expr(field, ctx, 'r')
        stmts = [f'{target} = {accessor}.map((r) => {element});']
    else:
        stmts = [f'{target} = {to_json_expr(field, ctx, accessor)};']

    return if_stmt(presence_expr(field, ctx, accessor), stmts)


def _oneof_stmts(field: ProtoMessageField) -> list[str]:
    index = field.oneof_index()
    return [
        *if_stmt(
            f'oneof.has({index})',
            [throw_error(f'duplicate oneof field {field.json_key_name()}')],
        ),
        f'oneof.add({index});',
    ]


def _from_json_stmts(field: ProtoMessageField, ctx: Context) -> list[str]:
    local = f'${field.name()}'
    target = f'jsonMessage.{field.name()}'
    key_name = field.json_key_name()
    kind = classify(field, ctx)

    # Both the JSON name and the original field name are accepted.
    if key_name == field.name():
        stmts = [f'const {local} = {_json_key(field)};']
    else:
        stmts = [
            f'const {local} = {_json_key(field)} !== undefined ? '
            f'{_json_key(field)} : json[{ts_string(field.name())}];'
        ]

    illegal = [throw_error(f'illegal value for {key_name}')]
    body: list[str] = []
    if kind is FieldKind.MAP:
        key, value = map_entry_fields(field, ctx)
        body.extend(if_stmt(f'!({type_check(field, ctx, local)})', illegal))
        entry_stmts = []
        if classify(key, ctx) in (FieldKind.NUMBER, FieldKind.BIGINT):
            entry_stmts.extend(value_check_stmts(key, ctx, 'key'))
        entry_stmts.extend(value_check_stmts(value, ctx, 'value'))
        entry_stmts.append(
            f'{target}.set({_map_key_from_json(key, ctx)}, '
            f'{from_json_expr(value, ctx, "value")});'
        )
        body.extend(
            block(
                f'for (const [key, value] of Object.entries({local}))',
                entry_stmts,
            )
        )
    elif field.is_repeated():
        body.extend(if_stmt(f'!Array.isArray({local})', illegal))
        body.append(f'{target} = {local}.map((r: any) => {{')
        body.extend(
            indent_lines(
                [
                    *value_check_stmts(field, ctx, 'r'),
                    f'return {from_json_expr(field, ctx, "r")};',
                ]
            )
        )
        body.append('});')
    else:
        body.extend(value_check_stmts(field, ctx, local))
        if field.has_oneof_index():
            body.extend(_oneof_stmts(field))
        body.append(f'{target} = {from_json_expr(field, ctx, local)};')

    stmts.extend(
        if_stmt(presence_expr(field, ctx, local, from_json=True), body)
    )
    return stmts


def generate_to_json(ctx: Context, message: ProtoMessage) -> list[ClassMethod]:
    """Builds toJson() and its per-chunk helpers."""
    helpers: list[ClassMethod] = []
    for index, fields in enumerate(chunk_fields(message.fields())):
        body: list[str] = []
        for field in fields:
            body.extend(_to_json_stmts(field, ctx))
        helpers.append(
            ClassMethod(
                f'toJson_{index}',
                params=[('json', 'any')],
                return_type='void',
                body=body,
                private=True,
            )
        )

    body = ['const json: any = {};']
    body.extend(f'this.{helper.name}(json);' for helper in helpers)
    body.append('return json;')
    return [*helpers, ClassMethod('toJson', return_type='object', body=body)]


def generate_from_json(
    ctx: Context, message: ProtoMessage, class_name: str
) -> list[ClassMethod]:
    """Builds the static fromJson() and its per-chunk helpers."""
    has_oneof = message.has_oneof_fields()

    params = [('json', 'any'), ('jsonMessage', class_name)]
    if has_oneof:
        params.append(('oneof', 'Set<number>'))

    helpers: list[ClassMethod] = []
    for index, fields in enumerate(chunk_fields(message.fields())):
        body: list[str] = []
        for field in fields:
            body.extend(_from_json_stmts(field, ctx))
        helpers.append(
            ClassMethod(
                f'fromJson_{index}',
                params=params,
                return_type='void',
                body=body,
                static=True,
                private=True,
            )
        )

    args = 'json, jsonMessage, oneof' if has_oneof else 'json, jsonMessage'
    body = [f'const jsonMessage: {class_name} = new {class_name}();']
    if has_oneof:
        body.append('const oneof: Set<number> = new Set<number>();')
    body.extend(f'{class_name}.{helper.name}({args});' for helper in helpers)
    body.append('return jsonMessage;')

    return [
        *helpers,
        ClassMethod(
            'fromJson',
            params=[('json', 'any')],
            return_type=class_name,
            body=body,
            static=True,
        ),
    ]
