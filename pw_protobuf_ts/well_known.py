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
"""JSON conversions of well-known types with special JSON forms.

Timestamps, durations and field masks are written as strings, Value as any
JSON value and ListValue as an array. The conversions are file-local helper
functions, declared in each generated file that needs them. Wrapper types are
handled in json_codec through the scalar they wrap.
"""

from pw_protobuf_ts.context import Context
from pw_protobuf_ts.errors import CodegenError
from pw_protobuf_ts.methods import ts_string
from pw_protobuf_ts.proto_tree import ProtoMessageField

TIMESTAMP = '.google.protobuf.Timestamp'
DURATION = '.google.protobuf.Duration'
FIELD_MASK = '.google.protobuf.FieldMask'
VALUE = '.google.protobuf.Value'
LIST_VALUE = '.google.protobuf.ListValue'
STRUCT = '.google.protobuf.Struct'

_ILLEGAL = '    throw new Error("illegal value for " + key);'


def _nanos_to_json(ctx: Context) -> str:
    return ctx.add_helper(
        'wellKnownNanosToJson',
        [
            'function wellKnownNanosToJson(nanos: number): string {',
            '  if (nanos === 0) {',
            '    return "";',
            '  }',
            '  let digits: string = nanos.toString().padStart(9, "0");',
            '  if (digits.endsWith("000000")) {',
            '    digits = digits.slice(0, 3);',
            '  } else if (digits.endsWith("000")) {',
            '    digits = digits.slice(0, 6);',
            '  }',
            '  return "." + digits;',
            '}',
        ],
    )


def _nanos_from_json(ctx: Context) -> str:
    return ctx.add_helper(
        'wellKnownNanosFromJson',
        [
            'function wellKnownNanosFromJson(fraction?: string): number {',
            '  if (fraction === undefined) {',
            '    return 0;',
            '  }',
            '  return Number(fraction.padEnd(9, "0"));',
            '}',
        ],
    )


def _timestamp_to_json(ctx: Context) -> str:
    timestamp = ctx.lazy_type_ref(TIMESTAMP)
    nanos = _nanos_to_json(ctx)
    return ctx.add_helper(
        'wellKnownTimestampToJson',
        [
            f'function wellKnownTimestampToJson(t: {timestamp}): string {{',
            '  const date: Date = new Date(Number(t.seconds) * 1000);',
            f'  return date.toISOString().slice(0, 19) + {nanos}(t.nanos) '
            '+ "Z";',
            '}',
        ],
    )


def _timestamp_from_json(ctx: Context) -> str:
    timestamp = ctx.lazy_type_ref(TIMESTAMP)
    nanos = _nanos_from_json(ctx)
    return ctx.add_helper(
        'wellKnownTimestampFromJson',
        [
            'function wellKnownTimestampFromJson(',
            '  json: string,',
            '  key: string,',
            f'): {timestamp} {{',
            '  const match = '
            r'/^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d{1,9}))?'
            r'(Z|[+-]\d{2}:\d{2})$/.exec(json);',
            '  const millis: number =',
            '    match === null ? NaN : Date.parse(match[1] + match[3]);',
            '  if (match === null || Number.isNaN(millis)) {',
            _ILLEGAL,
            '  }',
            f'  const t: {timestamp} = new {timestamp}();',
            '  t.seconds = BigInt(millis / 1000);',
            f'  t.nanos = {nanos}(match[2]);',
            '  return t;',
            '}',
        ],
    )


def _duration_to_json(ctx: Context) -> str:
    duration = ctx.lazy_type_ref(DURATION)
    nanos = _nanos_to_json(ctx)
    return ctx.add_helper(
        'wellKnownDurationToJson',
        [
            f'function wellKnownDurationToJson(d: {duration}): string {{',
            '  const sign: string = d.seconds < 0n || d.nanos < 0 ? "-" : "";',
            '  const seconds: bigint = d.seconds < 0n '
            '? -d.seconds : d.seconds;',
            f'  return sign + seconds.toString() + {nanos}(Math.abs(d.nanos)) '
            '+ "s";',
            '}',
        ],
    )


def _duration_from_json(ctx: Context) -> str:
    duration = ctx.lazy_type_ref(DURATION)
    nanos = _nanos_from_json(ctx)
    return ctx.add_helper(
        'wellKnownDurationFromJson',
        [
            'function wellKnownDurationFromJson(',
            '  json: string,',
            '  key: string,',
            f'): {duration} {{',
            r'  const match = /^(-)?(\d+)(?:\.(\d{1,9}))?s$/.exec(json);',
            '  if (match === null) {',
            _ILLEGAL,
            '  }',
            '  const sign: number = match[1] === undefined ? 1 : -1;',
            f'  const d: {duration} = new {duration}();',
            '  d.seconds = BigInt(sign) * BigInt(match[2]);',
            f'  d.nanos = sign * {nanos}(match[3]);',
            '  return d;',
            '}',
        ],
    )


def _field_mask_to_json(ctx: Context) -> str:
    field_mask = ctx.lazy_type_ref(FIELD_MASK)
    return ctx.add_helper(
        'wellKnownFieldMaskToJson',
        [
            f'function wellKnownFieldMaskToJson(mask: {field_mask}): string {{',
            '  return mask.paths',
            '    .map((path) =>',
            '      path.replace(/_([a-z])/g, (_, c: string) =>'
            ' c.toUpperCase())',
            '    )',
            '    .join(",");',
            '}',
        ],
    )


def _field_mask_from_json(ctx: Context) -> str:
    field_mask = ctx.lazy_type_ref(FIELD_MASK)
    return ctx.add_helper(
        'wellKnownFieldMaskFromJson',
        [
            'function wellKnownFieldMaskFromJson(',
            '  json: string,',
            f'): {field_mask} {{',
            f'  const mask: {field_mask} = new {field_mask}();',
            '  if (json !== "") {',
            '    mask.paths = json',
            '      .split(",")',
            '      .map((path) =>',
            '        path.replace(/[A-Z]/g, (c) => "_" + c.toLowerCase())',
            '      );',
            '  }',
            '  return mask;',
            '}',
        ],
    )


def _value_to_json(ctx: Context) -> str:
    value = ctx.lazy_type_ref(VALUE)
    return ctx.add_helper(
        'wellKnownValueToJson',
        [
            f'function wellKnownValueToJson(value: {value}): unknown {{',
            '  if (value.number_value !== undefined) {',
            '    return value.number_value;',
            '  }',
            '  if (value.string_value !== undefined) {',
            '    return value.string_value;',
            '  }',
            '  if (value.bool_value !== undefined) {',
            '    return value.bool_value;',
            '  }',
            '  if (value.struct_value !== undefined) {',
            '    const fields: { [key: string]: unknown } = {};',
            '    for (const [key, field] of value.struct_value.fields) {',
            '      fields[key] = wellKnownValueToJson(field);',
            '    }',
            '    return fields;',
            '  }',
            '  if (value.list_value !== undefined) {',
            '    return value.list_value.values.map((e) => '
            'wellKnownValueToJson(e));',
            '  }',
            '  return null;',
            '}',
        ],
    )


def _value_from_json(ctx: Context) -> str:
    value = ctx.lazy_type_ref(VALUE)
    list_value = ctx.lazy_type_ref(LIST_VALUE)
    struct = ctx.lazy_type_ref(STRUCT)
    return ctx.add_helper(
        'wellKnownValueFromJson',
        [
            f'function wellKnownValueFromJson(json: unknown): {value} {{',
            f'  const value: {value} = new {value}();',
            '  if (json === null) {',
            '    value.null_value = 0;',
            '  } else if (typeof json === "number") {',
            '    value.number_value = json;',
            '  } else if (typeof json === "string") {',
            '    value.string_value = json;',
            '  } else if (typeof json === "boolean") {',
            '    value.bool_value = json;',
            '  } else if (Array.isArray(json)) {',
            f'    value.list_value = new {list_value}();',
            '    value.list_value.values = json.map((e: unknown) =>',
            '      wellKnownValueFromJson(e)',
            '    );',
            '  } else {',
            f'    value.struct_value = new {struct}();',
            '    for (const [key, field] of Object.entries(json as object)) {',
            '      value.struct_value.fields.set(key, '
            'wellKnownValueFromJson(field));',
            '    }',
            '  }',
            '  return value;',
            '}',
        ],
    )


def to_json_expr(field: ProtoMessageField, ctx: Context, value: str) -> str:
    """Converts a Timestamp, Duration, FieldMask, Value or ListValue."""
    type_name = field.type_name()
    if type_name == TIMESTAMP:
        return f'{_timestamp_to_json(ctx)}({value})'
    if type_name == DURATION:
        return f'{_duration_to_json(ctx)}({value})'
    if type_name == FIELD_MASK:
        return f'{_field_mask_to_json(ctx)}({value})'
    if type_name == VALUE:
        return f'{_value_to_json(ctx)}({value})'
    if type_name == LIST_VALUE:
        return f'{value}.values.map((e) => {_value_to_json(ctx)}(e))'

    raise CodegenError('no JSON form for type', type_name, field.name())


def from_json_expr(field: ProtoMessageField, ctx: Context, value: str) -> str:
    """Builds a Timestamp, Duration, FieldMask, Value or ListValue."""
    type_name = field.type_name()
    key = ts_string(field.json_key_name())
    if type_name == TIMESTAMP:
        return f'{_timestamp_from_json(ctx)}({value}, {key})'
    if type_name == DURATION:
        return f'{_duration_from_json(ctx)}({value}, {key})'
    if type_name == FIELD_MASK:
        return f'{_field_mask_from_json(ctx)}({value})'
    if type_name == VALUE:
        return f'{_value_from_json(ctx)}({value})'
    if type_name == LIST_VALUE:
        list_value = ctx.lazy_type_ref(LIST_VALUE)
        return (
            f'Object.assign(new {list_value}(), {{ values: {value}.map('
            f'(e: unknown) => {_value_from_json(ctx)}(e)) }})'
        )

    raise CodegenError('no JSON form for type', type_name, field.name())
