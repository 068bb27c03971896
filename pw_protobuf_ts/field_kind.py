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
"""Classification of message fields for code generation.

Every codec decision starts from classify(), which maps a field to exactly one
FieldKind. Map detection consults the type registry, so classification is only
valid once every file has been registered.
"""

import enum
import sys

from google.protobuf import descriptor_pb2

from pw_protobuf_ts.context import Context, Syntax
from pw_protobuf_ts.errors import CodegenError, UnresolvedMapTypeError
from pw_protobuf_ts.proto_tree import ProtoMessageField

_FieldType = descriptor_pb2.FieldDescriptorProto


class FieldKind(enum.Enum):
    """How a field's values are represented in generated code."""

    STRING = 1
    BYTES = 2
    BOOL = 3
    ENUM = 4
    NUMBER = 5
    BIGINT = 6
    MESSAGE = 7
    WELL_KNOWN = 8
    MAP = 9


class WellKnownJson(enum.Enum):
    """JSON shapes accepted for well-known message types."""

    BOOLEAN = 'boolean'
    STRING = 'string'
    NUMBER = 'number'
    NUMBER_OR_STRING = 'number|string'
    ARRAY = 'array'
    UNKNOWN = 'unknown'
    NULL = 'null'
    OBJECT = 'object'


WELL_KNOWN_JSON: dict[str, WellKnownJson] = {
    '.google.protobuf.BoolValue': WellKnownJson.BOOLEAN,
    '.google.protobuf.BytesValue': WellKnownJson.STRING,
    '.google.protobuf.DoubleValue': WellKnownJson.NUMBER,
    '.google.protobuf.Duration': WellKnownJson.STRING,
    '.google.protobuf.FieldMask': WellKnownJson.STRING,
    '.google.protobuf.FloatValue': WellKnownJson.NUMBER,
    '.google.protobuf.Int32Value': WellKnownJson.NUMBER,
    '.google.protobuf.Int64Value': WellKnownJson.NUMBER_OR_STRING,
    '.google.protobuf.ListValue': WellKnownJson.ARRAY,
    '.google.protobuf.StringValue': WellKnownJson.STRING,
    '.google.protobuf.Timestamp': WellKnownJson.STRING,
    '.google.protobuf.UInt32Value': WellKnownJson.NUMBER,
    '.google.protobuf.UInt64Value': WellKnownJson.NUMBER_OR_STRING,
    '.google.protobuf.Value': WellKnownJson.UNKNOWN,
    '.google.protobuf.NullValue': WellKnownJson.NULL,
}

# Wrapper messages appear in JSON as the value of their single field.
WRAPPED_SCALARS: dict[str, int] = {
    '.google.protobuf.BoolValue': _FieldType.TYPE_BOOL,
    '.google.protobuf.BytesValue': _FieldType.TYPE_BYTES,
    '.google.protobuf.DoubleValue': _FieldType.TYPE_DOUBLE,
    '.google.protobuf.FloatValue': _FieldType.TYPE_FLOAT,
    '.google.protobuf.Int32Value': _FieldType.TYPE_INT32,
    '.google.protobuf.Int64Value': _FieldType.TYPE_INT64,
    '.google.protobuf.StringValue': _FieldType.TYPE_STRING,
    '.google.protobuf.UInt32Value': _FieldType.TYPE_UINT32,
    '.google.protobuf.UInt64Value': _FieldType.TYPE_UINT64,
}

# Suffixes of the BinaryReader and BinaryWriter methods for each scalar type.
# 64-bit integers go through the String variants, since doubles cannot hold
# them exactly.
_RW_SUFFIXES: dict[int, str] = {
    _FieldType.TYPE_DOUBLE: 'Double',
    _FieldType.TYPE_FLOAT: 'Float',
    _FieldType.TYPE_INT64: 'Int64String',
    _FieldType.TYPE_UINT64: 'Uint64String',
    _FieldType.TYPE_INT32: 'Int32',
    _FieldType.TYPE_FIXED64: 'Fixed64String',
    _FieldType.TYPE_FIXED32: 'Fixed32',
    _FieldType.TYPE_BOOL: 'Bool',
    _FieldType.TYPE_STRING: 'String',
    _FieldType.TYPE_BYTES: 'Bytes',
    _FieldType.TYPE_UINT32: 'Uint32',
    _FieldType.TYPE_ENUM: 'Enum',
    _FieldType.TYPE_SFIXED32: 'Sfixed32',
    _FieldType.TYPE_SFIXED64: 'Sfixed64String',
    _FieldType.TYPE_SINT32: 'Sint32',
    _FieldType.TYPE_SINT64: 'Sint64String',
}

_FLOAT_MAX = (2 - 2**-23) * 2**127
_DOUBLE_MAX = sys.float_info.max

# Closed ranges of each numeric type, as TypeScript literals. 64-bit bounds are
# BigInt literals so they compare exactly against numeric strings.
NUMERIC_RANGES: dict[int, tuple[str, str]] = {
    _FieldType.TYPE_FLOAT: (repr(-_FLOAT_MAX), repr(_FLOAT_MAX)),
    _FieldType.TYPE_DOUBLE: (repr(-_DOUBLE_MAX), repr(_DOUBLE_MAX)),
    _FieldType.TYPE_UINT32: ('0', str(2**32 - 1)),
    _FieldType.TYPE_FIXED32: ('0', str(2**32 - 1)),
    _FieldType.TYPE_INT32: (str(-(2**31)), str(2**31 - 1)),
    _FieldType.TYPE_SFIXED32: (str(-(2**31)), str(2**31 - 1)),
    _FieldType.TYPE_SINT32: (str(-(2**31)), str(2**31 - 1)),
    _FieldType.TYPE_UINT64: ('0n', f'{2**64 - 1}n'),
    _FieldType.TYPE_FIXED64: ('0n', f'{2**64 - 1}n'),
    _FieldType.TYPE_INT64: (f'{-(2**63)}n', f'{2**63 - 1}n'),
    _FieldType.TYPE_SFIXED64: (f'{-(2**63)}n', f'{2**63 - 1}n'),
    _FieldType.TYPE_SINT64: (f'{-(2**63)}n', f'{2**63 - 1}n'),
}

_PACKABLE_KINDS = frozenset(
    (FieldKind.NUMBER, FieldKind.BIGINT, FieldKind.BOOL, FieldKind.ENUM)
)

_FIXED64_TYPES = frozenset((_FieldType.TYPE_FIXED64, _FieldType.TYPE_SFIXED64))


def is_well_known_message(field: ProtoMessageField) -> bool:
    return field.is_message() and field.type_name() in WELL_KNOWN_JSON


def well_known_json(field: ProtoMessageField) -> WellKnownJson:
    """The JSON shape of a field, treating ordinary messages as objects."""
    return WELL_KNOWN_JSON.get(field.type_name(), WellKnownJson.OBJECT)


def wrapped_value_field(
    field: ProtoMessageField,
) -> ProtoMessageField | None:
    """The `value` field of a wrapper message type, or None for other types."""
    if not field.is_message():
        return None
    wrapped_type = WRAPPED_SCALARS.get(field.type_name())
    if wrapped_type is None:
        return None
    return ProtoMessageField('value', 1, wrapped_type)


def is_map(field: ProtoMessageField, ctx: Context) -> bool:
    """True if the field's type is a registered map entry."""
    if not field.is_message():
        return False
    return ctx.get_map_type(field.type_name()) is not None


def classify(field: ProtoMessageField, ctx: Context) -> FieldKind:
    """Returns the kind of a field's values."""
    if field.is_message():
        if is_map(field, ctx):
            return FieldKind.MAP
        if is_well_known_message(field):
            return FieldKind.WELL_KNOWN
        return FieldKind.MESSAGE
    if field.is_string():
        return FieldKind.STRING
    if field.is_bytes():
        return FieldKind.BYTES
    if field.is_boolean():
        return FieldKind.BOOL
    if field.is_enum():
        return FieldKind.ENUM
    if field.is_bigint():
        return FieldKind.BIGINT
    if field.is_number():
        return FieldKind.NUMBER

    raise CodegenError(
        f'unsupported field type {field.type()}',
        field.type_name() or None,
        field.name(),
    )


def is_packable(field: ProtoMessageField, ctx: Context) -> bool:
    """True if a repeated field may appear packed on the wire."""
    if not field.is_repeated() or field.is_message():
        return False
    return classify(field, ctx) in _PACKABLE_KINDS


def is_packed(field: ProtoMessageField, ctx: Context) -> bool:
    """True if a repeated field uses packed wire encoding.

    Repeated scalar numeric fields are packed by default in proto3 and only
    when requested with [packed=true] otherwise.
    """
    if not is_packable(field, ctx):
        return False

    packed = field.packed_option()
    if packed is not None:
        return packed
    return ctx.syntax == Syntax.PROTO3


def is_split_fixed64(field: ProtoMessageField, ctx: Context) -> bool:
    """Packed 64-bit fixed fields are written as split 32-bit halves."""
    return field.type() in _FIXED64_TYPES and is_packed(field, ctx)


def proto3_default(field: ProtoMessageField, ctx: Context) -> str | None:
    """The TypeScript literal of a field's proto3 zero value, if it has one.

    Containers, bytes and messages have no comparable literal; their emptiness
    or presence is checked instead.
    """
    if field.is_repeated():
        return None

    kind = classify(field, ctx)
    if kind is FieldKind.STRING:
        return '""'
    if kind is FieldKind.BOOL:
        return 'false'
    if kind is FieldKind.BIGINT:
        return '0n'
    if kind in (FieldKind.NUMBER, FieldKind.ENUM):
        return '0'
    return None


def presence_expr(
    field: ProtoMessageField,
    ctx: Context,
    accessor: str,
    from_json: bool = False,
) -> str:
    """Condition under which a field's value is encoded.

    Unset values are skipped, as are empty containers and bytes. In proto3,
    scalars holding their zero value are skipped too, unless the field is a
    oneof member, whose presence is observable.

    Args:
      field: The field being encoded.
      ctx: Context of the file being generated.
      accessor: TypeScript expression reading the value.
      from_json: The value comes from a parsed JSON object. Containers are
          then only checked for being set, since their shape is validated
          before they are read.
    """
    kind = classify(field, ctx)

    # null is a valid JSON value for google.protobuf.Value.
    if (
        well_known_json(field) is WellKnownJson.UNKNOWN
        and not field.is_repeated()
    ):
        defined = f'{accessor} !== undefined'
    else:
        defined = f'{accessor} !== null && {accessor} !== undefined'

    if field.has_oneof_index():
        return defined

    if from_json and (kind is FieldKind.MAP or field.is_repeated()):
        return defined

    if kind is FieldKind.MAP:
        return f'{defined} && {accessor}.size !== 0'

    if field.is_repeated() or kind is FieldKind.BYTES:
        return f'{defined} && {accessor}.length !== 0'

    default = proto3_default(field, ctx)
    if default is not None and ctx.syntax is Syntax.PROTO3:
        return f'{defined} && {accessor} !== {default}'
    return defined


def zero_value(field: ProtoMessageField, ctx: Context) -> str:
    """A fresh TypeScript value for a singular field with nothing set."""
    kind = classify(field, ctx)
    if kind is FieldKind.BYTES:
        return 'new Uint8Array()'
    if kind in (FieldKind.MESSAGE, FieldKind.WELL_KNOWN):
        return f'new {ctx.lazy_type_ref(field.type_name())}()'

    default = proto3_default(field, ctx)
    if default is None:
        raise CodegenError(
            'field has no zero value', field.type_name() or None, field.name()
        )
    return default


def rw_function_name(
    prefix: str,
    field: ProtoMessageField,
    ctx: Context,
    packed: bool | None = None,
) -> str:
    """Name of the BinaryReader/BinaryWriter method for a scalar field.

    For example, ('write', repeated int64 in proto3) gives
    'writePackedInt64String'. Readers pass packed explicitly, since a
    packable field may arrive in either encoding.
    """
    try:
        suffix = _RW_SUFFIXES[field.type()]
    except KeyError:
        raise CodegenError(
            f'no binary {prefix} method for field type {field.type()}',
            field.type_name() or None,
            field.name(),
        ) from None

    if packed is None:
        packed = is_packed(field, ctx)
    if packed:
        return f'{prefix}Packed{suffix}'
    return f'{prefix}{suffix}'


def map_entry_fields(
    field: ProtoMessageField, ctx: Context
) -> tuple[ProtoMessageField, ProtoMessageField]:
    """Returns the (key, value) fields of a map field's entry type."""
    entry = ctx.get_map_type(field.type_name())
    if entry is None:
        raise UnresolvedMapTypeError(field.type_name(), field.name())
    key, value = entry.fields()
    return key, value


def map_element_type(field: ProtoMessageField, ctx: Context) -> str:
    """TypeScript type of a map key or value."""
    kind = classify(field, ctx)
    if kind is FieldKind.STRING:
        return 'string'
    if kind is FieldKind.BIGINT:
        return 'bigint'
    if kind in (FieldKind.NUMBER, FieldKind.ENUM):
        return 'number'
    if kind is FieldKind.BOOL:
        return 'boolean'
    if kind is FieldKind.BYTES:
        return 'Uint8Array'
    if kind in (FieldKind.MESSAGE, FieldKind.WELL_KNOWN):
        return ctx.lazy_type_ref(field.type_name())
    return 'object'


def ts_type(field: ProtoMessageField, ctx: Context) -> str:
    """TypeScript type of a single value of the field.

    Repeated fields hold arrays of this type; map fields are Maps.
    """
    kind = classify(field, ctx)
    if kind is FieldKind.MAP:
        key, value = map_entry_fields(field, ctx)
        return (
            f'Map<{map_element_type(key, ctx)}, '
            f'{map_element_type(value, ctx)}>'
        )
    if kind in (FieldKind.ENUM, FieldKind.MESSAGE, FieldKind.WELL_KNOWN):
        return ctx.lazy_type_ref(field.type_name())
    return map_element_type(field, ctx)
