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
"""This module defines data structures for protobuf entities."""

import abc
import collections
import enum

from google.protobuf import descriptor_pb2

_FieldType = descriptor_pb2.FieldDescriptorProto


class ProtoNode(abc.ABC):
    """A ProtoNode represents an entity in a .proto file.

    Nodes form a tree beginning at the file's package and descending into the
    messages and enums defined within it.
    """

    class Type(enum.Enum):
        """The type of a ProtoNode.

        PACKAGE maps to an optional TypeScript namespace.
        MESSAGE maps to an exported TypeScript class.
        ENUM maps to an exported TypeScript enum.
        """

        PACKAGE = 1
        MESSAGE = 2
        ENUM = 3

    def __init__(self, name: str):
        self._name: str = name
        self._children: dict[str, 'ProtoNode'] = collections.OrderedDict()

    @abc.abstractmethod
    def type(self) -> 'ProtoNode.Type':
        """The type of the node."""

    def children(self) -> list['ProtoNode']:
        return list(self._children.values())

    def name(self) -> str:
        return self._name

    def add_child(self, child: 'ProtoNode') -> None:
        """Inserts a new node into the tree as a child of this node.

        Args:
          child: The node to insert.

        Raises:
          ValueError: This node does not allow nesting the given type of child.
        """
        if not self._supports_child(child):
            raise ValueError(
                'Invalid child %s for node of type %s'
                % (child.type(), self.type())
            )

        self._children[child.name()] = child

    @abc.abstractmethod
    def _supports_child(self, child: 'ProtoNode') -> bool:
        """Returns True if child is a valid child type for the current node."""


class ProtoPackage(ProtoNode):
    """A protobuf package, named by its full dotted path."""

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.PACKAGE

    def _supports_child(self, child: ProtoNode) -> bool:
        return child.type() != ProtoNode.Type.PACKAGE


class ProtoEnum(ProtoNode):
    """Representation of an enum in a .proto file."""

    def __init__(self, name: str):
        super().__init__(name)
        self._values: list[tuple[str, int]] = []

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.ENUM

    def values(self) -> list[tuple[str, int]]:
        return list(self._values)

    def add_value(self, name: str, value: int) -> None:
        self._values.append((name, value))

    def _supports_child(self, child: ProtoNode) -> bool:
        # Enums cannot have nested children.
        return False


class ProtoMessage(ProtoNode):
    """Representation of a message in a .proto file."""

    def __init__(self, name: str, map_entry: bool = False):
        super().__init__(name)
        self._fields: list['ProtoMessageField'] = []
        self._map_entry = map_entry

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.MESSAGE

    def fields(self) -> list['ProtoMessageField']:
        return list(self._fields)

    def add_field(self, field: 'ProtoMessageField') -> None:
        self._fields.append(field)

    def is_map_entry(self) -> bool:
        """True for the synthetic key/value message backing a map field."""
        return self._map_entry

    def has_oneof_fields(self) -> bool:
        return any(field.has_oneof_index() for field in self._fields)

    def _supports_child(self, child: ProtoNode) -> bool:
        return (
            child.type() == self.Type.ENUM or child.type() == self.Type.MESSAGE
        )


# This class is not a node and does not appear in the proto tree.
# Fields belong to proto messages and are processed separately.
class ProtoMessageField:
    """Representation of a field within a protobuf message.

    The predicates here only depend on the field itself. Predicates which need
    the registry of known types, such as whether a field is a map, live in
    field_kind.
    """

    def __init__(
        self,
        field_name: str,
        field_number: int,
        field_type: int,
        type_name: str = '',
        repeated: bool = False,
        oneof_index: int | None = None,
        json_name: str | None = None,
        packed: bool | None = None,
        default_value: str | None = None,
    ):
        self._field_name = field_name
        self._number: int = field_number
        self._type: int = field_type
        self._type_name: str = type_name
        self._repeated: bool = repeated
        self._oneof_index: int | None = oneof_index
        self._json_name: str | None = json_name
        self._packed: bool | None = packed
        self._default_value: str | None = default_value

    @classmethod
    def from_descriptor(
        cls, field: descriptor_pb2.FieldDescriptorProto
    ) -> 'ProtoMessageField':
        return cls(
            field.name,
            field.number,
            field.type,
            field.type_name,
            field.label == _FieldType.LABEL_REPEATED,
            field.oneof_index if field.HasField('oneof_index') else None,
            field.json_name if field.HasField('json_name') else None,
            (
                field.options.packed
                if field.options.HasField('packed')
                else None
            ),
            (
                field.default_value
                if field.HasField('default_value')
                else None
            ),
        )

    def name(self) -> str:
        return self._field_name

    def number(self) -> int:
        return self._number

    def type(self) -> int:
        return self._type

    def type_name(self) -> str:
        """Fully-qualified name of a message or enum type, e.g. '.foo.Bar'."""
        return self._type_name

    def is_repeated(self) -> bool:
        return self._repeated

    def has_oneof_index(self) -> bool:
        return self._oneof_index is not None

    def oneof_index(self) -> int | None:
        return self._oneof_index

    def packed_option(self) -> bool | None:
        """The explicit [packed=...] option, or None when unset."""
        return self._packed

    def default_value(self) -> str | None:
        """The proto2 [default=...] value as written in the descriptor."""
        return self._default_value

    def json_key_name(self) -> str:
        """The key under which this field appears in JSON objects."""
        if self._json_name:
            return self._json_name
        return self._field_name

    def is_string(self) -> bool:
        return self._type == _FieldType.TYPE_STRING

    def is_bytes(self) -> bool:
        return self._type == _FieldType.TYPE_BYTES

    def is_boolean(self) -> bool:
        return self._type == _FieldType.TYPE_BOOL

    def is_enum(self) -> bool:
        return self._type == _FieldType.TYPE_ENUM

    def is_message(self) -> bool:
        return self._type in (_FieldType.TYPE_MESSAGE, _FieldType.TYPE_GROUP)

    def is_bigint(self) -> bool:
        """64-bit integers, which do not fit a double exactly."""
        return self._type in _BIGINT_TYPES

    def is_integer(self) -> bool:
        return self._type in _INTEGER_TYPES

    def is_number(self) -> bool:
        """Numeric kinds which fit a double exactly."""
        return self._type in _NUMBER_TYPES


_BIGINT_TYPES = frozenset(
    (
        _FieldType.TYPE_INT64,
        _FieldType.TYPE_UINT64,
        _FieldType.TYPE_SINT64,
        _FieldType.TYPE_FIXED64,
        _FieldType.TYPE_SFIXED64,
    )
)

_NUMBER_TYPES = frozenset(
    (
        _FieldType.TYPE_FLOAT,
        _FieldType.TYPE_DOUBLE,
        _FieldType.TYPE_INT32,
        _FieldType.TYPE_UINT32,
        _FieldType.TYPE_SINT32,
        _FieldType.TYPE_FIXED32,
        _FieldType.TYPE_SFIXED32,
    )
)

_INTEGER_TYPES = _BIGINT_TYPES | frozenset(
    (
        _FieldType.TYPE_INT32,
        _FieldType.TYPE_UINT32,
        _FieldType.TYPE_SINT32,
        _FieldType.TYPE_FIXED32,
        _FieldType.TYPE_SFIXED32,
    )
)


def _add_enum_values(enum_node: ProtoEnum, proto_enum) -> None:
    """Adds values from a protobuf enum descriptor to an enum node."""
    for value in proto_enum.value:
        enum_node.add_value(value.name, value.number)


def _add_message_fields(message: ProtoMessage, proto_message) -> None:
    """Adds fields from a protobuf message descriptor to a message node."""
    for field in proto_message.field:
        message.add_field(ProtoMessageField.from_descriptor(field))


def _build_message_subtree(proto_message) -> ProtoMessage:
    node = ProtoMessage(
        proto_message.name, map_entry=proto_message.options.map_entry
    )
    _add_message_fields(node, proto_message)

    for proto_enum in proto_message.enum_type:
        enum_node = ProtoEnum(proto_enum.name)
        _add_enum_values(enum_node, proto_enum)
        node.add_child(enum_node)
    for submessage in proto_message.nested_type:
        node.add_child(_build_message_subtree(submessage))

    return node


def build_node_tree(file_descriptor_proto) -> ProtoPackage:
    """Constructs a tree of proto nodes from a file descriptor.

    Returns the node representing the file's package. Type references are not
    resolved here; they are looked up in the shared type registry during code
    generation, since they may point into other files.
    """
    package = ProtoPackage(file_descriptor_proto.package)

    for proto_enum in file_descriptor_proto.enum_type:
        enum_node = ProtoEnum(proto_enum.name)
        _add_enum_values(enum_node, proto_enum)
        package.add_child(enum_node)

    for message in file_descriptor_proto.message_type:
        package.add_child(_build_message_subtree(message))

    return package
