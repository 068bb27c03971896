#!/usr/bin/env python3
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
"""Tests the generated binary codec statements."""

import unittest

from google.protobuf import descriptor_pb2

from pw_protobuf_ts.context import Context, Syntax
from pw_protobuf_ts.options import GeneratorOptions
from pw_protobuf_ts.proto_tree import ProtoMessage, ProtoMessageField
from pw_protobuf_ts.wire_codec import (
    deserialize_field,
    generate_from_binary,
    generate_to_binary,
    serialize_field,
)

_FieldType = descriptor_pb2.FieldDescriptorProto

_DEFINED = 'this.{0} !== null && this.{0} !== undefined'


def _file_context(
    syntax: Syntax = Syntax.PROTO3,
    options: GeneratorOptions = GeneratorOptions(),
) -> Context:
    root = Context(options)
    ctx = root.fork('test.proto', syntax).descend('pkg')
    ctx.register_type_name('Msg')
    ctx.register_type_name('Other')

    counts = ProtoMessage('CountsEntry', map_entry=True)
    counts.add_field(ProtoMessageField('key', 1, _FieldType.TYPE_STRING))
    counts.add_field(ProtoMessageField('value', 2, _FieldType.TYPE_INT64))
    ctx.descend('Msg').register_map_type(counts)

    others = ProtoMessage('OthersEntry', map_entry=True)
    others.add_field(ProtoMessageField('key', 1, _FieldType.TYPE_INT32))
    others.add_field(
        ProtoMessageField('value', 2, _FieldType.TYPE_MESSAGE, '.pkg.Other')
    )
    ctx.descend('Msg').register_map_type(others)

    root.freeze()
    return ctx


_COUNTS = ProtoMessageField(
    'counts', 7, _FieldType.TYPE_MESSAGE, '.pkg.Msg.CountsEntry', repeated=True
)


class SerializeTest(unittest.TestCase):
    """Tests statements written into toBinary()."""

    def test_proto3_string_skips_default(self):
        field = ProtoMessageField('name', 1, _FieldType.TYPE_STRING)
        self.assertEqual(
            serialize_field(_file_context(), field, 'this.name'),
            [
                f'if ({_DEFINED.format("name")} && this.name !== "") {{',
                '  bw.writeString(1, this.name);',
                '}',
            ],
        )

    def test_proto2_scalar_writes_default(self):
        field = ProtoMessageField('count', 3, _FieldType.TYPE_INT32)
        self.assertEqual(
            serialize_field(_file_context(Syntax.PROTO2), field, 'this.count'),
            [
                f'if ({_DEFINED.format("count")}) {{',
                '  bw.writeInt32(3, this.count);',
                '}',
            ],
        )

    def test_bigint_is_written_as_string(self):
        field = ProtoMessageField('id', 2, _FieldType.TYPE_UINT64)
        self.assertEqual(
            serialize_field(_file_context(), field, 'this.id')[1],
            '  bw.writeUint64String(2, this.id.toString());',
        )

    def test_packed_bigints(self):
        field = ProtoMessageField(
            'ids', 3, _FieldType.TYPE_INT64, repeated=True
        )
        self.assertEqual(
            serialize_field(_file_context(), field, 'this.ids'),
            [
                f'if ({_DEFINED.format("ids")} && this.ids.length !== 0) {{',
                '  bw.writePackedInt64String(3, '
                'this.ids.map((v) => v.toString()));',
                '}',
            ],
        )

    def test_packed_fixed64_is_split(self):
        for field_type in (_FieldType.TYPE_FIXED64, _FieldType.TYPE_SFIXED64):
            field = ProtoMessageField('stamps', 4, field_type, repeated=True)
            self.assertEqual(
                serialize_field(_file_context(), field, 'this.stamps')[1],
                '  bw.writePackedSplitFixed64(4, this.stamps, '
                '(i: bigint) => Number(i & 4294967295n), '
                '(i: bigint) => Number((i >> 32n) & 4294967295n));',
            )

    def test_unpacked_repeated_loops(self):
        field = ProtoMessageField(
            'tags', 5, _FieldType.TYPE_STRING, repeated=True
        )
        self.assertEqual(
            serialize_field(_file_context(), field, 'this.tags')[1:],
            [
                '  for (const item of this.tags) {',
                '    bw.writeString(5, item);',
                '  }',
                '}',
            ],
        )

    def test_proto2_repeated_numbers_are_unpacked(self):
        field = ProtoMessageField(
            'values', 6, _FieldType.TYPE_INT32, repeated=True
        )
        self.assertEqual(
            serialize_field(
                _file_context(Syntax.PROTO2), field, 'this.values'
            )[2],
            '    bw.writeInt32(6, item);',
        )

    def test_sendable_loops_and_bytes(self):
        ctx = _file_context(options=GeneratorOptions(with_sendable=True))
        tags = ProtoMessageField(
            'tags', 5, _FieldType.TYPE_STRING, repeated=True
        )
        self.assertEqual(
            serialize_field(ctx, tags, 'this.tags')[1:4],
            [
                '  this.tags.forEach((item) => {',
                '    bw.writeString(5, item);',
                '  });',
            ],
        )

        data = ProtoMessageField('data', 8, _FieldType.TYPE_BYTES)
        self.assertEqual(
            serialize_field(ctx, data, 'this.data')[1],
            '  bw.writeBytes(8, Uint8Array.from(this.data));',
        )

    def test_message(self):
        field = ProtoMessageField(
            'other', 6, _FieldType.TYPE_MESSAGE, '.pkg.Other'
        )
        self.assertEqual(
            serialize_field(_file_context(), field, 'this.other'),
            [
                f'if ({_DEFINED.format("other")}) {{',
                '  bw.writeBytes(6, this.other.toBinary());',
                '}',
            ],
        )

    def test_map_writes_every_entry(self):
        self.assertEqual(
            serialize_field(_file_context(), _COUNTS, 'this.counts'),
            [
                f'if ({_DEFINED.format("counts")} '
                '&& this.counts.size !== 0) {',
                '  for (const [key, value] of this.counts.entries()) {',
                '    bw.beginSubMessage(7);',
                '    bw.writeString(1, key);',
                '    bw.writeInt64String(2, value.toString());',
                '    bw.endSubMessage();',
                '  }',
                '}',
            ],
        )

    def test_to_binary_method(self):
        ctx = _file_context()
        message = ProtoMessage('Msg')
        message.add_field(ProtoMessageField('name', 1, _FieldType.TYPE_STRING))

        method = generate_to_binary(ctx, message)
        lines = method.lines()
        self.assertEqual(lines[0], 'toBinary(): Uint8Array {')
        self.assertEqual(
            lines[1], '  const bw: BinaryWriter = new BinaryWriter();'
        )
        self.assertEqual(lines[-2], '  return bw.getResultBuffer();')
        self.assertEqual(
            ctx.drain_imports(),
            ['import { BinaryReader, BinaryWriter } from "google-protobuf";'],
        )


class DeserializeTest(unittest.TestCase):
    """Tests statements read in fromBinary()."""

    def test_scalars(self):
        ctx = _file_context()
        self.assertEqual(
            deserialize_field(
                ctx,
                ProtoMessageField('name', 1, _FieldType.TYPE_STRING),
                'message.name',
            ),
            ['message.name = br.readString();'],
        )
        self.assertEqual(
            deserialize_field(
                ctx,
                ProtoMessageField('id', 2, _FieldType.TYPE_SINT64),
                'message.id',
            ),
            ['message.id = BigInt(br.readSint64String());'],
        )

    def test_repeated_numbers_accept_both_encodings(self):
        field = ProtoMessageField(
            'ids', 3, _FieldType.TYPE_INT64, repeated=True
        )
        self.assertEqual(
            deserialize_field(_file_context(), field, 'message.ids'),
            [
                'if (br.isDelimited()) {',
                '  message.ids.push('
                '...br.readPackedInt64String().map((v) => BigInt(v)));',
                '} else {',
                '  message.ids.push(BigInt(br.readInt64String()));',
                '}',
            ],
        )

    def test_repeated_strings(self):
        field = ProtoMessageField(
            'tags', 5, _FieldType.TYPE_STRING, repeated=True
        )
        self.assertEqual(
            deserialize_field(_file_context(), field, 'message.tags'),
            ['message.tags.push(br.readString());'],
        )

    def test_message(self):
        field = ProtoMessageField(
            'other', 6, _FieldType.TYPE_MESSAGE, '.pkg.Other'
        )
        self.assertEqual(
            deserialize_field(_file_context(), field, 'message.other'),
            ['message.other = Other.fromBinary(br.readBytes());'],
        )

    def test_map(self):
        self.assertEqual(
            deserialize_field(_file_context(), _COUNTS, 'message.counts'),
            [
                'const entry = new BinaryReader(br.readBytes());',
                'let key: string = "";',
                'let value: bigint = 0n;',
                'while (entry.nextField()) {',
                '  switch (entry.getFieldNumber()) {',
                '    case 1:',
                '      key = entry.readString();',
                '      break;',
                '    case 2:',
                '      value = BigInt(entry.readInt64String());',
                '      break;',
                '    default:',
                '      entry.skipField();',
                '  }',
                '}',
                'message.counts.set(key, value);',
            ],
        )

    def test_map_of_messages(self):
        field = ProtoMessageField(
            'others',
            8,
            _FieldType.TYPE_MESSAGE,
            '.pkg.Msg.OthersEntry',
            repeated=True,
        )
        lines = deserialize_field(_file_context(), field, 'message.others')
        self.assertIn('let key: number = 0;', lines)
        self.assertIn('let value: Other = new Other();', lines)
        self.assertIn(
            '      value = Other.fromBinary(entry.readBytes());', lines
        )

    def test_from_binary_method(self):
        message = ProtoMessage('Msg')
        message.add_field(ProtoMessageField('name', 1, _FieldType.TYPE_STRING))

        method = generate_from_binary(_file_context(), message, 'Msg')
        self.assertEqual(
            method.signature(), 'static fromBinary(bytes: Uint8Array): Msg'
        )

        code = '\n'.join(method.lines())
        self.assertIn('const br: BinaryReader = new BinaryReader(bytes);', code)
        self.assertIn('const message: Msg = new Msg();', code)
        self.assertIn('case 1: {', code)
        self.assertIn('message.name = br.readString();', code)
        self.assertIn('br.skipField();', code)
        self.assertTrue(code.endswith('  return message;\n}'))


if __name__ == '__main__':
    unittest.main()
