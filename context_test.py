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
"""Tests for the type registry and per-file generation context."""

import unittest

from google.protobuf import descriptor_pb2

from pw_protobuf_ts.context import (
    Context,
    Syntax,
    TypeRegistry,
    resolve_relative,
)
from pw_protobuf_ts.errors import (
    CodegenError,
    RegistryFrozenError,
    RegistryNotFrozenError,
    UnresolvedEnumError,
    UnresolvedTypeError,
)
from pw_protobuf_ts.options import GeneratorOptions
from pw_protobuf_ts.proto_tree import ProtoEnum, ProtoMessage, ProtoMessageField

_FieldType = descriptor_pb2.FieldDescriptorProto


def _session(options: GeneratorOptions = GeneratorOptions()) -> Context:
    """Registers a.proto (package foo.bar) and b.proto and freezes them."""
    root = Context(options)

    a_ctx = root.fork('a/a.proto', Syntax.PROTO3).descend('foo.bar')
    a_ctx.register_type_name('Msg')
    a_ctx.descend('Msg').register_type_name('Inner')

    color = ProtoEnum('Color')
    color.add_value('GREEN', 2)
    color.add_value('RED', 0)
    a_ctx.register_type_name('Color')
    a_ctx.register_leading_enum_member(color)

    b_ctx = root.fork('b/b.proto', Syntax.PROTO3).descend('baz')
    b_ctx.register_type_name('Other')

    root.freeze()
    return root


class ResolveRelativeTest(unittest.TestCase):
    """Tests resolving import paths between generated files."""

    def test_same_directory(self):
        self.assertEqual(
            resolve_relative('a/b.proto', 'a/c.proto'), './b.proto'
        )

    def test_sibling_directory(self):
        self.assertEqual(
            resolve_relative('b/b.proto', 'a/a.proto'), '../b/b.proto'
        )

    def test_subdirectory(self):
        self.assertEqual(
            resolve_relative('a/sub/b.proto', 'a/c.proto'), './sub/b.proto'
        )

    def test_top_level_files(self):
        self.assertEqual(resolve_relative('b.proto', 'c.proto'), './b.proto')

    def test_from_nested_file_to_top_level(self):
        self.assertEqual(
            resolve_relative('b.proto', 'a/x/c.proto'), '../../b.proto'
        )


class TypeRegistryTest(unittest.TestCase):
    """Tests the two phases of the type registry."""

    def test_lookup_before_freeze_fails(self):
        registry = TypeRegistry()
        registry.add_type('.pkg.Msg', 'pkg.proto')
        with self.assertRaises(RegistryNotFrozenError):
            registry.provider('.pkg.Msg')

    def test_register_after_freeze_fails(self):
        registry = TypeRegistry()
        registry.freeze()
        with self.assertRaises(RegistryFrozenError):
            registry.add_type('.pkg.Msg', 'pkg.proto')
        with self.assertRaises(RegistryFrozenError):
            registry.add_leading_enum_member('.pkg.Enum', 0)

    def test_phase_errors_are_codegen_errors(self):
        registry = TypeRegistry()
        with self.assertRaises(CodegenError):
            registry.map_type('.pkg.Msg.Entry')

    def test_lookup_after_freeze(self):
        registry = TypeRegistry()
        registry.add_type('.pkg.Msg', 'pkg.proto')
        registry.freeze()
        self.assertTrue(registry.frozen())
        self.assertEqual(registry.provider('.pkg.Msg'), 'pkg.proto')
        self.assertIsNone(registry.provider('.pkg.Missing'))


class ContextTest(unittest.TestCase):
    """Tests type resolution and import bookkeeping."""

    def test_calculate_type_name(self):
        ctx = Context(GeneratorOptions()).fork('a.proto', Syntax.PROTO3)
        self.assertEqual(ctx.calculate_type_name('Msg'), '.Msg')
        self.assertEqual(
            ctx.descend('foo.bar').descend('Msg').calculate_type_name('Inner'),
            '.foo.bar.Msg.Inner',
        )

    def test_local_reference_adds_no_import(self):
        ctx = _session().fork('a/a.proto', Syntax.PROTO3)
        self.assertEqual(ctx.lazy_type_ref('.foo.bar.Msg'), 'Msg')
        self.assertEqual(ctx.lazy_type_ref('.foo.bar.Msg.Inner'), 'Inner')
        self.assertEqual(ctx.drain_imports(), [])

    def test_remote_reference_adds_relative_import(self):
        ctx = _session().fork('b/b.proto', Syntax.PROTO3)
        self.assertEqual(ctx.lazy_type_ref('.foo.bar.Msg'), 'Msg')
        self.assertEqual(
            ctx.drain_imports(), ['import { Msg } from "../a/a";']
        )

    def test_repeated_references_import_once(self):
        ctx = _session().fork('b/b.proto', Syntax.PROTO3)
        ctx.lazy_type_ref('.foo.bar.Msg')
        ctx.lazy_type_ref('.foo.bar.Color')
        ctx.lazy_type_ref('.foo.bar.Msg')
        self.assertEqual(
            ctx.drain_imports(), ['import { Msg, Color } from "../a/a";']
        )

    def test_drain_clears_imports(self):
        ctx = _session().fork('b/b.proto', Syntax.PROTO3)
        ctx.lazy_type_ref('.foo.bar.Msg')
        ctx.drain_imports()
        self.assertEqual(ctx.drain_imports(), [])

    def test_import_suffix(self):
        ctx = _session(GeneratorOptions(import_suffix='.js')).fork(
            'b/b.proto', Syntax.PROTO3
        )
        ctx.lazy_type_ref('.foo.bar.Msg')
        self.assertEqual(
            ctx.drain_imports(), ['import { Msg } from "../a/a.js";']
        )

    def test_with_namespace_names(self):
        options = GeneratorOptions(with_namespace=True)
        session = _session(options)

        local = session.fork('a/a.proto', Syntax.PROTO3)
        self.assertEqual(
            local.lazy_type_ref('.foo.bar.Msg.Inner'), 'foo_bar_Msg_Inner'
        )

        remote = session.fork('b/b.proto', Syntax.PROTO3)
        self.assertEqual(remote.lazy_type_ref('.foo.bar.Msg'), 'foo_bar_Msg')
        self.assertEqual(
            remote.drain_imports(), ['import { foo_bar_Msg } from "../a/a";']
        )

    def test_normalize_name(self):
        ctx = Context(GeneratorOptions(with_namespace=True)).descend('foo.bar')
        self.assertEqual(ctx.normalize_name('Msg'), 'foo_bar_Msg')

        ctx = Context(GeneratorOptions()).descend('foo.bar')
        self.assertEqual(ctx.normalize_name('Msg'), 'Msg')

    def test_unresolved_type(self):
        ctx = _session().fork('a/a.proto', Syntax.PROTO3)
        with self.assertRaises(UnresolvedTypeError) as context:
            ctx.lazy_type_ref('.nowhere.Missing')
        self.assertEqual(context.exception.type_name, '.nowhere.Missing')
        self.assertIn(
            'no proto provides .nowhere.Missing',
            context.exception.formatted_message(),
        )

    def test_leading_enum_member(self):
        ctx = _session().fork('b/b.proto', Syntax.PROTO2)
        self.assertEqual(ctx.get_leading_enum_member('.foo.bar.Color'), 2)
        with self.assertRaises(UnresolvedEnumError):
            ctx.get_leading_enum_member('.foo.bar.Msg')

    def test_empty_enum_is_rejected(self):
        ctx = Context(GeneratorOptions()).fork('a.proto', Syntax.PROTO2)
        with self.assertRaises(CodegenError):
            ctx.register_leading_enum_member(ProtoEnum('Empty'))

    def test_map_entry_needs_two_fields(self):
        ctx = Context(GeneratorOptions()).fork('a.proto', Syntax.PROTO3)
        entry = ProtoMessage('ValuesEntry', map_entry=True)
        entry.add_field(ProtoMessageField('key', 1, _FieldType.TYPE_STRING))
        with self.assertRaises(CodegenError):
            ctx.register_map_type(entry)

    def test_fork_shares_registry_but_not_imports(self):
        session = _session()
        a_ctx = session.fork('a/a.proto', Syntax.PROTO3)
        b_ctx = session.fork('b/b.proto', Syntax.PROTO3)
        self.assertIs(a_ctx.registry, b_ctx.registry)

        b_ctx.lazy_type_ref('.foo.bar.Msg')
        self.assertEqual(a_ctx.drain_imports(), [])
        self.assertEqual(len(b_ctx.drain_imports()), 1)

    def test_descend_shares_imports(self):
        ctx = _session().fork('b/b.proto', Syntax.PROTO3)
        ctx.descend('baz').lazy_type_ref('.foo.bar.Msg')
        self.assertEqual(
            ctx.drain_imports(), ['import { Msg } from "../a/a";']
        )

    def test_helpers_are_declared_once(self):
        ctx = Context(GeneratorOptions()).fork('a.proto', Syntax.PROTO3)
        self.assertEqual(ctx.add_helper('f', ['function f() {}']), 'f')
        ctx.descend('pkg').add_helper('f', ['function f() { other }'])
        ctx.add_helper('g', ['function g() {}'])
        self.assertEqual(
            ctx.drain_helpers(),
            ['', 'function f() {}', '', 'function g() {}'],
        )
        self.assertEqual(ctx.drain_helpers(), [])

    def test_fork_does_not_share_helpers(self):
        session = _session()
        a_ctx = session.fork('a/a.proto', Syntax.PROTO3)
        b_ctx = session.fork('b/b.proto', Syntax.PROTO3)
        a_ctx.add_helper('f', ['function f() {}'])
        self.assertEqual(b_ctx.drain_helpers(), [])

    def test_descend_if_necessary(self):
        ctx = Context(GeneratorOptions()).fork('a.proto', Syntax.PROTO3)
        self.assertIs(ctx.descend_if_necessary(''), ctx)
        self.assertEqual(ctx.descend_if_necessary('pkg').namespace(), ['pkg'])

    def test_runtime_imports(self):
        ctx = Context(GeneratorOptions(runtime_package='my-runtime'))
        ctx.get_protobuf_import()
        ctx.get_base64_import()
        self.assertEqual(
            ctx.drain_imports(),
            [
                'import { BinaryReader, BinaryWriter } from "my-runtime";',
                'import { fromUint8Array, toUint8Array } from "js-base64";',
            ],
        )

    def test_wrap_if_needed(self):
        ctx = Context(GeneratorOptions(namespaces=True)).descend('foo.bar')
        self.assertEqual(
            ctx.wrap_if_needed(['export class A {', '}']),
            ['export namespace foo.bar {', '  export class A {', '  }', '}'],
        )

        unwrapped = Context(GeneratorOptions()).descend('foo.bar')
        self.assertEqual(unwrapped.wrap_if_needed(['x']), ['x'])


if __name__ == '__main__':
    unittest.main()
