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
"""Type registry and per-file generation state.

Generation runs in two phases. First, every file in the request registers the
types it defines into a TypeRegistry shared by all files. The registry is then
frozen, after which each file is generated with its own Context, forked from
the shared one. A forked Context has its own namespace stack and import table
but shares the read-only registry, so files can be generated in parallel.
"""

import collections
import enum
import logging
import posixpath
import threading

from pw_protobuf_ts.errors import (
    CodegenError,
    RegistryFrozenError,
    RegistryNotFrozenError,
    UnresolvedEnumError,
    UnresolvedTypeError,
)
from pw_protobuf_ts.options import GeneratorOptions
from pw_protobuf_ts.proto_tree import ProtoEnum, ProtoMessage

_LOG = logging.getLogger(__name__)


class Syntax(enum.Enum):
    PROTO2 = 'proto2'
    PROTO3 = 'proto3'
    UNSPECIFIED = 'unspecified'

    @classmethod
    def from_str(cls, syntax: str) -> 'Syntax':
        if syntax == 'proto3':
            return cls.PROTO3
        if syntax in ('proto2', ''):
            return cls.PROTO2
        return cls.UNSPECIFIED


class TypeRegistry:
    """Types, map entries and enums known to a generator invocation.

    Writes happen only during registration, from a single thread. Once
    freeze() is called the registry is read-only and may be shared between
    threads without locking.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._frozen = False
        self._types: dict[str, str] = {}
        self._map_types: dict[str, ProtoMessage] = {}
        self._leading_enum_members: dict[str, int] = {}

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True
        _LOG.debug(
            'Registry frozen with %d types, %d map entries and %d enums',
            len(self._types),
            len(self._map_types),
            len(self._leading_enum_members),
        )

    def frozen(self) -> bool:
        return self._frozen

    def add_type(self, type_name: str, provider: str) -> None:
        with self._lock:
            self._check_writable(type_name)
            self._types[type_name] = provider

    def add_map_type(self, type_name: str, entry: ProtoMessage) -> None:
        with self._lock:
            self._check_writable(type_name)
            self._map_types[type_name] = entry

    def add_leading_enum_member(self, type_name: str, number: int) -> None:
        with self._lock:
            self._check_writable(type_name)
            self._leading_enum_members[type_name] = number

    def provider(self, type_name: str) -> str | None:
        self._check_readable(type_name)
        return self._types.get(type_name)

    def map_type(self, type_name: str) -> ProtoMessage | None:
        self._check_readable(type_name)
        return self._map_types.get(type_name)

    def leading_enum_member(self, type_name: str) -> int | None:
        self._check_readable(type_name)
        return self._leading_enum_members.get(type_name)

    def _check_writable(self, type_name: str) -> None:
        if self._frozen:
            raise RegistryFrozenError(type_name)

    def _check_readable(self, type_name: str) -> None:
        if not self._frozen:
            raise RegistryNotFrozenError(type_name)


class ImportTable:
    """Symbols to import into a generated file, keyed by source module.

    Sources and symbols keep the order in which they were first requested.
    """

    def __init__(self):
        self._imports: dict[str, list[str]] = collections.OrderedDict()

    def add(self, source: str, symbol: str) -> None:
        symbols = self._imports.setdefault(source, [])
        if symbol not in symbols:
            symbols.append(symbol)

    def drain(self) -> list[tuple[str, list[str]]]:
        imports = list(self._imports.items())
        self._imports.clear()
        return imports


def resolve_relative(provider: str, current: str) -> str:
    """Path of the provider file relative to the current file's directory.

    The result always starts with './' or '../' so it can be used as an
    ES module specifier, e.g. resolve_relative('b/b.proto', 'a/a.proto')
    returns '../b/b.proto'.
    """
    common_root = posixpath.relpath(
        posixpath.dirname(provider) or '.',
        posixpath.dirname(current) or '.',
    )

    if common_root == '.':
        root = './'
    elif not common_root.startswith('.'):
        root = f'./{common_root}'
    else:
        root = common_root

    return posixpath.join(root, posixpath.basename(provider))


class Context:
    """State for generating one file, sharing a registry with all others."""

    def __init__(
        self,
        options: GeneratorOptions,
        syntax: Syntax = Syntax.PROTO3,
        registry: TypeRegistry | None = None,
        name: str = '',
        namespace: list[str] | None = None,
        imports: ImportTable | None = None,
        helpers: dict[str, list[str]] | None = None,
    ):
        self.options = options
        self.syntax = syntax
        self.registry = registry if registry is not None else TypeRegistry()
        self._name = name
        self._namespace: list[str] = list(namespace) if namespace else []
        self._imports = imports if imports is not None else ImportTable()
        self._helpers = helpers if helpers is not None else {}

    def fork(self, name: str, syntax: Syntax) -> 'Context':
        """Creates the context for generating a different file.

        The fork shares the registry but starts without imports or helpers.
        """
        return Context(
            self.options,
            syntax,
            self.registry,
            name,
            self._namespace,
        )

    def descend(self, namespace: str) -> 'Context':
        """Creates a context for a nested scope of the same file.

        The nested context shares this file's imports and helpers.
        """
        return Context(
            self.options,
            self.syntax,
            self.registry,
            self._name,
            self._namespace + [namespace],
            self._imports,
            self._helpers,
        )

    def descend_if_necessary(self, package: str) -> 'Context':
        if package:
            return self.descend(package)
        return self

    def name(self) -> str:
        return self._name

    def namespace(self) -> list[str]:
        return list(self._namespace)

    def get_namespace(self) -> str:
        return '.'.join(self._namespace)

    def freeze(self) -> None:
        self.registry.freeze()

    def calculate_type_name(self, type_name: str) -> str:
        """Fully-qualified name of a type declared in the current scope."""
        if self._namespace:
            return f'.{self.get_namespace()}.{type_name}'
        return f'.{type_name}'

    def register_type_name(self, type_name: str) -> None:
        self.registry.add_type(self.calculate_type_name(type_name), self._name)

    def register_map_type(self, entry: ProtoMessage) -> None:
        if len(entry.fields()) != 2:
            raise CodegenError(
                'map entries must have exactly two fields',
                self.calculate_type_name(entry.name()),
            )
        self.registry.add_map_type(
            self.calculate_type_name(entry.name()), entry
        )

    def get_map_type(self, type_name: str) -> ProtoMessage | None:
        return self.registry.map_type(type_name)

    def register_leading_enum_member(self, proto_enum: ProtoEnum) -> None:
        values = proto_enum.values()
        if not values:
            raise CodegenError(
                'enums must declare at least one value',
                self.calculate_type_name(proto_enum.name()),
            )
        self.registry.add_leading_enum_member(
            self.calculate_type_name(proto_enum.name()), values[0][1]
        )

    def get_leading_enum_member(self, type_name: str) -> int:
        number = self.registry.leading_enum_member(type_name)
        if number is None:
            raise UnresolvedEnumError(type_name)
        return number

    def find_type_provider(self, type_name: str) -> str | None:
        return self.registry.provider(type_name)

    def normalize_type_name(self, type_name: str) -> str:
        """Identifier under which a fully-qualified type is imported."""
        name = type_name.lstrip('.')
        if not self.options.with_namespace:
            return name.rsplit('.', 1)[-1]
        return name.replace('.', '_')

    def normalize_name(self, name: str) -> str:
        """Identifier for a type declared in the current scope."""
        parts = []
        if self.options.with_namespace:
            parts.extend(self._namespace)
        parts.append(name)
        return '.'.join(parts).replace('.', '_')

    def lazy_type_ref(self, type_name: str) -> str:
        """Returns the identifier to use for a fully-qualified type name.

        Types defined by the current file are referenced locally. Types from
        other files are imported, using a path relative to the current file.

        Raises:
          UnresolvedTypeError: No registered file provides the type.
        """
        provider = self.find_type_provider(type_name)
        if provider is None:
            raise UnresolvedTypeError(type_name)

        if provider == self._name:
            if not self.options.with_namespace:
                return type_name.rsplit('.', 1)[-1]
            return type_name.lstrip('.').replace('.', '_')

        import_from = resolve_relative(provider, self._name)
        if not import_from.endswith('.proto'):
            raise CodegenError(
                f'expected {provider} to have a .proto suffix', type_name
            )
        import_from = import_from[: -len('.proto')] + self.options.import_suffix

        identifier = self.normalize_type_name(type_name)
        _LOG.debug('%s imports %s from %s', self._name, identifier, import_from)
        self._imports.add(import_from, identifier)
        return identifier

    def get_protobuf_import(self) -> None:
        self._imports.add(self.options.runtime_package, 'BinaryReader')
        self._imports.add(self.options.runtime_package, 'BinaryWriter')

    def get_base64_import(self) -> None:
        self._imports.add(self.options.base64_package, 'fromUint8Array')
        self._imports.add(self.options.base64_package, 'toUint8Array')

    def drain_imports(self) -> list[str]:
        """Returns import declarations for all pending imports.

        The pending table is cleared, so each import is emitted exactly once.
        """
        declarations = []
        for source, symbols in self._imports.drain():
            if not symbols:
                continue
            declarations.append(
                f'import {{ {", ".join(symbols)} }} from "{source}";'
            )
        return declarations

    def add_helper(self, name: str, lines: list[str]) -> str:
        """Declares a file-local function, once per file, returning its name."""
        self._helpers.setdefault(name, lines)
        return name

    def drain_helpers(self) -> list[str]:
        """Returns the declarations of all helpers added since the last call."""
        declarations: list[str] = []
        for lines in self._helpers.values():
            declarations.append('')
            declarations.extend(lines)
        self._helpers.clear()
        return declarations

    def wrap_if_needed(self, lines: list[str]) -> list[str]:
        """Wraps declarations in a namespace matching the current package."""
        if not self.options.namespaces or not self._namespace:
            return lines

        wrapped = [f'export namespace {self._namespace[-1]} {{']
        wrapped.extend(f'  {line}' if line else line for line in lines)
        wrapped.append('}')
        return wrapped
