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
"""Errors raised while generating code.

Every error in this module is fatal to the generator invocation: each one
indicates an inconsistent set of input files or a misuse of the generation
phases, so partial output is never written.
"""


class CodegenError(Exception):
    def __init__(
        self,
        error_message: str,
        type_name: str | None = None,
        field: str | None = None,
    ):
        super().__init__(f'pw_protobuf_ts codegen error: {error_message}')
        self.error_message = error_message
        self.type_name = type_name
        self.field = field

    def formatted_message(self) -> str:
        lines = [f'pw_protobuf_ts codegen error: {self.error_message}']

        if self.type_name is not None:
            lines.append(f'    at {self.type_name}')

        if self.field is not None:
            lines.append(f'    in field {self.field}')

        return '\n'.join(lines)


class UnresolvedTypeError(CodegenError):
    """A referenced type is not provided by any registered file."""

    def __init__(self, type_name: str):
        super().__init__(f'no proto provides {type_name}', type_name)


class UnresolvedMapTypeError(CodegenError):
    """A map field refers to a map entry that was never registered."""

    def __init__(self, type_name: str, field: str | None = None):
        super().__init__(
            f'can not find the map type {type_name}', type_name, field
        )


class UnresolvedEnumError(CodegenError):
    """The leading value of an unregistered enum was requested."""

    def __init__(self, type_name: str):
        super().__init__(f'no proto provides enum {type_name}', type_name)


class RegistryFrozenError(CodegenError):
    """A type was registered after generation started."""

    def __init__(self, type_name: str):
        super().__init__(
            'cannot register types once the registry is frozen', type_name
        )


class RegistryNotFrozenError(CodegenError):
    """The registry was queried before registration completed."""

    def __init__(self, type_name: str):
        super().__init__(
            'type lookups require a frozen registry; '
            'register every file before generating code',
            type_name,
        )
