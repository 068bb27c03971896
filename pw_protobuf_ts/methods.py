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
"""Members of generated TypeScript classes and statement helpers.

Method bodies are lists of source lines. Nested blocks are indented by the
helpers below, so a body can be written to an OutputFile line by line.
"""

from dataclasses import dataclass, field
import json

INDENT = '  '


@dataclass
class ClassProperty:
    """A property declaration, e.g. `name: string = "";`."""

    name: str
    type: str
    initializer: str | None = None
    optional: bool = False

    def declaration(self) -> str:
        marker = '?' if self.optional else ''
        if self.initializer is None:
            return f'{self.name}{marker}: {self.type};'
        return f'{self.name}{marker}: {self.type} = {self.initializer};'


@dataclass
class ClassMethod:
    """A method of a generated message class."""

    name: str
    params: list[tuple[str, str]] = field(default_factory=list)
    return_type: str | None = None
    body: list[str] = field(default_factory=list)
    static: bool = False
    private: bool = False

    def param_string(self) -> str:
        return ', '.join(f'{name}: {type_}' for name, type_ in self.params)

    def signature(self) -> str:
        modifiers = ''
        if self.private:
            modifiers += 'private '
        if self.static:
            modifiers += 'static '

        signature = f'{modifiers}{self.name}({self.param_string()})'
        if self.return_type is not None:
            signature += f': {self.return_type}'
        return signature

    def lines(self) -> list[str]:
        return block(self.signature(), self.body)


def ts_string(value: str) -> str:
    """Quotes a Python string as a TypeScript string literal."""
    return json.dumps(value)


def indent_lines(lines: list[str]) -> list[str]:
    return [f'{INDENT}{line}' if line else line for line in lines]


def block(header: str, statements: list[str]) -> list[str]:
    """A braced block, e.g. a loop or function body."""
    return [f'{header} {{', *indent_lines(statements), '}']


def if_stmt(condition: str, statements: list[str]) -> list[str]:
    return block(f'if ({condition})', statements)


def throw_error(message: str) -> str:
    return f'throw new Error({ts_string(message)});'


def and_all(*conditions: str) -> str:
    return ' && '.join(conditions)


def or_any(*conditions: str) -> str:
    return f'({" || ".join(conditions)})'
