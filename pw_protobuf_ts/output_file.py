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
"""Defines a class for writing generated TypeScript source files."""

import contextlib
import os
from typing import Iterable, Iterator

from pw_protobuf_ts import PLUGIN_NAME, PLUGIN_VERSION


class OutputFile:
    """A generated .ts file, written line by line.

    Example:

    ```
    output = OutputFile('greeter.ts')
    output.write_line('export class Greeter {')
    with output.indent():
        output.write_line('name: string = "";')
    output.write_line('}')
    ```
    """

    INDENT_WIDTH = 2

    def __init__(self, filename: str):
        self._filename: str = filename
        self._lines: list[str] = []
        self._indentation: int = 0

    def write_line(self, line: str = '') -> None:
        if line:
            line = ' ' * self._indentation + line
        self._lines.append(line)

    def write_lines(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.write_line(line)

    def write_header(self, source: str) -> None:
        """Writes the comment block naming the generator and source .proto."""
        self.write_line(
            f'// {os.path.basename(self._filename)} automatically '
            f'generated by {PLUGIN_NAME} {PLUGIN_VERSION}'
        )
        self.write_line(f'// source: {source}')
        self.write_line('/* eslint-disable */')

    @contextlib.contextmanager
    def indent(self, width: int = INDENT_WIDTH) -> Iterator[None]:
        """Increases the indentation of lines written within the context."""
        self._indentation += width
        try:
            yield
        finally:
            self._indentation -= width

    def name(self) -> str:
        return self._filename

    def lines(self) -> list[str]:
        return list(self._lines)

    def content(self) -> str:
        return ''.join(f'{line}\n' for line in self._lines)
