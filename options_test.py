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
"""Tests parsing the protoc parameter string."""

import contextlib
import io
import unittest

from pw_protobuf_ts.options import GeneratorOptions, parse_parameter_options


class ParseParameterOptionsTest(unittest.TestCase):
    """Tests for parse_parameter_options."""

    def test_empty_parameter_uses_defaults(self):
        self.assertEqual(parse_parameter_options(''), GeneratorOptions())

    def test_all_options(self):
        options = parse_parameter_options(
            '--with-namespace,--namespaces,--import-suffix=.js,--with-sendable,'
            '--runtime-package=@protobuf/runtime,--base64-package=b64,-j,4'
        )
        self.assertEqual(
            options,
            GeneratorOptions(
                with_namespace=True,
                namespaces=True,
                import_suffix='.js',
                with_sendable=True,
                runtime_package='@protobuf/runtime',
                base64_package='b64',
                jobs=4,
            ),
        )

    def test_invalid_jobs(self):
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                parse_parameter_options('--jobs=0')

    def test_unknown_option(self):
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                parse_parameter_options('--no-such-option')


if __name__ == '__main__':
    unittest.main()
