# Copyright 2025 Ralph Lemke
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for RFL program loading."""

import pytest

from rfl.loader import ProgramLoader, ProgramLoadError
from rfl.program import CodeRoutine, Program

DOCUMENT = {"routines": {"main": {"type": "code", "code": "{}"}}, "main": "main"}


class TestLoadFile:
    def test_load_file(self, program_file):
        program = ProgramLoader.load_file(program_file(DOCUMENT))
        assert isinstance(program, Program)
        assert isinstance(program.get("main"), CodeRoutine)

    def test_load_file_accepts_str_path(self, program_file):
        program = ProgramLoader.load_file(str(program_file(DOCUMENT)))
        assert program.main == "main"

    def test_file_not_found(self, tmp_path):
        with pytest.raises(ProgramLoadError, match="File not found"):
            ProgramLoader.load_file(tmp_path / "missing.json")

    def test_invalid_json_names_source(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text('{"routines": ')
        with pytest.raises(ProgramLoadError) as exc_info:
            ProgramLoader.load_file(path)
        assert exc_info.value.source == str(path)
        assert "Invalid JSON at line 1" in str(exc_info.value)

    def test_read_file_returns_document(self, program_file):
        assert ProgramLoader.read_file(program_file(DOCUMENT)) == DOCUMENT


class TestLoadString:
    def test_load_string(self):
        program = ProgramLoader.load_string('{"routines": {}, "main": "x"}')
        assert program.main == "x"
        assert program.routines == {}

    def test_non_object_document(self):
        with pytest.raises(ProgramLoadError, match="must be a JSON object"):
            ProgramLoader.load_string("[1, 2]")

    def test_source_prefix(self):
        with pytest.raises(ProgramLoadError, match=r"^\[<stdin>\] Invalid JSON"):
            ProgramLoader.load_string("nope", source="<stdin>")
