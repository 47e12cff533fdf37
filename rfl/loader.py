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

"""RFL program loading from JSON documents."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .program import Program


class ProgramLoadError(Exception):
    """Program document could not be read or decoded."""

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        prefix = f"[{source}] " if source else ""
        super().__init__(f"{prefix}{message}")


class ProgramLoader:
    """Loads RFL programs from files or strings."""

    @staticmethod
    def load_document(text: str, source: str | None = None) -> dict[str, Any]:
        """Decode a program document without building the model.

        Raises:
            ProgramLoadError: If the text is not a JSON object
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ProgramLoadError(
                f"Invalid JSON at line {e.lineno}, column {e.colno}: {e.msg}", source
            ) from e
        if not isinstance(data, dict):
            raise ProgramLoadError("Program document must be a JSON object", source)
        return data

    @staticmethod
    def load_string(text: str, source: str | None = None) -> Program:
        """Load a program from JSON text."""
        return Program.from_dict(ProgramLoader.load_document(text, source))

    @staticmethod
    def read_file(path: str | Path) -> dict[str, Any]:
        """Read and decode a program file.

        Raises:
            ProgramLoadError: If the file can't be read or decoded
        """
        file_path = Path(path)
        try:
            text = file_path.read_text()
        except FileNotFoundError as e:
            raise ProgramLoadError(f"File not found: {file_path}") from e
        except OSError as e:
            raise ProgramLoadError(f"Error reading {file_path}: {e}") from e
        return ProgramLoader.load_document(text, source=str(file_path))

    @staticmethod
    def load_file(path: str | Path) -> Program:
        """Load a program from a JSON file."""
        return Program.from_dict(ProgramLoader.read_file(path))
