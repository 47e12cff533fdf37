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

"""RFL run result to JSON emitter."""

import json
from typing import Any

from .program import Program
from .runtime.interpreter import RunResult
from .runtime.trace import Trace


class JSONEmitter:
    """Converts run results, traces and programs to JSON."""

    def __init__(
        self,
        include_program: bool = True,
        include_inputs: bool = True,
        indent: int | None = 2,
    ):
        """Initialize emitter.

        Args:
            include_program: Include the executed program in result output
            include_inputs: Include the initial environment in result output
            indent: JSON indentation (None for compact)
        """
        self.include_program = include_program
        self.include_inputs = include_inputs
        self.indent = indent

    def emit(self, node: RunResult | Trace | Program) -> str:
        """Convert a result, trace or program to a JSON string.

        Raises:
            ValueError: If the data holds a NaN or infinite float
        """
        data = self.emit_dict(node)
        return json.dumps(
            data, indent=self.indent, ensure_ascii=False, allow_nan=False, default=str
        )

    def emit_dict(self, node: RunResult | Trace | Program) -> dict[str, Any]:
        """Convert a result, trace or program to a dictionary."""
        if isinstance(node, RunResult):
            return self._convert_result(node)
        if isinstance(node, (Trace, Program)):
            return node.to_dict()
        raise TypeError(f"Cannot emit {type(node).__name__}")

    def _convert_result(self, result: RunResult) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.include_program:
            data["program"] = result.program.to_dict()
        if self.include_inputs:
            data["inputs"] = result.inputs
        data["outputs"] = result.outputs
        data["trace"] = result.trace.to_dict()
        return data


def emit_json(node: RunResult | Trace | Program, indent: int | None = 2, **kwargs) -> str:
    """Convenience function to emit JSON."""
    return JSONEmitter(indent=indent, **kwargs).emit(node)


def emit_dict(node: RunResult | Trace | Program, **kwargs) -> dict[str, Any]:
    """Convenience function to emit dictionary."""
    return JSONEmitter(**kwargs).emit_dict(node)
