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

"""Execution trace nodes.

A trace mirrors the routine composition tree. Each routine handler
returns its own finished node; parents embed the nodes returned by their
children. Nodes are frozen once built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


@dataclass(frozen=True)
class Trace:
    """Common trace fields."""

    kind: ClassVar[str] = ""

    routine: str
    inputs: dict[str, Any]
    outputs: dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> str:
        return self.kind

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result = {
            "routine": self.routine,
            "type": self.kind,
            "inputs": self.inputs,
            "outputs": self.outputs,
        }
        result.update(self._extra_dict())
        return result

    def _extra_dict(self) -> dict[str, Any]:
        return {}

    def children(self) -> list[Trace]:
        """Direct child traces, in execution order."""
        return []

    def walk(self):
        """Yield this node and all descendants, depth first."""
        yield self
        for child in self.children():
            yield from child.walk()


@dataclass(frozen=True)
class LLMCall:
    """The message pair sent to the generative service."""

    dev_msg: str
    user_msg: str

    def to_dict(self) -> dict[str, str]:
        return {"dev_msg": self.dev_msg, "user_msg": self.user_msg}


@dataclass(frozen=True)
class PromptTrace(Trace):
    kind: ClassVar[str] = "prompt"

    llm_call: LLMCall | None = None

    def _extra_dict(self) -> dict[str, Any]:
        return {"llm_call": self.llm_call.to_dict() if self.llm_call else None}


@dataclass(frozen=True)
class CodeTrace(Trace):
    kind: ClassVar[str] = "code"


@dataclass(frozen=True)
class DefineTrace(Trace):
    kind: ClassVar[str] = "define"


@dataclass(frozen=True)
class IfTrace(Trace):
    kind: ClassVar[str] = "if"

    branch_taken: str = "then"
    subtrace: Trace | None = None

    def _extra_dict(self) -> dict[str, Any]:
        return {
            "branch_taken": self.branch_taken,
            "subtrace": self.subtrace.to_dict() if self.subtrace else None,
        }

    def children(self) -> list[Trace]:
        return [self.subtrace] if self.subtrace else []


@dataclass(frozen=True)
class ComposeTrace(Trace):
    kind: ClassVar[str] = "compose"

    subtraces: tuple[Trace, ...] = ()

    def _extra_dict(self) -> dict[str, Any]:
        return {"subtraces": [t.to_dict() for t in self.subtraces]}

    def children(self) -> list[Trace]:
        return list(self.subtraces)


@dataclass(frozen=True)
class JoinTrace(Trace):
    kind: ClassVar[str] = "join"

    subtraces: tuple[Trace, ...] = ()

    def _extra_dict(self) -> dict[str, Any]:
        return {"subtraces": [t.to_dict() for t in self.subtraces]}

    def children(self) -> list[Trace]:
        return list(self.subtraces)
