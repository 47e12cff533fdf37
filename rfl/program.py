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

"""RFL program model using dataclasses.

A program is a flat table of named routines plus the name of the entry
routine. Routines are read-only once loaded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

# Scalar type tags for prompt outputs and define literals
SCALAR_TYPES = ("string", "number", "boolean")
VALID_TYPES = SCALAR_TYPES + tuple(f"{t}[]" for t in SCALAR_TYPES)

# Suffix marking an output type or a define reference as optional
OPTIONAL_MARKER = "?"


def split_optional(text: str) -> tuple[str, bool]:
    """Split ``"name?"`` into ``("name", True)``."""
    if text.endswith(OPTIONAL_MARKER):
        return text[: -len(OPTIONAL_MARKER)], True
    return text, False


def is_valid_type(type_tag: str) -> bool:
    """Check a type tag, allowing the optional suffix."""
    base, _ = split_optional(type_tag)
    return base in VALID_TYPES


@dataclass(frozen=True)
class Routine:
    """Base class for all routines."""

    kind: ClassVar[str] = ""

    doc: str | None = field(default=None, kw_only=True)
    passthrough: tuple[str, ...] = field(default=(), kw_only=True)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the program document form."""
        data: dict[str, Any] = {"type": self.kind}
        if self.doc is not None:
            data["doc"] = self.doc
        if self.passthrough:
            data["passthrough"] = list(self.passthrough)
        data.update(self._fields_to_dict())
        return data

    def _fields_to_dict(self) -> dict[str, Any]:
        return {}


@dataclass(frozen=True)
class PromptRoutine(Routine):
    """Calls the generative service."""

    kind: ClassVar[str] = "prompt"

    dev_msg: str = ""
    user_msg: str = ""
    outputs: dict[str, str] = field(default_factory=dict)

    def _fields_to_dict(self) -> dict[str, Any]:
        return {
            "dev_msg": self.dev_msg,
            "user_msg": self.user_msg,
            "outputs": dict(self.outputs),
        }


@dataclass(frozen=True)
class CodeRoutine(Routine):
    """Evaluates an embedded expression against ``input``."""

    kind: ClassVar[str] = "code"

    code: str = ""

    def _fields_to_dict(self) -> dict[str, Any]:
        return {"code": self.code}


@dataclass(frozen=True)
class LiteralSpec:
    """Literal output of a define routine: ``{type, value, optional}``."""

    type: str
    value: Any = None
    optional: bool = False
    has_value: bool = True

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type}
        if self.has_value:
            data["value"] = self.value
        if self.optional:
            data["optional"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LiteralSpec:
        return cls(
            type=data.get("type", ""),
            value=data.get("value"),
            optional=bool(data.get("optional", False)),
            has_value="value" in data,
        )


@dataclass(frozen=True)
class DefineRoutine(Routine):
    """Defines literal values or copies of environment variables.

    Each output maps to either a reference string (``"name"`` or the
    optional form ``"name?"``) or a :class:`LiteralSpec`.
    """

    kind: ClassVar[str] = "define"

    outputs: dict[str, str | LiteralSpec] = field(default_factory=dict)

    def _fields_to_dict(self) -> dict[str, Any]:
        return {
            "outputs": {
                name: spec.to_dict() if isinstance(spec, LiteralSpec) else spec
                for name, spec in self.outputs.items()
            }
        }


@dataclass(frozen=True)
class IfRoutine(Routine):
    """Selects ``then_routine`` or ``else_routine`` by a condition variable."""

    kind: ClassVar[str] = "if"

    condition: str = ""
    then_routine: str | None = None
    else_routine: str | None = None

    def branch(self, name: str) -> str | None:
        """Return the routine name for branch ``"then"`` or ``"else"``."""
        return self.then_routine if name == "then" else self.else_routine

    def _fields_to_dict(self) -> dict[str, Any]:
        return {
            "condition": self.condition,
            "then": self.then_routine,
            "else": self.else_routine,
        }


@dataclass(frozen=True)
class ComposeRoutine(Routine):
    """Runs routines in sequence, each consuming the previous outputs."""

    kind: ClassVar[str] = "compose"

    routines: tuple[str, ...] = ()

    def _fields_to_dict(self) -> dict[str, Any]:
        return {"routines": list(self.routines)}


@dataclass(frozen=True)
class JoinRoutine(Routine):
    """Runs routines independently on the same input and merges outputs."""

    kind: ClassVar[str] = "join"

    routines: tuple[str, ...] = ()

    def _fields_to_dict(self) -> dict[str, Any]:
        return {"routines": list(self.routines)}


@dataclass(frozen=True)
class UnknownRoutine(Routine):
    """A routine whose ``type`` is not recognised.

    Kept so that loading never fails on it; dispatching it is an error.
    """

    type_name: str = ""
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return dict(self.raw)


ROUTINE_CLASSES: dict[str, type[Routine]] = {
    cls.kind: cls
    for cls in (
        PromptRoutine,
        CodeRoutine,
        DefineRoutine,
        IfRoutine,
        ComposeRoutine,
        JoinRoutine,
    )
}


def _as_names(value: Any) -> tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        return tuple(str(name) for name in value)
    return ()


def _as_mapping(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}


def routine_from_dict(data: dict[str, Any]) -> Routine:
    """Build a routine from its document form.

    Missing fields fall back to empty defaults; structural problems are
    the validator's concern, not the loader's.
    """
    kind = data.get("type", "")
    common = {
        "doc": data.get("doc"),
        "passthrough": _as_names(data.get("passthrough")),
    }

    if kind == "prompt":
        return PromptRoutine(
            dev_msg=data.get("dev_msg") or "",
            user_msg=data.get("user_msg") or "",
            outputs=_as_mapping(data.get("outputs")),
            **common,
        )
    elif kind == "code":
        return CodeRoutine(code=data.get("code") or "", **common)
    elif kind == "define":
        outputs: dict[str, str | LiteralSpec] = {}
        for name, spec in _as_mapping(data.get("outputs")).items():
            if isinstance(spec, dict):
                outputs[name] = LiteralSpec.from_dict(spec)
            else:
                outputs[name] = spec
        return DefineRoutine(outputs=outputs, **common)
    elif kind == "if":
        return IfRoutine(
            condition=data.get("condition") or "",
            then_routine=data.get("then"),
            else_routine=data.get("else"),
            **common,
        )
    elif kind == "compose":
        return ComposeRoutine(routines=_as_names(data.get("routines")), **common)
    elif kind == "join":
        return JoinRoutine(routines=_as_names(data.get("routines")), **common)
    else:
        return UnknownRoutine(type_name=str(kind), raw=dict(data), **common)


@dataclass(frozen=True)
class Program:
    """A set of named routines and the entry routine name."""

    routines: dict[str, Routine] = field(default_factory=dict)
    main: str | None = None
    doc: str | None = None

    def get(self, name: str) -> Routine | None:
        """Look up a routine by name (None for non-string names)."""
        if not isinstance(name, str):
            return None
        return self.routines.get(name)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the program document form."""
        data: dict[str, Any] = {}
        if self.doc is not None:
            data["doc"] = self.doc
        data["routines"] = {name: r.to_dict() for name, r in self.routines.items()}
        data["main"] = self.main
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Program:
        """Create from a parsed program document."""
        routines_data = _as_mapping(data.get("routines"))
        routines = {
            name: routine_from_dict(spec if isinstance(spec, dict) else {})
            for name, spec in routines_data.items()
        }
        return cls(routines=routines, main=data.get("main"), doc=data.get("doc"))
