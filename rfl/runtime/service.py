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

"""Generative services for ``prompt`` routines.

A service turns a developer message, a user message and an output type
spec (name -> type tag) into a mapping of output values. The interpreter
treats the result as opaque.

``ClaudeService`` asks Claude via the Anthropic API to call a single tool
whose input schema is built from the output spec, and returns the tool
input as the outputs.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..program import split_optional

try:
    import anthropic

    HAS_ANTHROPIC = True
except ImportError:
    HAS_ANTHROPIC = False

logger = logging.getLogger(__name__)

# Mapping from RFL scalar type tags to JSON Schema types
RFL_TYPE_MAP: dict[str, dict] = {
    "string": {"type": "string"},
    "number": {"type": "number"},
    "boolean": {"type": "boolean"},
}

RESULT_TOOL_NAME = "provide_outputs"


class ServiceError(Exception):
    """Error raised when a generative service cannot produce outputs."""

    def __init__(self, message: str, original: Exception | None = None):
        super().__init__(message)
        self.original = original


def type_to_schema(type_tag: str) -> dict:
    """Convert an RFL type tag (``"string"``, ``"number[]"``, ...) to JSON Schema."""
    base, _ = split_optional(type_tag)
    if base.endswith("[]"):
        return {"type": "array", "items": RFL_TYPE_MAP.get(base[:-2], {"type": "string"})}
    return dict(RFL_TYPE_MAP.get(base, {"type": "string"}))


def build_output_schema(outputs: dict[str, str]) -> dict:
    """Build the JSON Schema object for a prompt routine's outputs.

    Outputs whose type tag carries the optional suffix are not required.
    """
    properties = {name: type_to_schema(tag) for name, tag in outputs.items()}
    required = [name for name, tag in outputs.items() if not split_optional(tag)[1]]
    return {"type": "object", "properties": properties, "required": required}


class GenerativeService(ABC):
    """Contract between the interpreter and a text generation backend."""

    @abstractmethod
    def generate(
        self,
        dev_msg: str,
        user_msg: str,
        outputs: dict[str, str],
    ) -> dict[str, Any]:
        """Produce a value for each requested output.

        Args:
            dev_msg: Developer (system) message, sent verbatim
            user_msg: User message, already substituted
            outputs: Output name -> type tag

        Returns:
            Mapping of output name to value

        Raises:
            ServiceError: If no outputs could be produced
        """
        ...


class SimulatedService(GenerativeService):
    """Deterministic offline service.

    Returns ``simulated_<name>_response_based_on_<user_msg>`` for every
    requested output. Useful for dry runs and tests.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict[str, str]]] = []

    def generate(
        self,
        dev_msg: str,
        user_msg: str,
        outputs: dict[str, str],
    ) -> dict[str, Any]:
        self.calls.append((dev_msg, user_msg, dict(outputs)))
        return {
            name: f"simulated_{name}_response_based_on_{user_msg}"
            for name in outputs
        }


class CallableService(GenerativeService):
    """Adapts a plain function ``(dev_msg, user_msg, outputs) -> dict``."""

    def __init__(self, fn: Callable[[str, str, dict[str, str]], dict[str, Any]]) -> None:
        self._fn = fn

    def generate(
        self,
        dev_msg: str,
        user_msg: str,
        outputs: dict[str, str],
    ) -> dict[str, Any]:
        return self._fn(dev_msg, user_msg, outputs)


@dataclass
class ClaudeServiceConfig:
    """Configuration for ClaudeService.

    Attributes:
        model: Claude model to use
        max_tokens: Maximum tokens for the response
        max_retries: Extra attempts when Claude answers without the tool
    """

    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    max_retries: int = 2


class ClaudeService(GenerativeService):
    """Claude-backed generative service.

    Usage:
        service = ClaudeService(
            anthropic_client=anthropic.Anthropic(),
            config=ClaudeServiceConfig(model="claude-sonnet-4-20250514"),
        )
        values = service.generate("Be terse.", "Summarize: ...", {"summary": "string"})
    """

    def __init__(
        self,
        anthropic_client: Any = None,
        config: ClaudeServiceConfig | None = None,
    ) -> None:
        self.config = config or ClaudeServiceConfig()
        if anthropic_client is None:
            if not HAS_ANTHROPIC:
                raise ServiceError(
                    "The anthropic package is not installed. "
                    "Install it with: pip install anthropic"
                )
            anthropic_client = anthropic.Anthropic()
        self.anthropic_client = anthropic_client

    def _build_tool(self, outputs: dict[str, str]) -> dict:
        """Build the result tool definition for an output spec."""
        names = ", ".join(outputs) or "none"
        return {
            "name": RESULT_TOOL_NAME,
            "description": f"Provide the requested output values ({names}).",
            "input_schema": build_output_schema(outputs),
        }

    def _build_retry_message(self, attempt: int) -> str:
        return (
            f"You must use the '{RESULT_TOOL_NAME}' tool to provide the result. "
            f"(Retry attempt {attempt})"
        )

    def generate(
        self,
        dev_msg: str,
        user_msg: str,
        outputs: dict[str, str],
    ) -> dict[str, Any]:
        tool = self._build_tool(outputs)
        messages: list[dict] = [{"role": "user", "content": user_msg}]

        for attempt in range(self.config.max_retries + 1):
            result = self._call(dev_msg, messages, tool)
            if result is not None:
                return result

            if attempt < self.config.max_retries:
                logger.info(
                    "Claude did not call %s, retrying (attempt %d)",
                    RESULT_TOOL_NAME,
                    attempt + 1,
                )
                messages.append({"role": "assistant", "content": "I wasn't able to use the tool."})
                messages.append({"role": "user", "content": self._build_retry_message(attempt + 1)})

        raise ServiceError(
            f"Claude did not provide outputs after {self.config.max_retries + 1} attempt(s)"
        )

    def _call(self, system: str, messages: list[dict], tool: dict) -> dict | None:
        """Send one request; return the tool input or None if no tool was used."""
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "messages": list(messages),
            "tools": [tool],
            "tool_choice": {"type": "tool", "name": RESULT_TOOL_NAME},
        }
        if system:
            kwargs["system"] = system

        try:
            response = self.anthropic_client.messages.create(**kwargs)
        except Exception as e:
            raise ServiceError(f"Anthropic API request failed: {e}", original=e) from e

        for block in response.content:
            if getattr(block, "type", None) == "tool_use" and block.name == RESULT_TOOL_NAME:
                return dict(block.input)
        return None
