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

"""RFL configuration management.

Provides configuration dataclasses for the generative service and the
runtime, and a loader that reads from config files or environment variables.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from .runtime.service import (
    HAS_ANTHROPIC,
    ClaudeService,
    ClaudeServiceConfig,
    GenerativeService,
    ServiceError,
    SimulatedService,
)

PROVIDERS = ("anthropic", "simulated")


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.lower() in ("true", "1", "yes")


@dataclass
class LLMConfig:
    """Generative service configuration.

    Attributes:
        provider: ``"anthropic"`` or ``"simulated"``
        model: Claude model name
        api_key: Anthropic API key (empty lets the SDK read ANTHROPIC_API_KEY)
        max_tokens: Maximum tokens per response
        max_retries: Extra attempts when the model answers without the tool
        timeout: Request timeout in seconds
    """

    provider: str = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    api_key: str = ""
    max_tokens: int = 4096
    max_retries: int = 2
    timeout: float = 60.0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LLMConfig:
        """Create from a dictionary.

        Keys may use either snake_case (``max_tokens``) or
        camelCase (``maxTokens``).
        """
        defaults = cls()
        return cls(
            provider=data.get("provider", defaults.provider),
            model=data.get("model", defaults.model),
            api_key=data.get("api_key", data.get("apiKey", defaults.api_key)),
            max_tokens=int(data.get("max_tokens", data.get("maxTokens", defaults.max_tokens))),
            max_retries=int(
                data.get("max_retries", data.get("maxRetries", defaults.max_retries))
            ),
            timeout=float(data.get("timeout", defaults.timeout)),
        )

    @classmethod
    def from_env(cls) -> LLMConfig:
        """Create from environment variables.

        Recognised variables (all optional, defaults apply for missing vars):
            RFL_LLM_PROVIDER
            RFL_LLM_MODEL
            RFL_LLM_API_KEY
            RFL_LLM_MAX_TOKENS
            RFL_LLM_MAX_RETRIES
            RFL_LLM_TIMEOUT
        """
        defaults = cls()
        return cls(
            provider=os.environ.get("RFL_LLM_PROVIDER", defaults.provider),
            model=os.environ.get("RFL_LLM_MODEL", defaults.model),
            api_key=os.environ.get("RFL_LLM_API_KEY", defaults.api_key),
            max_tokens=int(os.environ.get("RFL_LLM_MAX_TOKENS", defaults.max_tokens)),
            max_retries=int(os.environ.get("RFL_LLM_MAX_RETRIES", defaults.max_retries)),
            timeout=float(os.environ.get("RFL_LLM_TIMEOUT", defaults.timeout)),
        )


@dataclass
class RuntimeConfig:
    """Interpreter configuration.

    Attributes:
        join_workers: Thread count for join branches (1 runs them sequentially)
        telemetry: Collect telemetry events during runs
    """

    join_workers: int = 1
    telemetry: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RuntimeConfig:
        """Create from a dictionary."""
        return cls(
            join_workers=int(data.get("join_workers", data.get("joinWorkers", 1))),
            telemetry=bool(data.get("telemetry", True)),
        )

    @classmethod
    def from_env(cls) -> RuntimeConfig:
        """Create from environment variables.

        Recognised variables (all optional):
            RFL_RUNTIME_JOIN_WORKERS
            RFL_RUNTIME_TELEMETRY  ("true"/"1" to enable)
        """
        return cls(
            join_workers=int(os.environ.get("RFL_RUNTIME_JOIN_WORKERS", 1)),
            telemetry=_env_bool("RFL_RUNTIME_TELEMETRY", True),
        )


@dataclass
class RFLConfig:
    """Top-level RFL configuration.

    Attributes:
        llm: Generative service settings
        runtime: Interpreter settings
    """

    llm: LLMConfig = field(default_factory=LLMConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dictionary."""
        return {
            "llm": self.llm.to_dict(),
            "runtime": self.runtime.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RFLConfig:
        """Create from a dictionary (e.g. parsed JSON)."""
        return cls(
            llm=LLMConfig.from_dict(data.get("llm", {})),
            runtime=RuntimeConfig.from_dict(data.get("runtime", {})),
        )

    @classmethod
    def from_env(cls) -> RFLConfig:
        """Create from environment variables."""
        return cls(
            llm=LLMConfig.from_env(),
            runtime=RuntimeConfig.from_env(),
        )


# -- Config file loading -----------------------------------------------------

DEFAULT_CONFIG_FILENAME = "rfl.config.json"

_SEARCH_PATHS = [
    Path.cwd,
    lambda: Path.home() / ".rfl",
    lambda: Path("/etc/rfl"),
]


def _find_config_file(filename: str = DEFAULT_CONFIG_FILENAME) -> Path | None:
    """Search well-known locations for a config file.

    Search order:
        1. ``$RFL_CONFIG`` environment variable (explicit path)
        2. Current working directory
        3. ``~/.rfl/``
        4. ``/etc/rfl/``

    Returns:
        Path to the first config file found, or ``None``.
    """
    explicit = os.environ.get("RFL_CONFIG")
    if explicit:
        path = Path(explicit)
        if path.is_file():
            return path
        return None

    for path_fn in _SEARCH_PATHS:
        candidate = path_fn() / filename
        if candidate.is_file():
            return candidate
    return None


def load_config(path: str | Path | None = None) -> RFLConfig:
    """Load RFL configuration.

    Resolution order:
        1. Explicit *path* argument
        2. Config file found via :func:`_find_config_file`
        3. Environment variables (``RFL_LLM_*``, ``RFL_RUNTIME_*``)
        4. Built-in defaults

    Args:
        path: Optional explicit path to a JSON config file.

    Returns:
        Populated :class:`RFLConfig` instance.
    """
    config_path: Path | None = Path(path) if path else _find_config_file()

    if config_path and config_path.is_file():
        data = json.loads(config_path.read_text())
        return RFLConfig.from_dict(data)

    return RFLConfig.from_env()


def create_service(config: RFLConfig | LLMConfig) -> GenerativeService:
    """Build the generative service described by *config*.

    Raises:
        ServiceError: For an unknown provider, or when the anthropic
            package is missing
    """
    llm = config.llm if isinstance(config, RFLConfig) else config

    if llm.provider == "simulated":
        return SimulatedService()
    if llm.provider != "anthropic":
        raise ServiceError(
            f"Unknown LLM provider: {llm.provider} (expected one of {', '.join(PROVIDERS)})"
        )
    if not HAS_ANTHROPIC:
        raise ServiceError(
            "The anthropic package is not installed. Install it with: pip install anthropic"
        )

    import anthropic

    client_kwargs: dict[str, Any] = {"timeout": llm.timeout}
    if llm.api_key:
        client_kwargs["api_key"] = llm.api_key
    try:
        client = anthropic.Anthropic(**client_kwargs)
    except anthropic.AnthropicError as e:
        raise ServiceError(f"Could not create Anthropic client: {e}", original=e) from e

    return ClaudeService(
        anthropic_client=client,
        config=ClaudeServiceConfig(
            model=llm.model,
            max_tokens=llm.max_tokens,
            max_retries=llm.max_retries,
        ),
    )
