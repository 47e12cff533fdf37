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

"""Tests for RFL configuration."""

import json

import pytest

from rfl.config import LLMConfig, RFLConfig, RuntimeConfig, create_service, load_config
from rfl.runtime import ClaudeService, ServiceError, SimulatedService

_ENV_VARS = [
    "RFL_CONFIG",
    "RFL_LLM_PROVIDER",
    "RFL_LLM_MODEL",
    "RFL_LLM_API_KEY",
    "RFL_LLM_MAX_TOKENS",
    "RFL_LLM_MAX_RETRIES",
    "RFL_LLM_TIMEOUT",
    "RFL_RUNTIME_JOIN_WORKERS",
    "RFL_RUNTIME_TELEMETRY",
]


@pytest.fixture
def clean_env(tmp_path, monkeypatch):
    """Isolate config lookup from the real environment and filesystem."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return tmp_path


class TestLLMConfig:
    """Tests for LLMConfig."""

    def test_defaults(self):
        cfg = LLMConfig()
        assert cfg.provider == "anthropic"
        assert cfg.model == "claude-sonnet-4-20250514"
        assert cfg.api_key == ""
        assert cfg.max_tokens == 4096
        assert cfg.max_retries == 2
        assert cfg.timeout == 60.0

    def test_to_dict(self):
        assert LLMConfig().to_dict() == {
            "provider": "anthropic",
            "model": "claude-sonnet-4-20250514",
            "api_key": "",
            "max_tokens": 4096,
            "max_retries": 2,
            "timeout": 60.0,
        }

    def test_from_dict(self):
        cfg = LLMConfig.from_dict({"provider": "simulated", "model": "m", "max_tokens": 10})
        assert cfg.provider == "simulated"
        assert cfg.model == "m"
        assert cfg.max_tokens == 10
        assert cfg.max_retries == 2

    def test_from_dict_camel_case(self):
        cfg = LLMConfig.from_dict({"apiKey": "k", "maxTokens": "7", "maxRetries": 0})
        assert cfg.api_key == "k"
        assert cfg.max_tokens == 7
        assert cfg.max_retries == 0

    def test_from_env(self, clean_env, monkeypatch):
        monkeypatch.setenv("RFL_LLM_PROVIDER", "simulated")
        monkeypatch.setenv("RFL_LLM_MODEL", "claude-env")
        monkeypatch.setenv("RFL_LLM_API_KEY", "env-key")
        monkeypatch.setenv("RFL_LLM_MAX_TOKENS", "256")
        monkeypatch.setenv("RFL_LLM_MAX_RETRIES", "5")
        monkeypatch.setenv("RFL_LLM_TIMEOUT", "2.5")
        cfg = LLMConfig.from_env()
        assert cfg == LLMConfig(
            provider="simulated",
            model="claude-env",
            api_key="env-key",
            max_tokens=256,
            max_retries=5,
            timeout=2.5,
        )

    def test_from_env_defaults(self, clean_env):
        assert LLMConfig.from_env() == LLMConfig()


class TestRuntimeConfig:
    def test_defaults(self):
        cfg = RuntimeConfig()
        assert cfg.join_workers == 1
        assert cfg.telemetry is True

    def test_from_dict(self):
        cfg = RuntimeConfig.from_dict({"join_workers": 4, "telemetry": False})
        assert cfg == RuntimeConfig(join_workers=4, telemetry=False)

    @pytest.mark.parametrize("value,expected", [("true", True), ("1", True), ("false", False), ("0", False)])
    def test_from_env_telemetry(self, clean_env, monkeypatch, value, expected):
        monkeypatch.setenv("RFL_RUNTIME_TELEMETRY", value)
        assert RuntimeConfig.from_env().telemetry is expected

    def test_from_env_join_workers(self, clean_env, monkeypatch):
        monkeypatch.setenv("RFL_RUNTIME_JOIN_WORKERS", "3")
        assert RuntimeConfig.from_env().join_workers == 3


class TestRFLConfig:
    def test_round_trip(self):
        cfg = RFLConfig(llm=LLMConfig(provider="simulated"), runtime=RuntimeConfig(join_workers=2))
        assert RFLConfig.from_dict(cfg.to_dict()) == cfg

    def test_from_dict_empty(self):
        assert RFLConfig.from_dict({}) == RFLConfig()


class TestLoadConfig:
    """Tests for load_config."""

    def test_load_from_explicit_path(self, clean_env):
        config_file = clean_env / "custom.json"
        config_file.write_text(json.dumps({"llm": {"model": "from-file"}}))
        cfg = load_config(str(config_file))
        assert cfg.llm.model == "from-file"

    def test_load_defaults_when_no_file(self, clean_env):
        assert load_config() == RFLConfig()

    def test_env_used_when_no_file(self, clean_env, monkeypatch):
        monkeypatch.setenv("RFL_LLM_PROVIDER", "simulated")
        assert load_config().llm.provider == "simulated"

    def test_load_from_env_variable_path(self, clean_env, monkeypatch):
        config_file = clean_env / "env.json"
        config_file.write_text(json.dumps({"runtime": {"join_workers": 8}}))
        monkeypatch.setenv("RFL_CONFIG", str(config_file))
        assert load_config().runtime.join_workers == 8

    def test_load_from_cwd(self, clean_env):
        (clean_env / "rfl.config.json").write_text(json.dumps({"llm": {"provider": "simulated"}}))
        assert load_config().llm.provider == "simulated"

    def test_load_from_home(self, clean_env):
        home_dir = clean_env / "home" / ".rfl"
        home_dir.mkdir(parents=True)
        (home_dir / "rfl.config.json").write_text(json.dumps({"llm": {"model": "home"}}))
        assert load_config().llm.model == "home"

    def test_invalid_json(self, clean_env):
        config_file = clean_env / "bad.json"
        config_file.write_text("{")
        with pytest.raises(json.JSONDecodeError):
            load_config(config_file)


class TestCreateService:
    def test_simulated(self):
        service = create_service(RFLConfig(llm=LLMConfig(provider="simulated")))
        assert isinstance(service, SimulatedService)

    def test_unknown_provider(self):
        with pytest.raises(ServiceError, match="Unknown LLM provider: openai"):
            create_service(LLMConfig(provider="openai"))

    def test_anthropic(self):
        pytest.importorskip("anthropic")
        llm = LLMConfig(api_key="test-key", model="claude-test", max_tokens=99, max_retries=0)
        service = create_service(llm)
        assert isinstance(service, ClaudeService)
        assert service.config.model == "claude-test"
        assert service.config.max_tokens == 99
        assert service.config.max_retries == 0
