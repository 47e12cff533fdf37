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

"""Tests for trace nodes."""

import dataclasses

import pytest

from rfl.runtime import (
    CodeTrace,
    ComposeTrace,
    DefineTrace,
    IfTrace,
    JoinTrace,
    LLMCall,
    PromptTrace,
)


@pytest.fixture
def tree():
    prompt = PromptTrace(
        routine="ask",
        inputs={"q": "why"},
        outputs={"a": "because"},
        llm_call=LLMCall(dev_msg="d", user_msg="why"),
    )
    code = CodeTrace(routine="calc", inputs={}, outputs={"error": "boom"})
    define = DefineTrace(routine="seed", inputs={}, outputs={"x": 1})
    branch = IfTrace(
        routine="check",
        inputs={"ok": True},
        outputs={"x": 1},
        branch_taken="then",
        subtrace=define,
    )
    join = JoinTrace(routine="both", inputs={}, outputs={}, subtraces=(code, branch))
    return ComposeTrace(routine="main", inputs={}, outputs={}, subtraces=(prompt, join))


class TestTraceSerialization:
    def test_common_fields(self):
        data = DefineTrace(routine="seed", inputs={"a": 1}, outputs={"b": 1}).to_dict()
        assert data == {"routine": "seed", "type": "define", "inputs": {"a": 1}, "outputs": {"b": 1}}

    def test_prompt_llm_call(self, tree):
        data = tree.to_dict()["subtraces"][0]
        assert data["type"] == "prompt"
        assert data["llm_call"] == {"dev_msg": "d", "user_msg": "why"}

    def test_if_fields(self, tree):
        data = tree.to_dict()["subtraces"][1]["subtraces"][1]
        assert data["type"] == "if"
        assert data["branch_taken"] == "then"
        assert data["subtrace"]["routine"] == "seed"

    def test_nested_subtraces_in_order(self, tree):
        data = tree.to_dict()
        assert [s["routine"] for s in data["subtraces"]] == ["ask", "both"]
        assert [s["routine"] for s in data["subtraces"][1]["subtraces"]] == ["calc", "check"]


class TestTraceNavigation:
    def test_walk_depth_first(self, tree):
        assert [t.routine for t in tree.walk()] == ["main", "ask", "both", "calc", "check", "seed"]

    def test_type_property(self, tree):
        assert {t.type for t in tree.walk()} == {"compose", "prompt", "join", "code", "if", "define"}

    def test_nodes_are_frozen(self, tree):
        with pytest.raises(dataclasses.FrozenInstanceError):
            tree.routine = "other"
