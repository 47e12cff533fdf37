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

"""Root pytest configuration for RFL tests."""

import json

import pytest

from rfl.runtime import CallableService, SimulatedService


class ScriptedService(CallableService):
    """Service returning queued responses in order, recording every call.

    Once the queue holds a single response it is repeated for later calls.
    """

    def __init__(self, *responses: dict):
        self.responses = list(responses)
        self.calls: list[tuple[str, str, dict[str, str]]] = []
        super().__init__(self._next)

    def _next(self, dev_msg: str, user_msg: str, outputs: dict[str, str]) -> dict:
        self.calls.append((dev_msg, user_msg, dict(outputs)))
        if len(self.responses) > 1:
            return dict(self.responses.pop(0))
        return dict(self.responses[0])


@pytest.fixture
def scripted_service():
    """Factory for services answering with queued responses."""
    return ScriptedService


@pytest.fixture
def simulated_service():
    return SimulatedService()


@pytest.fixture
def program_file(tmp_path):
    """Write a program document to a temporary JSON file."""

    def _write(document: dict, name: str = "program.json"):
        path = tmp_path / name
        path.write_text(json.dumps(document))
        return path

    return _write
