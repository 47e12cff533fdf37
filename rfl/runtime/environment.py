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

"""Environment helpers.

An environment is a plain ``dict`` mapping variable names to values
(``str``, ``int``, ``float``, ``bool``, lists of those, or ``None`` for a
present-but-absent value). Routines never mutate the mapping they receive;
these helpers produce new mappings or read-only views of them.
"""

import copy
import json
import math
import re
from collections.abc import Iterable
from typing import Any

Environment = dict[str, Any]

_PLACEHOLDER = re.compile(r"\$\{(\w+)\}")


def to_text(value: Any) -> str:
    """Convert an environment value to the text spliced into templates.

    Rules:
        - ``None`` -> ``""``
        - booleans -> ``"true"`` / ``"false"``
        - integral floats -> integer text (``3.0`` -> ``"3"``)
        - lists -> comma-joined element texts
        - mappings -> compact JSON
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def substitute(template: str, environment: Environment) -> str:
    """Replace ``${name}`` placeholders with environment values.

    Unknown names are replaced with the empty string.
    """

    def _replace(match: re.Match) -> str:
        return to_text(environment.get(match.group(1)))

    return _PLACEHOLDER.sub(_replace, template)


def is_truthy(value: Any) -> bool:
    """Truthiness used by ``if`` routines.

    ``None``, ``False``, zero, NaN, and empty strings/lists/mappings are
    false; every other value is true.
    """
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


def snapshot(environment: Environment) -> Environment:
    """Take a structural copy of *environment* for trace recording."""
    return copy.deepcopy(environment)


def apply_passthrough(names: Iterable[str], environment: Environment) -> Environment:
    """Build the initial outputs of a routine from its passthrough list.

    Only names present in *environment* are copied.
    """
    return {name: environment[name] for name in names if name in environment}
