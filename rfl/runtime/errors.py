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

"""RFL runtime error types.

Every error here is fatal to a run except :class:`EvaluationError`,
which the ``code`` routine handler converts into an ``error`` output.
"""

from dataclasses import dataclass


class RuntimeError(Exception):
    """Base class for all RFL runtime errors."""

    pass


@dataclass
class RoutineNotFoundError(RuntimeError):
    """Raised when a routine name cannot be resolved in the program."""

    routine_name: str

    def __str__(self) -> str:
        return f"Routine '{self.routine_name}' not found."


@dataclass
class UnknownRoutineKindError(RuntimeError):
    """Raised when a routine has a type the interpreter cannot dispatch."""

    routine_name: str
    kind: str

    def __str__(self) -> str:
        return f"Unknown routine type: {self.kind} (routine: {self.routine_name})"


@dataclass
class MissingBranchError(RuntimeError):
    """Raised when an ``if`` routine selects a branch it does not define."""

    routine_name: str
    branch: str

    def __str__(self) -> str:
        return f"'if' routine '{self.routine_name}' missing '{self.branch}' branch."


@dataclass
class MissingEntryRoutineError(RuntimeError):
    """Raised when a program does not name its entry routine."""

    def __str__(self) -> str:
        return "Program is missing a 'main' routine."


@dataclass
class RoutineDepthError(RuntimeError):
    """Raised when routine dispatch nests deeper than the interpreter allows.

    Typically a loop with no reachable exit, such as a ``compose`` that
    lists itself or an ``if`` whose condition never changes.
    """

    routine_name: str

    def __str__(self) -> str:
        return (
            f"Maximum routine nesting depth exceeded while running '{self.routine_name}' "
            "(the program may loop without end)."
        )


@dataclass
class ServiceCallError(RuntimeError):
    """Raised when the generative service fails inside a ``prompt`` routine."""

    routine_name: str
    message: str

    def __str__(self) -> str:
        return f"Generative service call failed in routine '{self.routine_name}': {self.message}"


@dataclass
class EvaluationError(RuntimeError):
    """Raised when expression evaluation fails."""

    expression: str
    message: str

    def __str__(self) -> str:
        return f"Evaluation error: {self.message} (expression: {self.expression})"
