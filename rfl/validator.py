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

"""RFL program validator.

Pre-flight structural checks on a program document:
- Entry routine present and defined
- Required fields present for every routine kind
- Valid output type tags
- Referenced routines exist (if branches, compose and join lists)
- Define references resolve against the names produced by define routines

The define reference check is order-independent: a name produced by any
define routine anywhere in the program counts as available.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .expression import ExpressionSyntaxError, parse_expression
from .program import ROUTINE_CLASSES, Program, is_valid_type, split_optional


@dataclass
class ValidationError:
    """A program validation error."""

    message: str
    routine: str | None = None

    def __str__(self) -> str:
        if self.routine is not None:
            return f"{self.message} (routine: {self.routine})"
        return self.message


@dataclass
class ValidationResult:
    """Result of validation containing any errors found."""

    errors: list[ValidationError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, message: str, routine: str | None = None) -> None:
        """Add a validation error."""
        self.errors.append(ValidationError(message, routine))


class RFLValidator:
    """Validates RFL program documents.

    Args:
        check_expressions: Also parse the expression of every code routine
    """

    def __init__(self, check_expressions: bool = False):
        self.check_expressions = check_expressions
        self._result: ValidationResult = ValidationResult()
        self._routines: dict[str, Any] = {}
        self._defined_names: set[str] = set()

    def validate(
        self,
        program: Program | dict,
        known_inputs: Iterable[str] | None = None,
    ) -> ValidationResult:
        """Validate a program.

        Args:
            program: Program or parsed program document
            known_inputs: Names supplied by the caller's initial environment,
                accepted as define references in addition to define outputs

        Returns:
            ValidationResult containing any errors found
        """
        data = program.to_dict() if isinstance(program, Program) else program
        self._result = ValidationResult()
        self._routines = {}
        self._defined_names = set(known_inputs or ())

        if not isinstance(data, dict):
            self._result.add_error("Program must be an object")
            return self._result

        routines = data.get("routines")
        if not isinstance(routines, dict):
            self._result.add_error("Program must have routines object")
            routines = {}
        self._routines = routines

        main = data.get("main")
        if not main:
            self._result.add_error("Program must have a main routine")
        elif main not in routines:
            self._result.add_error(f'Main routine "{main}" not found in routines')

        # Collect define outputs first so references resolve in any order
        for name, routine in routines.items():
            if isinstance(routine, dict) and routine.get("type") == "define":
                outputs = routine.get("outputs")
                if isinstance(outputs, dict):
                    self._defined_names.update(outputs.keys())

        for name, routine in routines.items():
            self._validate_routine(name, routine)

        return self._result

    def _validate_routine(self, name: str, routine: Any) -> None:
        if not isinstance(routine, dict):
            self._result.add_error("Routine must be an object", name)
            return

        kind = routine.get("type")
        if not isinstance(kind, str) or kind not in ROUTINE_CLASSES:
            self._result.add_error(f"Unknown routine type: {kind}", name)
            return

        passthrough = routine.get("passthrough")
        if passthrough is not None and (
            not isinstance(passthrough, list)
            or not all(isinstance(p, str) for p in passthrough)
        ):
            self._result.add_error("passthrough must be a list of variable names", name)

        validate_kind = getattr(self, f"_validate_{kind}")
        validate_kind(name, routine)

    def _validate_type(self, name: str, type_tag: Any) -> None:
        if not isinstance(type_tag, str) or not is_valid_type(type_tag):
            self._result.add_error(f"Invalid type: {type_tag}", name)

    def _validate_prompt(self, name: str, routine: dict) -> None:
        outputs = routine.get("outputs")
        if not routine.get("dev_msg") or not routine.get("user_msg") or outputs is None:
            self._result.add_error(
                "Prompt routine must have dev_msg, user_msg, and outputs", name
            )
        if outputs is None:
            return
        if not isinstance(outputs, dict):
            self._result.add_error("Prompt routine outputs must be an object", name)
            return
        if not outputs:
            self._result.add_error("Prompt routine must have at least one output", name)
        for type_tag in outputs.values():
            self._validate_type(name, type_tag)

    def _validate_code(self, name: str, routine: dict) -> None:
        code = routine.get("code")
        if not code:
            self._result.add_error("Code routine must have code field", name)
            return
        if self.check_expressions:
            try:
                parse_expression(code)
            except ExpressionSyntaxError as e:
                self._result.add_error(f"Invalid code expression: {e}", name)

    def _validate_define(self, name: str, routine: dict) -> None:
        outputs = routine.get("outputs")
        if not isinstance(outputs, dict):
            self._result.add_error("Define routine must have outputs object", name)
            return

        for key, spec in outputs.items():
            if isinstance(spec, dict):
                self._validate_type(name, spec.get("type"))
            elif isinstance(spec, str):
                ref, optional = split_optional(spec)
                if not optional and ref not in self._defined_names and ref not in outputs:
                    self._result.add_error(f'Input "{ref}" not found', name)
            else:
                self._result.add_error(
                    f'Define output "{key}" must be a reference or a literal spec', name
                )

    def _validate_if(self, name: str, routine: dict) -> None:
        if not routine.get("condition") or not routine.get("then") or not routine.get("else"):
            self._result.add_error(
                "If routine must have condition, then, and else fields", name
            )
        for branch in ("then", "else"):
            target = routine.get(branch)
            if target:
                self._check_reference(name, target)

    def _validate_routine_list(self, name: str, routine: dict, label: str) -> None:
        names = routine.get("routines")
        if not isinstance(names, list):
            self._result.add_error(f"{label} routine must have routines array", name)
            return
        if not names:
            self._result.add_error(f"{label} routine must have at least one routine", name)
        for target in names:
            self._check_reference(name, target)

    def _check_reference(self, name: str, target: Any) -> None:
        if not isinstance(target, str) or target not in self._routines:
            self._result.add_error(f'Routine "{target}" not found', name)

    def _validate_compose(self, name: str, routine: dict) -> None:
        self._validate_routine_list(name, routine, "Compose")

    def _validate_join(self, name: str, routine: dict) -> None:
        self._validate_routine_list(name, routine, "Join")


def validate(
    program: Program | dict,
    known_inputs: Iterable[str] | None = None,
    check_expressions: bool = False,
) -> ValidationResult:
    """Validate a program.

    This is a convenience function that creates a validator instance.
    """
    validator = RFLValidator(check_expressions=check_expressions)
    return validator.validate(program, known_inputs)
