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

"""RFL interpreter.

The Interpreter executes a program by recursive routine dispatch:
- Resolves a routine by name and dispatches on its kind
- Threads the environment between composed routines
- Returns each routine's outputs together with its finished trace node

Environment flow per kind:
- prompt, code, define, if: outputs start from the passthrough copy
- if: the chosen branch runs on the same input environment
- compose: each step's outputs replace the environment of the next step
- join: every branch runs on the original input; outputs merge in
  declared order, later branches winning
"""

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from ..program import (
    CodeRoutine,
    ComposeRoutine,
    DefineRoutine,
    IfRoutine,
    JoinRoutine,
    LiteralSpec,
    Program,
    PromptRoutine,
    Routine,
    UnknownRoutine,
    split_optional,
)
from .environment import Environment, apply_passthrough, is_truthy, snapshot, substitute
from .errors import (
    EvaluationError,
    MissingBranchError,
    MissingEntryRoutineError,
    RoutineDepthError,
    RoutineNotFoundError,
    ServiceCallError,
    UnknownRoutineKindError,
)
from .expression import evaluate_expression
from .service import GenerativeService
from .telemetry import Telemetry
from .trace import (
    CodeTrace,
    ComposeTrace,
    DefineTrace,
    IfTrace,
    JoinTrace,
    LLMCall,
    PromptTrace,
    Trace,
)

logger = logging.getLogger(__name__)

RoutineResult = tuple[Environment, Trace]


@dataclass
class RunResult:
    """Result of a program run."""

    program: Program
    inputs: Environment
    outputs: Environment
    trace: Trace

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{program, inputs, outputs, trace}``."""
        return {
            "program": self.program.to_dict(),
            "inputs": self.inputs,
            "outputs": self.outputs,
            "trace": self.trace.to_dict(),
        }


class Interpreter:
    """Executes RFL programs.

    Usage:
        interpreter = Interpreter(program, service=ClaudeService())
        result = interpreter.run({"topic": "tides"})
        result.outputs, result.trace

    Attributes:
        program: The program being executed
        service: Generative service for prompt routines (None disables them)
        telemetry: Structured event collector
        join_workers: Thread count for join branches (1 = sequential)
    """

    def __init__(
        self,
        program: Program | dict,
        service: GenerativeService | None = None,
        *,
        telemetry: Telemetry | None = None,
        join_workers: int = 1,
    ) -> None:
        if isinstance(program, dict):
            program = Program.from_dict(program)
        self.program = program
        self.service = service
        self.telemetry = telemetry or Telemetry(enabled=False)
        self.join_workers = max(1, join_workers)
        self._handlers: dict[type[Routine], Callable[..., RoutineResult]] = {
            PromptRoutine: self._handle_prompt,
            CodeRoutine: self._handle_code,
            DefineRoutine: self._handle_define,
            IfRoutine: self._handle_if,
            ComposeRoutine: self._handle_compose,
            JoinRoutine: self._handle_join,
        }

    def run(self, initial_inputs: Environment | None = None) -> RunResult:
        """Run the program's main routine.

        Args:
            initial_inputs: Initial environment (empty if not provided)

        Returns:
            RunResult with outputs, the full trace and the program

        Raises:
            MissingEntryRoutineError: If the program names no main routine
            RoutineNotFoundError: If a referenced routine does not exist
            RoutineDepthError: If routine dispatch recurses without end
            RuntimeError: Any other fatal runtime error
        """
        inputs = dict(initial_inputs or {})
        main = self.program.main
        try:
            if not main:
                raise MissingEntryRoutineError()
            if self.program.get(main) is None:
                raise RoutineNotFoundError(main)

            logger.info("Run start: main=%s inputs=%s", main, sorted(inputs))
            self.telemetry.log_run_start(main)
            try:
                outputs, trace = self.execute_routine(main, inputs)
            except RecursionError as e:
                raise RoutineDepthError(main) from e
        except Exception as e:
            logger.error("Run failed: main=%s error=%s", main, e)
            self.telemetry.log_run_error(main, e)
            raise

        logger.info("Run complete: main=%s outputs=%s", main, sorted(outputs))
        self.telemetry.log_run_complete(main, outputs)
        return RunResult(
            program=self.program,
            inputs=snapshot(inputs),
            outputs=outputs,
            trace=trace,
        )

    def execute_routine(self, name: str, inputs: Environment) -> RoutineResult:
        """Execute a routine by name.

        Args:
            name: Routine name
            inputs: Input environment (not modified)

        Returns:
            Tuple of (outputs, trace node)
        """
        routine = self.program.get(name)
        if routine is None:
            raise RoutineNotFoundError(name)

        handler = self._handlers.get(type(routine))
        if handler is None:
            kind = routine.type_name if isinstance(routine, UnknownRoutine) else routine.kind
            raise UnknownRoutineKindError(name, kind)

        input_snapshot = snapshot(inputs)
        logger.debug("Routine begin: %s (%s)", name, routine.kind)
        self.telemetry.log_routine_begin(name, routine.kind)
        try:
            outputs, trace = handler(name, routine, inputs, input_snapshot)
        except Exception as e:
            self.telemetry.log_routine_error(name, routine.kind, e)
            raise

        logger.debug("Routine end: %s outputs=%s", name, sorted(outputs))
        self.telemetry.log_routine_end(name, routine.kind, outputs)
        return outputs, trace

    # =====================================================================
    # Kind handlers
    # =====================================================================

    def _handle_prompt(
        self,
        name: str,
        routine: PromptRoutine,
        inputs: Environment,
        input_snapshot: Environment,
    ) -> RoutineResult:
        outputs = apply_passthrough(routine.passthrough, inputs)

        dev_msg = routine.dev_msg
        user_msg = substitute(routine.user_msg, inputs)

        if self.service is None:
            raise ServiceCallError(name, "No generative service configured")

        self.telemetry.log_service_call(name, routine.outputs)
        try:
            generated = self.service.generate(dev_msg, user_msg, dict(routine.outputs))
        except RecursionError:
            raise
        except Exception as e:
            raise ServiceCallError(name, str(e)) from e
        if not isinstance(generated, dict):
            raise ServiceCallError(
                name, f"Service returned {type(generated).__name__}, expected a mapping"
            )
        outputs.update(generated)

        trace = PromptTrace(
            routine=name,
            inputs=input_snapshot,
            outputs=snapshot(outputs),
            llm_call=LLMCall(dev_msg=dev_msg, user_msg=user_msg),
        )
        return outputs, trace

    def _handle_code(
        self,
        name: str,
        routine: CodeRoutine,
        inputs: Environment,
        input_snapshot: Environment,
    ) -> RoutineResult:
        """Evaluate the routine's expression.

        Evaluation failures become an ``error`` output; only stack
        exhaustion propagates.
        """
        outputs = apply_passthrough(routine.passthrough, inputs)

        try:
            result = evaluate_expression(routine.code, inputs)
            if not isinstance(result, dict):
                raise EvaluationError(routine.code, "Code did not return an object.")
            outputs.update(result)
        except RecursionError:
            raise
        except Exception as e:
            message = e.message if isinstance(e, EvaluationError) else str(e)
            logger.warning("Code routine '%s' failed: %s", name, message)
            self.telemetry.log_code_recovered(name, message)
            outputs["error"] = message

        trace = CodeTrace(routine=name, inputs=input_snapshot, outputs=snapshot(outputs))
        return outputs, trace

    def _handle_define(
        self,
        name: str,
        routine: DefineRoutine,
        inputs: Environment,
        input_snapshot: Environment,
    ) -> RoutineResult:
        outputs = apply_passthrough(routine.passthrough, inputs)

        for key, spec in routine.outputs.items():
            if isinstance(spec, LiteralSpec):
                if spec.optional and not spec.has_value:
                    continue
                outputs[key] = spec.value
            elif isinstance(spec, str):
                ref, optional = split_optional(spec)
                if ref in inputs:
                    outputs[key] = inputs[ref]
                elif not optional:
                    # required but unavailable: present with null value
                    outputs[key] = None

        trace = DefineTrace(routine=name, inputs=input_snapshot, outputs=snapshot(outputs))
        return outputs, trace

    def _handle_if(
        self,
        name: str,
        routine: IfRoutine,
        inputs: Environment,
        input_snapshot: Environment,
    ) -> RoutineResult:
        outputs = apply_passthrough(routine.passthrough, inputs)

        branch = "then" if is_truthy(inputs.get(routine.condition)) else "else"
        target = routine.branch(branch)
        if not target:
            raise MissingBranchError(name, branch)

        logger.debug("If '%s': condition %s -> %s (%s)", name, routine.condition, branch, target)
        branch_outputs, subtrace = self.execute_routine(target, inputs)
        outputs.update(branch_outputs)

        trace = IfTrace(
            routine=name,
            inputs=input_snapshot,
            outputs=snapshot(outputs),
            branch_taken=branch,
            subtrace=subtrace,
        )
        return outputs, trace

    def _handle_compose(
        self,
        name: str,
        routine: ComposeRoutine,
        inputs: Environment,
        input_snapshot: Environment,
    ) -> RoutineResult:
        current = inputs
        subtraces: list[Trace] = []
        for step in routine.routines:
            current, subtrace = self.execute_routine(step, current)
            subtraces.append(subtrace)

        outputs = dict(current)
        trace = ComposeTrace(
            routine=name,
            inputs=input_snapshot,
            outputs=snapshot(outputs),
            subtraces=tuple(subtraces),
        )
        return outputs, trace

    def _handle_join(
        self,
        name: str,
        routine: JoinRoutine,
        inputs: Environment,
        input_snapshot: Environment,
    ) -> RoutineResult:
        branches = list(routine.routines)
        if self.join_workers > 1 and len(branches) > 1:
            workers = min(self.join_workers, len(branches))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = [pool.submit(self.execute_routine, b, inputs) for b in branches]
                # collected in declared order, not completion order
                results = [future.result() for future in futures]
        else:
            results = [self.execute_routine(b, inputs) for b in branches]

        outputs: Environment = {}
        subtraces: list[Trace] = []
        for branch_outputs, subtrace in results:
            outputs.update(branch_outputs)
            subtraces.append(subtrace)

        trace = JoinTrace(
            routine=name,
            inputs=input_snapshot,
            outputs=snapshot(outputs),
            subtraces=tuple(subtraces),
        )
        return outputs, trace
