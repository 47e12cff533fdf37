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

"""RFL runtime package.

Executes RFL programs by recursive routine dispatch.
"""

from .environment import apply_passthrough, is_truthy, snapshot, substitute, to_text
from .errors import (
    EvaluationError,
    MissingBranchError,
    MissingEntryRoutineError,
    RoutineDepthError,
    RoutineNotFoundError,
    RuntimeError,
    ServiceCallError,
    UnknownRoutineKindError,
)
from .expression import EvaluationContext, ExpressionEvaluator, evaluate_expression
from .interpreter import Interpreter, RunResult
from .service import (
    CallableService,
    ClaudeService,
    ClaudeServiceConfig,
    GenerativeService,
    ServiceError,
    SimulatedService,
    build_output_schema,
)
from .telemetry import Telemetry, TelemetryEvent
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

__all__ = [
    # Interpreter
    "Interpreter",
    "RunResult",
    # Environment
    "substitute",
    "to_text",
    "is_truthy",
    "snapshot",
    "apply_passthrough",
    # Expressions
    "EvaluationContext",
    "ExpressionEvaluator",
    "evaluate_expression",
    # Services
    "GenerativeService",
    "SimulatedService",
    "CallableService",
    "ClaudeService",
    "ClaudeServiceConfig",
    "ServiceError",
    "build_output_schema",
    # Telemetry
    "Telemetry",
    "TelemetryEvent",
    # Traces
    "Trace",
    "PromptTrace",
    "CodeTrace",
    "DefineTrace",
    "IfTrace",
    "ComposeTrace",
    "JoinTrace",
    "LLMCall",
    # Errors
    "RuntimeError",
    "RoutineNotFoundError",
    "RoutineDepthError",
    "UnknownRoutineKindError",
    "MissingBranchError",
    "MissingEntryRoutineError",
    "ServiceCallError",
    "EvaluationError",
]
