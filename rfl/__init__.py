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

"""RFL (Routine Flow Language) interpreter package."""

from .config import LLMConfig, RFLConfig, RuntimeConfig, create_service, load_config
from .emitter import JSONEmitter, emit_dict, emit_json
from .expression import ExpressionParser, ExpressionSyntaxError, parse_expression
from .loader import ProgramLoader, ProgramLoadError
from .program import (
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
    routine_from_dict,
)
from .runtime import Interpreter, RunResult
from .validator import RFLValidator, ValidationError, ValidationResult, validate

__version__ = "0.1.0"

__all__ = [
    # Program model
    "Program",
    "Routine",
    "PromptRoutine",
    "CodeRoutine",
    "DefineRoutine",
    "LiteralSpec",
    "IfRoutine",
    "ComposeRoutine",
    "JoinRoutine",
    "UnknownRoutine",
    "routine_from_dict",
    # Loading and output
    "ProgramLoader",
    "ProgramLoadError",
    "JSONEmitter",
    "emit_json",
    "emit_dict",
    # Expressions
    "ExpressionParser",
    "ExpressionSyntaxError",
    "parse_expression",
    # Execution
    "Interpreter",
    "RunResult",
    # Validator
    "RFLValidator",
    "ValidationError",
    "ValidationResult",
    "validate",
    # Config
    "RFLConfig",
    "LLMConfig",
    "RuntimeConfig",
    "load_config",
    "create_service",
]
