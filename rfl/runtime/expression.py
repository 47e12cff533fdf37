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

"""RFL expression evaluation.

Evaluates the dict AST produced by :mod:`rfl.expression`:
- Literals (String, Number, Boolean, Null, arrays, maps)
- Names bound in the evaluation context (``input``)
- Member access (a.b) and indexing (a[i])
- Arithmetic, comparison, logical and conditional operators
- A fixed set of builtin functions
"""

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..expression import ExpressionSyntaxError, parse_expression
from .environment import is_truthy, to_text
from .errors import EvaluationError

INPUT_BINDING = "input"


def _to_number(value: Any) -> int | float:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            number = float(text)
        # results must stay representable in JSON output
        if not math.isfinite(number):
            raise ValueError(f"not a finite number: {value!r}")
        return number
    raise TypeError(f"cannot convert {type(value).__name__} to number")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float))


def _strict_equal(left: Any, right: Any) -> bool:
    """Equality without bool/number coercion (``true !== 1``)."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    return left == right


def _round(value: Any, ndigits: Any = 0) -> int | float:
    number = _to_number(value)
    digits = int(_to_number(ndigits))
    return round(number, digits) if digits else round(number)


def _min_max(fn: Callable) -> Callable:
    def wrapper(*args: Any) -> Any:
        if len(args) == 1 and isinstance(args[0], list):
            return fn(args[0])
        return fn(args)

    return wrapper


def _join(items: list, separator: str = ",") -> str:
    return separator.join(to_text(item) for item in items)


def _split(text: str, separator: str | None = None) -> list[str]:
    return text.split(separator) if separator else text.split()


def _contains(container: Any, item: Any) -> bool:
    if isinstance(container, str):
        return to_text(item) in container
    return item in container


# Builtin functions callable from expressions
BUILTIN_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "len": len,
    "str": to_text,
    "number": _to_number,
    "int": lambda value: int(_to_number(value)),
    "round": _round,
    "abs": lambda value: abs(_to_number(value)),
    "min": _min_max(min),
    "max": _min_max(max),
    "upper": lambda text: to_text(text).upper(),
    "lower": lambda text: to_text(text).lower(),
    "trim": lambda text: to_text(text).strip(),
    "split": _split,
    "join": _join,
    "contains": _contains,
    "keys": lambda mapping: list(mapping.keys()),
}


@dataclass
class EvaluationContext:
    """Context for expression evaluation.

    Attributes:
        bindings: Names visible to the expression (``input`` for code routines)
        expression: Source text, used in error messages
        functions: Callable builtins
    """

    bindings: dict[str, Any]
    expression: str = ""
    functions: dict[str, Callable[..., Any]] = field(
        default_factory=lambda: dict(BUILTIN_FUNCTIONS)
    )


class ExpressionEvaluator:
    """Evaluates RFL expressions from the parsed dict AST."""

    def evaluate(self, expr: Any, ctx: EvaluationContext) -> Any:
        """Evaluate an expression.

        Args:
            expr: The expression AST (dict)
            ctx: Evaluation context

        Returns:
            The evaluated value

        Raises:
            EvaluationError: If evaluation fails
        """
        if not isinstance(expr, dict):
            return expr

        expr_type = expr.get("type", "")

        if expr_type in ("String", "Boolean"):
            return expr.get("value")
        elif expr_type == "Number":
            return self._check_finite(expr.get("value"), ctx)
        elif expr_type == "Null":
            return None
        elif expr_type == "Name":
            return self._eval_name(expr, ctx)
        elif expr_type == "Member":
            return self._eval_member(expr, ctx)
        elif expr_type == "IndexExpr":
            return self._eval_index(expr, ctx)
        elif expr_type == "Call":
            return self._eval_call(expr, ctx)
        elif expr_type == "UnaryExpr":
            return self._eval_unary(expr, ctx)
        elif expr_type == "BinaryExpr":
            return self._eval_binary(expr, ctx)
        elif expr_type == "LogicalExpr":
            return self._eval_logical(expr, ctx)
        elif expr_type == "Conditional":
            if is_truthy(self.evaluate(expr.get("test"), ctx)):
                return self.evaluate(expr.get("then"), ctx)
            return self.evaluate(expr.get("else"), ctx)
        elif expr_type == "ArrayLiteral":
            return [self.evaluate(elem, ctx) for elem in expr.get("elements", [])]
        elif expr_type == "MapLiteral":
            return self._eval_map_literal(expr, ctx)
        else:
            raise EvaluationError(ctx.expression, f"Unknown expression type: {expr_type}")

    def _eval_name(self, expr: dict, ctx: EvaluationContext) -> Any:
        name = expr.get("name", "")
        if name not in ctx.bindings:
            raise EvaluationError(ctx.expression, f"'{name}' is not defined")
        return ctx.bindings[name]

    def _eval_member(self, expr: dict, ctx: EvaluationContext) -> Any:
        """Evaluate member access (target.name).

        Missing keys on a mapping evaluate to null.
        """
        target = self.evaluate(expr.get("target"), ctx)
        name = expr.get("name", "")

        if target is None:
            raise EvaluationError(
                ctx.expression, f"Cannot read property '{name}' of null"
            )
        if isinstance(target, dict):
            return target.get(name)
        if name == "length" and isinstance(target, (str, list)):
            return len(target)
        raise EvaluationError(
            ctx.expression,
            f"Cannot read property '{name}' of {type(target).__name__}",
        )

    def _eval_index(self, expr: dict, ctx: EvaluationContext) -> Any:
        """Evaluate an index expression (target[index])."""
        target = self.evaluate(expr.get("target"), ctx)
        index = self.evaluate(expr.get("index"), ctx)

        if target is None:
            raise EvaluationError(ctx.expression, "Cannot index null")
        if isinstance(target, dict):
            return target.get(to_text(index) if not isinstance(index, str) else index)
        if isinstance(target, (list, str)):
            if isinstance(index, float) and index.is_integer():
                index = int(index)
            if isinstance(index, bool) or not isinstance(index, int):
                raise EvaluationError(
                    ctx.expression, f"Index must be an integer, got {to_text(index)!r}"
                )
            if -len(target) <= index < len(target):
                return target[index]
            return None
        raise EvaluationError(
            ctx.expression, f"Cannot index {type(target).__name__}"
        )

    def _eval_call(self, expr: dict, ctx: EvaluationContext) -> Any:
        name = expr.get("name", "")
        fn = ctx.functions.get(name)
        if fn is None:
            raise EvaluationError(ctx.expression, f"Unknown function: {name}")

        args = [self.evaluate(arg, ctx) for arg in expr.get("args", [])]
        try:
            return fn(*args)
        except (TypeError, ValueError, AttributeError, KeyError) as e:
            raise EvaluationError(ctx.expression, f"{name}() failed: {e}") from e

    def _eval_unary(self, expr: dict, ctx: EvaluationContext) -> Any:
        operator = expr.get("operator", "-")
        operand = self.evaluate(expr.get("operand"), ctx)

        if operator == "!":
            return not is_truthy(operand)
        try:
            value = _to_number(operand)
        except (TypeError, ValueError) as e:
            raise EvaluationError(
                ctx.expression, f"Type error in unary {operator}: {e}"
            ) from e
        return -value if operator == "-" else value

    def _eval_binary(self, expr: dict, ctx: EvaluationContext) -> Any:
        """Evaluate a binary expression (arithmetic or comparison).

        ``+`` concatenates text when either operand is a string.
        """
        left = self.evaluate(expr.get("left"), ctx)
        right = self.evaluate(expr.get("right"), ctx)
        operator = expr.get("operator", "+")

        if operator == "==":
            return left == right
        if operator == "!=":
            return left != right
        if operator == "===":
            return _strict_equal(left, right)
        if operator == "!==":
            return not _strict_equal(left, right)

        if left is None or right is None:
            raise EvaluationError(
                ctx.expression, f"Cannot apply '{operator}' to null"
            )

        if operator == "+" and (isinstance(left, str) or isinstance(right, str)):
            return to_text(left) + to_text(right)
        if operator in ("-", "*", "/", "%") and not (_is_number(left) and _is_number(right)):
            raise EvaluationError(
                ctx.expression,
                f"Operator '{operator}' requires numbers, got "
                f"{type(left).__name__} and {type(right).__name__}",
            )

        try:
            if operator == "+":
                return self._check_finite(left + right, ctx)
            elif operator == "-":
                return self._check_finite(left - right, ctx)
            elif operator == "*":
                return self._check_finite(left * right, ctx)
            elif operator in ("/", "%"):
                if right == 0:
                    raise EvaluationError(ctx.expression, "Division by zero")
                result = left / right if operator == "/" else left % right
                return self._check_finite(result, ctx)
            elif operator == "<":
                return left < right
            elif operator == "<=":
                return left <= right
            elif operator == ">":
                return left > right
            elif operator == ">=":
                return left >= right
            else:
                raise EvaluationError(ctx.expression, f"Unknown operator: {operator}")
        except TypeError as e:
            raise EvaluationError(
                ctx.expression, f"Type error in {operator} operation: {e}"
            ) from e
        except OverflowError as e:
            raise EvaluationError(ctx.expression, "Numeric overflow") from e

    def _check_finite(self, value: Any, ctx: EvaluationContext) -> Any:
        if isinstance(value, float) and not math.isfinite(value):
            raise EvaluationError(ctx.expression, "Numeric overflow")
        return value

    def _eval_logical(self, expr: dict, ctx: EvaluationContext) -> Any:
        """Short-circuit ``&&`` / ``||`` returning the deciding operand."""
        left = self.evaluate(expr.get("left"), ctx)
        if expr.get("operator") == "&&":
            return self.evaluate(expr.get("right"), ctx) if is_truthy(left) else left
        return left if is_truthy(left) else self.evaluate(expr.get("right"), ctx)

    def _eval_map_literal(self, expr: dict, ctx: EvaluationContext) -> dict:
        """Evaluate a map literal."""
        result = {}
        for entry in expr.get("entries", []):
            result[entry.get("key", "")] = self.evaluate(entry.get("value"), ctx)
        return result


def evaluate_expression(source: str, environment: dict[str, Any]) -> Any:
    """Parse and evaluate *source* with ``input`` bound to *environment*.

    Raises:
        ExpressionSyntaxError: If the text cannot be parsed
        EvaluationError: If evaluation fails
    """
    tree = parse_expression(source)
    ctx = EvaluationContext(bindings={INPUT_BINDING: environment}, expression=source)
    return ExpressionEvaluator().evaluate(tree, ctx)


__all__ = [
    "BUILTIN_FUNCTIONS",
    "EvaluationContext",
    "ExpressionEvaluator",
    "ExpressionSyntaxError",
    "INPUT_BINDING",
    "evaluate_expression",
]
