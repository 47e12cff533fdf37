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

"""RFL expression parser using Lark.

Parses the restricted expression language of ``code`` routines into a
JSON-style dict AST (``{"type": "BinaryExpr", ...}``) that
:class:`rfl.runtime.expression.ExpressionEvaluator` walks.
"""

from __future__ import annotations

import ast
from functools import lru_cache
from pathlib import Path
from typing import Any

from lark import Lark, Token, Transformer
from lark.exceptions import (
    UnexpectedCharacters,
    UnexpectedEOF,
    UnexpectedInput,
    UnexpectedToken,
    VisitError,
)


class ExpressionSyntaxError(Exception):
    """Expression parse error with location information."""

    def __init__(
        self,
        message: str,
        line: int | None = None,
        column: int | None = None,
    ):
        self.line = line
        self.column = column
        location = ""
        if line is not None:
            location = f" at line {line}"
            if column is not None:
                location += f", column {column}"
        super().__init__(f"{message}{location}")


_GRAMMAR_PATH = Path(__file__).parent / "grammar" / "expression.lark"


def _unquote(token: Token) -> str:
    """Decode a single- or double-quoted string literal."""
    value = ast.literal_eval(str(token))
    if not isinstance(value, str):
        raise ValueError(f"Invalid string literal: {token}")
    return value


def _number(token: Token) -> int | float:
    text = str(token)
    if any(c in text for c in ".eE"):
        return float(text)
    return int(text)


class ExpressionTransformer(Transformer):
    """Transform Lark parse tree to the expression dict AST."""

    # Terminals
    def NAME(self, token: Token) -> str:
        return str(token)

    def STRING(self, token: Token) -> str:
        return _unquote(token)

    # Literals
    def number(self, items: list) -> dict:
        return {"type": "Number", "value": _number(items[0])}

    def string(self, items: list) -> dict:
        return {"type": "String", "value": items[0]}

    def true(self, items: list) -> dict:
        return {"type": "Boolean", "value": True}

    def false(self, items: list) -> dict:
        return {"type": "Boolean", "value": False}

    def null(self, items: list) -> dict:
        return {"type": "Null"}

    def array(self, items: list) -> dict:
        return {"type": "ArrayLiteral", "elements": items[0] if items else []}

    def object(self, items: list) -> dict:
        return {"type": "MapLiteral", "entries": items[0] if items else []}

    def args(self, items: list) -> list:
        return list(items)

    def pairs(self, items: list) -> list:
        return list(items)

    def pair(self, items: list) -> dict:
        return {"key": items[0], "value": items[1]}

    # References
    def name(self, items: list) -> dict:
        return {"type": "Name", "name": items[0]}

    def call(self, items: list) -> dict:
        return {
            "type": "Call",
            "name": items[0],
            "args": items[1] if len(items) > 1 else [],
        }

    def member(self, items: list) -> dict:
        return {"type": "Member", "target": items[0], "name": items[1]}

    def index(self, items: list) -> dict:
        return {"type": "IndexExpr", "target": items[0], "index": items[1]}

    # Operators
    def sign(self, items: list) -> dict:
        return {"type": "UnaryExpr", "operator": str(items[0]), "operand": items[1]}

    def not_op(self, items: list) -> dict:
        return {"type": "UnaryExpr", "operator": "!", "operand": items[0]}

    def binary(self, items: list) -> dict:
        left, operator, right = items
        return {
            "type": "BinaryExpr",
            "operator": str(operator),
            "left": left,
            "right": right,
        }

    def and_op(self, items: list) -> dict:
        return {"type": "LogicalExpr", "operator": "&&", "left": items[0], "right": items[1]}

    def or_op(self, items: list) -> dict:
        return {"type": "LogicalExpr", "operator": "||", "left": items[0], "right": items[1]}

    def conditional(self, items: list) -> dict:
        return {
            "type": "Conditional",
            "test": items[0],
            "then": items[1],
            "else": items[2],
        }


class ExpressionParser:
    """Expression language parser.

    Uses Lark with LALR mode. The Lark instance is shared across all
    ExpressionParser instances since the grammar is immutable at runtime.
    """

    _lark: Lark | None = None

    @classmethod
    def _get_lark(cls) -> Lark:
        """Return the shared Lark parser, creating it on first use."""
        if cls._lark is None:
            with open(_GRAMMAR_PATH) as f:
                grammar = f.read()
            cls._lark = Lark(
                grammar,
                parser="lalr",
                propagate_positions=True,
                maybe_placeholders=False,
            )
        return cls._lark

    def __init__(self) -> None:
        self._parser = self._get_lark()

    def parse(self, source: str) -> dict[str, Any]:
        """Parse expression text and return its dict AST.

        Raises:
            ExpressionSyntaxError: If the text is not a valid expression
        """
        try:
            tree = self._parser.parse(source)
            return ExpressionTransformer().transform(tree)
        except UnexpectedCharacters as e:
            raise ExpressionSyntaxError(
                f"Unexpected character '{e.char}'",
                line=e.line,
                column=e.column,
            ) from e
        except UnexpectedEOF as e:
            raise ExpressionSyntaxError("Unexpected end of expression") from e
        except UnexpectedToken as e:
            expected = ", ".join(sorted(e.expected)) if e.expected else "unknown"
            raise ExpressionSyntaxError(
                f"Unexpected token '{e.token}'. Expected one of: {expected}",
                line=e.line,
                column=e.column,
            ) from e
        except UnexpectedInput as e:
            raise ExpressionSyntaxError(
                "Syntax error",
                line=getattr(e, "line", None),
                column=getattr(e, "column", None),
            ) from e
        except VisitError as e:
            raise ExpressionSyntaxError(str(e.orig_exc)) from e


@lru_cache(maxsize=256)
def _parse_cached(source: str) -> dict[str, Any]:
    return ExpressionParser().parse(source)


def parse_expression(source: str) -> dict[str, Any]:
    """Parse expression text, caching the AST per distinct source string.

    The returned AST is shared between callers and must not be mutated.
    """
    return _parse_cached(source)
