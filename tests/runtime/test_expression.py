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

"""Tests for RFL expression evaluation."""

import pytest

from rfl.expression import ExpressionSyntaxError
from rfl.runtime import EvaluationContext, ExpressionEvaluator, evaluate_expression
from rfl.runtime.errors import EvaluationError


def ev(source: str, **environment):
    """Evaluate *source* with ``input`` bound to the keyword arguments."""
    return evaluate_expression(source, environment)


class TestLiterals:
    """Tests for literal values."""

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("42", 42),
            ("2.5", 2.5),
            ('"double"', "double"),
            ("'single'", "single"),
            ("'it\\'s'", "it's"),
            ("true", True),
            ("false", False),
            ("null", None),
            ("[1, 'a', true]", [1, "a", True]),
            ("[]", []),
            ("{}", {}),
        ],
    )
    def test_literal(self, source, expected):
        assert ev(source) == expected

    def test_object_literal_keys(self):
        assert ev("{a: 1, 'b c': 2, \"d\": 3,}") == {"a": 1, "b c": 2, "d": 3}

    def test_nested_object(self):
        assert ev("{outer: {inner: [1, {x: 2}]}}") == {"outer": {"inner": [1, {"x": 2}]}}


class TestReferences:
    """Tests for names, member access and indexing."""

    def test_input_binding(self):
        assert ev("input", a=1) == {"a": 1}

    def test_member_access(self):
        assert ev("input.name", name="Ada") == "Ada"

    def test_missing_member_is_null(self):
        assert ev("input.missing", a=1) is None

    def test_member_of_null_fails(self):
        with pytest.raises(EvaluationError, match="of null"):
            ev("input.missing.deeper")

    def test_length(self):
        assert ev("input.s.length", s="abcd") == 4
        assert ev("input.items.length", items=[1, 2]) == 2

    def test_unknown_name(self):
        with pytest.raises(EvaluationError, match="'other' is not defined"):
            ev("other")

    def test_index_list(self):
        assert ev("input.items[1]", items=["a", "b"]) == "b"
        assert ev("input.items[-1]", items=["a", "b"]) == "b"

    def test_index_out_of_range_is_null(self):
        assert ev("input.items[5]", items=["a"]) is None

    def test_index_mapping(self):
        assert ev("input['key with space']", **{"key with space": 1}) == 1

    def test_index_requires_integer(self):
        with pytest.raises(EvaluationError, match="Index must be an integer"):
            ev("input.items['x']", items=[1])


class TestOperators:
    """Tests for arithmetic, comparison and logical operators."""

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("1 + 2 * 3", 7),
            ("(1 + 2) * 3", 9),
            ("7 % 3", 1),
            ("7 / 2", 3.5),
            ("-input.n", -5),
            ("+'3'", 3),
            ("2 - -1", 3),
        ],
    )
    def test_arithmetic(self, source, expected):
        assert ev(source, n=5) == expected

    def test_string_concatenation(self):
        assert ev("'n=' + input.n", n=3) == "n=3"
        assert ev("input.flag + '!'", flag=True) == "true!"

    def test_arithmetic_requires_numbers(self):
        with pytest.raises(EvaluationError, match="requires numbers"):
            ev("'a' - 1")

    def test_null_operand(self):
        with pytest.raises(EvaluationError, match="null"):
            ev("input.missing + 1")

    def test_division_by_zero(self):
        with pytest.raises(EvaluationError, match="Division by zero"):
            ev("1 % 0")

    def test_overflow_is_evaluation_error(self):
        with pytest.raises(EvaluationError, match="Numeric overflow"):
            ev("1e308 * 10")
        with pytest.raises(EvaluationError, match="Numeric overflow"):
            ev("{x: 1e999}")

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("1 < 2", True),
            ("2 <= 2", True),
            ("3 > 4", False),
            ("'b' >= 'a'", True),
            ("1 == 1.0", True),
            ("1 != 2", True),
            ("true == 1", True),
            ("true === 1", False),
            ("1 === 1", True),
            ("'a' !== 'a'", False),
        ],
    )
    def test_comparison(self, source, expected):
        assert ev(source) is expected

    def test_logical_returns_operands(self):
        assert ev("input.a || 'default'", a="") == "default"
        assert ev("input.a && 'next'", a=0) == 0
        assert ev("input.a or 'x'", a="set") == "set"
        assert ev("1 and 2") == 2

    def test_logical_short_circuit(self):
        # the right side would fail if evaluated
        assert ev("false && input.missing.deeper") is False
        assert ev("true || input.missing.deeper") is True

    def test_not(self):
        assert ev("!input.items", items=[]) is True
        assert ev("not 1") is False

    def test_not_binds_looser_than_bang(self):
        # (!'y') == 'x' is false; not ('y' == 'x') is true
        assert ev("!input.a == 'x'", a="y") is False
        assert ev("not input.a == 'x'", a="y") is True

    def test_conditional(self):
        assert ev("input.n > 3 ? 'big' : 'small'", n=5) == "big"
        assert ev("input.n > 3 ? 'big' : 'small'", n=1) == "small"

    def test_keywords_do_not_capture_names(self):
        assert ev("{notes: input.notes, order: 1}", notes="x") == {"notes": "x", "order": 1}


class TestBuiltins:
    """Tests for whitelisted functions."""

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("len('abc')", 3),
            ("str(3.0)", "3"),
            ("number('4.5')", 4.5),
            ("int('7')", 7),
            ("round(2.567, 2)", 2.57),
            ("round(2.5)", 2),
            ("abs(-3)", 3),
            ("min(3, 1, 2)", 1),
            ("max([3, 9, 2])", 9),
            ("upper('ab')", "AB"),
            ("lower('AB')", "ab"),
            ("trim('  x ')", "x"),
            ("split('a,b', ',')", ["a", "b"]),
            ("split('a b')", ["a", "b"]),
            ("join([1, 2], '-')", "1-2"),
            ("contains('haystack', 'st')", True),
            ("contains([1, 2], 3)", False),
            ("keys({a: 1, b: 2})", ["a", "b"]),
        ],
    )
    def test_builtin(self, source, expected):
        assert ev(source) == expected

    def test_unknown_function(self):
        with pytest.raises(EvaluationError, match="Unknown function: eval"):
            ev("eval('1')")

    def test_builtin_failure_is_evaluation_error(self):
        with pytest.raises(EvaluationError, match="number\\(\\) failed"):
            ev("number('abc')")

    @pytest.mark.parametrize("text", ["nan", "inf", "-Infinity", "1e999"])
    def test_number_rejects_non_finite(self, text):
        with pytest.raises(EvaluationError, match="not a finite number"):
            ev(f"number('{text}')")


class TestEvaluator:
    """Tests for the evaluator with explicit contexts."""

    def test_custom_bindings(self):
        evaluator = ExpressionEvaluator()
        ctx = EvaluationContext(bindings={"x": 2})
        expr = {
            "type": "BinaryExpr",
            "operator": "*",
            "left": {"type": "Name", "name": "x"},
            "right": {"type": "Number", "value": 21},
        }
        assert evaluator.evaluate(expr, ctx) == 42

    def test_unknown_node_type(self):
        with pytest.raises(EvaluationError, match="Unknown expression type"):
            ExpressionEvaluator().evaluate({"type": "Lambda"}, EvaluationContext(bindings={}))

    def test_error_carries_expression(self):
        with pytest.raises(EvaluationError) as exc_info:
            ev("1 / 0")
        assert exc_info.value.expression == "1 / 0"
        assert exc_info.value.message == "Division by zero"

    def test_syntax_error_propagates(self):
        with pytest.raises(ExpressionSyntaxError):
            ev("1 +")
