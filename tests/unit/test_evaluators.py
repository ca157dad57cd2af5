"""
Unit tests for placement answer evaluators.

Tests the check() method of each handler and the evaluate() entry point.
"""

import pytest

from src.placement.evaluators import HANDLERS, check_answer, evaluate, get_handler
from src.placement.evaluators.base import coerce_index, coerce_index_list
from src.placement.exceptions import QuestionShapeError
from src.placement.models import (
    FillBlankQuestion,
    MultipleChoiceQuestion,
    QuestionType,
    ReadingComprehensionQuestion,
    SentenceOrderQuestion,
    SubQuestion,
)


class TestHandlerRegistry:
    """Test the handler registry."""

    def test_all_handlers_registered(self):
        """Every question type should have a handler."""
        assert set(HANDLERS) == set(QuestionType)

    def test_get_handler_by_string(self):
        assert get_handler("fill-blank") is HANDLERS[QuestionType.FILL_BLANK]

    def test_get_handler_invalid_type(self):
        """Unknown types are structural errors, not wrong answers."""
        with pytest.raises(QuestionShapeError):
            get_handler("essay")


class TestCoercion:
    """Index coercion mirrors numeric conversion of form values."""

    @pytest.mark.parametrize("value,expected", [
        (2, 2),
        ("2", 2),
        (" 3 ", 3),
        (1.0, 1),
        ("-1", -1),
        (1.5, None),
        ("b", None),
        (True, None),
        (None, None),
        ([1], None),
        ("\u00b2", None),
        ("\u00b9", None),
    ])
    def test_coerce_index(self, value, expected):
        assert coerce_index(value) == expected

    def test_coerce_index_list(self):
        assert coerce_index_list(["0", 2]) == [0, 2]
        assert coerce_index_list([0, "x"]) is None
        assert coerce_index_list("0,2") is None
        assert coerce_index_list(["0", "\u00b9"]) is None


class TestMultipleChoice:
    """Test single-answer and multi-select choice grading."""

    @pytest.fixture
    def single(self):
        return MultipleChoiceQuestion(
            id="mc1", prompt="2 + 2 = ?", options=["3", "4", "5"], correct_answer=1
        )

    @pytest.fixture
    def multi(self):
        return MultipleChoiceQuestion(
            id="mc2", prompt="Pick even numbers", options=["2", "3", "4"], correct_answer=[0, 2]
        )

    def test_single_correct(self, single):
        result = check_answer(single, 1)
        assert result.correct is True
        assert "Correct" in result.feedback

    def test_single_string_index(self, single):
        """String indices compare numerically."""
        assert evaluate(single, "1") is True

    def test_single_incorrect(self, single):
        result = check_answer(single, 0)
        assert result.correct is False
        assert result.correct_answer == 1
        assert result.malformed is False

    def test_single_unanswered_is_incorrect(self, single):
        result = check_answer(single, None)
        assert result.correct is False
        assert result.malformed is True

    def test_multi_order_independent(self, multi):
        assert evaluate(multi, [2, 0]) is True
        assert evaluate(multi, [0, 2]) is True

    def test_multi_no_partial_credit(self, multi):
        result = check_answer(multi, [0])
        assert result.correct is False
        assert "exactly 2" in result.feedback

    def test_multi_extra_selection_is_wrong(self, multi):
        assert evaluate(multi, [0, 1, 2]) is False

    def test_multi_bare_index_is_wrong(self):
        """A multi-select answer must be a list, even for a one-key question."""
        question = MultipleChoiceQuestion(
            id="mc3", options=["a", "b"], correct_answer=[1]
        )
        result = check_answer(question, 1)
        assert result.correct is False
        assert result.malformed is True
        assert evaluate(question, [1]) is True

    def test_multi_malformed(self, multi):
        result = check_answer(multi, {"choice": 0})
        assert result.correct is False
        assert result.malformed is True


class TestFillBlank:
    """Test fill-in-the-blank grading."""

    @pytest.fixture
    def question(self):
        return FillBlankQuestion(id="fb1", prompt="Capital of France", correct_answer="Paris")

    @pytest.mark.parametrize("answer", ["Paris", "paris", "  PARIS  ", "pArIs\n"])
    def test_case_and_whitespace_insensitive(self, question, answer):
        assert evaluate(question, answer) is True

    def test_wrong_text(self, question):
        result = check_answer(question, "Lyon")
        assert result.correct is False
        assert result.correct_answer == "Paris"

    def test_inner_whitespace_matters(self, question):
        assert evaluate(question, "Pa ris") is False

    def test_non_string_is_incorrect(self, question):
        assert evaluate(question, 42) is False
        assert evaluate(question, None) is False


class TestSentenceOrder:
    """Test sentence ordering grading."""

    @pytest.fixture
    def question(self):
        return SentenceOrderQuestion(
            id="so1",
            sentences=["First.", "Second.", "Third."],
            correct_answer=[0, 1, 2],
        )

    def test_exact_order(self, question):
        assert evaluate(question, [0, 1, 2]) is True

    def test_same_set_wrong_order(self, question):
        result = check_answer(question, [1, 0, 2])
        assert result.correct is False

    def test_string_indices(self, question):
        assert evaluate(question, ["0", "1", "2"]) is True

    def test_wrong_length(self, question):
        assert evaluate(question, [0, 1]) is False

    def test_unanswered(self, question):
        assert evaluate(question, None) is False


class TestReadingComprehension:
    """Test passage questions with sub-questions."""

    @pytest.fixture
    def question(self):
        return ReadingComprehensionQuestion(
            id="rc1",
            passage="Tom has a red bike.",
            sub_questions=[
                SubQuestion(prompt="Who?", options=["Tom", "Ann"], correct_answer=0),
                SubQuestion(prompt="Colour?", options=["blue", "red"], correct_answer=1),
            ],
        )

    def test_all_sub_answers_correct(self, question):
        result = check_answer(question, [0, 1])
        assert result.correct is True
        assert result.sub_results == [True, True]

    def test_one_miss_fails_question(self, question):
        result = check_answer(question, [0, 0])
        assert result.correct is False
        assert result.sub_results == [True, False]
        assert "2" in result.feedback

    def test_missing_sub_answer_is_wrong(self, question):
        result = check_answer(question, [0])
        assert result.correct is False
        assert result.sub_results == [True, False]

    def test_non_list_answer(self, question):
        assert evaluate(question, 0) is False


class TestEvaluatePurity:
    """evaluate() is deterministic and never raises for bad submissions."""

    @pytest.mark.parametrize("answer", [None, "", [], {}, object(), -1, 99])
    def test_total_over_garbage(self, answer):
        question = MultipleChoiceQuestion(id="p", options=["a", "b"], correct_answer=0)
        assert evaluate(question, answer) is False

    def test_same_inputs_same_result(self):
        question = FillBlankQuestion(id="p2", correct_answer="cat")
        assert [evaluate(question, "Cat") for _ in range(3)] == [True, True, True]

    @pytest.mark.parametrize("answer", ["²", "¹", "x²"])
    def test_superscript_digits_are_wrong(self, answer):
        """Characters that look numeric but do not parse as integers."""
        question = MultipleChoiceQuestion(id="p3", options=["a", "b", "c"], correct_answer=2)
        result = check_answer(question, answer)
        assert result.correct is False
        assert result.malformed is True

    def test_superscript_in_index_lists_is_wrong(self):
        order = SentenceOrderQuestion(id="p4", sentences=["a", "b"], correct_answer=[0, 1])
        reading = ReadingComprehensionQuestion(
            id="p5",
            passage="Text",
            sub_questions=[
                SubQuestion(prompt="?", options=["a", "b"], correct_answer=0),
                SubQuestion(prompt="?", options=["a", "b"], correct_answer=1),
            ],
        )
        assert evaluate(order, ["0", "¹"]) is False
        assert evaluate(reading, ["0", "¹"]) is False
