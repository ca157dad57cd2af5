"""
Quiz module for question supply.

This module provides:
- QuestionBank: In-memory question source for placement, mastery and practice

Question Types:
- multiple-choice: Single answer or multi-select
- fill-blank: Free text, case/whitespace-insensitive
- sentence-order: Reorder sentences
- reading-comprehension: Passage with sub-questions
"""

from .question_bank import QuestionBank

__all__ = [
    "QuestionBank",
]
