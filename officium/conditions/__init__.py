"""
Rubrical conditions.

Main components:
- OfficeContext: everything a condition may ask about in one request
- CalendarProvider: protocol for the date-derived context values
- PredicateRegistry: typed predicate table with a pattern fallback
- rubric_registry: the predicates used by the data files
- ConditionExpressionParser / ConditionEvaluator: aut / et / nisi grammar
- EvaluationTrace: record of predicate tests and conditional fragments
"""

from officium.conditions.base import CalendarProvider, OfficeContext
from officium.conditions.registry import (
    PredicateRegistry,
    PredicateMetadata,
    PredicateAlreadyRegisteredError,
    PredicateEvaluationError,
    InvalidPredicateSignatureError,
    match_pattern,
)
from officium.conditions.predicates import rubric_registry
from officium.conditions.subjects import SUBJECTS, is_subject, subject_value
from officium.conditions.expression_parser import (
    ConditionEvaluator,
    ConditionExpressionParser,
    ParsedCondition,
    Term,
    evaluate_condition,
)
from officium.conditions.trace import EvaluationTrace, FragmentEntry, TermEntry


__all__ = [
    "CalendarProvider",
    "OfficeContext",
    "PredicateRegistry",
    "PredicateMetadata",
    "PredicateAlreadyRegisteredError",
    "PredicateEvaluationError",
    "InvalidPredicateSignatureError",
    "match_pattern",
    "rubric_registry",
    "SUBJECTS",
    "is_subject",
    "subject_value",
    "ConditionEvaluator",
    "ConditionExpressionParser",
    "ParsedCondition",
    "Term",
    "evaluate_condition",
    "EvaluationTrace",
    "FragmentEntry",
    "TermEntry",
]
