"""
Condition Expression Parser for rubrical conditions.

Conditions are short Latin phrases such as

    rubrica monastica et tempore paschali
    rubrica 1960 aut rubrica monastica
    tempore paschali nisi rubrica innovata et feria 1

Grammar:
    expr := and ("aut" and)*
    and  := term (("et" | "nisi") term)*
    term := [subject] predicate

"aut" binds loosest and short-circuits on the first true group. Inside
one group, "nisi" negates its own term and every term after it. A term
whose first word is not a known subject is a bare predicate on the
season ("tempore"). An empty condition is true.
"""

from typing import Dict, Any, List, Optional, TYPE_CHECKING
from dataclasses import dataclass, field
import logging
import re

from officium.conditions.base import OfficeContext
from officium.conditions.predicates import rubric_registry
from officium.conditions.registry import PredicateRegistry
from officium.conditions.subjects import DEFAULT_SUBJECT, is_subject, subject_value

if TYPE_CHECKING:
    from officium.conditions.trace import EvaluationTrace

logger = logging.getLogger(__name__)

_OR_RE = re.compile(r"\baut\b", re.IGNORECASE)
_AND_RE = re.compile(r"\b(et|nisi)\b", re.IGNORECASE)


@dataclass(frozen=True)
class Term:
    """A single (subject, predicate) test, possibly negated by "nisi"."""
    subject: str
    predicate: str
    negated: bool = False


@dataclass
class ParsedCondition:
    """
    A parsed condition: an OR of AND-groups of terms.

    Attributes:
        source: Original condition text
        groups: AND-groups; the condition holds if any group holds
    """
    source: str
    groups: List[List[Term]] = field(default_factory=list)

    @property
    def is_vacuous(self) -> bool:
        """True when the condition has no terms at all."""
        return not any(self.groups)

    def evaluate(
        self,
        ctx: OfficeContext,
        registry: PredicateRegistry = rubric_registry,
        trace: Optional["EvaluationTrace"] = None
    ) -> bool:
        """Evaluate the condition against a context."""
        if not self.groups:
            return True
        for group in self.groups:
            if self._group_holds(group, ctx, registry, trace):
                return True
        return False

    @staticmethod
    def _group_holds(
        group: List[Term],
        ctx: OfficeContext,
        registry: PredicateRegistry,
        trace: Optional["EvaluationTrace"]
    ) -> bool:
        for term in group:
            value = subject_value(term.subject, ctx)
            matched = registry.evaluate(term.predicate, value, trace, subject=term.subject)
            if matched == term.negated:
                return False
        return True


class ConditionExpressionParser:
    """
    Parses condition text into ParsedCondition objects.

    Parsing does not depend on the context, so parsed conditions are
    cached by their text and reused across requests.

    Example:
        parser = ConditionExpressionParser()
        cond = parser.parse("rubrica monastica et tempore paschali")
        cond.evaluate(ctx)
    """

    def __init__(self):
        self._cache: Dict[str, ParsedCondition] = {}

    def parse(self, text: str) -> ParsedCondition:
        """
        Parse a condition string.

        Never raises: stray operators or empty pieces are skipped, so a
        malformed condition degrades to a vacuously true group.
        """
        key = text.strip()
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        parsed = ParsedCondition(source=key)
        if key:
            parsed.groups = [self._parse_group(part) for part in _OR_RE.split(key)]

        self._cache[key] = parsed
        return parsed

    def _parse_group(self, text: str) -> List[Term]:
        terms = []
        negated = False
        # re.split with a capture group alternates pieces and operators
        for index, piece in enumerate(_AND_RE.split(text)):
            if index % 2:
                if piece.lower() == "nisi":
                    negated = True
                continue
            piece = piece.strip()
            if piece:
                terms.append(self._parse_term(piece, negated))
        return terms

    @staticmethod
    def _parse_term(text: str, negated: bool) -> Term:
        words = text.split(None, 1)
        if len(words) == 2 and is_subject(words[0]):
            return Term(words[0].lower(), words[1].strip(), negated)
        return Term(DEFAULT_SUBJECT, text, negated)

    def clear_cache(self) -> None:
        """Clear the parse cache."""
        self._cache.clear()

    def get_cache_stats(self) -> Dict[str, Any]:
        return {"cache_size": len(self._cache)}

    def __repr__(self) -> str:
        return f"ConditionExpressionParser(cached={len(self._cache)})"


class ConditionEvaluator:
    """
    Evaluates condition strings for one context.

    This is the object the section parser and the line processor call;
    it binds a context, a predicate registry and a parser together.

    Example:
        evaluator = ConditionEvaluator(ctx)
        evaluator("rubrica monastica")   # bool
    """

    def __init__(
        self,
        ctx: OfficeContext,
        registry: PredicateRegistry = rubric_registry,
        parser: Optional[ConditionExpressionParser] = None
    ):
        self.ctx = ctx
        self.registry = registry
        self.parser = parser or _default_parser

    def evaluate(self, condition: str, trace: Optional["EvaluationTrace"] = None) -> bool:
        """True if `condition` holds for this context."""
        result = self.parser.parse(condition).evaluate(self.ctx, self.registry, trace)
        logger.debug("condition %r -> %s", condition, result)
        return result

    __call__ = evaluate


_default_parser = ConditionExpressionParser()


def evaluate_condition(
    condition: str,
    ctx: OfficeContext,
    registry: PredicateRegistry = rubric_registry,
    trace: Optional["EvaluationTrace"] = None
) -> bool:
    """Evaluate `condition` against `ctx` with the default parser."""
    return _default_parser.parse(condition).evaluate(ctx, registry, trace)


__all__ = [
    "ConditionEvaluator",
    "ConditionExpressionParser",
    "ParsedCondition",
    "Term",
    "evaluate_condition",
]
