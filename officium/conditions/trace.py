"""
Evaluation Trace for rubrical conditions.

Gives observability into why a line or section was kept or dropped:
every predicate test and every inline conditional fragment can be
recorded into an EvaluationTrace passed down the call chain.
"""

from typing import Dict, List, Any
from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class TermEntry:
    """
    Record of a single predicate test.

    Attributes:
        subject: Subject word of the term ("rubrica", "tempore", ...)
        value: Subject value the predicate was tested against
        predicate: Normalized predicate name
        result: Raw predicate result (before any "nisi" negation)
        via_fallback: True when the pattern fallback decided the result
        elapsed_ms: Time taken in milliseconds
    """
    subject: str
    value: str
    predicate: str
    result: bool
    via_fallback: bool = False
    elapsed_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "value": self.value,
            "predicate": self.predicate,
            "result": self.result,
            "via_fallback": self.via_fallback,
            "elapsed_ms": round(self.elapsed_ms, 3),
        }

    def to_compact_string(self) -> str:
        result_str = "PASS" if self.result else "FAIL"
        fallback = " ~" if self.via_fallback else ""
        return f"  {self.subject} {self.predicate}{fallback}: {result_str} ({self.value!r})"


@dataclass
class FragmentEntry:
    """
    Record of an inline conditional fragment.

    Attributes:
        line_number: 1-based line inside the section body
        condition: Condition text of the fragment
        stopwords: Leading stopwords, lowercased
        strength: Sum of stopword strengths
        scope: Backward scope applied ("none", "line", "chunk", "nest")
        result: Condition result
        deleted: Lines removed by the fragment
        replaceable: Deleted span may be replaced by content supplied elsewhere
    """
    line_number: int
    condition: str
    stopwords: List[str] = field(default_factory=list)
    strength: int = 0
    scope: str = "none"
    result: bool = True
    deleted: List[str] = field(default_factory=list)
    replaceable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line": self.line_number,
            "condition": self.condition,
            "stopwords": self.stopwords,
            "strength": self.strength,
            "scope": self.scope,
            "result": self.result,
            "deleted": self.deleted,
            "replaceable": self.replaceable,
        }

    def to_compact_string(self) -> str:
        result_str = "TRUE" if self.result else "FALSE"
        extra = f", deleted {len(self.deleted)}" if self.deleted else ""
        if self.replaceable:
            extra += ", replaceable"
        return (
            f"  ({' '.join(self.stopwords + [self.condition]).strip()}) "
            f"line {self.line_number}: {result_str} [{self.scope}{extra}]"
        )


@dataclass
class EvaluationTrace:
    """
    Trace of condition evaluations for one resolution step.

    Attributes:
        source: What is being evaluated (file, section or condition text)
        terms: Predicate tests in order
        fragments: Inline conditional fragments in order
        start_time: When the trace was created
    """
    source: str = ""
    terms: List[TermEntry] = field(default_factory=list)
    fragments: List[FragmentEntry] = field(default_factory=list)
    start_time: datetime = field(default_factory=datetime.now)

    def record_term(
        self,
        subject: str,
        value: str,
        predicate: str,
        result: bool,
        via_fallback: bool = False,
        elapsed_ms: float = 0.0
    ) -> None:
        """Record a predicate test."""
        self.terms.append(TermEntry(
            subject=subject,
            value=value,
            predicate=predicate,
            result=result,
            via_fallback=via_fallback,
            elapsed_ms=elapsed_ms,
        ))

    def record_fragment(self, entry: FragmentEntry) -> None:
        """Record the outcome of an inline conditional fragment."""
        self.fragments.append(entry)

    @property
    def replaceable_fragments(self) -> List[FragmentEntry]:
        """Fragments whose deleted span is marked replaceable."""
        return [f for f in self.fragments if f.replaceable and f.deleted]

    @property
    def total_elapsed_ms(self) -> float:
        return sum(t.elapsed_ms for t in self.terms)

    def to_dict(self) -> Dict[str, Any]:
        """Convert trace to a JSON-serializable dict."""
        return {
            "source": self.source,
            "terms_checked": len(self.terms),
            "fragments": [f.to_dict() for f in self.fragments],
            "terms": [t.to_dict() for t in self.terms],
            "total_elapsed_ms": round(self.total_elapsed_ms, 3),
            "start_time": self.start_time.isoformat(),
        }

    def to_compact_string(self) -> str:
        """
        Compact multi-line rendering for debugging.

        Format:
        [TRACE] source
          rubrica monastica: FAIL ('Rubrics 1960 - 1960')
          (sed rubrica monastica) line 3: FALSE [line, deleted 1]
        """
        lines = [f"[TRACE] {self.source or 'N/A'}"]
        lines.extend(t.to_compact_string() for t in self.terms)
        lines.extend(f.to_compact_string() for f in self.fragments)
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"EvaluationTrace(source={self.source!r}, "
            f"terms={len(self.terms)}, fragments={len(self.fragments)})"
        )
