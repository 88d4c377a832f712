"""
Inline conditionals inside section bodies.

A line may start with a parenthesized fragment

    (sed rubrica monastica hi versus omittuntur) Text that follows

made of optional stopwords, a condition, and an optional scope marker.
The stopwords give the fragment a strength and may imply a backward
scope; the marker states the scope explicitly:

    dicitur / dicuntur [semper]       no deletion, the condition gates the
                                      fragment's own text
    [hic versus] omittitur            the preceding line
    [hi versus] omittuntur            the preceding chunk (nest if strength >= 2)
    loco huius versus / horum versuum as omittitur / omittuntur, and the
                                      deleted span is marked replaceable

When the condition holds, only the fragment syntax is removed. When it
fails, a fragment with a backward scope deletes text before it and keeps
its own text; a fragment without one drops its own text (the rest of its
line, or the next line / chunk when the rest of the line is empty).

Chunks are maximal runs of non-blank lines. Every fragment with stopwords
leaves a fence on a stack; a deletion of strength s never crosses a fence
stronger than s and closes the weaker fences it deletes through.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Deque, List, Optional, Tuple, TYPE_CHECKING
import re

from officium.conditions.trace import FragmentEntry
from officium.logger import logger

if TYPE_CHECKING:
    from officium.conditions.trace import EvaluationTrace


STOPWORD_WEIGHTS = {
    # implicit backward scope
    "sed": 1,
    "vero": 1,
    "atque": 2,
    "attamen": 3,
    # need an explicit scope marker
    "si": 0,
    "deinde": 1,
}
BACKSCOPED_STOPWORDS = frozenset({"sed", "vero", "atque", "attamen"})

_STOPWORD = r"(?:sed|vero|atque|attamen|si|deinde)\b"
_LOCO = r"\bloco\s+(?:hu[ij]us\s+versus|horum\s+versuum)\b"
_MARKER = (
    r"\b(?:(?:dicitur|dicuntur)(?:\s+semper)?"
    r"|(?:(?:hic|hoc)\s+versus\s+)?omittitur"
    r"|(?:(?:hæc|haec|hi)\s+versus\s+)?omittuntur)\b"
)

FRAGMENT_PATTERN = (
    r"\(\s*(?P<stopwords>(?:" + _STOPWORD + r"\s*)*)"
    r"(?P<condition>.*?)\s*"
    r"(?P<scope>(?:" + _LOCO + r")?\s*(?:" + _MARKER + r")?)"
    r"\s*\)"
)
FRAGMENT_RE = re.compile(FRAGMENT_PATTERN, re.IGNORECASE)
LINE_FRAGMENT_RE = re.compile(
    r"^\s*" + FRAGMENT_PATTERN + r"\s*(?P<sequel>.*)$", re.IGNORECASE
)


class Scope(IntEnum):
    NONE = 0
    LINE = 1
    CHUNK = 2
    NEST = 3


@dataclass
class Fragment:
    """A parsed conditional fragment."""
    condition: str
    stopwords: List[str] = field(default_factory=list)
    strength: int = 0
    backscope: Scope = Scope.NONE
    forwardscope: Scope = Scope.LINE
    replaceable: bool = False
    sequel: str = ""


@dataclass
class _Fence:
    strength: int
    position: int


def parse_fragment(match: "re.Match", implicit_scope: str = "line") -> Fragment:
    """
    Build a Fragment from a FRAGMENT_RE / LINE_FRAGMENT_RE match.

    Args:
        match: Regex match
        implicit_scope: Backward scope ("line" or "chunk") of an implicitly
            back-scoped stopword without a marker
    """
    stopwords = [w.lower() for w in match.group("stopwords").split()]
    strength = sum(STOPWORD_WEIGHTS[w] for w in stopwords)
    scope = " ".join(match.group("scope").lower().split())

    if "omittitur" in scope or re.search(r"loco hu[ij]us", scope):
        backscope = Scope.LINE
    elif "omittuntur" in scope or "loco horum" in scope:
        backscope = Scope.NEST if strength >= 2 else Scope.CHUNK
    elif "dicitur" in scope or "dicuntur" in scope:
        backscope = Scope.NONE
    elif BACKSCOPED_STOPWORDS.intersection(stopwords):
        backscope = Scope.CHUNK if implicit_scope == "chunk" else Scope.LINE
    else:
        backscope = Scope.NONE

    groups = match.groupdict()
    return Fragment(
        condition=match.group("condition").strip(),
        stopwords=stopwords,
        strength=strength,
        backscope=backscope,
        forwardscope=Scope.CHUNK if "dicuntur" in scope else Scope.LINE,
        replaceable=scope.startswith("loco"),
        sequel=(groups.get("sequel") or "").strip(),
    )


def _is_blank(line: str) -> bool:
    return not line.strip()


class ConditionalLineProcessor:
    """
    Applies inline conditionals to the lines of one section body.

    Example:
        processor = ConditionalLineProcessor(ConditionEvaluator(ctx))
        kept = processor.process(["V. Deus in adjutorium", "(sed rubrica monastica) V. Alt"])
    """

    def __init__(
        self,
        evaluate: Callable[[str], bool],
        implicit_scope: str = "line",
        log_fragments: bool = False
    ):
        """
        Args:
            evaluate: Condition evaluator (condition text -> bool)
            implicit_scope: "line" or "chunk"
            log_fragments: Log every fragment outcome at debug level
        """
        self.evaluate = evaluate
        self.implicit_scope = implicit_scope
        self.log_fragments = log_fragments

    def process(
        self,
        lines: List[str],
        trace: Optional["EvaluationTrace"] = None
    ) -> List[str]:
        """Return `lines` with every leading conditional fragment applied."""
        output: List[str] = []
        fences: List[_Fence] = []
        pending: Deque[Tuple[int, str]] = deque(enumerate(lines, 1))

        while pending:
            number, line = pending.popleft()
            match = LINE_FRAGMENT_RE.match(line)
            if match is None:
                output.append(line)
                continue

            fragment = parse_fragment(match, self.implicit_scope)
            result = self.evaluate(fragment.condition)
            sequel = fragment.sequel
            deleted: List[str] = []

            if not result:
                if fragment.backscope is not Scope.NONE:
                    deleted = self._delete_back(output, fences, fragment)
                elif sequel:
                    sequel = ""
                else:
                    self._skip_forward(pending, fragment.forwardscope)

            # A fence sits after the fragment's own text
            if sequel and LINE_FRAGMENT_RE.match(sequel) is None:
                output.append(sequel)
                sequel = ""
            if fragment.stopwords:
                fences.append(_Fence(fragment.strength, len(output)))

            entry = FragmentEntry(
                line_number=number,
                condition=fragment.condition,
                stopwords=fragment.stopwords,
                strength=fragment.strength,
                scope=fragment.backscope.name.lower(),
                result=result,
                deleted=deleted,
                replaceable=fragment.replaceable and bool(deleted),
            )
            if trace is not None:
                trace.record_fragment(entry)
            if self.log_fragments:
                logger.debug("Conditional fragment", **entry.to_dict())

            # The rest of the line may start with another fragment
            if sequel:
                pending.appendleft((number, sequel))

        return output

    @staticmethod
    def _delete_back(
        output: List[str],
        fences: List[_Fence],
        fragment: Fragment
    ) -> List[str]:
        strength = fragment.strength

        # Nearest stronger fence blocks deletion; remember the nearest
        # weaker-or-equal fence above it for nested scope
        floor = 0
        nearest_weaker: Optional[_Fence] = None
        for fence in reversed(fences):
            if fence.strength > strength:
                floor = fence.position
                break
            if nearest_weaker is None:
                nearest_weaker = fence

        end = len(output)
        if fragment.backscope is Scope.LINE:
            start = end - 1 if end > floor and not _is_blank(output[-1]) else end
        elif fragment.backscope is Scope.NEST:
            start = max(floor, nearest_weaker.position) if nearest_weaker else floor
        else:
            start = end
            while start > floor and not _is_blank(output[start - 1]):
                start -= 1

        deleted = output[start:]
        del output[start:]
        fences[:] = [f for f in fences if f.position < start or f.strength > strength]
        return deleted

    @staticmethod
    def _skip_forward(pending: Deque[Tuple[int, str]], scope: Scope) -> None:
        if scope is Scope.CHUNK:
            while pending and not _is_blank(pending[0][1]):
                pending.popleft()
        elif pending:
            pending.popleft()


def process_conditional_lines(
    lines: List[str],
    evaluate: Callable[[str], bool],
    implicit_scope: str = "line",
    trace: Optional["EvaluationTrace"] = None
) -> List[str]:
    """Functional shortcut for ConditionalLineProcessor(...).process(lines)."""
    return ConditionalLineProcessor(evaluate, implicit_scope).process(lines, trace)
