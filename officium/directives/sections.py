"""
Section parser.

A data file is an optional preamble followed by sections:

    [Rank]
    Duplex;;5
    [Rank] (rubrica monastica)
    Duplex majus;;5

Header lines hold only the name in brackets and, optionally, a guard
condition in parentheses. A section whose guard fails is still parsed
but stored under a hidden key, so lookups by name never see it. Text
before the first header goes to "__preamble".
"""

from typing import Callable, Dict, List, Optional, TYPE_CHECKING
import re

from officium.directives.conditionals import FRAGMENT_RE, ConditionalLineProcessor

if TYPE_CHECKING:
    from officium.conditions.trace import EvaluationTrace


PREAMBLE = "__preamble"
HIDDEN_PREFIX = "~"

FileSections = Dict[str, str]

HEADER_RE = re.compile(r"^\s*\[(?P<name>[\w #,:-]+)\]\s*(?P<guard>\(.*\))?\s*$")


def hidden_key(name: str) -> str:
    """Key for the body of a section whose guard failed."""
    return HIDDEN_PREFIX + name


def is_hidden(key: str) -> bool:
    return key.startswith(HIDDEN_PREFIX)


def join_lines(lines: List[str]) -> str:
    """Section body text: every line terminated by a newline."""
    return "".join(line + "\n" for line in lines)


def split_sections(
    lines: List[str],
    evaluate: Callable[[str], bool]
) -> Dict[str, List[str]]:
    """
    Split raw lines into {section key: body lines}.

    Later occurrences of a name replace earlier ones.
    """
    sections: Dict[str, List[str]] = {PREAMBLE: []}
    current = PREAMBLE

    for line in lines:
        header = HEADER_RE.match(line)
        if header is None:
            sections[current].append(line)
            continue

        name = header.group("name").strip()
        guard = header.group("guard")
        current = name
        if guard:
            fragment = FRAGMENT_RE.fullmatch(guard)
            condition = fragment.group("condition") if fragment else guard[1:-1]
            if not evaluate(condition.strip()):
                current = hidden_key(name)
        sections[current] = []

    return sections


def parse_sections(
    lines: List[str],
    evaluate: Callable[[str], bool],
    processor: Optional[ConditionalLineProcessor] = None,
    trace: Optional["EvaluationTrace"] = None
) -> FileSections:
    """
    Parse raw file lines into unresolved FileSections.

    Inline conditionals are applied to every body (hidden ones included);
    inclusion directives are left as literal text.

    Args:
        lines: File lines without line terminators
        evaluate: Condition evaluator for guards and inline fragments
        processor: Line processor (defaults to one built on `evaluate`)
        trace: Optional trace receiving fragment outcomes

    Returns:
        {section name: body text}; an empty preamble is omitted
    """
    processor = processor or ConditionalLineProcessor(evaluate)
    result: FileSections = {}

    for key, body in split_sections(lines, evaluate).items():
        text = join_lines(processor.process(body, trace))
        if key == PREAMBLE and not text.strip():
            continue
        result[key] = text

    return result
