"""
Subject table: what each condition subject means for a given context.

A term such as "rubrica monastica" names the subject "rubrica" and the
predicate "monastica"; the predicate is matched against the value this
table yields for the subject.
"""

from typing import Callable, Dict

from officium.conditions.base import OfficeContext


DEFAULT_SUBJECT = "tempore"


def _ad(ctx: OfficeContext) -> str:
    if ctx.missa:
        return "missam"
    return ctx.hora


SUBJECTS: Dict[str, Callable[[OfficeContext], str]] = {
    "rubrica": lambda ctx: ctx.version,
    "rubricis": lambda ctx: ctx.version,
    "tempore": lambda ctx: ctx.tempus_id,
    "missa": lambda ctx: ctx.missa_number,
    "commune": lambda ctx: ctx.commune,
    "communi": lambda ctx: ctx.commune,
    "votiva": lambda ctx: ctx.votive,
    "die": lambda ctx: ctx.day_name,
    # Weekday is 1-based in data files
    "feria": lambda ctx: str(ctx.dayofweek + 1),
    "officio": lambda ctx: ctx.office_label,
    "ad": _ad,
}


def is_subject(word: str) -> bool:
    """True if `word` belongs to the closed subject vocabulary."""
    return word.lower() in SUBJECTS


def subject_value(subject: str, ctx: OfficeContext) -> str:
    """Value of `subject` under `ctx`; unknown subjects fall back to the season."""
    getter = SUBJECTS.get(subject.lower(), SUBJECTS[DEFAULT_SUBJECT])
    return getter(ctx) or ""
