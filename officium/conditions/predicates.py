"""
Rubrical predicates used in data-file conditions.

Every predicate receives the value of its subject (see subjects.py) and
compares case-insensitively. Names not listed here go through the
registry's pattern fallback.
"""

import re

from officium.conditions.registry import PredicateRegistry


rubric_registry = PredicateRegistry("rubrics")


def _search(pattern: str, value: str) -> bool:
    return re.search(pattern, value, re.IGNORECASE) is not None


def _equals(expected: str, value: str) -> bool:
    return value.strip() == expected


# =============================================================================
# VERSION PREDICATES - tested against the rubric version
# =============================================================================

@rubric_registry.predicate("tridentina", category="version")
def tridentina(value: str) -> bool:
    """Tridentine versions ("Tridentine - 1570", "Tridentine - 1910", ...)."""
    return _search("Trident", value)


@rubric_registry.predicate("monastica", category="version")
def monastica(value: str) -> bool:
    """Monastic breviary."""
    return _search("Monastic", value)


@rubric_registry.predicate("innovata", category="version")
def innovata(value: str) -> bool:
    """Updated calendars."""
    return _search(r"2020 USA|NewCal", value)


rubric_registry.register("innovatis", innovata, category="version")


@rubric_registry.predicate("summorum pontificum", category="version")
def summorum_pontificum(value: str) -> bool:
    """Versions in use after 1954."""
    return _search(r"^(?:Divino|Reduced - 1955|Rubrics 196|1955|196)", value)


# =============================================================================
# SEASON PREDICATES - tested against the season id
# =============================================================================

@rubric_registry.predicate("paschali", category="season")
def paschali(value: str) -> bool:
    """Eastertide through the octave of Pentecost."""
    return _search(r"Paschæ|Paschae|Ascensionis|Octava Pentecostes", value)


@rubric_registry.predicate("post septuagesimam", category="season")
def post_septuagesimam(value: str) -> bool:
    """Septuagesima, Lent and Passiontide."""
    return _search(r"Septua|Quadra|Passio", value)


@rubric_registry.predicate("feriali", category="season")
def feriali(value: str) -> bool:
    return _search(r"feria|vigilia", value)


# =============================================================================
# ORDINAL PREDICATES - tested against numbers (mass number, weekday)
# =============================================================================

@rubric_registry.predicate("prima", category="ordinal")
def prima(value: str) -> bool:
    return _equals("1", value)


@rubric_registry.predicate("secunda", category="ordinal")
def secunda(value: str) -> bool:
    return _equals("2", value)


@rubric_registry.predicate("tertia", category="ordinal")
def tertia(value: str) -> bool:
    return _equals("3", value)


@rubric_registry.predicate("longior", category="ordinal")
def longior(value: str) -> bool:
    """Longer form of a reading."""
    return _equals("1", value)


@rubric_registry.predicate("brevior", category="ordinal")
def brevior(value: str) -> bool:
    """Shorter form of a reading."""
    return _equals("2", value)
