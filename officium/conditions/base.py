"""
Evaluation context for rubrical conditions.

This module defines the OfficeContext that conditions are evaluated
against, and the CalendarProvider protocol through which date-derived
values (season, weekday, special day names) are supplied by the
calendar layer.
"""

from typing import Protocol, Any, Optional, runtime_checkable
from dataclasses import dataclass, field

from officium.settings import settings


@runtime_checkable
class CalendarProvider(Protocol):
    """
    Protocol for the calendar collaborator.

    The directive engine never computes dates itself; whoever builds the
    context hands over an object that knows the current season and day.

    Attributes:
        tempus_id: Liturgical season id (e.g. "Paschæ", "Quadragesimæ")
        dayofweek: Weekday, 0 (Sunday) to 6 (Saturday)
        day_name: Special-day label used by the "die" subject
        office_label: Label of the current office used by "officio"
    """

    @property
    def tempus_id(self) -> str:
        ...

    @property
    def dayofweek(self) -> int:
        ...

    @property
    def day_name(self) -> str:
        ...

    @property
    def office_label(self) -> str:
        ...


@dataclass
class OfficeContext:
    """
    Everything a condition may ask about during one render request.

    A context is built once per request and shared by all resolution
    calls of that request.

    Example:
        ctx = OfficeContext(
            version="Rubrics 1960 - 1960",
            tempus_id="Paschæ",
            dayofweek=3,
            hora="Vespera",
        )
    """
    version: str = "Rubrics 1960 - 1960"
    language: str = field(
        default_factory=lambda: settings.get_nested("languages.default", "Latin")
    )
    fallback_language: str = field(
        default_factory=lambda: settings.get_nested("languages.fallback", "Latin")
    )
    dayofweek: int = 0
    commune: str = ""
    votive: str = ""
    hora: str = ""
    missa: bool = False
    missa_number: str = ""
    tempus_id: str = ""
    day_name: str = ""
    office_label: str = ""

    def __post_init__(self):
        """Validate context fields after initialization."""
        if not 0 <= self.dayofweek <= 6:
            raise ValueError("dayofweek must be between 0 and 6")

    @classmethod
    def from_calendar(
        cls,
        calendar: CalendarProvider,
        version: str = "Rubrics 1960 - 1960",
        language: Optional[str] = None,
        **kwargs: Any
    ) -> "OfficeContext":
        """
        Build a context from a calendar provider.

        Args:
            calendar: Object implementing CalendarProvider
            version: Rubric version id
            language: Requested language (languages.default if omitted)
            **kwargs: Remaining context fields (commune, hora, ...)

        Returns:
            A new OfficeContext
        """
        return cls(
            version=version,
            language=language or settings.get_nested("languages.default", "Latin"),
            tempus_id=calendar.tempus_id,
            dayofweek=calendar.dayofweek,
            day_name=calendar.day_name,
            office_label=calendar.office_label,
            **kwargs
        )

    def fallback_for(self, language: str) -> Optional[str]:
        """
        Language whose files form the base layer under `language`.

        "Polski-Newer" falls back to "Polski"; any other language falls
        back to `fallback_language`. The fallback language itself has none.
        """
        if "-" in language:
            return language.rsplit("-", 1)[0]
        if not self.fallback_language or language == self.fallback_language:
            return None
        return self.fallback_language
