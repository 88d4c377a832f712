"""
Predicate Registry for rubrical conditions.

This module provides a typed registry mapping predicate names
("monastica", "paschali", ...) to functions that test a subject value.
Names the registry does not know are handled by its fallback arm, which
matches the predicate as a case-insensitive pattern against the value.
Data files rely on that fallback, so it is part of the registry contract
rather than an error path.
"""

from typing import Callable, Dict, Optional, List, Any, TYPE_CHECKING
from dataclasses import dataclass
from functools import wraps
import inspect
import re
import time

if TYPE_CHECKING:
    from officium.conditions.trace import EvaluationTrace


PredicateFunc = Callable[[str], bool]


class PredicateAlreadyRegisteredError(Exception):
    """Raised when trying to register a predicate that already exists."""

    def __init__(self, predicate_name: str, registry_name: str = ""):
        self.predicate_name = predicate_name
        self.registry_name = registry_name
        message = f"Predicate '{predicate_name}' already registered"
        if registry_name:
            message += f" in registry '{registry_name}'"
        super().__init__(message)


class PredicateEvaluationError(Exception):
    """Raised when a predicate function fails."""

    def __init__(
        self,
        predicate_name: str,
        original_error: Exception,
        registry_name: str = ""
    ):
        self.predicate_name = predicate_name
        self.original_error = original_error
        self.registry_name = registry_name
        message = f"Error evaluating predicate '{predicate_name}'"
        if registry_name:
            message += f" in registry '{registry_name}'"
        message += f": {original_error}"
        super().__init__(message)


class InvalidPredicateSignatureError(Exception):
    """Raised when a predicate function has an invalid signature."""

    def __init__(self, predicate_name: str, reason: str):
        self.predicate_name = predicate_name
        self.reason = reason
        message = f"Invalid signature for predicate '{predicate_name}': {reason}"
        super().__init__(message)


def normalize_name(name: str) -> str:
    """Lowercase and collapse whitespace: 'Post  Septuagesimam' -> 'post septuagesimam'."""
    return " ".join(name.lower().split())


def match_pattern(predicate: str, value: str) -> bool:
    """
    Fallback arm: match an unknown predicate against the subject value.

    The predicate is tried as a case-insensitive regular expression; if it
    does not compile it is matched as a plain case-insensitive substring.
    """
    try:
        return re.search(predicate, value, re.IGNORECASE) is not None
    except re.error:
        return predicate.casefold() in value.casefold()


@dataclass
class PredicateMetadata:
    """
    Metadata for a registered predicate.

    Attributes:
        name: Normalized predicate name
        description: Human-readable description
        func: The predicate function
        category: Category for grouping related predicates
    """
    name: str
    description: str
    func: PredicateFunc
    category: str = "general"


class PredicateRegistry:
    """
    Registry of named predicates with a pattern-matching fallback.

    Lookups are case-insensitive. A predicate receives the subject value
    (a string) and returns a bool.

    Example:
        registry = PredicateRegistry("rubrics")

        @registry.predicate("monastica", category="version")
        def monastica(value: str) -> bool:
            return "monastic" in value.lower()

        registry.evaluate("Monastica", "Monastic - 1963")   # True
        registry.evaluate("1960", "Rubrics 1960 - 1960")    # True, fallback arm
    """

    def __init__(
        self,
        name: str,
        fallback: PredicateFunc = None,
        allow_overwrite: bool = False
    ):
        """
        Initialize a new predicate registry.

        Args:
            name: Name of this registry
            fallback: Function (predicate, value) -> bool used for unknown
                names; defaults to match_pattern
            allow_overwrite: Whether re-registering a name replaces it
        """
        self.name = name
        self.fallback = fallback or match_pattern
        self.allow_overwrite = allow_overwrite
        self._predicates: Dict[str, PredicateMetadata] = {}
        self._categories: Dict[str, List[str]] = {}

    def predicate(
        self,
        name: str,
        description: str = "",
        category: str = "general"
    ) -> Callable[[PredicateFunc], PredicateFunc]:
        """
        Decorator for registering a predicate.

        Args:
            name: Predicate name as written in data files
            description: Human-readable description (falls back to docstring)
            category: Category for grouping related predicates

        Raises:
            PredicateAlreadyRegisteredError: If the name already exists
            InvalidPredicateSignatureError: If the function signature is invalid
        """
        key = normalize_name(name)

        def decorator(func: PredicateFunc) -> PredicateFunc:
            self._validate_signature(key, func)

            if key in self._predicates and not self.allow_overwrite:
                raise PredicateAlreadyRegisteredError(key, self.name)

            metadata = PredicateMetadata(
                name=key,
                description=description or func.__doc__ or "",
                func=func,
                category=category
            )
            self._predicates[key] = metadata

            names = self._categories.setdefault(category, [])
            if key not in names:
                names.append(key)

            @wraps(func)
            def wrapper(value: str) -> bool:
                return func(value)

            wrapper._predicate_name = key  # type: ignore
            wrapper._registry = self.name  # type: ignore
            return wrapper

        return decorator

    def _validate_signature(self, name: str, func: PredicateFunc) -> None:
        """Predicates take exactly one positional argument: the subject value."""
        params = list(inspect.signature(func).parameters.values())
        if len(params) != 1:
            raise InvalidPredicateSignatureError(
                name,
                f"must accept exactly one parameter, got {len(params)}"
            )

    def register(
        self,
        name: str,
        func: PredicateFunc,
        description: str = "",
        category: str = "general"
    ) -> None:
        """Register a predicate programmatically (non-decorator style)."""
        self.predicate(name, description, category)(func)

    def unregister(self, name: str) -> bool:
        """
        Remove a predicate from the registry.

        Returns:
            True if the predicate was removed, False if it didn't exist
        """
        key = normalize_name(name)
        metadata = self._predicates.pop(key, None)
        if metadata is None:
            return False

        names = self._categories.get(metadata.category, [])
        if key in names:
            names.remove(key)
            if not names:
                del self._categories[metadata.category]
        return True

    def evaluate(
        self,
        name: str,
        value: str,
        trace: Optional["EvaluationTrace"] = None,
        subject: str = ""
    ) -> bool:
        """
        Test `value` against predicate `name`.

        Args:
            name: Predicate name (any case)
            value: Subject value
            trace: Optional trace for debugging
            subject: Subject the value came from (recorded in the trace)

        Returns:
            Result of the registered predicate, or of the fallback arm

        Raises:
            PredicateEvaluationError: If a registered predicate fails
        """
        key = normalize_name(name)
        metadata = self._predicates.get(key)
        start_time = time.perf_counter()

        if metadata is None:
            # Original spelling: lowercasing would change escapes like \S
            result = bool(self.fallback(name.strip(), value))
        else:
            try:
                result = bool(metadata.func(value))
            except Exception as e:
                raise PredicateEvaluationError(key, e, self.name) from e

        if trace is not None:
            trace.record_term(
                subject=subject,
                value=value,
                predicate=key,
                result=result,
                via_fallback=metadata is None,
                elapsed_ms=(time.perf_counter() - start_time) * 1000,
            )

        return result

    def get(self, name: str) -> Optional[PredicateMetadata]:
        """Get metadata for a predicate."""
        return self._predicates.get(normalize_name(name))

    def has(self, name: str) -> bool:
        """Check if a predicate is registered (fallback not counted)."""
        return normalize_name(name) in self._predicates

    def list_all(self) -> List[str]:
        """List all predicate names."""
        return list(self._predicates.keys())

    def list_by_category(self, category: str) -> List[str]:
        """List predicate names in a category."""
        return list(self._categories.get(category, []))

    def get_documentation(self) -> str:
        """
        Generate documentation for all predicates in the registry.

        Returns:
            Markdown-formatted documentation string
        """
        lines = [f"# {self.name.replace('_', ' ').title()} Predicates\n"]
        lines.append(f"Total predicates: {len(self._predicates)}\n")

        for category in sorted(self._categories):
            lines.append(f"\n## {category.title()}\n")
            for name in sorted(self._categories[category]):
                meta = self._predicates[name]
                lines.append(f"### `{name}`")
                if meta.description:
                    lines.append(f"\n{meta.description.strip()}")
                lines.append("")

        lines.append("\n## Fallback\n")
        lines.append(
            "Any other name is matched as a case-insensitive pattern "
            "against the subject value."
        )
        return "\n".join(lines)

    def get_stats(self) -> Dict[str, Any]:
        """Statistics about the registry."""
        return {
            "name": self.name,
            "total_predicates": len(self._predicates),
            "total_categories": len(self._categories),
            "predicates_by_category": {
                cat: len(names) for cat, names in self._categories.items()
            }
        }

    def __len__(self) -> int:
        return len(self._predicates)

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __repr__(self) -> str:
        return (
            f"PredicateRegistry(name={self.name!r}, "
            f"predicates={len(self._predicates)})"
        )
