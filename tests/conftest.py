"""
Shared pytest fixtures for directive engine tests.

Provides fixtures for:
- Office contexts for common rubric versions
- In-memory data files
- Settings with overrides
- Resolver factory with isolated caches
"""

import pytest
from typing import Any, Dict, Optional
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from officium.conditions import ConditionEvaluator, OfficeContext
from officium.directives import InMemoryReader, ResolutionCache, TextResolver
from officium.settings import SETTINGS_FILE, load_settings


# =============================================================================
# Contexts
# =============================================================================

@pytest.fixture
def ctx_1960():
    """Rubrics 1960, Wednesday in Eastertide, Vespers."""
    return OfficeContext(
        version="Rubrics 1960 - 1960",
        tempus_id="Paschæ",
        dayofweek=3,
        hora="Vespera",
    )


@pytest.fixture
def ctx_tridentine():
    """Tridentine rubrics, Sunday after Pentecost, Matins."""
    return OfficeContext(
        version="Tridentine - 1570",
        tempus_id="post Pentecosten",
        dayofweek=0,
        hora="Matutinum",
    )


@pytest.fixture
def ctx_monastic():
    return OfficeContext(
        version="Monastic - 1963",
        tempus_id="Quadragesimæ",
        dayofweek=5,
        hora="Laudes",
    )


@pytest.fixture
def evaluate_tridentine(ctx_tridentine):
    return ConditionEvaluator(ctx_tridentine)


# =============================================================================
# Settings
# =============================================================================

@pytest.fixture
def make_settings():
    """Factory: settings.yaml with nested overrides."""
    def _create(overrides: Optional[Dict[str, Any]] = None):
        return load_settings(SETTINGS_FILE, overrides)
    return _create


@pytest.fixture
def engine_settings(make_settings):
    return make_settings()


# =============================================================================
# Data files and resolvers
# =============================================================================

@pytest.fixture
def reader():
    """Empty in-memory reader; add files with reader.add(language, path, text)."""
    return InMemoryReader()


@pytest.fixture
def make_resolver(engine_settings):
    """
    Factory for TextResolver over in-memory files.

    Usage:
        resolver = make_resolver({"Latin": {"A.txt": "[Foo]\\nHello\\n"}})
    """
    def _create(
        files: Optional[Dict[str, Dict[str, str]]] = None,
        ctx: Optional[OfficeContext] = None,
        reader: Optional[InMemoryReader] = None,
        cache: Optional[ResolutionCache] = None,
        settings=None,
        **kwargs
    ) -> TextResolver:
        return TextResolver(
            ctx or OfficeContext(),
            reader=reader if reader is not None else InMemoryReader(files),
            cache=cache,
            settings=settings if settings is not None else engine_settings,
            **kwargs
        )
    return _create
