"""
Directive engine for liturgical data files.

Main components:
- TextResolver: resolves a data file for one context (entry point)
- parse_sections: [Section] headers and guards
- ConditionalLineProcessor: inline (stopword condition scope) fragments
- InclusionResolver: @file:section:substitutions directives
- ResolutionCache / ResolveDepth: cached resolution stages
- DataFileReader / InMemoryReader: file reader collaborators
"""

from officium.directives.cache import CacheEntry, ResolutionCache, ResolveDepth
from officium.directives.conditionals import (
    ConditionalLineProcessor,
    Fragment,
    Scope,
    STOPWORD_WEIGHTS,
    parse_fragment,
    process_conditional_lines,
)
from officium.directives.fileio import (
    DataFileError,
    DataFileReader,
    FileReader,
    InMemoryReader,
)
from officium.directives.inclusions import (
    InclusionDirective,
    InclusionResolver,
    apply_substitutions,
    qualify_references,
)
from officium.directives.resolver import TextResolver, resolve_any_version
from officium.directives.sections import (
    PREAMBLE,
    FileSections,
    hidden_key,
    is_hidden,
    parse_sections,
)


__all__ = [
    "CacheEntry",
    "ResolutionCache",
    "ResolveDepth",
    "ConditionalLineProcessor",
    "Fragment",
    "Scope",
    "STOPWORD_WEIGHTS",
    "parse_fragment",
    "process_conditional_lines",
    "DataFileError",
    "DataFileReader",
    "FileReader",
    "InMemoryReader",
    "InclusionDirective",
    "InclusionResolver",
    "apply_substitutions",
    "qualify_references",
    "TextResolver",
    "resolve_any_version",
    "PREAMBLE",
    "FileSections",
    "hidden_key",
    "is_hidden",
    "parse_sections",
]
