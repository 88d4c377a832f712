"""
TextResolver - the entry point of the directive engine.

One resolver serves one render request: it binds the request's
OfficeContext to a file reader, a ResolutionCache and the settings, and
answers `resolve(language, path, depth)` with the file's sections.

Pipeline per file:
    reader -> parse_sections (guards + inline conditionals)
           -> fallback merge (base language underneath)     depth NONE
           -> preamble / whole-file inheritance             depth WHOLE_FILE
           -> inclusion directives in every section         depth ALL

Every stage result is cached by (version, language, filename); a request
for a deeper stage continues from the deepest cached one.
"""

from typing import Iterable, List, Optional, Tuple

from officium.conditions.base import OfficeContext
from officium.conditions.expression_parser import ConditionEvaluator
from officium.conditions.predicates import rubric_registry
from officium.conditions.registry import PredicateRegistry
from officium.conditions.trace import EvaluationTrace
from officium.directives.cache import CacheEntry, ResolutionCache, ResolveDepth
from officium.directives.conditionals import ConditionalLineProcessor
from officium.directives.fileio import DataFileError, DataFileReader, FileReader
from officium.directives.inclusions import InclusionResolver
from officium.directives.sections import FileSections, parse_sections
from officium.logger import logger
from officium.settings import DotDict, settings as default_settings


class TextResolver:
    """
    Resolves data files for one context.

    Args:
        ctx: Context the conditions are evaluated against
        reader: File reader (defaults to a DataFileReader on data.base_dir)
        cache: Shared cache (defaults to a private one)
        settings: Settings object (defaults to the global settings)
        registry: Predicate registry for conditions
        trace: Optional trace receiving every term and fragment outcome

    Example:
        resolver = TextResolver(OfficeContext(version="Divino Afflatu - 1954"))
        sections = resolver.resolve("Latin", "Sancti/12-25.txt")
        if sections is not None:
            rank = sections.get("Rank")
    """

    def __init__(
        self,
        ctx: OfficeContext,
        reader: Optional[FileReader] = None,
        cache: Optional[ResolutionCache] = None,
        settings: Optional[DotDict] = None,
        registry: PredicateRegistry = rubric_registry,
        trace: Optional[EvaluationTrace] = None
    ):
        self.ctx = ctx
        self.settings = settings if settings is not None else default_settings
        self.reader = reader or DataFileReader(
            self.settings.get_nested("data.base_dir"),
            self.settings.get_nested("data.encoding"),
        )
        self.cache = cache if cache is not None else ResolutionCache()
        self.trace = trace

        self.evaluator = ConditionEvaluator(ctx, registry)
        self.processor = ConditionalLineProcessor(
            self._evaluate,
            implicit_scope=self.settings.get_nested("conditionals.implicit_scope", "line"),
            log_fragments=self.settings.get_nested("logging.log_conditionals", False),
        )
        self.extension = self.settings.get_nested("data.file_extension", ".txt")
        self.max_passes = self.settings.get_nested("resolution.max_inclusion_passes", 10)
        self.max_file_depth = self.settings.get_nested("resolution.max_file_depth", 16)

        # (language, filename) pairs currently being expanded
        self._in_flight: List[Tuple[str, str]] = []

    def _evaluate(self, condition: str) -> bool:
        return self.evaluator(condition, self.trace)

    def filename(self, path: str) -> str:
        """'Commune/C10' -> 'Commune/C10.txt'"""
        if self.extension and not path.endswith(self.extension):
            return path + self.extension
        return path

    # =========================================================================
    # Public API
    # =========================================================================

    def resolve(
        self,
        language: str,
        path: str,
        depth: ResolveDepth = ResolveDepth.ALL
    ) -> Optional[FileSections]:
        """
        Sections of a data file, resolved to `depth`.

        Returns:
            {section name: text}, or None if the file does not exist in
            `language` nor in any of its fallback languages

        Raises:
            DataFileError: the file exists but cannot be read
        """
        filename = self.filename(path)
        sections = self._resolve(language, filename, ResolveDepth(depth))
        if sections is None:
            logger.warning("Data file not found", language=language, filename=filename,
                           version=self.ctx.version)
            return None
        return dict(sections)

    def section(
        self,
        language: str,
        path: str,
        name: str,
        depth: ResolveDepth = ResolveDepth.ALL
    ) -> Optional[str]:
        """Text of one section, or None if the file or the section is absent."""
        sections = self.resolve(language, path, depth)
        if sections is None:
            return None
        return sections.get(name)

    def resolve_first(
        self,
        language: str,
        paths: Iterable[str],
        depth: ResolveDepth = ResolveDepth.ALL
    ) -> Optional[FileSections]:
        """Sections of the first path that exists, or None."""
        for path in paths:
            sections = self.resolve(language, path, depth)
            if sections is not None:
                return sections
        return None

    def expand(
        self,
        sections: FileSections,
        language: str,
        path: str,
        from_depth: ResolveDepth = ResolveDepth.NONE,
        to_depth: ResolveDepth = ResolveDepth.ALL
    ) -> FileSections:
        """
        Continue resolution of `sections` from `from_depth` to `to_depth`.

        resolve(..., NONE) followed by expand(...) gives the same result as
        resolve(..., ALL). `sections` is not modified.
        """
        filename = self.filename(path)
        inclusions = self._inclusions(language)
        result = dict(sections)
        if from_depth < ResolveDepth.WHOLE_FILE <= to_depth:
            result = inclusions.resolve_whole_file(result, filename)
        if from_depth < ResolveDepth.ALL <= to_depth:
            result = inclusions.resolve_sections(result, filename)
        return result

    # =========================================================================
    # Internals
    # =========================================================================

    def _inclusions(self, language: str) -> InclusionResolver:
        return InclusionResolver(
            load_file=lambda title: self._resolve(
                language, self.filename(title), ResolveDepth.WHOLE_FILE
            ),
            max_passes=self.max_passes,
            log_inclusions=self.settings.get_nested("logging.log_inclusions", False),
            extension=self.extension,
        )

    def _resolve(
        self,
        language: str,
        filename: str,
        depth: ResolveDepth
    ) -> Optional[FileSections]:
        version = self.ctx.version
        entry = self.cache.get(version, language, filename)
        if entry is not None and entry.depth >= depth:
            logger.debug("Cache hit", language=language, filename=filename,
                         depth=entry.depth.name)
            return entry.sections

        if entry is None:
            logger.debug("Cache miss", language=language, filename=filename)
            sections = self._load(language, filename)
            if sections is None:
                return None
            # Stored before expansion so recursive lookups can see it
            entry = self.cache.put(version, language, filename, sections, ResolveDepth.NONE)

        return self._deepen(language, filename, entry, depth)

    def _deepen(
        self,
        language: str,
        filename: str,
        entry: CacheEntry,
        depth: ResolveDepth
    ) -> FileSections:
        key = (language, filename)
        if key in self._in_flight or len(self._in_flight) >= self.max_file_depth:
            logger.warning("Nested file resolution stopped", language=language,
                           filename=filename, nesting=len(self._in_flight))
            return entry.sections

        self._in_flight.append(key)
        try:
            # One stage at a time, each cached before the next starts, so an
            # inclusion that comes back into this file sees its inherited sections
            for stage in ResolveDepth:
                if entry.depth < stage <= depth:
                    sections = self.expand(entry.sections, language, filename, entry.depth, stage)
                    entry = self.cache.put(self.ctx.version, language, filename, sections, stage)
        finally:
            self._in_flight.pop()

        return entry.sections

    def _load(self, language: str, filename: str) -> Optional[FileSections]:
        """Parsed sections of `language` laid over those of its fallback language."""
        fallback = self.ctx.fallback_for(language)
        base = None
        if fallback:
            base = self._resolve(fallback, filename, ResolveDepth.NONE)

        own = self._parse(language, filename)
        if own is None:
            return None if base is None else dict(base)
        if base is None:
            return own

        merged = dict(base)
        merged.update(own)
        return merged

    def _parse(self, language: str, filename: str) -> Optional[FileSections]:
        try:
            lines = self.reader.read(language, filename)
        except DataFileError as e:
            logger.error("Data file unreadable", language=language, filename=filename,
                         error=str(e.original_error))
            raise
        if lines is None:
            return None
        return parse_sections(lines, self._evaluate, self.processor, self.trace)

    def log_cache_stats(self) -> None:
        """Emit the cache counters as metrics."""
        for name, value in self.cache.get_stats().items():
            logger.metric(f"resolution_cache_{name}", value, version=self.ctx.version)

    def __repr__(self) -> str:
        return f"TextResolver(version={self.ctx.version!r}, reader={self.reader!r})"


def resolve_any_version(
    resolvers: Iterable[TextResolver],
    language: str,
    path: str,
    depth: ResolveDepth = ResolveDepth.ALL
) -> Optional[FileSections]:
    """
    Try the same path against several resolvers (e.g. one per rubric
    version) and return the first result.
    """
    for resolver in resolvers:
        sections = resolver.resolve(language, path, depth)
        if sections is not None:
            return sections
    return None
