"""
Inclusion directives.

    @file:section:substitutions

pulls a section from another data file (or, with an empty file, from the
current one) into the text, replacing the directive up to the end of its
line. An empty section means "the section the directive sits in".
Substitutions are colon-separated tokens:

    s/pattern/replacement/flags   regex replace (g: all matches, i: ignore case)
    3-5                           keep lines 3..5 (1-based, inclusive)
    3                             keep line 3

Expansion is repeated until no directive is left or the pass cap is hit;
anything still unexpanded after the cap stays verbatim. A missing file or
section becomes a visible placeholder instead of an error.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional
import re

from officium.directives.sections import PREAMBLE, FileSections, is_hidden
from officium.logger import logger


DIRECTIVE_RE = re.compile(
    r"(?:^|(?<=\s))@(?![\s@])"
    r"(?P<file>[^\n:]*)"
    r"(?::(?P<section>[^\n:]*))?"
    r"(?::(?P<substitutions>[^\n]*))?$",
    re.MULTILINE,
)
_WHOLE_FILE_RE = re.compile(r"^\s*@(?P<file>[^\s:@][^\n:]*?)\s*$")
_LINE_RANGE_RE = re.compile(r"(\d+)(?:-(\d+))?")
_GROUP_REF_RE = re.compile(r"\$(?:\{(\d+)\}|(\d+))")
_UNESCAPED_SLASH_RE = re.compile(r"(?<!\\)/")

# Section processed before the others at full depth
RULE_SECTION = "Rule"


@dataclass(frozen=True)
class InclusionDirective:
    """A parsed @file:section:substitutions directive."""
    file: str = ""
    section: str = ""
    substitutions: str = ""

    @classmethod
    def from_match(cls, match: "re.Match") -> "InclusionDirective":
        return cls(
            file=(match.group("file") or "").strip(),
            section=(match.group("section") or "").strip(),
            substitutions=(match.group("substitutions") or "").strip(),
        )

    @property
    def is_self_reference(self) -> bool:
        return not self.file

    def render(self) -> str:
        text = f"@{self.file}:{self.section}"
        if self.substitutions:
            text += f":{self.substitutions}"
        return text


def has_directives(text: str) -> bool:
    return DIRECTIVE_RE.search(text) is not None


def chomp(text: str) -> str:
    """Drop one trailing newline."""
    return text[:-1] if text.endswith("\n") else text


# =============================================================================
# SUBSTITUTIONS
# =============================================================================

def split_substitutions(spec: str) -> List[str]:
    """
    Split a substitution list on colons.

    Colons inside the pattern or replacement of an s/// token do not split.
    """
    tokens = []
    i, n = 0, len(spec)
    while i < n:
        j = i
        if spec.startswith("s/", i):
            j, slashes = i + 2, 0
            while j < n and slashes < 2:
                if spec[j] == "\\":
                    j += 2
                    continue
                if spec[j] == "/":
                    slashes += 1
                j += 1
        end = spec.find(":", j)
        if end == -1:
            end = n
        token = spec[i:end].strip()
        if token:
            tokens.append(token)
        i = end + 1
    return tokens


def _expand_replacement(replacement: str, match: "re.Match") -> str:
    def group(ref: "re.Match") -> str:
        index = int(ref.group(1) or ref.group(2))
        try:
            return match.group(index) or ""
        except IndexError:
            return ""
    return _GROUP_REF_RE.sub(group, replacement)


def regex_substitute(text: str, token: str) -> str:
    """Apply one s/pattern/replacement/flags token."""
    parts = _UNESCAPED_SLASH_RE.split(token[2:])
    if len(parts) < 2:
        logger.warning("Malformed substitution ignored", token=token)
        return text
    pattern, replacement = parts[0].replace("\\/", "/"), parts[1].replace("\\/", "/")
    flags = parts[2] if len(parts) > 2 else ""

    try:
        compiled = re.compile(pattern, re.IGNORECASE if "i" in flags else 0)
    except re.error as e:
        logger.warning("Invalid substitution pattern ignored", token=token, error=str(e))
        return text

    return compiled.sub(
        lambda m: _expand_replacement(replacement, m),
        text,
        count=0 if "g" in flags else 1,
    )


def select_lines(text: str, token: str) -> str:
    """Apply one line-range token ("3-5" or "3")."""
    match = _LINE_RANGE_RE.fullmatch(token)
    if match is None:
        logger.warning("Unknown substitution ignored", token=token)
        return text
    start = int(match.group(1))
    end = int(match.group(2) or start)
    lines = text.split("\n")
    return "\n".join(lines[max(start, 1) - 1:end])


def apply_substitutions(text: str, spec: str) -> str:
    """Apply a colon-separated substitution list to `text`."""
    for token in split_substitutions(spec):
        if token.startswith("s/"):
            text = regex_substitute(text, token)
        else:
            text = select_lines(text, token)
    return text


def qualify_references(text: str, file_title: str, section: str) -> str:
    """
    Make directives inside included text independent of where they land.

    Empty file segments are filled with `file_title` and empty section
    segments with `section`, so re-scanning the text in the including
    file still points at the source.
    """
    def qualify(match: "re.Match") -> str:
        directive = InclusionDirective.from_match(match)
        return InclusionDirective(
            file=directive.file or file_title,
            section=directive.section or section,
            substitutions=directive.substitutions,
        ).render()
    return DIRECTIVE_RE.sub(qualify, text)


# =============================================================================
# RESOLVER
# =============================================================================

def file_title(filename: str, extension: str = ".txt") -> str:
    """'Sancti/12-25.txt' -> 'Sancti/12-25'"""
    if extension and filename.endswith(extension):
        return filename[:-len(extension)]
    return filename


class InclusionResolver:
    """
    Expands inclusion directives in the sections of one file.

    Args:
        load_file: Returns the sections of another file, addressed by its
            title (path without extension), or None if it does not exist
        max_passes: Fixpoint cap per text
        log_inclusions: Log every inclusion at debug level

    Example:
        resolver = InclusionResolver(lambda title: other_files.get(title))
        resolved = resolver.resolve_sections(sections, "Sancti/12-25.txt")
    """

    def __init__(
        self,
        load_file: Callable[[str], Optional[FileSections]],
        max_passes: int = 10,
        log_inclusions: bool = False,
        extension: str = ".txt"
    ):
        self.load_file = load_file
        self.max_passes = max_passes
        self.log_inclusions = log_inclusions
        self.extension = extension

    def include(
        self,
        directive: InclusionDirective,
        sections: FileSections,
        filename: str,
        current_section: str
    ) -> str:
        """Text that replaces `directive`, or a placeholder naming what is missing."""
        section = directive.section or current_section

        if directive.is_self_reference:
            title, source = file_title(filename, self.extension), sections
        else:
            title, source = directive.file, self.load_file(directive.file)
            if source is None:
                logger.warning("Included file not found", file=title, section=section,
                               included_from=filename)
                return f"{title}:{section} file not found"

        text = source.get(section)
        if text is None:
            logger.warning("Included section missing", file=title, section=section,
                           included_from=filename)
            return f"{title}:{section} is missing!"

        text = apply_substitutions(chomp(text), directive.substitutions)
        text = qualify_references(text, directive.file, section)
        if self.log_inclusions:
            logger.debug("Inclusion expanded", directive=directive.render(),
                         file=filename, section=current_section)
        return text

    def expand_once(
        self,
        text: str,
        sections: FileSections,
        filename: str,
        current_section: str
    ) -> str:
        """Replace every directive in `text` once."""
        return DIRECTIVE_RE.sub(
            lambda m: self.include(
                InclusionDirective.from_match(m), sections, filename, current_section
            ),
            text,
        )

    def resolve_text(
        self,
        text: str,
        sections: FileSections,
        filename: str,
        current_section: str
    ) -> str:
        """Expand directives in `text` until none remain or the cap is hit."""
        for _ in range(self.max_passes):
            if not has_directives(text):
                return text
            text = self.expand_once(text, sections, filename, current_section)

        if has_directives(text):
            logger.warning("Inclusion pass cap reached", file=filename,
                           section=current_section, passes=self.max_passes)
            logger.event("inclusion_cap_reached", file=filename, section=current_section)
        return text

    def resolve_whole_file(self, sections: FileSections, filename: str) -> FileSections:
        """
        Expand the preamble.

        A preamble line naming only a file ("@Commune/C10") inherits all
        sections of that file beneath the current file's own sections;
        other directives in the preamble are expanded as text.

        Returns:
            New FileSections; `sections` is not modified
        """
        preamble = sections.get(PREAMBLE)
        if not preamble:
            return dict(sections)

        inherited: FileSections = {}
        kept: List[str] = []
        for line in chomp(preamble).split("\n"):
            whole = _WHOLE_FILE_RE.match(line)
            if whole is None:
                kept.append(line)
                continue
            title = whole.group("file")
            base = self.load_file(title)
            if base is None:
                logger.warning("Inherited file not found", file=title, included_from=filename)
                kept.append(f"{title} file not found")
                continue
            inherited.update(
                (key, text) for key, text in base.items() if key != PREAMBLE
            )

        result = dict(inherited)
        result.update(sections)
        text = "".join(line + "\n" for line in kept)
        result[PREAMBLE] = self.resolve_text(text, result, filename, PREAMBLE)
        if not result[PREAMBLE].strip():
            del result[PREAMBLE]
        return result

    def resolve_sections(
        self,
        sections: FileSections,
        filename: str,
        keys: Optional[Iterable[str]] = None
    ) -> FileSections:
        """
        Expand directives in every visible section ("Rule" first).

        Returns:
            New FileSections; `sections` is not modified
        """
        result = dict(sections)
        keys = list(result) if keys is None else list(keys)
        if RULE_SECTION in keys:
            keys.remove(RULE_SECTION)
            keys.insert(0, RULE_SECTION)

        for key in keys:
            if key == PREAMBLE or is_hidden(key) or key not in result:
                continue
            result[key] = self.resolve_text(result[key], result, filename, key)
        return result
