"""
Data file access.

The engine reads data files through a FileReader: given a language and a
path relative to that language's folder it returns the file's lines, or
None when the file does not exist. "Not found" is a normal outcome;
any other I/O failure raises DataFileError.
"""

from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union, runtime_checkable

from officium.settings import settings as default_settings


BOM = "\ufeff"


class DataFileError(Exception):
    """Raised for I/O failures other than a missing file."""

    def __init__(self, language: str, path: str, original_error: Exception):
        self.language = language
        self.path = path
        self.original_error = original_error
        super().__init__(f"Cannot read {language}/{path}: {original_error}")


@runtime_checkable
class FileReader(Protocol):
    """Reads data files; returns None for a missing file."""

    def read(self, language: str, path: str) -> Optional[List[str]]:
        ...


def split_lines(text: str) -> List[str]:
    """Split file text into lines, dropping a leading byte-order mark."""
    if text.startswith(BOM):
        text = text[len(BOM):]
    return text.splitlines()


class DataFileReader:
    """
    Reads `<base_dir>/<language>/<path>` from disk.

    Example:
        reader = DataFileReader("/srv/divinum-officium/web/www/horas")
        lines = reader.read("Latin", "Sancti/12-25.txt")
    """

    def __init__(
        self,
        base_dir: Union[str, Path, None] = None,
        encoding: Optional[str] = None
    ):
        self.base_dir = Path(base_dir or default_settings.data.base_dir).resolve()
        self.encoding = encoding or default_settings.data.encoding

    def path_for(self, language: str, path: str) -> Path:
        """Absolute path of a data file; refuses paths outside base_dir."""
        full = (self.base_dir / language / path).resolve()
        if not full.is_relative_to(self.base_dir):
            raise DataFileError(
                language, path, ValueError("path escapes the data directory")
            )
        return full

    def read(self, language: str, path: str) -> Optional[List[str]]:
        full = self.path_for(language, path)
        try:
            text = full.read_text(encoding=self.encoding)
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise DataFileError(language, path, e) from e
        return split_lines(text)

    def __repr__(self) -> str:
        return f"DataFileReader(base_dir={str(self.base_dir)!r})"


class InMemoryReader:
    """
    Serves data files from a dict: {language: {path: text}}.

    Useful for embedding the engine without a data directory and for tests.
    """

    def __init__(self, files: Optional[Dict[str, Dict[str, str]]] = None):
        self.files: Dict[str, Dict[str, str]] = {
            language: dict(entries) for language, entries in (files or {}).items()
        }
        self.reads: List[tuple] = []

    def add(self, language: str, path: str, text: str) -> None:
        self.files.setdefault(language, {})[path] = text

    def read(self, language: str, path: str) -> Optional[List[str]]:
        self.reads.append((language, path))
        text = self.files.get(language, {}).get(path)
        if text is None:
            return None
        return split_lines(text)

    def __repr__(self) -> str:
        count = sum(len(entries) for entries in self.files.values())
        return f"InMemoryReader(files={count})"
