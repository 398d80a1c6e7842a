"""
Shared file helpers and the base class for Ruby source scanners.

Provides file discovery, tolerant file reading, Ruby comment stripping
and result formatting used by the schema loader and the model parser.
"""

import logging
import os
import re
from typing import Dict, List, Optional, Set

logger = logging.getLogger(__name__)


SKIP_DIRS = {
    '.git', 'node_modules', 'vendor', 'tmp', 'log', 'coverage',
    'public', 'storage', '.bundle', '.idea', '.vscode',
}


def find_source_files(project_path: str, extensions: List[str],
                      skip_dirs: Set[str] = None) -> List[str]:
    """Walk project_path returning file paths matching extensions.

    Args:
        project_path: Root directory to search.
        extensions: List of file extensions including dot (e.g. ['.rb']).
        skip_dirs: Directory names to skip. Defaults to SKIP_DIRS.

    Returns:
        Sorted list of file paths, so scans run in a stable order.
    """
    skip = skip_dirs or SKIP_DIRS
    ext_set = set(extensions)
    results = []

    for root, dirs, files in os.walk(project_path):
        dirs[:] = [d for d in dirs if d not in skip]
        for fname in files:
            if any(fname.endswith(ext) for ext in ext_set):
                results.append(os.path.join(root, fname))

    return sorted(results)


def read_file_safe(file_path: str, encoding: str = 'utf-8') -> Optional[str]:
    """Read a file, returning content or None on error.

    Tries utf-8 first, falls back to latin-1 for legacy encoded sources.
    """
    for enc in [encoding, 'latin-1']:
        try:
            with open(file_path, 'r', encoding=enc) as f:
                return f.read()
        except UnicodeDecodeError:
            continue
        except (PermissionError, OSError) as e:
            logger.warning("Cannot read %s: %s", file_path, e)
            return None
    return None


# ---------------------------------------------------------------------------
# Ruby comment stripping
# ---------------------------------------------------------------------------

_RUBY_COMMENT_RE = re.compile(
    r'#[^\n]*'              # single-line comments
    r'|^=begin.*?^=end'     # block comments
    r"|'(?:\\.|[^'\\])*'"   # single-quoted strings
    r'|"(?:\\.|[^"\\])*"',  # double-quoted strings
    re.DOTALL | re.MULTILINE,
)

_STRING_STARTERS = frozenset({"'", '"'})


def _replace_comments_keep_strings(match):
    """Blank out comments but return string literals unchanged."""
    text = match.group(0)
    if text[0] in _STRING_STARTERS:
        return text
    return re.sub(r'[^\n]', ' ', text)


def strip_ruby_comments(content: str) -> str:
    """Strip Ruby comments but preserve string literals.

    Strings are matched alongside comments so a ``#`` inside a quoted
    name is not mistaken for a comment. Character positions are kept,
    so offsets into the result map back onto the original source.
    """
    return _RUBY_COMMENT_RE.sub(_replace_comments_keep_strings, content)


def line_number_at(content: str, pos: int) -> int:
    """Return the 1-based line number for a character position in content."""
    return content[:pos].count('\n') + 1


# ---------------------------------------------------------------------------
# Base parser class
# ---------------------------------------------------------------------------

class BaseModelParser:
    """Base class for scanners that report on model source files."""

    FILE_EXTENSIONS: List[str] = []

    def parse(self, project_path: str) -> Dict:
        """Parse project and return a standardized result dict.

        Subclasses must override this method.
        """
        raise NotImplementedError

    def find_files(self, project_path: str, extensions: List[str] = None) -> List[str]:
        """Find source files matching extensions."""
        return find_source_files(project_path, extensions or self.FILE_EXTENSIONS)

    def make_model_result(self, models: List[Dict], relationships: List[Dict],
                          checksum: Optional[str] = None) -> Dict:
        """Build a standardized model result dict."""
        return {
            'models': models,
            'relationships': [self._normalize_relationship(r) for r in relationships],
            'schema_checksum': checksum,
        }

    @staticmethod
    def _normalize_relationship(rel: Dict) -> Dict:
        """Normalize relationship dict to the canonical format.

        Canonical keys: from_table, to_table, from_column, to_column, type.
        A polymorphic relation has no single target table, so to_table is ''.
        """
        return {
            'from_table': rel.get('from_table', ''),
            'to_table': rel.get('to_table') or '',
            'from_column': rel.get('from_column', ''),
            'to_column': rel.get('to_column', 'id'),
            'type': rel.get('type', 'many-to-one'),
        }
