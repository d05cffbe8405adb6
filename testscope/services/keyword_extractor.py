"""Keyword extraction for ticket titles, PR text and changed file paths.

Every function here is pure: the same input always produces the same token
set, and re-extracting from already extracted tokens is a no-op.
"""
import re
from typing import Iterable, List, Set

MIN_TOKEN_LENGTH = 4

ENGLISH_STOP_WORDS = frozenset({
    "the", "and", "for", "are", "but", "not", "you", "all", "can", "has", "was", "were",
    "been", "have", "this", "that", "with", "from", "they", "will", "would", "there",
    "their", "what", "which", "when", "where", "should", "could", "make", "made",
    "able", "about", "into", "than", "them", "these", "those", "does", "done",
    "also", "only", "some", "such", "then", "very", "just", "each", "more", "most",
    "other", "over", "your", "after", "before", "while", "being", "here", "upon",
})

PATH_STOP_WORDS = frozenset({
    "src", "app", "common", "components", "services", "models", "views",
    "controllers", "utils", "lib", "core", "test", "tests", "dist",
})

STOP_WORDS = ENGLISH_STOP_WORDS | PATH_STOP_WORDS

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z])(?=[A-Z])")
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")
_PATH_SEPARATOR = re.compile(r"[/\\]+")
_EXTENSION = re.compile(r"\.[^/\\.]+$")
_SECTION_SEPARATOR = re.compile(r"\s*[>›]\s*")


def split_camel_case(word: str) -> List[str]:
    """'phsTemplates' -> ['phs', 'Templates']"""
    return [w for w in _CAMEL_BOUNDARY.split(word) if w]


def tokenize(text: str) -> List[str]:
    """Lowercased raw tokens in order, before length and stop-word filtering."""
    if not text:
        return []
    spaced = _CAMEL_BOUNDARY.sub(" ", text)
    return [t for t in _NON_ALNUM.sub(" ", spaced).lower().split() if t]


def _significant(tokens: Iterable[str]) -> Set[str]:
    return {t for t in tokens if len(t) >= MIN_TOKEN_LENGTH and t not in STOP_WORDS}


def extract(text: str) -> Set[str]:
    return _significant(tokenize(text))


def strip_extension(segment: str) -> str:
    return _EXTENSION.sub("", segment)


def extract_from_path(path: str) -> Set[str]:
    """Keywords from every folder and the file name of a path."""
    keywords: Set[str] = set()
    for segment in _PATH_SEPARATOR.split(path or ""):
        keywords |= extract(strip_extension(segment))
    return keywords


def filename(path: str) -> str:
    parts = [p for p in _PATH_SEPARATOR.split(path or "") if p]
    return parts[-1] if parts else ""


def extract_from_filename(path: str) -> Set[str]:
    """Keywords from the last path segment only."""
    return extract(strip_extension(filename(path)))


def file_stem(path: str) -> str:
    """Extension-stripped, lowercased file name: 'src/Login.component.ts' -> 'login.component'"""
    return strip_extension(filename(path)).lower()


def extract_from_paths(paths: Iterable[str]) -> Set[str]:
    keywords: Set[str] = set()
    for path in paths:
        keywords |= extract_from_path(path)
    return keywords


def split_section_path(section_path: str) -> List[str]:
    """Breadcrumb folders, accepting both '>' and '›' separators."""
    if not section_path:
        return []
    return [f.strip() for f in _SECTION_SEPARATOR.split(section_path) if f.strip()]
