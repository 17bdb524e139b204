"""Source files, header/source pairing and path collection."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path, PurePath

from cstyle.rules.base import Role

HEADER_SUFFIXES = frozenset({".h", ".hh", ".hpp"})
SOURCE_SUFFIXES = frozenset({".c", ".cc", ".cpp"})
DEFAULT_PATTERNS = ("*.c", "*.h")


@dataclass(frozen=True, slots=True)
class SourceFile:
    """A file to check; in-memory ``text`` takes precedence over reading ``path``."""

    path: str
    role: Role
    text: str | None = None

    def read(self) -> str:
        if self.text is not None:
            return self.text
        return Path(self.path).read_text(encoding="utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class SourceUnit:
    """A header and/or source sharing a root name."""

    name: str
    header: SourceFile | None = None
    source: SourceFile | None = None

    @property
    def files(self) -> tuple[SourceFile, ...]:
        return tuple(item for item in (self.header, self.source) if item is not None)


def role_for_path(path: str) -> Role:
    return "header" if PurePath(path).suffix.lower() in HEADER_SUFFIXES else "source"


def source_file(path: str, text: str | None = None) -> SourceFile:
    return SourceFile(path=path, role=role_for_path(path), text=text)


def pair_units(files: Iterable[SourceFile]) -> list[SourceUnit]:
    """Group files into units.

    A header and source in the same directory with the same stem form a unit.
    Leftover files are then paired by stem across directories when exactly one
    header and one source remain for that stem; everything else stands alone.
    """
    headers: dict[tuple[str, str], SourceFile] = {}
    sources: dict[tuple[str, str], SourceFile] = {}
    for item in files:
        pure = PurePath(item.path)
        key = (str(pure.parent), pure.stem)
        target = headers if item.role == "header" else sources
        target.setdefault(key, item)

    units: list[SourceUnit] = []
    for key in sorted(set(headers) & set(sources)):
        units.append(_unit(headers.pop(key), sources.pop(key)))

    headers_by_stem = _group_by_stem(headers.values())
    sources_by_stem = _group_by_stem(sources.values())
    for stem in sorted(set(headers_by_stem) & set(sources_by_stem)):
        stem_headers = headers_by_stem[stem]
        stem_sources = sources_by_stem[stem]
        if len(stem_headers) == 1 and len(stem_sources) == 1:
            header = stem_headers.pop()
            source = stem_sources.pop()
            headers.pop(_key(header))
            sources.pop(_key(source))
            units.append(_unit(header, source))

    for header in headers.values():
        units.append(SourceUnit(name=_unit_name(header), header=header))
    for source in sources.values():
        units.append(SourceUnit(name=_unit_name(source), source=source))
    return sorted(units, key=lambda unit: unit.name)


def collect_paths(
    paths: Iterable[Path],
    *,
    include: list[str] | None = None,
    exclude: list[str] | None = None,
) -> list[Path]:
    """Expand directories to their C files and apply include/exclude globs."""
    collected: set[Path] = set()
    for path in paths:
        if path.is_dir():
            for pattern in DEFAULT_PATTERNS:
                collected.update(item for item in path.rglob(pattern) if item.is_file())
        else:
            collected.add(path)

    selected: list[Path] = []
    for path in sorted(collected):
        posix = path.as_posix()
        if include and not any(fnmatch(posix, pattern) for pattern in include):
            continue
        if exclude and any(fnmatch(posix, pattern) for pattern in exclude):
            continue
        selected.append(path)
    return selected


def _unit(header: SourceFile, source: SourceFile) -> SourceUnit:
    return SourceUnit(name=_unit_name(source), header=header, source=source)


def _unit_name(item: SourceFile) -> str:
    pure = PurePath(item.path)
    return str(pure.with_suffix("").as_posix())


def _key(item: SourceFile) -> tuple[str, str]:
    pure = PurePath(item.path)
    return (str(pure.parent), pure.stem)


def _group_by_stem(items: Iterable[SourceFile]) -> dict[str, list[SourceFile]]:
    grouped: dict[str, list[SourceFile]] = {}
    for item in items:
        grouped.setdefault(PurePath(item.path).stem, []).append(item)
    return grouped
