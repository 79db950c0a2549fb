"""Bibliographic entries and their linked-file field.

The linked-file field stores a ``;``-separated list of
``description:link:type`` triples. ``\\`` escapes a literal ``:``, ``;`` or
``\\`` inside any part. A part-less value (``paper.pdf``) is a bare link.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from citeindex.config.constants import FILE_FIELD, KEY_FIELD

FieldListener = Callable[["BibEntry", str, "str | None", "str | None"], None]

_ONLINE_PREFIXES = ("http://", "https://", "ftp://", "www.")


@dataclass(frozen=True, slots=True)
class LinkedFile:
    """One item of a linked-file field."""

    description: str
    link: str
    file_type: str

    @property
    def is_online(self) -> bool:
        return self.link.lower().startswith(_ONLINE_PREFIXES)


def _split_escaped(value: str, separator: str) -> Iterator[str]:
    """Split on *separator*, honouring backslash escapes. Escapes are kept."""
    current: list[str] = []
    escaped = False
    for ch in value:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\":
            current.append(ch)
            escaped = True
        elif ch == separator:
            yield "".join(current)
            current = []
        else:
            current.append(ch)
    yield "".join(current)


def _unescape(value: str) -> str:
    out: list[str] = []
    chars = iter(value)
    for ch in chars:
        if ch == "\\":
            out.append(next(chars, ""))
        else:
            out.append(ch)
    return "".join(out)


def parse_file_field(value: str | None) -> list[LinkedFile]:
    """Parse a linked-file field value into its items.

    Empty items are dropped. Items with more than three parts keep the
    extra parts in the link (Windows drive letters, ``C:\\...``).
    """
    if not value:
        return []

    files: list[LinkedFile] = []
    for item in _split_escaped(value, ";"):
        if not item.strip():
            continue
        parts = [_unescape(p) for p in _split_escaped(item, ":")]
        if len(parts) == 1:
            description, link, file_type = "", parts[0], ""
        elif len(parts) == 2:
            description, link, file_type = parts[0], parts[1], ""
        else:
            description = parts[0]
            link = ":".join(parts[1:-1])
            file_type = parts[-1]
        link = link.strip()
        if link:
            files.append(LinkedFile(description, link, file_type))
    return files


def resolve_linked_files(
    value: str | None,
    directories: Iterable[Path],
    *,
    existing_only: bool = True,
) -> list[Path]:
    """Resolve a linked-file field to file paths.

    Absolute links are used as-is. Relative links are tried against each
    directory in order; the first existing match wins. When nothing exists
    and *existing_only* is False, the link is anchored at the first
    directory so that removed files still resolve to a stable path.
    Online links are skipped.
    """
    dirs = list(directories)
    resolved: list[Path] = []
    seen: set[Path] = set()
    for linked in parse_file_field(value):
        if linked.is_online:
            continue
        path = _resolve_one(Path(linked.link).expanduser(), dirs, existing_only)
        if path is not None and path not in seen:
            seen.add(path)
            resolved.append(path)
    return resolved


def _resolve_one(link: Path, dirs: list[Path], existing_only: bool) -> Path | None:
    if link.is_absolute():
        if existing_only and not link.is_file():
            return None
        return link
    for directory in dirs:
        candidate = directory / link
        if candidate.is_file():
            return candidate
    if existing_only:
        return None
    return (dirs[0] / link) if dirs else link


class BibEntry:
    """A bibliographic entry: a type and a mutable field map.

    Field changes made through :meth:`set_field` are reported to the owning
    collection, which publishes them as events.
    """

    def __init__(self, entry_type: str = "article", fields: dict[str, str] | None = None):
        self.entry_type = entry_type
        self._fields: dict[str, str] = dict(fields or {})
        self._listener: FieldListener | None = None

    def __repr__(self) -> str:
        return f"BibEntry({self.entry_type!r}, key={self.citation_key!r})"

    @property
    def citation_key(self) -> str | None:
        key = self._fields.get(KEY_FIELD)
        return key or None

    @property
    def file_field(self) -> str | None:
        return self._fields.get(FILE_FIELD)

    @property
    def fields(self) -> dict[str, str]:
        return dict(self._fields)

    def get_field(self, name: str) -> str | None:
        return self._fields.get(name)

    def set_field(self, name: str, value: str | None) -> None:
        """Set (or clear, with None) a field and notify the owner."""
        old = self._fields.get(name)
        if old == value:
            return
        if value is None:
            del self._fields[name]
        else:
            self._fields[name] = value
        if self._listener is not None:
            self._listener(self, name, old, value)

    def set_citation_key(self, key: str | None) -> None:
        self.set_field(KEY_FIELD, key)

    def set_file_field(self, value: str | None) -> None:
        self.set_field(FILE_FIELD, value)

    def _attach(self, listener: FieldListener | None) -> None:
        self._listener = listener
