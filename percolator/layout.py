"""
Fixed-layout record descriptors.

A `Layout` is pure data: total size, ordered `Field`s, optional magic bytes
and an optional version field with the set of versions this build accepts.
Descriptors are checked once when they are built; an inconsistent descriptor
raises `LayoutError` before any caller bytes are touched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .errors import LayoutError

# kind -> (width, signed)
INT_KINDS: Dict[str, Tuple[int, bool]] = {
    "u8": (1, False),
    "u16": (2, False),
    "u32": (4, False),
    "u64": (8, False),
    "i8": (1, True),
    "i16": (2, True),
    "i32": (4, True),
    "i64": (8, True),
}
FIXED_WIDTHS: Dict[str, int] = {
    **{kind: width for kind, (width, _) in INT_KINDS.items()},
    "bool": 1,
    "pubkey": 32,
}

Entry = Union[Tuple[str, str], Tuple[str, str, int], Tuple[str, "Layout", int]]


@dataclass(frozen=True)
class Field:
    name: str
    offset: int
    width: int
    kind: str
    # inclusive bounds enforced on encode and decode (FieldOutOfRange)
    bounds: Optional[Tuple[int, int]] = None
    item: Optional["Layout"] = None
    count: int = 0

    def __post_init__(self) -> None:
        if self.kind in FIXED_WIDTHS:
            if self.width != FIXED_WIDTHS[self.kind]:
                raise LayoutError(
                    f"field {self.name!r}: kind {self.kind} must be "
                    f"{FIXED_WIDTHS[self.kind]} bytes, got {self.width}"
                )
        elif self.kind == "array":
            if self.item is None or self.count < 0:
                raise LayoutError(f"array field {self.name!r} needs item layout and count")
            if self.width != self.item.size * self.count:
                raise LayoutError(f"array field {self.name!r}: width != item.size * count")
        elif self.kind == "bytes":
            if self.width < 0:
                raise LayoutError(f"bytes field {self.name!r} has negative width")
        else:
            raise LayoutError(f"field {self.name!r}: unknown kind {self.kind!r}")
        if self.offset < 0:
            raise LayoutError(f"field {self.name!r}: negative offset")
        if self.bounds is not None and self.kind not in INT_KINDS:
            raise LayoutError(f"field {self.name!r}: bounds only apply to integers")

    @property
    def end(self) -> int:
        return self.offset + self.width

    @property
    def reserved(self) -> bool:
        """Padding / reserved ranges: zero on encode, skipped on decode."""
        return self.name.startswith("_")


@dataclass(frozen=True)
class Layout:
    name: str
    size: int
    fields: Tuple[Field, ...]
    magic: Optional[bytes] = None
    magic_offset: int = 0
    version_field: Optional[str] = None
    versions: Tuple[int, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "versions", tuple(self.versions))
        spans: List[Tuple[int, int, str]] = []
        names = set()
        for field in self.fields:
            if field.name in names:
                raise LayoutError(f"{self.name}: duplicate field {field.name!r}")
            names.add(field.name)
            spans.append((field.offset, field.end, field.name))
        if self.magic is not None:
            if not self.magic:
                raise LayoutError(f"{self.name}: empty magic")
            spans.append((self.magic_offset, self.magic_offset + len(self.magic), "<magic>"))
        spans.sort()
        for start, end, label in spans:
            if end > self.size:
                raise LayoutError(f"{self.name}: {label} [{start}, {end}) exceeds size {self.size}")
        for (_, prev_end, prev), (start, _, label) in zip(spans, spans[1:]):
            if start < prev_end:
                raise LayoutError(f"{self.name}: {label} overlaps {prev}")
        if self.version_field is not None:
            version = self._by_name().get(self.version_field)
            if version is None or version.kind not in INT_KINDS:
                raise LayoutError(f"{self.name}: version field must be an integer field")
            if not self.versions:
                raise LayoutError(f"{self.name}: version field declared without versions")
        elif self.versions:
            raise LayoutError(f"{self.name}: versions declared without a version field")

    def _by_name(self) -> Dict[str, Field]:
        return {field.name: field for field in self.fields}

    def field(self, name: str) -> Field:
        try:
            return self._by_name()[name]
        except KeyError:
            raise KeyError(f"{self.name} has no field {name!r}") from None

    def __iter__(self) -> Iterator[Field]:
        return iter(self.fields)

    @property
    def value_fields(self) -> Tuple[Field, ...]:
        return tuple(field for field in self.fields if not field.reserved)

    @classmethod
    def packed(
        cls,
        name: str,
        entries: Sequence[Entry],
        *,
        magic: Optional[bytes] = None,
        version_field: Optional[str] = None,
        versions: Iterable[int] = (),
        size: Optional[int] = None,
        bounds: Optional[Dict[str, Tuple[int, int]]] = None,
    ) -> "Layout":
        """Lay entries out back to back, after the magic bytes if any.

        Entries are `(name, kind)`, `(name, "bytes", width)` or
        `(name, item_layout, count)` for a fixed-count repeated record.
        """
        bounds = bounds or {}
        offset = len(magic) if magic else 0
        fields = []
        for entry in entries:
            fields.append(_entry_to_field(entry, offset, bounds.get(entry[0])))
            offset = fields[-1].end
        return cls(
            name=name,
            size=offset if size is None else size,
            fields=tuple(fields),
            magic=magic,
            version_field=version_field,
            versions=tuple(versions),
        )


def _entry_to_field(entry: Entry, offset: int, bounds: Optional[Tuple[int, int]]) -> Field:
    name, kind = entry[0], entry[1]
    if isinstance(kind, Layout):
        count = int(entry[2])  # type: ignore[misc]
        return Field(name, offset, kind.size * count, "array", item=kind, count=count)
    if kind == "bytes":
        if len(entry) != 3:
            raise LayoutError(f"bytes entry {name!r} needs a width")
        return Field(name, offset, int(entry[2]), "bytes")  # type: ignore[misc]
    if kind not in FIXED_WIDTHS:
        raise LayoutError(f"entry {name!r}: unknown kind {kind!r}")
    return Field(name, offset, FIXED_WIDTHS[kind], kind, bounds=bounds)


class LayoutRegistry:
    """Read-only after start-up; lookups are safe from any thread."""

    def __init__(self) -> None:
        self._layouts: Dict[str, Layout] = {}

    def register(self, layout: Layout) -> Layout:
        if layout.name in self._layouts:
            raise LayoutError(f"layout {layout.name!r} registered twice")
        self._layouts[layout.name] = layout
        return layout

    def __getitem__(self, name: str) -> Layout:
        return self._layouts[name]

    def __contains__(self, name: object) -> bool:
        return name in self._layouts

    def __iter__(self) -> Iterator[str]:
        return iter(self._layouts)

    def __len__(self) -> int:
        return len(self._layouts)

    def layouts(self) -> Tuple[Layout, ...]:
        return tuple(self._layouts.values())


__all__ = [
    "INT_KINDS",
    "FIXED_WIDTHS",
    "Field",
    "Layout",
    "LayoutRegistry",
]
