"""Shared data model for parsed layers, geometry and commit history."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterator, Mapping, Sequence

import numpy as np


Color3 = tuple[float, float, float]


@dataclass(frozen=True)
class PrimProperties:
    """Recognized prim properties. Unmatched properties stay None."""

    display_color: Color3 | None = None
    display_name: str | None = None
    status: str | None = None
    opacity: float | None = None
    entity_type: str | None = None

    def as_dict(self) -> dict[str, object]:
        values = {
            "displayColor": self.display_color,
            "displayName": self.display_name,
            "status": self.status,
            "opacity": self.opacity,
            "entityType": self.entity_type,
        }
        return {key: value for key, value in values.items() if value is not None}


@dataclass(frozen=True)
class PrimNode:
    """One `def`/`over` block of a layer.

    ``raw_text`` is ``source[start_index:end_index]``; ``raw_content`` is the
    text between the braces and ``masked_content`` the same text with nested
    blocks removed.
    """

    specifier: str
    type: str
    name: str
    path: str
    children: tuple["PrimNode", ...] = ()
    properties: PrimProperties = field(default_factory=PrimProperties)
    raw_content: str = field(default="", repr=False)
    masked_content: str = field(default="", repr=False)
    raw_text: str = field(default="", repr=False)
    start_index: int = 0
    end_index: int = 0
    payload: str | None = None
    references: str | None = None
    custom_data: Mapping[str, object] = field(default_factory=dict)
    source_path: str | None = None

    def walk(self) -> Iterator["PrimNode"]:
        """Yield this prim and its descendants, pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def evolved(
        self,
        *,
        path: str | None = None,
        source_path: str | None = None,
        children: Sequence["PrimNode"] | None = None,
    ) -> "PrimNode":
        return replace(
            self,
            path=path if path is not None else self.path,
            source_path=source_path if source_path is not None else self.source_path,
            children=tuple(children) if children is not None else self.children,
        )


@dataclass(frozen=True)
class GeometryDescriptor:
    """Renderer-facing geometry keyed by prim path without its leading slash."""

    name: str
    type: str  # "Mesh", "Sphere", "Cube"
    color: Color3 | None = None
    points: np.ndarray | None = field(default=None, repr=False)
    indices: np.ndarray | None = field(default=None, repr=False)
    radius: float | None = None
    size: float | None = None
    opacity: float | None = None
    is_wireframe: bool = False

    @property
    def triangle_count(self) -> int:
        if self.indices is None:
            return 0
        return int(len(self.indices) // 3)


@dataclass(frozen=True)
class CommitRecord:
    id: str
    entry: int = 0
    type: str | None = None
    parent: str | None = None
    staged_prims: tuple[str, ...] = ()
    source_status: str | None = None
    target_status: str | None = None
    timestamp: str | None = None
    user: str | None = None
    status: str | None = None
    usd_reference_path: str | None = None
    file_name: str | None = None
    content_hash: str | None = None
    file_size: int | None = None
    old_name: str | None = None
    new_name: str | None = None
    old_path: str | None = None
    new_path: str | None = None
    entity_type: str | None = None
    object_path: str | None = None
    serialized_prims: tuple[PrimNode, ...] = field(default=(), repr=False)


@dataclass(frozen=True)
class CommitGraph:
    """Commits keyed by id in log order, plus the ids that start a lineage."""

    commits: Mapping[str, CommitRecord] = field(default_factory=dict)
    roots: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.commits)

    def get(self, commit_id: str) -> CommitRecord | None:
        return self.commits.get(commit_id)

    def lineage(self, commit_id: str) -> list[CommitRecord]:
        """Commits from the oldest reachable ancestor down to ``commit_id``.

        Traversal stops at a missing parent. Unknown ids give an empty list.
        """
        chain: list[CommitRecord] = []
        seen: set[str] = set()
        current = self.commits.get(commit_id)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            chain.append(current)
            current = self.commits.get(current.parent) if current.parent else None
        chain.reverse()
        return chain

    def latest(self) -> CommitRecord | None:
        if not self.commits:
            return None
        return max(self.commits.values(), key=lambda commit: commit.entry)


@dataclass(frozen=True)
class RenameEvent:
    timestamp: str | None
    old_path: str
    new_path: str
    commit_id: str


@dataclass(frozen=True)
class PathTranslationRegistry:
    """Historical path -> current path, plus the renames that produced it."""

    path_map: Mapping[str, str] = field(default_factory=dict)
    rename_chain: tuple[RenameEvent, ...] = ()

    def debug_info(self) -> dict[str, object]:
        return {
            "totalMappings": len(self.path_map),
            "totalRenames": len(self.rename_chain),
            "mappings": [
                {"oldPath": old, "newPath": new} for old, new in self.path_map.items()
            ],
            "renameChain": list(self.rename_chain),
        }
