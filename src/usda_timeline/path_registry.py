"""Path translation across prim renames.

Historical log entries keep the prim paths that were current when they were
written. After ``/World/Wall`` is renamed to ``/World/Partition`` the
geometry for that prim lives under the new path, so every historical path
has to be mapped forward before it can be matched against the live stage.

The registry is a pure view over a commit graph: rebuild it whenever the
log changes.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping

from .commit_log import timestamp_to_millis
from .model import CommitGraph, CommitRecord, PathTranslationRegistry, PrimNode, RenameEvent

_LOGGER = logging.getLogger("usda_timeline.registry")

RENAME_TYPE = "Rename"


def _join(parent: str, name: str) -> str:
    return f"{parent}/{name}" if parent else f"/{name}"


def rename_paths(commit: CommitRecord) -> tuple[str | None, str | None]:
    """``(old_path, new_path)`` of a rename commit.

    Legacy entries only carry ``oldName`` plus the referenced prim path; the
    old path is rebuilt next to the referenced prim.
    """
    old_path = commit.old_path
    new_path = commit.new_path
    if not old_path and commit.old_name and commit.usd_reference_path:
        reference = commit.usd_reference_path
        parent, _, leaf = reference.rpartition("/")
        old_path = _join(parent, commit.old_name)
        new_path = reference
        if leaf == commit.old_name and commit.new_name:
            new_path = _join(parent, commit.new_name)
    return old_path, new_path


def _chronological_key(indexed: tuple[int, CommitRecord]) -> tuple[bool, int, int, int]:
    position, commit = indexed
    millis = timestamp_to_millis(commit.timestamp)
    return (millis is None, millis or 0, commit.entry, position)


def _substitute_prefix(path: str, old_prefix: str, new_prefix: str) -> str:
    return new_prefix + path[len(old_prefix):]


def build_path_translation_registry(
    commits: CommitGraph | Mapping[str, CommitRecord] | None,
    *,
    logger: logging.Logger | None = None,
) -> PathTranslationRegistry:
    """Fold every rename commit, oldest first, into a flat path map.

    For each rename ``old -> new``:

    1. mappings that currently point at ``old`` are redirected to ``new``;
    2. when a mapping ``source -> target`` has ``target`` as a strict
       ancestor of ``old``, the extra key ``source + <suffix of old>`` is
       added (if absent) pointing at ``new``. These historical keys are not
       renames of their own, so ``path_map`` can hold more entries than there
       are renames; they keep every lookup to a single hop;
    3. ``old -> new`` is recorded and logged in the rename chain;
    4. mappings below ``old`` on either side are moved under ``new``.
    """
    log = logger or _LOGGER
    if isinstance(commits, CommitGraph):
        commits = commits.commits
    if not commits:
        return PathTranslationRegistry()

    ordered = sorted(enumerate(commits.values()), key=_chronological_key)

    path_map: dict[str, str] = {}
    rename_chain: list[RenameEvent] = []

    for _, commit in ordered:
        if commit.type != RENAME_TYPE:
            continue
        old_path, new_path = rename_paths(commit)
        if not old_path or not new_path or old_path == new_path:
            log.debug(f"Skipping rename commit {commit.id}: no usable paths")
            continue

        old_prefix = old_path + "/"
        effective_old_path = old_path
        for source, target in list(path_map.items()):
            if target == old_path:
                path_map[source] = new_path
                effective_old_path = source
            elif old_path.startswith(target + "/"):
                alias = source + old_path[len(target):]
                path_map.setdefault(alias, new_path)

        path_map[old_path] = new_path
        rename_chain.append(
            RenameEvent(
                timestamp=commit.timestamp,
                old_path=effective_old_path,
                new_path=new_path,
                commit_id=commit.id,
            )
        )

        for source, target in list(path_map.items()):
            if target.startswith(old_prefix):
                path_map[source] = _substitute_prefix(target, old_path, new_path)
            elif source.startswith(old_prefix):
                path_map[source] = _substitute_prefix(source, old_path, new_path)

    log.info(
        f"Built registry with {len(path_map)} path translations "
        f"from {len(rename_chain)} rename operations"
    )
    return PathTranslationRegistry(path_map=path_map, rename_chain=tuple(rename_chain))


def translate_path(path: str | None, registry: PathTranslationRegistry | None) -> str | None:
    """Current form of a historical path; unknown paths come back unchanged.

    An exact mapping wins. Otherwise the deepest renamed ancestor is spliced
    in front of the remaining suffix.
    """
    if not path or registry is None or not registry.path_map:
        return path

    exact = registry.path_map.get(path)
    if exact is not None:
        return exact

    best_source = None
    for source in registry.path_map:
        if path.startswith(source + "/") and (best_source is None or len(source) > len(best_source)):
            best_source = source
    if best_source is None:
        return path
    return _substitute_prefix(path, best_source, registry.path_map[best_source])


def translate_prim_paths(
    prim: PrimNode | None,
    registry: PathTranslationRegistry | None,
    *,
    logger: logging.Logger | None = None,
) -> PrimNode | None:
    """Copy of ``prim`` and its subtree with ``path``/``source_path`` translated."""
    if prim is None or registry is None:
        return prim
    log = logger or _LOGGER

    path = translate_path(prim.path, registry)
    if path != prim.path:
        log.debug(f"Translated path: {prim.path} -> {path}")

    source_path = prim.source_path
    if source_path:
        source_path = translate_path(source_path, registry)
        if source_path != prim.source_path:
            log.debug(f"Translated source path: {prim.source_path} -> {source_path}")

    return prim.evolved(
        path=path,
        source_path=source_path,
        children=[translate_prim_paths(child, registry, logger=log) for child in prim.children],
    )
