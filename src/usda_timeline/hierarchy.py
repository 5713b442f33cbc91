"""Prim hierarchy parsing for USDA layer text.

The parser works on the raw text with a header pattern and brace-depth
scanning rather than a full grammar:

  def Xform "World" (
      prepend references = @asset.usda@</Root>
  )
  {
      custom string primvars:displayName = "World"
      def Mesh "Floor" { ... }
  }

Each header match becomes a PrimNode; its body is masked (nested blocks
removed) before property extraction so a parent never picks up a
descendant's properties. Offsets are absolute in the source text at every
nesting level.
"""
from __future__ import annotations

import logging
import re
from typing import Mapping

from .model import PrimNode, PrimProperties

_LOGGER = logging.getLogger("usda_timeline.parser")

NOT_FOUND = -1

_NUMBER = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"
_TARGET = r"(@[^@]+@(?:<[^>]*>)?)"

PRIM_HEADER_RE = re.compile(
    r'(def|over)\s+([A-Z][a-zA-Z0-9_]*)\s+"([^"]+)"\s*(?:\(([^)]*)\))?\s*\{'
)

_COLOR_RE = re.compile(
    r"color3f\[\]\s+primvars:displayColor\s*=\s*\[\s*\(\s*"
    rf"({_NUMBER})\s*,\s*({_NUMBER})\s*,\s*({_NUMBER})\s*\)\s*\]"
)
_DISPLAY_NAME_RE = re.compile(r"custom\s+string\s+primvars:displayName\s*=\s*([\"'])(.*?)\1")
_STATUS_RE = re.compile(r"custom\s+token\s+primvars:status\s*=\s*([\"'])(.*?)\1")
_OPACITY_RE = re.compile(rf"(?:custom\s+)?float\s+opacity\s*=\s*({_NUMBER})")
_ENTITY_TYPE_RE = re.compile(r"custom\s+string\s+primvars:entityType\s*=\s*([\"'])(.*?)\1")

_REFERENCES_RE = re.compile(rf"(?:prepend\s+)?references\s*=\s*{_TARGET}")
_PAYLOAD_RE = re.compile(rf"(?:prepend\s+)?payload\s*=\s*{_TARGET}")

_CUSTOM_DATA_RE = re.compile(r"customData\s*=\s*\{")
_CUSTOM_DATA_ENTRY_RE = re.compile(
    r'([A-Za-z_][\w\[\]]*)\s+([A-Za-z_]\w*)\s*=\s*("(?:[^"\\]|\\.)*"|[^\s}]+)'
)


def _is_quote(text: str, index: int) -> bool:
    return text[index] == '"' and (index == 0 or text[index - 1] != "\\")


def find_matching_brace(text: str, open_index: int, *, skip_quoted: bool = False) -> int:
    """Index of the ``}`` closing the ``{`` at ``open_index``, or NOT_FOUND.

    Only ``{`` and ``}`` are counted. Quotes are not special unless
    ``skip_quoted`` is set, in which case braces inside double-quoted
    strings are ignored.
    """
    depth = 0
    in_string = False
    for index in range(open_index, len(text)):
        if skip_quoted and _is_quote(text, index):
            in_string = not in_string
            continue
        if in_string:
            continue
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return NOT_FOUND


def mask_nested_blocks(content: str, *, skip_quoted: bool = False) -> str:
    """Return ``content`` without any ``{ ... }`` sub-block.

    An unterminated sub-block masks everything after its opening brace; a
    stray ``}`` is dropped. With ``skip_quoted`` braces inside double-quoted
    strings are kept as text.
    """
    kept: list[str] = []
    depth = 0
    in_string = False
    for index, char in enumerate(content):
        if skip_quoted and _is_quote(content, index):
            in_string = not in_string
        elif not in_string and char == "{":
            depth += 1
            continue
        elif not in_string and char == "}":
            if depth:
                depth -= 1
            continue
        if depth == 0:
            kept.append(char)
    return "".join(kept)


def _to_float(raw: str) -> float | None:
    try:
        return float(raw)
    except ValueError:
        return None


def extract_properties(masked_content: str) -> PrimProperties:
    color = None
    color_match = _COLOR_RE.search(masked_content)
    if color_match:
        color = (
            float(color_match.group(1)),
            float(color_match.group(2)),
            float(color_match.group(3)),
        )

    display_name_match = _DISPLAY_NAME_RE.search(masked_content)
    status_match = _STATUS_RE.search(masked_content)
    opacity_match = _OPACITY_RE.search(masked_content)
    entity_type_match = _ENTITY_TYPE_RE.search(masked_content)

    return PrimProperties(
        display_color=color,
        display_name=display_name_match.group(2) if display_name_match else None,
        status=status_match.group(2) if status_match else None,
        opacity=_to_float(opacity_match.group(1)) if opacity_match else None,
        entity_type=entity_type_match.group(2) if entity_type_match else None,
    )


def resolve_targets(metadata: str, masked_content: str) -> tuple[str | None, str | None]:
    """Return ``(references, payload)`` for one prim.

    Metadata wins over the body; a body ``payload`` never fills ``references``.
    """
    references = None
    payload = None

    metadata_refs = _REFERENCES_RE.search(metadata)
    if metadata_refs:
        references = metadata_refs.group(1)
    metadata_payload = _PAYLOAD_RE.search(metadata)
    if metadata_payload:
        payload = metadata_payload.group(1)

    if references is None:
        body_refs = _REFERENCES_RE.search(masked_content)
        if body_refs:
            references = body_refs.group(1)
    if payload is None:
        body_payload = _PAYLOAD_RE.search(masked_content)
        if body_payload:
            payload = body_payload.group(1)

    return references, payload


def _coerce_custom_value(type_name: str, raw: str) -> object:
    if raw.startswith('"') and raw.endswith('"') and len(raw) >= 2:
        return raw[1:-1]
    if type_name == "bool":
        return raw.lower() in ("1", "true")
    if type_name in ("int", "uint", "int64"):
        try:
            return int(raw)
        except ValueError:
            return raw
    if type_name in ("float", "double", "half"):
        value = _to_float(raw)
        return raw if value is None else value
    return raw


def parse_custom_data(metadata: str) -> dict[str, object]:
    """Flat ``customData = { <type> <key> = <value> ... }`` entries from metadata."""
    match = _CUSTOM_DATA_RE.search(metadata)
    if not match:
        return {}
    open_index = match.end() - 1
    close_index = find_matching_brace(metadata, open_index)
    if close_index == NOT_FOUND:
        return {}
    body = metadata[open_index + 1:close_index]
    return {
        entry.group(2): _coerce_custom_value(entry.group(1), entry.group(3))
        for entry in _CUSTOM_DATA_ENTRY_RE.finditer(body)
    }


def _parse_region(
    text: str,
    start: int,
    end: int,
    path_prefix: str,
    log: logging.Logger,
) -> list[PrimNode]:
    prims: list[PrimNode] = []
    position = start
    while position < end:
        match = PRIM_HEADER_RE.search(text, position, end)
        if match is None:
            break
        specifier, prim_type, name, metadata = match.group(1, 2, 3, 4)
        metadata = metadata or ""
        path = f"{path_prefix}/{name}"

        content_start = match.end()
        content_end = find_matching_brace(text, content_start - 1)
        if content_end == NOT_FOUND or content_end >= end:
            log.warning(f"Skipping prim {path}: no matching closing brace")
            position = match.end()
            continue

        raw_content = text[content_start:content_end]
        masked = mask_nested_blocks(raw_content)
        references, payload = resolve_targets(metadata, masked)

        prims.append(
            PrimNode(
                specifier=specifier,
                type=prim_type,
                name=name,
                path=path,
                children=tuple(_parse_region(text, content_start, content_end, path, log)),
                properties=extract_properties(masked),
                raw_content=raw_content,
                masked_content=masked,
                raw_text=text[match.start():content_end + 1],
                start_index=match.start(),
                end_index=content_end + 1,
                payload=payload,
                references=references,
                custom_data=parse_custom_data(metadata),
            )
        )
        position = content_end + 1
    return prims


def parse_prim_tree(
    text: str,
    path_prefix: str = "",
    *,
    logger: logging.Logger | None = None,
) -> list[PrimNode]:
    """Parse the prims declared directly in ``text`` (children are nested).

    Prims whose block never closes are dropped; scanning resumes right after
    their header.
    """
    if not text:
        return []
    return _parse_region(text, 0, len(text), path_prefix, logger or _LOGGER)


def parse_prim_region(
    text: str,
    start: int,
    end: int,
    path_prefix: str = "",
    *,
    logger: logging.Logger | None = None,
) -> list[PrimNode]:
    """Like ``parse_prim_tree`` for ``text[start:end]``, offsets kept absolute in ``text``."""
    if not text or start >= end:
        return []
    return _parse_region(text, start, min(end, len(text)), path_prefix, logger or _LOGGER)


def get_prim_hierarchy(text: str | None) -> list[PrimNode]:
    if not text:
        return []
    return parse_prim_tree(text)


def index_by_path(prims: list[PrimNode]) -> Mapping[str, PrimNode]:
    """Flatten a prim forest into ``{path: prim}``."""
    return {node.path: node for prim in prims for node in prim.walk()}


def append_to_prim(text: str, snippet: str, root_prim_name: str | None = None) -> str:
    """Insert ``snippet`` before the closing brace of ``root_prim_name``.

    Falls back to appending at the end of the layer when no such prim exists
    or its block never closes.
    """
    if root_prim_name:
        pattern = re.compile(
            rf'(?:def|over)(?:\s+\w+)?\s+"{re.escape(root_prim_name)}"\s*(?:\([^)]*\))?\s*\{{'
        )
        match = pattern.search(text)
        if match:
            close_index = find_matching_brace(text, match.end() - 1)
            if close_index != NOT_FOUND:
                return f"{text[:close_index]}{snippet}{text[close_index:]}"
    return f"{text}\n{snippet}"
