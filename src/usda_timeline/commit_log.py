"""Commit history stored as ``Log_<id>`` blocks in a statement layer.

Every change the application records is appended as one block:

  def "Log_1718000000000_ab12cd"
  {
      custom int entry = 3
      custom string timestamp = "2024-06-10T08:00:00.000Z"
      custom string type = "Rename"
      custom string parent = "1717990000000_ef34gh"
      custom string[] stagedPrims = ["/World/Wall"]
      custom string oldName = "Wall"
      custom string newName = "Partition"
      def Xform "Partition" { ... }
  }

Fields are read from the block body with nested prim blocks masked out;
the nested prims themselves are kept as ``serialized_prims``.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Iterable

from .hierarchy import NOT_FOUND, find_matching_brace, mask_nested_blocks, parse_prim_region
from .model import CommitGraph, CommitRecord

_LOGGER = logging.getLogger("usda_timeline.log")

LOG_BLOCK_RE = re.compile(r'def\s+"Log_([^"]+)"\s*\{')

_ENTRY_RE = re.compile(r"custom\s+int\s+entry\s*=\s*(-?\d+)")
_FILE_SIZE_RE = re.compile(r"custom\s+int\s+fileSize\s*=\s*(-?\d+)")
_STAGED_PRIMS_RE = re.compile(r"custom\s+string\[\]\s+stagedPrims\s*=\s*\[([^\]]*)\]")
_QUOTED_RE = re.compile(r'"((?:[^"\\]|\\.)*)"')

_NULL_TOKENS = {"", "null", "undefined"}


def _string_field_re(name: str) -> re.Pattern[str]:
    return re.compile(rf'custom\s+string\s+{name}\s*=\s*"((?:[^"\\]|\\.)*)"')


_STRING_FIELDS = {
    name: _string_field_re(name)
    for name in (
        "timestamp",
        "type",
        "parent",
        "user",
        "status",
        "sourceStatus",
        "sourceStatusForHistory",
        "targetStatus",
        "usdReferencePath",
        "primPath",
        "fileName",
        "contentHash",
        "oldName",
        "newName",
        "oldPath",
        "newPath",
        "entityType",
        "objectPath",
    )
}


def _unescape(value: str) -> str:
    return value.replace('\\"', '"').replace("\\\\", "\\")


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def find_closing_brace(text: str, open_index: int) -> int:
    """Like ``find_matching_brace`` but braces inside double quotes are ignored."""
    return find_matching_brace(text, open_index, skip_quoted=True)


def timestamp_to_millis(timestamp: str | None) -> int | None:
    """Epoch milliseconds for an ISO-8601 timestamp, or None if unparseable."""
    if not timestamp:
        return None
    value = timestamp.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return int(parsed.timestamp() * 1000)


def _string_fields(body: str) -> dict[str, str | None]:
    fields: dict[str, str | None] = {}
    for name, pattern in _STRING_FIELDS.items():
        match = pattern.search(body)
        fields[name] = _unescape(match.group(1)) if match else None
    return fields


def _status(value: str | None) -> str | None:
    if value is None or value.strip() in _NULL_TOKENS:
        return None
    return value


def parse_log_body(
    commit_id: str,
    text: str,
    start: int = 0,
    end: int | None = None,
    *,
    logger: logging.Logger | None = None,
) -> CommitRecord:
    """Build one CommitRecord from the block body ``text[start:end]``.

    Serialized prims keep offsets into ``text``.
    """
    end = len(text) if end is None else end
    fields_text = mask_nested_blocks(text[start:end], skip_quoted=True)
    fields = _string_fields(fields_text)

    entry_match = _ENTRY_RE.search(fields_text)
    if entry_match:
        entry = int(entry_match.group(1))
    else:
        entry = timestamp_to_millis(fields["timestamp"]) or 0

    staged_match = _STAGED_PRIMS_RE.search(fields_text)
    staged_prims: tuple[str, ...] = ()
    if staged_match:
        staged_prims = tuple(
            _unescape(path) for path in _QUOTED_RE.findall(staged_match.group(1)) if path
        )

    commit_type = fields["type"]
    if commit_type == "Promotion" and _status(fields["sourceStatusForHistory"]) is not None:
        source_status = _status(fields["sourceStatusForHistory"])
    else:
        source_status = _status(fields["sourceStatus"])

    file_size_match = _FILE_SIZE_RE.search(fields_text)

    return CommitRecord(
        id=commit_id,
        entry=entry,
        type=commit_type,
        parent=fields["parent"] or None,
        staged_prims=staged_prims,
        source_status=source_status,
        target_status=_status(fields["targetStatus"]),
        timestamp=fields["timestamp"],
        user=fields["user"],
        status=fields["status"],
        usd_reference_path=fields["usdReferencePath"] or fields["primPath"],
        file_name=fields["fileName"],
        content_hash=fields["contentHash"],
        file_size=int(file_size_match.group(1)) if file_size_match else None,
        old_name=fields["oldName"] or None,
        new_name=fields["newName"] or None,
        old_path=fields["oldPath"] or None,
        new_path=fields["newPath"] or None,
        entity_type=fields["entityType"],
        object_path=fields["objectPath"],
        serialized_prims=tuple(parse_prim_region(text, start, end, logger=logger)),
    )


def find_roots(commits: dict[str, CommitRecord]) -> tuple[str, ...]:
    """Ids whose parent is missing or points at an unknown commit."""
    return tuple(
        commit_id
        for commit_id, commit in commits.items()
        if not commit.parent or commit.parent not in commits
    )


def parse_statement_log(
    text: str | None,
    *,
    logger: logging.Logger | None = None,
) -> CommitGraph:
    """Parse every ``def "Log_<id>"`` block of a statement layer.

    A block whose closing brace is missing ends the scan; commits parsed
    before it are kept.
    """
    log = logger or _LOGGER
    commits: dict[str, CommitRecord] = {}
    if not text:
        return CommitGraph()

    position = 0
    while position < len(text):
        match = LOG_BLOCK_RE.search(text, position)
        if match is None:
            break
        commit_id = match.group(1)
        open_index = match.end() - 1
        close_index = find_closing_brace(text, open_index)
        if close_index == NOT_FOUND:
            log.error(f"Malformed log entry for {commit_id}: missing closing brace")
            break

        commits[commit_id] = parse_log_body(
            commit_id, text, open_index + 1, close_index, logger=log
        )
        position = close_index + 1

    graph = CommitGraph(commits=commits, roots=find_roots(commits))
    log.info(f"Parsed {len(commits)} commits ({len(graph.roots)} roots)")
    return graph


def _field_lines(record: CommitRecord) -> Iterable[str]:
    yield f"custom int entry = {int(record.entry)}"
    strings = (
        ("timestamp", record.timestamp),
        ("id", record.id),
        ("usdReferencePath", record.usd_reference_path),
        ("fileName", record.file_name),
        ("contentHash", record.content_hash),
    )
    for name, value in strings:
        if value is not None:
            yield f'custom string {name} = "{_escape(value)}"'
    if record.file_size is not None:
        yield f"custom int fileSize = {int(record.file_size)}"
    strings = (
        ("type", record.type),
        ("user", record.user),
        ("status", record.status),
        ("oldName", record.old_name),
        ("newName", record.new_name),
        ("oldPath", record.old_path),
        ("newPath", record.new_path),
        ("sourceStatus", record.source_status or "null"),
        ("targetStatus", record.target_status or "null"),
        ("parent", record.parent),
        ("entityType", record.entity_type),
        ("objectPath", record.object_path),
    )
    for name, value in strings:
        if value is not None:
            yield f'custom string {name} = "{_escape(value)}"'
    if record.staged_prims:
        staged = ", ".join(f'"{_escape(path)}"' for path in record.staged_prims)
        yield f"custom string[] stagedPrims = [{staged}]"


def compose_log_prim(record: CommitRecord, indent: str = "    ") -> str:
    """Render a CommitRecord as a ``Log_<id>`` block for a statement layer."""
    inner = indent * 2
    lines = [f'{indent}def "Log_{record.id}"', f"{indent}{{"]
    lines.extend(f"{inner}{line}" for line in _field_lines(record))
    for prim in record.serialized_prims:
        lines.append("")
        lines.append(f"{inner}{prim.raw_text}")
    lines.append(f"{indent}}}")
    return "\n" + "\n".join(lines) + "\n"
