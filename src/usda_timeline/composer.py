"""USDA text from a prim tree; the inverse of ``hierarchy.parse_prim_tree``.

Every composed prim carries a ``primvars:status`` token: its own status, else
the layer status, else ``"Published"``.
"""
from __future__ import annotations

from collections.abc import Sequence

from .model import PrimNode

DEFAULT_STATUS = "Published"
_INDENT = "    "


def format_target(target: str) -> str:
    """``@asset@`` or ``@asset@</Path>``; bare ``asset`` or ``asset@</Path>`` get wrapped."""
    target = target.strip()
    asset, marker, prim_path = target.partition("@<")
    asset = asset.strip("@")
    return f"@{asset}@<{prim_path}" if marker else f"@{asset}@"


def _custom_data_line(key: str, value: object) -> str:
    if isinstance(value, bool):
        return f"bool {key} = {int(value)}"
    if isinstance(value, int):
        return f"int {key} = {value}"
    if isinstance(value, float):
        return f"double {key} = {value}"
    return f'string {key} = "{value}"'


def _metadata(prim: PrimNode, indent: str) -> str:
    lines: list[str] = []
    if prim.references:
        lines.append(f"{indent}{_INDENT}prepend references = {format_target(prim.references)}")
    if prim.payload:
        lines.append(f"{indent}{_INDENT}prepend payload = {format_target(prim.payload)}")
    if prim.custom_data:
        lines.append(f"{indent}{_INDENT}customData = {{")
        lines.extend(
            f"{indent}{_INDENT * 2}{_custom_data_line(key, value)}"
            for key, value in prim.custom_data.items()
        )
        lines.append(f"{indent}{_INDENT}}}")
    if not lines:
        return ""
    return " (\n" + "\n".join(lines) + f"\n{indent})"


def _property_lines(prim: PrimNode, layer_status: str | None) -> list[str]:
    properties = prim.properties
    lines: list[str] = []
    if properties.display_color is not None:
        r, g, b = properties.display_color
        lines.append(f"color3f[] primvars:displayColor = [({r}, {g}, {b})]")
    if properties.display_name:
        lines.append(f'custom string primvars:displayName = "{properties.display_name}"')
    status = properties.status or layer_status or DEFAULT_STATUS
    lines.append(f'custom token primvars:status = "{status}"')
    if properties.opacity is not None:
        lines.append(f"float opacity = {properties.opacity}")
    if properties.entity_type:
        lines.append(f'custom string primvars:entityType = "{properties.entity_type}"')
    return lines


def _composed_type(prim: PrimNode) -> str:
    # Xform holding referenced meshes is written as a Scope container.
    if prim.type == "Xform" and any(
        child.type == "Mesh" and (child.references or child.payload) for child in prim.children
    ):
        return "Scope"
    return prim.type


def compose_prims(
    prims: Sequence[PrimNode] | None,
    indent: int = 0,
    layer_status: str | None = None,
) -> str:
    """Serialize ``prims`` and their children as nested USDA prim blocks."""
    if not prims:
        return ""
    pad = _INDENT * indent
    blocks: list[str] = []
    for prim in prims:
        specifier = prim.specifier or "def"
        block = (
            f'{pad}{specifier} {_composed_type(prim)} "{prim.name}"{_metadata(prim, pad)}\n'
            f"{pad}{{"
        )
        for line in _property_lines(prim, layer_status):
            block += f"\n{pad}{_INDENT}{line}"
        if prim.children:
            block += "\n" + compose_prims(prim.children, indent + 1, layer_status)
        block += f"\n{pad}}}\n"
        blocks.append(block)
    return "".join(blocks)


def compose_layer(
    prims: Sequence[PrimNode] | None,
    layer_status: str | None = None,
    *,
    up_axis: str = "Z",
) -> str:
    """A complete ``#usda 1.0`` layer whose default prim is the first root."""
    default_prim = prims[0].name if prims else "World"
    definitions = compose_prims(prims, 0, layer_status)
    return (
        f'#usda 1.0\n(\n    defaultPrim = "{default_prim}"\n    upAxis = "{up_axis}"\n)\n'
        f"{definitions}\n"
    )


def compose_stage(
    scene_name: str,
    prims: Sequence[PrimNode] | None,
    layer_status: str | None = None,
) -> str:
    """Stage layer wrapping ``prims`` in one assembly root named after the scene."""
    root = "".join(scene_name.split())
    definitions = compose_prims(prims, 1, layer_status)
    return (
        f'#usda 1.0\n(\n    defaultPrim = "{root}"\n    metersPerUnit = 1.0\n    upAxis = "Z"\n)\n\n'
        f'def Xform "{root}" (\n    kind = "assembly"\n)\n{{\n{definitions}\n}}\n'
    )
