"""Flat geometry descriptors (Mesh, Sphere, Cube) from a parsed prim tree."""
from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Any

import numpy as np

from .config import DEFAULT_CONFIG, TimelineConfig
from .hierarchy import parse_prim_tree
from .model import GeometryDescriptor, PrimNode

_LOGGER = logging.getLogger("usda_timeline.geometry")

_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_INT_TOKEN_RE = re.compile(r"[-+]?\d+")
_POINTS_RE = re.compile(r"point3f\[\]\s+points\s*=\s*\[([^\]]*)\]")
_INDICES_RE = re.compile(r"int\[\]\s+faceVertexIndices\s*=\s*\[([^\]]*)\]")
_RADIUS_RE = re.compile(r"double\s+radius\s*=\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)")
_SIZE_RE = re.compile(r"double\s+size\s*=\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)")
_SAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_]")


def _require_pxr() -> tuple[Any, Any, Any, Any]:
    try:
        from pxr import Gf, Usd, UsdGeom, Vt
    except ImportError as exc:  # pragma: no cover
        raise ImportError("OpenUSD Python bindings are required. Install `usd-core`.") from exc
    return Gf, Usd, UsdGeom, Vt


def _safe_prim_name(raw: str) -> str:
    value = _SAFE_NAME_RE.sub("_", raw).strip("_")
    if not value:
        value = "item"
    if value[0].isdigit():
        value = f"n_{value}"
    return value


def z_up_to_y_up(points: np.ndarray) -> np.ndarray:
    """Map ``(x, y, z)`` Z-up points to ``(x, z, -y)`` Y-up points."""
    points = np.asarray(points, dtype=np.float32).reshape(-1, 3)
    return np.column_stack((points[:, 0], points[:, 2], -points[:, 1])).astype(np.float32)


def parse_mesh_points(content: str) -> np.ndarray | None:
    """``point3f[] points`` as an ``(N, 3)`` array, or None when absent/malformed."""
    match = _POINTS_RE.search(content)
    if not match:
        return None
    values = [float(token) for token in _NUMBER_RE.findall(match.group(1))]
    if not values or len(values) % 3 != 0:
        return None
    return np.asarray(values, dtype=np.float32).reshape(-1, 3)


def parse_face_indices(content: str) -> np.ndarray | None:
    """``int[] faceVertexIndices`` as a flat triangle index array, or None."""
    match = _INDICES_RE.search(content)
    if not match:
        return None
    tokens = [token.strip() for token in match.group(1).split(",") if token.strip()]
    if not tokens or any(not _INT_TOKEN_RE.fullmatch(token) for token in tokens):
        return None
    if len(tokens) % 3 != 0:
        return None
    return np.asarray([int(token) for token in tokens], dtype=np.int32)


def _float_or_default(pattern: re.Pattern[str], content: str, default: float) -> float:
    match = pattern.search(content)
    return float(match.group(1)) if match else default


def _mesh_descriptor(
    prim: PrimNode,
    config: TimelineConfig,
    log: logging.Logger,
) -> GeometryDescriptor | None:
    content = prim.masked_content
    points = parse_mesh_points(content)
    indices = parse_face_indices(content)
    if points is None or indices is None:
        log.debug(f"Mesh {prim.path} has no usable points/faceVertexIndices")
        return None
    if indices.size and (indices.min() < 0 or indices.max() >= len(points)):
        log.warning(f"Mesh {prim.path} references points outside its point list")
        return None
    if config.convert_z_up:
        points = z_up_to_y_up(points)
    return GeometryDescriptor(
        name=prim.path[1:],
        type="Mesh",
        color=prim.properties.display_color,
        points=points,
        indices=indices,
        opacity=prim.properties.opacity,
    )


def extract_geometries(
    prims: Sequence[PrimNode] | None,
    *,
    config: TimelineConfig | None = None,
    logger: logging.Logger | None = None,
) -> list[GeometryDescriptor]:
    """Pre-order walk producing one descriptor per renderable prim."""
    config = config or DEFAULT_CONFIG
    log = logger or _LOGGER
    descriptors: list[GeometryDescriptor] = []
    if not prims:
        return descriptors

    for root in prims:
        for prim in root.walk():
            if prim.type == "Mesh":
                mesh = _mesh_descriptor(prim, config, log)
                if mesh is not None:
                    descriptors.append(mesh)
            elif prim.type == "Sphere":
                descriptors.append(
                    GeometryDescriptor(
                        name=prim.path[1:],
                        type="Sphere",
                        color=prim.properties.display_color,
                        radius=_float_or_default(
                            _RADIUS_RE, prim.masked_content, config.default_sphere_radius
                        ),
                    )
                )
            elif prim.type == "Cube":
                opacity = prim.properties.opacity
                descriptors.append(
                    GeometryDescriptor(
                        name=prim.path[1:],
                        type="Cube",
                        color=prim.properties.display_color,
                        size=_float_or_default(
                            _SIZE_RE, prim.masked_content, config.default_cube_size
                        ),
                        opacity=opacity if opacity is not None else config.default_cube_opacity,
                        is_wireframe=bool(prim.custom_data.get("isWireframe", False)),
                    )
                )

    log.debug(f"Extracted {len(descriptors)} geometries")
    return descriptors


def parse_usda(
    text: str,
    *,
    config: TimelineConfig | None = None,
    logger: logging.Logger | None = None,
) -> list[GeometryDescriptor]:
    return extract_geometries(
        parse_prim_tree(text, logger=logger), config=config, logger=logger
    )


def geometries_to_stage(
    descriptors: Sequence[GeometryDescriptor],
    *,
    up_axis: str = "Y",
) -> object:
    """Build an in-memory OpenUSD stage with one UsdGeom prim per descriptor."""
    Gf, Usd, UsdGeom, Vt = _require_pxr()

    stage = Usd.Stage.CreateInMemory()
    UsdGeom.SetStageUpAxis(stage, UsdGeom.Tokens.y if up_axis.upper() == "Y" else UsdGeom.Tokens.z)
    UsdGeom.SetStageMetersPerUnit(stage, 1.0)

    for descriptor in descriptors:
        segments = [_safe_prim_name(part) for part in descriptor.name.split("/") if part]
        if not segments:
            continue
        prim_path = "/" + "/".join(segments)

        if descriptor.type == "Mesh":
            mesh = UsdGeom.Mesh.Define(stage, prim_path)
            points = descriptor.points if descriptor.points is not None else np.empty((0, 3))
            indices = descriptor.indices if descriptor.indices is not None else np.empty((0,))
            mesh.CreatePointsAttr(
                Vt.Vec3fArray([Gf.Vec3f(float(p[0]), float(p[1]), float(p[2])) for p in points])
            )
            mesh.CreateFaceVertexIndicesAttr(Vt.IntArray([int(i) for i in indices]))
            mesh.CreateFaceVertexCountsAttr(Vt.IntArray([3] * descriptor.triangle_count))
            gprim = mesh
        elif descriptor.type == "Sphere":
            gprim = UsdGeom.Sphere.Define(stage, prim_path)
            gprim.CreateRadiusAttr(float(descriptor.radius or 1.0))
        elif descriptor.type == "Cube":
            gprim = UsdGeom.Cube.Define(stage, prim_path)
            gprim.CreateSizeAttr(float(descriptor.size or 1.0))
        else:
            continue

        if descriptor.color is not None:
            gprim.CreateDisplayColorAttr(Vt.Vec3fArray([Gf.Vec3f(*descriptor.color)]))
        if descriptor.opacity is not None:
            gprim.CreateDisplayOpacityAttr(Vt.FloatArray([float(descriptor.opacity)]))

    return stage
