"""usda_timeline -- USDA layer parsing and rename-aware commit history.

Core modules:
  - model:          Data model (PrimNode, GeometryDescriptor, CommitGraph, ...)
  - hierarchy:      Brace matching and prim tree parsing
  - composer:       USDA text from a prim tree
  - geometry:       Mesh/Sphere/Cube descriptors for the renderer
  - commit_log:     Statement-layer commit log parsing and composition
  - path_registry:  Rename registry and historical path translation
  - config:         Environment-driven configuration
"""

from .commit_log import compose_log_prim, parse_statement_log
from .composer import compose_layer, compose_prims, compose_stage
from .config import TimelineConfig
from .geometry import extract_geometries, geometries_to_stage, parse_usda
from .hierarchy import (
    NOT_FOUND,
    append_to_prim,
    find_matching_brace,
    get_prim_hierarchy,
    parse_prim_region,
    parse_prim_tree,
)
from .model import (
    CommitGraph,
    CommitRecord,
    GeometryDescriptor,
    PathTranslationRegistry,
    PrimNode,
    PrimProperties,
    RenameEvent,
)
from .path_registry import (
    build_path_translation_registry,
    translate_path,
    translate_prim_paths,
)

__all__ = [
    # model
    "CommitGraph",
    "CommitRecord",
    "GeometryDescriptor",
    "NOT_FOUND",
    "PathTranslationRegistry",
    "PrimNode",
    "PrimProperties",
    "RenameEvent",
    "TimelineConfig",
    # operations
    "append_to_prim",
    "build_path_translation_registry",
    "compose_layer",
    "compose_log_prim",
    "compose_prims",
    "compose_stage",
    "extract_geometries",
    "find_matching_brace",
    "geometries_to_stage",
    "get_prim_hierarchy",
    "parse_prim_region",
    "parse_prim_tree",
    "parse_statement_log",
    "parse_usda",
    "translate_path",
    "translate_prim_paths",
]
