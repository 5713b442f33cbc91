"""Command line inspection of layer and statement files."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .commit_log import parse_statement_log
from .composer import compose_layer
from .config import TimelineConfig
from .geometry import extract_geometries
from .hierarchy import parse_prim_tree
from .model import PrimNode
from .path_registry import build_path_translation_registry, translate_path


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _format_prim(prim: PrimNode, depth: int) -> str:
    line = f"{'  ' * depth}{prim.specifier} {prim.type} {prim.path}"
    if prim.references:
        line += f" references={prim.references}"
    if prim.payload:
        line += f" payload={prim.payload}"
    properties = prim.properties.as_dict()
    if properties:
        line += " " + " ".join(f"{key}={value}" for key, value in sorted(properties.items()))
    return line


def _print_tree(prims: list[PrimNode] | tuple[PrimNode, ...], depth: int = 0) -> None:
    for prim in prims:
        print(_format_prim(prim, depth))
        _print_tree(prim.children, depth + 1)


def _cmd_hierarchy(args: argparse.Namespace, config: TimelineConfig) -> int:
    prims = parse_prim_tree(_read_text(args.layer))
    if args.usda:
        print(compose_layer(prims, args.status), end="")
    else:
        _print_tree(prims)
    return 0


def _cmd_geometry(args: argparse.Namespace, config: TimelineConfig) -> int:
    descriptors = extract_geometries(parse_prim_tree(_read_text(args.layer)), config=config)
    for descriptor in descriptors:
        if descriptor.type == "Mesh":
            detail = f"points={len(descriptor.points)} triangles={descriptor.triangle_count}"
        elif descriptor.type == "Sphere":
            detail = f"radius={descriptor.radius}"
        else:
            detail = f"size={descriptor.size} wireframe={descriptor.is_wireframe}"
        print(f"{descriptor.type:<6} {descriptor.name} {detail}")
    print(f"geometries={len(descriptors)}")
    return 0


def _cmd_log(args: argparse.Namespace, config: TimelineConfig) -> int:
    graph = parse_statement_log(_read_text(args.statement))
    if not graph.commits:
        print("no commits found in log", file=sys.stderr)
        return 1
    for commit in sorted(graph.commits.values(), key=lambda c: c.entry):
        parent = commit.parent or "-"
        print(
            f"{commit.entry:>6} {commit.id} {commit.type or '?'} "
            f"parent={parent} staged={len(commit.staged_prims)}"
        )
    print(f"roots={','.join(graph.roots)}")
    return 0


def _cmd_translate(args: argparse.Namespace, config: TimelineConfig) -> int:
    registry = build_path_translation_registry(parse_statement_log(_read_text(args.statement)))
    for path in args.paths:
        print(f"{path} -> {translate_path(path, registry)}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="usda-timeline",
        description="Inspect USDA layers and the commit history kept in a statement layer.",
    )
    parser.add_argument("--verbose", action="store_true", help="log parser diagnostics")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help=".env file with USDA_TIMELINE_* settings",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    hierarchy = commands.add_parser("hierarchy", help="print the prim tree of a layer")
    hierarchy.add_argument("layer", type=Path)
    hierarchy.add_argument("--usda", action="store_true", help="print the tree recomposed as USDA text")
    hierarchy.add_argument("--status", default=None, help="status token for prims without one (with --usda)")
    hierarchy.set_defaults(handler=_cmd_hierarchy)

    geometry = commands.add_parser("geometry", help="list renderable geometry of a layer")
    geometry.add_argument("layer", type=Path)
    geometry.set_defaults(handler=_cmd_geometry)

    log = commands.add_parser("log", help="list the commits of a statement layer")
    log.add_argument("statement", type=Path)
    log.set_defaults(handler=_cmd_log)

    translate = commands.add_parser("translate", help="map historical prim paths to current ones")
    translate.add_argument("statement", type=Path)
    translate.add_argument("paths", nargs="+")
    translate.set_defaults(handler=_cmd_translate)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        config = TimelineConfig.from_env(args.env_file)
    except ValueError as exc:
        print(f"invalid configuration: {exc}", file=sys.stderr)
        return 2
    try:
        return args.handler(args, config)
    except FileNotFoundError as exc:
        print(f"file not found: {exc.filename}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
