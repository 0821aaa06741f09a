"""Main entry point for volumetree."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from .codec import decode
from .compound import extract_object, import_object, sync_instances
from .config import EditorConfig, load_config
from .core.graph import VolumeGraph
from .core.naming import strip_index_suffix
from .core.resolver import TransformResolver
from .core.volume import WORLD_NAME
from .errors import GeometryError
from .project import Project, load_project, save_project
from .session import GeometryEditor
from .storage import FileSystemStorage, ObjectLibrary

logger = logging.getLogger(__name__)


def _read_json(path: Path) -> Any:
    with open(path) as f:
        return json.load(f)


def _write_json(data: Any, output: str | None) -> None:
    text = json.dumps(data, indent=2)
    if output:
        Path(output).write_text(text + "\n")
        print(f"Wrote {output}")
    else:
        print(text)


def _print_tree(graph: VolumeGraph) -> None:
    resolver = TransformResolver(graph)
    print(f"Project contains {len(graph)} volumes:")

    def show(name: str, depth: int) -> None:
        volume = graph.get(name)
        position = resolver.world_transform(volume).translation
        compound = f" [{volume.compound_id}]" if volume.compound_id else ""
        where = "" if volume.is_world else f" @ ({position[0]:g}, {position[1]:g}, {position[2]:g})"
        print(f"{'  ' * depth}- {volume.label} ({volume.type}){compound}{where}")
        for child in graph.children_of(name):
            show(child.name, depth + 1)

    show(WORLD_NAME, 0)


def cmd_tree(args: argparse.Namespace, config: EditorConfig) -> int:
    project = load_project(args.project, config)
    _print_tree(project.graph)
    return 0


def cmd_encode(args: argparse.Namespace, config: EditorConfig) -> int:
    editor = GeometryEditor(load_project(args.project, config), config)
    _write_json(editor.encode(), args.output)
    return 0


def cmd_decode(args: argparse.Namespace, config: EditorConfig) -> int:
    graph = decode(_read_json(args.document))
    _write_json(Project(graph).to_dict(), args.output)
    return 0


def cmd_export(args: argparse.Namespace, config: EditorConfig) -> int:
    project = load_project(args.project, config)
    library = ObjectLibrary(FileSystemStorage(args.library))
    payload = extract_object(project.graph, args.volume, library.names, config)
    file_name = library.save(
        args.name or strip_index_suffix(project.graph.get(args.volume).label),
        payload,
        description=args.description,
        preserve_component_ids=args.preserve_ids,
    )
    print(f"Saved {args.volume} to {Path(args.library) / file_name}")
    return 0


def cmd_import(args: argparse.Namespace, config: EditorConfig) -> int:
    project = load_project(args.project, config)
    library = ObjectLibrary(FileSystemStorage(args.library))
    payload = library.load(args.object)
    result = import_object(project.graph, payload, args.parent, library.names, config=config)
    for warning in result.warnings:
        print(f"warning: {warning}", file=sys.stderr)
    output = args.output or args.project
    save_project(Project(result.graph, project.materials, project.hit_collections), output)
    print(f"Imported {result.root_name} into {output}")
    return 0


def cmd_sync(args: argparse.Namespace, config: EditorConfig) -> int:
    project = load_project(args.project, config)
    result = sync_instances(project.graph, args.source, args.targets or None)
    for warning in result.warnings:
        print(f"warning: {warning}", file=sys.stderr)
    output = args.output or args.project
    save_project(Project(result.graph, project.materials, project.hit_collections), output)
    print(f"Updated {result.updated_count} instances of {args.source} in {output}")
    return 0


def cmd_list(args: argparse.Namespace, config: EditorConfig) -> int:
    library = ObjectLibrary(FileSystemStorage(args.library))
    for entry in library.list():
        description = f" - {entry['description']}" if entry["description"] else ""
        print(f"{entry['fileName']}: {entry['name']}{description}")
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Volumetree - Geant4 volume hierarchy tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-c", "--config",
        metavar="PATH",
        help="YAML editor configuration (default: built-in defaults)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    tree = commands.add_parser("tree", help="Print the volume hierarchy of a project")
    tree.add_argument("project", type=Path)
    tree.set_defaults(func=cmd_tree)

    enc = commands.add_parser("encode", help="Write the multi-placement document of a project")
    enc.add_argument("project", type=Path)
    enc.add_argument("-o", "--output", metavar="PATH", help="Output file (default: stdout)")
    enc.set_defaults(func=cmd_encode)

    dec = commands.add_parser("decode", help="Rebuild a project from a multi-placement document")
    dec.add_argument("document", type=Path)
    dec.add_argument("-o", "--output", metavar="PATH", help="Output file (default: stdout)")
    dec.set_defaults(func=cmd_decode)

    export = commands.add_parser("export", help="Save a volume subtree to the object library")
    export.add_argument("project", type=Path)
    export.add_argument("volume", help="Internal name of the volume to export")
    export.add_argument("-l", "--library", default="objects", metavar="DIR", help="Library directory (default: objects)")
    export.add_argument("-n", "--name", help="Object name (default: the volume's display name without its index suffix)")
    export.add_argument("-d", "--description", default="", help="Object description")
    export.add_argument(
        "--preserve-ids",
        action="store_true",
        help="Keep component ids already known to the stored object of the same name",
    )
    export.set_defaults(func=cmd_export)

    imp = commands.add_parser("import", help="Insert a library object into a project")
    imp.add_argument("project", type=Path)
    imp.add_argument("object", help="Library file name, e.g. PMT.json")
    imp.add_argument("-l", "--library", default="objects", metavar="DIR", help="Library directory (default: objects)")
    imp.add_argument("-p", "--parent", help="Parent volume (default: World)")
    imp.add_argument("-o", "--output", metavar="PATH", help="Output project (default: overwrite input)")
    imp.set_defaults(func=cmd_import)

    sync = commands.add_parser("sync", help="Copy an edited template instance onto its other instances")
    sync.add_argument("project", type=Path)
    sync.add_argument("source", help="Internal name of the edited instance root")
    sync.add_argument("-t", "--targets", nargs="+", metavar="NAME", help="Instances to update (default: all others)")
    sync.add_argument("-o", "--output", metavar="PATH", help="Output project (default: overwrite input)")
    sync.set_defaults(func=cmd_sync)

    lst = commands.add_parser("list", help="List the objects in the library")
    lst.add_argument("-l", "--library", default="objects", metavar="DIR", help="Library directory (default: objects)")
    lst.set_defaults(func=cmd_list)

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run the volumetree command line."""
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, GeometryError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    level = config.log_level
    if args.verbose == 1:
        level = "INFO"
    elif args.verbose > 1:
        level = "DEBUG"
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        return args.func(args, config)
    except (OSError, json.JSONDecodeError, GeometryError) as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
