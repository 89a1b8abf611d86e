#!/usr/bin/env python3
"""
Command-line interface for hierarchy targeting.

Provides commands for:
- Browsing taxonomy roots and children from the API or a snapshot
- Copying taxonomies from the API into a DuckDB snapshot
- Showing snapshot statistics
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from .core.errors import ErrorResponse, TargetingException, with_fallback
from .core.repository import TaxonomyRepository
from .models.taxonomy_models import HierarchyNode, Level, TaxonomyKind, chain_for, next_level
from .observability.logging import get_logger, log_operation, setup_logging
from .observability.metrics import initialize_metrics

logger = get_logger(__name__)


def _setup_logging(debug: bool = False) -> None:
    setup_logging(level="DEBUG" if debug else "INFO", format="text")


def _snapshot_path(args) -> Path | None:
    if args.database:
        return Path(args.database)
    from .config import get_repository_config

    return get_repository_config().snapshot_path


def _open_snapshot(args):
    from .core.snapshot_repository import SnapshotTaxonomyRepository

    path = _snapshot_path(args)
    if path is None:
        print("No snapshot configured; pass --database or set TARGETING_SNAPSHOT_PATH")
        sys.exit(1)

    repo = SnapshotTaxonomyRepository(path)
    repo.connect()
    return repo


def build_repository(args) -> TaxonomyRepository:
    """Pick the HTTP or snapshot repository for a command."""
    source = args.source
    if source is None:
        source = "snapshot" if _snapshot_path(args) is not None else "http"

    if source == "snapshot":
        return _open_snapshot(args)

    from .core.http_repository import HTTPTaxonomyRepository

    return HTTPTaxonomyRepository.from_config()


def _print_nodes(nodes: list[HierarchyNode], as_json: bool) -> None:
    if as_json:
        print(json.dumps([node.to_dict() for node in nodes], ensure_ascii=False, indent=2))
        return
    if not nodes:
        print("(no items)")
    for node in nodes:
        print(f"  {node.id:<24} {node}")


def cmd_roots(args):
    """List the root nodes of a taxonomy."""
    _setup_logging(args.debug)

    taxonomy = TaxonomyKind(args.taxonomy.upper())
    chain = chain_for(taxonomy, args.national)
    if not chain:
        print(f"{taxonomy.value} has no levels")
        return

    repo = build_repository(args)

    async def run():
        try:
            return await repo.list_roots(taxonomy, chain[0])
        finally:
            await repo.close()

    nodes = asyncio.run(run())
    if not args.json:
        print(f"\n{taxonomy.value} {chain[0].value} roots")
        print("=" * 40)
    _print_nodes(nodes, args.json)


def cmd_children(args):
    """List the children of one node."""
    _setup_logging(args.debug)

    taxonomy = TaxonomyKind(args.taxonomy.upper())
    child_level = Level(args.level)
    repo = build_repository(args)

    async def run():
        try:
            return await repo.list_children(taxonomy, args.parent_id, child_level)
        finally:
            await repo.close()

    nodes = asyncio.run(run())
    if not args.json:
        print(f"\n{child_level.value} children of {args.parent_id}")
        print("=" * 40)
    _print_nodes(nodes, args.json)


async def _crawl(
    repo: TaxonomyRepository, taxonomy: TaxonomyKind, include_national_level: bool
) -> list[HierarchyNode]:
    """Fetch a whole taxonomy, preferring the pre-nested tree endpoint."""
    chain = chain_for(taxonomy, include_national_level)

    async def expand(nodes: list[HierarchyNode], level: Level) -> None:
        child_level = next_level(chain, level)
        if child_level is None:
            return
        for node in nodes:
            if not node.children_loaded:
                node.attach_children(await repo.list_children(taxonomy, node.id, child_level))
            await expand(node.children, child_level)

    async def flat() -> list[HierarchyNode]:
        roots = await repo.list_roots(taxonomy, chain[0])
        await expand(roots, chain[0])
        return roots

    if taxonomy == TaxonomyKind.EXPATRIATE or not repo.supports_tree(taxonomy):
        return await flat()

    async def tree() -> list[HierarchyNode]:
        roots = await repo.fetch_full_tree(taxonomy)
        # Tree payloads can stop early; fill the gaps level by level
        await expand(roots, roots[0].level if roots else chain[0])
        return roots

    nodes, _ = await with_fallback(tree, flat, "flat_crawl")
    return nodes


def cmd_load_snapshot(args):
    """Copy taxonomies from the API into the DuckDB snapshot."""
    _setup_logging(args.debug)

    from .core.http_repository import HTTPTaxonomyRepository

    kinds = (
        [TaxonomyKind(args.taxonomy.upper())]
        if args.taxonomy
        else [TaxonomyKind.ORIGINAL, TaxonomyKind.SECTOR, TaxonomyKind.EXPATRIATE]
    )

    snapshot = _open_snapshot(args)
    source = HTTPTaxonomyRepository.from_config()

    @log_operation("load_snapshot")
    async def run() -> dict[str, int]:
        counts = {}
        try:
            for kind in kinds:
                nodes = await _crawl(source, kind, args.national)
                counts[kind.value] = snapshot.insert_nodes(kind, nodes)
        finally:
            await source.close()
        return counts

    try:
        counts = asyncio.run(run())
    finally:
        snapshot.disconnect()

    for kind, count in counts.items():
        print(f"  {kind}: {count:,} nodes")


def cmd_stats(args):
    """Show snapshot statistics."""
    _setup_logging(args.debug)

    snapshot = _open_snapshot(args)
    try:
        stats = asyncio.run(snapshot.get_statistics())
    finally:
        snapshot.disconnect()

    print("\nHierarchy Snapshot Statistics")
    print("=" * 40)

    for taxonomy, levels in stats.get("taxonomies", {}).items():
        print(f"\n{taxonomy}:")
        for level, count in levels.items():
            print(f"  {level}: {count:,}")

    print(f"\nTotal nodes: {stats.get('total_nodes', 0):,}")


def main(argv: list[str] | None = None):
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="Hierarchy targeting CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  hierarchy-targeting roots original                   List regions
  hierarchy-targeting children original R1 locality    List localities of R1
  hierarchy-targeting --database h.duckdb load-snapshot
  hierarchy-targeting --database h.duckdb stats
        """,
    )

    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--database", type=str, help="Path to snapshot file (overrides environment)"
    )
    parser.add_argument(
        "--source",
        choices=["http", "snapshot"],
        default=None,
        help="Repository to read from (default: snapshot if configured, else http)",
    )
    parser.add_argument(
        "--national", action="store_true", help="Start geographic chains at the national level"
    )
    parser.add_argument("--json", action="store_true", help="Print nodes as JSON")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    taxonomy_choices = [kind.value.lower() for kind in TaxonomyKind]

    roots_parser = subparsers.add_parser("roots", help="List taxonomy roots")
    roots_parser.add_argument("taxonomy", choices=taxonomy_choices)
    roots_parser.set_defaults(func=cmd_roots)

    children_parser = subparsers.add_parser("children", help="List children of a node")
    children_parser.add_argument("taxonomy", choices=taxonomy_choices)
    children_parser.add_argument("parent_id", type=str, help="Parent node id")
    children_parser.add_argument(
        "level", choices=[level.value for level in Level], help="Level of the children"
    )
    children_parser.set_defaults(func=cmd_children)

    load_parser = subparsers.add_parser(
        "load-snapshot", help="Copy taxonomies from the API into the snapshot"
    )
    load_parser.add_argument(
        "--taxonomy", choices=taxonomy_choices, help="Only load one taxonomy"
    )
    load_parser.set_defaults(func=cmd_load_snapshot)

    stats_parser = subparsers.add_parser("stats", help="Show snapshot statistics")
    stats_parser.set_defaults(func=cmd_stats)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    from . import __version__

    initialize_metrics(version=__version__, repository=args.source or "auto")

    try:
        args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted")
        sys.exit(130)
    except TargetingException as e:
        logger.error(f"Command failed: {e}", data=e.to_dict())
        if args.json:
            print(json.dumps(ErrorResponse.from_exception(e).to_dict(), ensure_ascii=False))
        else:
            print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
