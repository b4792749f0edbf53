"""Command-line interface for directory rankings."""

from __future__ import annotations

import argparse
import sys

from directory_rankings.pipeline import DirectoryPipeline
from directory_rankings.ranking.job import MODE_FRESH, MODE_RESUME
from directory_rankings.utils.config import AppConfig, load_config
from directory_rankings.utils.errors import ConfigurationError
from directory_rankings.utils.types import ScopeKind


def _kind(value: str) -> ScopeKind:
    try:
        return ScopeKind(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid kind '{value}' (choose city or state)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="directory-rankings",
        description="Geographic rankings and proximity search for directory profiles",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Override output directory from config",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    update = sub.add_parser("update-rankings", help="Recompute stored ranks for a category")
    update.add_argument("category", help="Category id to rank")
    update.add_argument("--kind", type=_kind, default=ScopeKind.CITY, help="city or state")
    update.add_argument("--scope", default=None, help="Recompute a single scope")
    update.add_argument("--dry-run", action="store_true", help="Show what would change without writing")
    update.add_argument("--batch-size", type=int, default=None, help="Scopes per batch")
    update.add_argument("--delay", type=float, default=None, help="Seconds between scopes")
    update.add_argument("--batch-pause", type=float, default=None, help="Seconds between batches")
    mode = update.add_mutually_exclusive_group()
    mode.add_argument("--resume", dest="mode", action="store_const", const=MODE_RESUME,
                      help="Continue an interrupted run")
    mode.add_argument("--fresh", dest="mode", action="store_const", const=MODE_FRESH,
                      help="Discard any saved progress (default)")
    update.set_defaults(mode=MODE_FRESH)

    analyze = sub.add_parser("analyze-radius", help="Recommend proximity radii for sparse scopes")
    analyze.add_argument("--category", default=None, help="Count only this category")
    analyze.add_argument("--kind", type=_kind, default=ScopeKind.CITY, help="city or state")
    analyze.add_argument("--scope", default=None, help="Analyze a single scope")
    analyze.add_argument("--min-profiles", type=int, default=None, help="Profiles needed per scope")
    analyze.add_argument("--max-radius", type=float, default=None, help="Largest radius in miles")
    analyze.add_argument("--dry-run", action="store_true", help="Show results without saving")

    nearby = sub.add_parser("nearby", help="List profiles shown on a scope page")
    nearby.add_argument("scope", help="Scope id")
    nearby.add_argument("--category", dest="categories", action="append", required=True,
                        help="Category id (repeatable)")

    nearest = sub.add_parser("nearest-scopes", help="List the closest scopes of the same kind")
    nearest.add_argument("scope", help="Scope id")
    nearest.add_argument("--limit", type=int, default=5, help="Number of scopes")
    nearest.add_argument("--max-miles", type=float, default=None, help="Distance cutoff")

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for directory rankings."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config) if args.config else AppConfig()

    if args.output_dir:
        config.export.output_dir = args.output_dir

    if args.verbose:
        config.logging.level = "DEBUG"

    if args.command == "update-rankings":
        if args.batch_size is not None:
            config.job.batch_size = args.batch_size
        if args.delay is not None:
            config.job.delay = args.delay
        if args.batch_pause is not None:
            config.job.batch_pause = args.batch_pause
    elif args.command == "analyze-radius":
        if args.min_profiles is not None:
            config.proximity.min_profiles = args.min_profiles
        if args.max_radius is not None:
            config.proximity.max_radius = args.max_radius

    try:
        pipeline = DirectoryPipeline(config)
        try:
            return _dispatch(pipeline, args)
        finally:
            pipeline.close()
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


def _dispatch(pipeline: DirectoryPipeline, args) -> int:
    if args.command == "update-rankings":
        summary = pipeline.update_rankings(
            args.kind,
            args.category,
            mode=args.mode,
            dry_run=args.dry_run,
            scope_id=args.scope,
        )
        prefix = "[dry-run] " if summary.dry_run else ""
        print(
            f"\n{prefix}Rankings update complete: {summary.processed}/{summary.total} scopes, "
            f"{summary.updated} updated, {summary.skipped} skipped, {summary.errored} errors."
        )
        for scope_id, message in summary.errors:
            print(f"  {scope_id}: {message}")
        return 0 if summary.succeeded else 1

    if args.command == "analyze-radius":
        results, counts = pipeline.analyze_radius(
            args.kind, args.category, dry_run=args.dry_run, scope_id=args.scope
        )
        for r in results:
            radius = "-" if r.radius is None else f"{r.radius:g}"
            print(f"{r.name or r.scope_id}: {r.direct_count} direct, {r.combined_count} combined, "
                  f"radius {radius} ({r.status.value})")
        print("\nSummary: " + ", ".join(f"{k}={v}" for k, v in sorted(counts.items())))
        return 0

    if args.command == "nearby":
        for profile_id in pipeline.nearby_profiles(args.scope, args.categories):
            print(profile_id)
        return 0

    if args.command == "nearest-scopes":
        for scope, miles in pipeline.nearest_scopes(args.scope, args.limit, args.max_miles):
            print(f"{scope.scope_id}\t{scope.name}\t{miles:.1f} mi")
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
