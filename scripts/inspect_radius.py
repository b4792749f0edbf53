#!/usr/bin/env python3
"""Diagnostic tool for examining radius analysis results.

Reads radius CSV files written by the analyze-radius command and prints
status counts and the sparsest scopes.
"""

from __future__ import annotations

import argparse
from pathlib import Path

import pandas as pd


def main():
    parser = argparse.ArgumentParser(description="Inspect proximity radius analysis output")
    parser.add_argument(
        "output_dir",
        type=str,
        help="Output directory containing radius-*.csv files",
    )
    parser.add_argument(
        "--status",
        type=str,
        choices=["sufficient", "needs_proximity", "insufficient", "no_coordinates"],
        default=None,
        help="Filter by analysis status",
    )
    parser.add_argument(
        "--top",
        type=int,
        default=20,
        help="Number of sparsest scopes to show",
    )
    args = parser.parse_args()

    paths = sorted(Path(args.output_dir).glob("radius-*.csv"))
    if not paths:
        print(f"No radius files found in {args.output_dir}")
        return

    df = pd.concat([pd.read_csv(p).assign(source=p.name) for p in paths], ignore_index=True)
    print(f"\n{'='*60}")
    print(f"Radius Summary ({len(df)} scopes from {len(paths)} files)")
    print(f"{'='*60}")

    for status, count in df["status"].value_counts().items():
        pct = count / len(df) * 100
        print(f"  {status}: {count} ({pct:.1f}%)")

    searched = df[df["radius"] > 0]
    if not searched.empty:
        print(f"\nRecommended radius (scopes needing proximity):")
        print(f"  Mean: {searched['radius'].mean():.1f} mi")
        print(f"  Median: {searched['radius'].median():.1f} mi")
        print(f"  Max: {searched['radius'].max():.1f} mi")

    if args.status:
        df = df[df["status"] == args.status]
        print(f"\nSparsest {args.top} {args.status} scopes:")
    else:
        print(f"\nSparsest {args.top} scopes:")

    sparse = df.nsmallest(args.top, "direct_count")
    cols = ["scope_id", "name", "direct_count", "combined_count", "radius", "status"]
    print(sparse[cols].to_string(index=False))


if __name__ == "__main__":
    main()
