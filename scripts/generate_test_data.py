#!/usr/bin/env python3
"""Generate a synthetic directory database for testing.

Creates a SQLite file with cities clustered inside a few states and
profiles scattered around them, some with missing or blank ratings, so
ranking and radius analysis have realistic sparse and dense scopes.
"""

from __future__ import annotations

import argparse
from pathlib import Path

import numpy as np

from directory_rankings.store.sqlite_store import SQLiteDirectoryStore
from directory_rankings.utils.types import Profile, ProfileMetrics, Scope, ScopeKind

# Rough centres of a few US states (lat, lon)
STATE_CENTRES = {
    "tx": ("Texas", 31.0, -99.0),
    "co": ("Colorado", 39.0, -105.5),
    "oh": ("Ohio", 40.3, -82.8),
}


def generate_directory(
    store: SQLiteDirectoryStore,
    cities_per_state: int = 8,
    num_profiles: int = 400,
    categories=("dog-trainer", "groomer"),
    seed: int = 42,
) -> dict:
    """Populate a store with synthetic scopes and profiles.

    Args:
        store: Empty SQLite store to fill.
        cities_per_state: Cities generated around each state centre.
        num_profiles: Total profiles to generate.
        categories: Category ids assigned at random.
        seed: Random seed.

    Returns:
        Counts of generated scopes and profiles.
    """
    rng = np.random.RandomState(seed)
    cities = []

    for state_id, (state_name, lat, lon) in STATE_CENTRES.items():
        store.add_scope(Scope(state_id, state_name, ScopeKind.STATE, lat, lon))
        for i in range(cities_per_state):
            city_lat = lat + rng.randn() * 1.2
            city_lon = lon + rng.randn() * 1.5
            city_id = f"{state_id}-city-{i + 1}"
            store.add_scope(Scope(city_id, f"{state_name} City {i + 1}", ScopeKind.CITY, city_lat, city_lon))
            cities.append((city_id, state_id, city_lat, city_lon))

    # Skewed city popularity so some cities stay sparse
    weights = rng.pareto(1.5, len(cities)) + 0.05
    weights /= weights.sum()

    for n in range(num_profiles):
        city_id, state_id, city_lat, city_lon = cities[rng.choice(len(cities), p=weights)]
        roll = rng.rand()
        if roll < 0.1:
            metrics = ProfileMetrics()
        elif roll < 0.15:
            metrics = ProfileMetrics(rating=0.0, review_count=0)
        else:
            metrics = ProfileMetrics(
                rating=round(float(np.clip(rng.normal(4.3, 0.5), 1.0, 5.0)), 1),
                review_count=int(rng.poisson(25)) + 1,
                boost=0.5 if rng.rand() < 0.03 else 0.0,
            )
        located = rng.rand() > 0.05
        store.add_profile(
            Profile(
                profile_id=str(n + 1),
                metrics=metrics,
                latitude=city_lat + rng.randn() * 0.05 if located else None,
                longitude=city_lon + rng.randn() * 0.05 if located else None,
                scope_ids={ScopeKind.CITY: [city_id], ScopeKind.STATE: [state_id]},
                category_ids=[categories[rng.randint(len(categories))]],
            )
        )

    return {"states": len(STATE_CENTRES), "cities": len(cities), "profiles": num_profiles}


def main():
    parser = argparse.ArgumentParser(description="Generate a synthetic directory database")
    parser.add_argument("--output", type=str, default="test_data/directory.db")
    parser.add_argument("--cities-per-state", type=int, default=8)
    parser.add_argument("--num-profiles", type=int, default=400)
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_path.exists():
        output_path.unlink()

    print(f"Generating directory: {args.num_profiles} profiles, {args.cities_per_state} cities per state")
    with SQLiteDirectoryStore(output_path) as store:
        counts = generate_directory(store, args.cities_per_state, args.num_profiles, seed=args.seed)

    print(f"States: {counts['states']}, cities: {counts['cities']}, profiles: {counts['profiles']}")
    print(f"Saved to {output_path}")


if __name__ == "__main__":
    main()
