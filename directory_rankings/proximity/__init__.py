"""Proximity radius analysis, nearby-profile listing and its cache."""

from directory_rankings.proximity.cache import ProximityCache
from directory_rankings.proximity.query import NearbyProfilesQuery
from directory_rankings.proximity.search import NO_SEARCH_RADIUS, ProximitySearch

__all__ = ["NO_SEARCH_RADIUS", "NearbyProfilesQuery", "ProximityCache", "ProximitySearch"]
