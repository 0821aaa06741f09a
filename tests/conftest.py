"""Shared fixtures: deterministic naming and a small detector geometry."""

import itertools
import random

import pytest

from volumetree.core.graph import VolumeGraph
from volumetree.core.naming import NameGenerator
from volumetree.core.volume import Volume


def build_graph(*records, selected=None) -> VolumeGraph:
    """Build a graph from editable volume records."""
    return VolumeGraph(volumes=tuple(Volume.from_record(r) for r in records), selected=selected)


@pytest.fixture
def names() -> NameGenerator:
    """Name generator with a ticking clock and a seeded token source."""
    ticks = itertools.count(1_700_000_000_000)
    return NameGenerator(clock=lambda: next(ticks) / 1000, rng=random.Random(42))


@pytest.fixture
def pmt_graph() -> VolumeGraph:
    """A standalone detector box plus one PMT assembly.

    World
      - detector (box)
      - pmt (assembly, compound cid-pmt)
        - glass (sphere)
          - cathode (box)
    """
    return build_graph(
        {"name": "detector", "displayName": "Detector", "type": "box",
         "size": {"x": 50, "y": 50, "z": 50}, "material": "G4_WATER"},
        {"name": "pmt", "displayName": "PMT_0", "type": "assembly",
         "position": {"x": 0, "y": 0, "z": 100}, "_compoundId": "cid-pmt"},
        {"name": "glass", "displayName": "Glass", "type": "sphere", "radius": 20,
         "mother_volume": "pmt", "position": {"x": 0, "y": 0, "z": 10},
         "_compoundId": "cid-pmt", "_componentId": "component_a"},
        {"name": "cathode", "displayName": "Cathode", "type": "box",
         "size": {"x": 5, "y": 5, "z": 1}, "mother_volume": "glass",
         "_compoundId": "cid-pmt", "_componentId": "component_b",
         "isActive": True, "hitsCollectionName": "PMTHits"},
    )
