"""Tests for the multi-placement document encoder and decoder."""

import logging

import numpy as np
import pytest

from volumetree.codec import decode, encode, parse_color, resolve_color
from volumetree.codec.placements import decode_placement, encode_placement
from volumetree.compound.exporter import extract_object
from volumetree.compound.importer import import_object
from volumetree.core.graph import VolumeGraph
from volumetree.core.resolver import TransformResolver
from volumetree.core.volume import WORLD_NAME, Vector3
from volumetree.errors import FormatError
from volumetree.materials import Material, MaterialTable
from volumetree.storage import MemoryStorage, ObjectLibrary

from conftest import build_graph


def _structure(graph):
    """Label-path tree of a graph, independent of internal names."""
    def path(volume):
        labels = [volume.label]
        labels.extend(a.label for a in graph.ancestors_of(volume.name))
        return "/".join(reversed(labels))

    return sorted((path(v), v.type, v.compound_id) for v in graph)


def test_placement_record():
    record = encode_placement(Vector3(1, 2, 3, "cm"), Vector3(0, 90, 0), "World")
    assert record == {
        "x": 1, "y": 2, "z": 3, "unit": "cm",
        "rotation": {"x": 0, "y": 90, "z": 0, "unit": "deg"},
        "parent": "World",
    }
    position, rotation, parent = decode_placement(record)
    assert position == Vector3(1.0, 2.0, 3.0, "cm")
    assert rotation == Vector3(0.0, 90.0, 0.0, "deg")
    assert parent == "World"


def test_world_entry_is_hidden_wireframe(pmt_graph):
    world = encode(pmt_graph)["world"]
    assert world["name"] == WORLD_NAME
    assert world["visible"] is False
    assert world["wireframe"] is True
    assert world["dimensions"] == {"x": 200.0, "y": 200.0, "z": 200.0}


def test_standalone_and_compound_entries(pmt_graph):
    document = encode(pmt_graph)
    standalone, compound = document["volumes"]

    assert standalone["name"] == "detector"
    assert standalone["g4name"] == "Detector"
    assert standalone["placements"][0]["parent"] == WORLD_NAME
    assert standalone["isActive"] is False

    assert compound["type"] == "assembly"
    assert compound["name"] == "PMT"
    assert compound["_compoundId"] == "cid-pmt"
    assert [p["name"] for p in compound["placements"]] == ["pmt"]
    assert compound["placements"][0]["z"] == 100
    components = {c["name"]: c for c in compound["components"]}
    assert components["PMT"]["placements"][0]["parent"] == ""
    assert components["Glass"]["placements"][0]["parent"] == "PMT"
    assert components["Cathode"]["placements"][0]["parent"] == "Glass"
    assert components["Cathode"]["hitsCollectionName"] == "PMTHits"


def test_identical_instances_share_one_entry(pmt_graph, names):
    payload = extract_object(pmt_graph, "pmt", names).to_dict()
    graph = pmt_graph
    for _ in range(2):
        graph = import_object(graph, payload, names=names, template_name="PMT").graph
    labels = sorted(v.label for v in graph if v.type == "assembly")
    assert labels == ["PMT_0", "PMT_1", "PMT_2"]

    compounds = [e for e in encode(graph)["volumes"] if "components" in e]
    assert len(compounds) == 1
    assert sorted(p["g4name"] for p in compounds[0]["placements"]) == labels
    root = next(c for c in compounds[0]["components"] if c["name"] == "PMT")
    assert root["g4name"] == "PMT"


def test_library_instances_share_one_entry(pmt_graph, names):
    library = ObjectLibrary(MemoryStorage(), names)
    library.save("PMT", extract_object(pmt_graph, "pmt", names))
    graph = VolumeGraph()
    for _ in range(2):
        graph = import_object(graph, library.load("PMT.json"), names=names).graph

    compounds = [e for e in encode(graph)["volumes"] if "components" in e]
    assert len(compounds) == 1
    assert [p["g4name"] for p in compounds[0]["placements"]] == ["PMT_0", "PMT_1"]

    decoded = decode(encode(graph))
    assert sorted(v.label for v in decoded if v.type == "assembly") == ["PMT_0", "PMT_1"]


def test_nested_root_keeps_its_component_id():
    graph = build_graph(
        {"name": "rack", "type": "assembly", "_compoundId": "cid-rack"},
        {"name": "pmt", "displayName": "PMT_0", "type": "assembly", "mother_volume": "rack",
         "_compoundId": "cid-pmt", "_componentId": "component_r"},
        {"name": "glass", "type": "sphere", "mother_volume": "pmt", "_compoundId": "cid-pmt"},
    )
    document = encode(graph)
    entry = next(e for e in document["volumes"] if e.get("_compoundId") == "cid-pmt")
    assert entry["placements"][0]["_componentId"] == "component_r"
    assert all("_componentId" not in c for c in entry["components"] if c["name"] == "PMT")

    decoded = decode(document)
    assert decoded.get("pmt").component_id == "component_r"
    assert decoded.get("pmt").mother_volume == "rack"


def test_diverged_instances_are_kept_apart(pmt_graph, names):
    payload = extract_object(pmt_graph, "pmt", names).to_dict()
    result = import_object(pmt_graph, payload, names=names)
    graph = result.graph.update(result.name_mapping["glass"], {"radius": 99})
    compounds = [e for e in encode(graph)["volumes"] if "components" in e]
    assert len(compounds) == 2
    assert {c["name"] for c in compounds} == {"PMT"}


def test_hits_collections(pmt_graph):
    hits = encode(pmt_graph, hit_collections=["MyHitsCollection"])["hitsCollections"]
    assert {"name": "MyHitsCollection", "volumes": []} in hits
    assert {"name": "PMTHits", "volumes": ["Cathode"]} in hits


def test_round_trip_preserves_structure_and_poses(pmt_graph, names):
    payload = extract_object(pmt_graph, "pmt", names).to_dict()
    graph = import_object(pmt_graph, payload, parent="detector", names=names).graph
    graph = graph.update("detector", {"position": {"x": 30}, "rotation": {"z": 45}})

    decoded = decode(encode(graph))
    assert len(decoded) == len(graph)
    assert _structure(decoded) == _structure(graph)

    original = TransformResolver(graph)
    restored = TransformResolver(decoded)
    by_path = {}
    for volume in decoded:
        by_path.setdefault(volume.label, []).append(restored.world_transform(volume).translation)
    for volume in graph:
        positions = by_path[volume.label]
        expected = original.world_transform(volume).translation
        assert any(np.allclose(p, expected) for p in positions)


def test_decoded_component_names(pmt_graph):
    decoded = decode(encode(pmt_graph))
    assert decoded.get("pmt_Glass").mother_volume == "pmt"
    assert decoded.get("pmt_Cathode").mother_volume == "pmt_Glass"
    assert decoded.get("pmt_Cathode").display_name == "Cathode"
    assert decoded.get("pmt").compound_id == "cid-pmt"


def test_decode_uniquifies_standalone_placements():
    document = {
        "volumes": [{
            "type": "box", "name": "tile", "dimensions": {"x": 1, "y": 1, "z": 1},
            "placements": [{"x": 0, "parent": "World"}, {"x": 5, "parent": "World"}],
        }],
    }
    graph = decode(document)
    assert [v.name for v in graph] == ["tile", "tile_1"]
    assert graph.get("tile_1").position.x == 5
    assert graph.world.name == WORLD_NAME


def test_decode_unknown_parent_goes_to_world(caplog):
    document = {"volumes": [{"type": "box", "name": "a", "placements": [{"parent": "ghost"}]}]}
    with caplog.at_level(logging.WARNING):
        graph = decode(document)
    assert graph.get("a").mother_volume == WORLD_NAME
    assert "unknown parent 'ghost'" in caplog.text


@pytest.mark.parametrize("document", [
    [],
    {"volumes": {}},
    {"volumes": [42]},
    {"volumes": [{"type": "box", "placements": []}]},
    {"volumes": [{"type": "assembly", "name": "c", "components": []}]},
    {"volumes": [{"name": "a", "placements": [{}]}]},
])
def test_decode_rejects_malformed_documents(document):
    with pytest.raises(FormatError):
        decode(document)


def test_parse_color_forms():
    assert parse_color([1, 0, 0]) == {"r": 1.0, "g": 0.0, "b": 0.0, "a": 1.0}
    assert parse_color({"r": 2, "g": 0.5, "b": -1, "opacity": 0.3}) == {"r": 1.0, "g": 0.5, "b": 0.0, "a": 0.3}
    assert parse_color(None) is None
    with pytest.raises(FormatError):
        parse_color("red")


def test_color_falls_back_to_material_then_default():
    materials = MaterialTable({"Glass": Material("Glass", color={"r": 0, "g": 0, "b": 1, "a": 0.5})})
    assert resolve_color(None, materials["Glass"]) == {"r": 0.0, "g": 0.0, "b": 1.0, "a": 0.5}
    assert resolve_color([0, 1, 0], materials["Glass"])["g"] == 1.0
    assert resolve_color(None, None) == {"r": 0.7, "g": 0.7, "b": 0.7, "a": 1.0}


def test_encoded_color_uses_material():
    graph = build_graph({"name": "a", "type": "box", "material": "Blue"})
    materials = MaterialTable({"Blue": Material("Blue", color={"r": 0, "g": 0, "b": 1, "a": 1})})
    entry = encode(graph, materials)["volumes"][0]
    assert entry["color"] == {"r": 0.0, "g": 0.0, "b": 1.0, "a": 1.0}
