"""Tests for extracting a subtree and importing it back as template instances."""

import pytest

from volumetree.compound.exporter import extract_object
from volumetree.compound.importer import import_object
from volumetree.core.graph import VolumeGraph
from volumetree.core.volume import WORLD_NAME
from volumetree.errors import FormatError, VolumeNotFoundError

from conftest import build_graph


def test_export_collects_subtree(pmt_graph, names):
    payload = extract_object(pmt_graph, "pmt", names)
    assert payload.object.name == "pmt"
    assert [d.name for d in payload.descendants] == ["glass", "cathode"]
    assert payload.compound_id == "cid-pmt"
    assert all(d.compound_id == "cid-pmt" for d in payload.descendants)
    assert not payload.is_world


def test_export_derives_stable_id_and_component_ids(names):
    graph = build_graph(
        {"name": "frame", "type": "assembly"},
        {"name": "leg", "type": "box", "mother_volume": "frame", "_instanceId": "instance-x"},
    )
    payload = extract_object(graph, "frame", names)
    assert payload.compound_id == "compound-frame-assembly"
    assert payload.descendants[0].component_id
    assert payload.descendants[0].instance_id is None
    # Exporting never mutates the graph
    assert graph.get("frame").compound_id is None


def test_export_uses_live_record(pmt_graph, names):
    stale = pmt_graph.get("pmt").replace(mother_volume="detector", is_active=True)
    payload = extract_object(pmt_graph, stale, names)
    assert payload.object.parent_name == WORLD_NAME
    assert payload.object.is_active is None


def test_export_world(pmt_graph, names):
    payload = extract_object(pmt_graph, WORLD_NAME, names)
    assert payload.is_world
    assert payload.compound_id is None
    assert len(payload.descendants) == 4
    assert "_compoundId" not in payload.to_dict()


def test_export_missing_volume(pmt_graph, names):
    with pytest.raises(VolumeNotFoundError):
        extract_object(pmt_graph, "ghost", names)


def test_import_twice_shares_identity(pmt_graph, names):
    payload = extract_object(pmt_graph, "pmt", names).to_dict()
    payload["metadata"] = {"name": "PMT"}
    target = VolumeGraph()

    first = import_object(target, payload, names=names)
    second = import_object(first.graph, payload, names=names)
    graph = second.graph

    assert first.root_name == "pmt"
    assert second.root_name != "pmt"
    assert first.compound_id == second.compound_id == "cid-pmt"
    assert len(graph) == 6
    assert all(v.compound_id == "cid-pmt" for v in graph)
    assert graph.get(first.root_name).display_name == "PMT_0"
    assert graph.get(second.root_name).display_name == "PMT_1"
    assert graph.selected == second.root_name
    # Descendants are renamed and re-linked inside their own instance
    second_glass = second.name_mapping["glass"]
    assert graph.get(second_glass).mother_volume == second.root_name
    assert graph.get(second.name_mapping["cathode"]).mother_volume == second_glass
    # The importing graph was not modified
    assert len(target) == 0


def test_import_under_parent(pmt_graph, names):
    payload = extract_object(pmt_graph, "glass", names).to_dict()
    result = import_object(pmt_graph, payload, parent="detector", names=names)
    root = result.graph.get(result.root_name)
    assert root.mother_volume == "detector"
    assert root.instance_id.startswith("instance-glass-")
    assert all(result.graph.get(n).instance_id is None for n in result.name_mapping.values() if n != result.root_name)


def test_import_into_missing_parent(names):
    payload = {"object": {"name": "a", "type": "box"}, "descendants": []}
    result = import_object(VolumeGraph(), payload, parent="ghost", names=names)
    assert result.graph.get("a").mother_volume == WORLD_NAME
    assert result.warnings


def test_import_nested_same_template_assembly_goes_to_world(names):
    payload = {
        "object": {"name": "outer", "type": "assembly"},
        "descendants": [{"name": "inner", "type": "assembly", "mother_volume": "outer"}],
        "_compoundId": "cid",
    }
    result = import_object(VolumeGraph(), payload, names=names)
    inner = result.graph.get(result.name_mapping["inner"])
    assert inner.mother_volume == WORLD_NAME
    assert any("same compound" in w for w in result.warnings)


def test_import_dangling_descendant_parent(names):
    payload = {
        "object": {"name": "root", "type": "assembly"},
        "descendants": [{"name": "lost", "type": "box", "mother_volume": "nowhere"}],
    }
    result = import_object(VolumeGraph(), payload, names=names)
    assert result.graph.get(result.name_mapping["lost"]).mother_volume == WORLD_NAME
    assert result.compound_id == "compound-root-assembly"


@pytest.mark.parametrize("payload", [
    None,
    {"descendants": []},
    {"object": {"name": "a", "type": "box"}},
    {"object": {"name": "a", "type": "box"}, "descendants": {}},
    {"object": {"name": "a", "type": "blob"}, "descendants": []},
])
def test_malformed_payload(payload, names):
    graph = VolumeGraph()
    with pytest.raises(FormatError):
        import_object(graph, payload, names=names)
    assert len(graph) == 0
