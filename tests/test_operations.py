"""Tests for add/update/remove and their compound side effects."""

import re

import pytest

from volumetree.config import EditorConfig, PropagationScope
from volumetree.core.graph import VolumeGraph
from volumetree.core.volume import WORLD_NAME
from volumetree.errors import FormatError, InvariantViolation, VolumeNotFoundError
from volumetree.operations import add_volume, assign_project_compound_ids, remove_volume, update_volume

from conftest import build_graph


def test_first_box_gets_default_label(names):
    graph, volume = add_volume(VolumeGraph(), {"type": "box"}, names)
    assert re.fullmatch(r"box_\d+_[0-9a-z]{8}", volume.name)
    assert volume.display_name == "Box_1"
    assert volume.parent_name == WORLD_NAME

    graph, second = add_volume(graph, {"type": "box", "displayName": "NewBox"}, names)
    assert second.display_name == "Box_2"
    assert len(graph) == 2


def test_add_keeps_explicit_label_and_requested_name(names):
    graph, volume = add_volume(VolumeGraph(), {"type": "sphere", "name": "lens", "displayName": "Lens"}, names, keep_name=True)
    assert volume.name == "lens"
    assert volume.display_name == "Lens"
    _, other = add_volume(graph, {"type": "sphere", "name": "lens"}, names, keep_name=True)
    assert other.name != "lens"


def test_add_requires_type(names):
    with pytest.raises(FormatError):
        add_volume(VolumeGraph(), {"name": "x"}, names)


def test_add_under_missing_parent_goes_to_world(names):
    _, volume = add_volume(VolumeGraph(), {"type": "box", "mother_volume": "ghost"}, names)
    assert volume.mother_volume == WORLD_NAME


def test_new_assembly_is_its_own_template(names):
    _, volume = add_volume(VolumeGraph(), {"type": "assembly"}, names)
    assert volume.compound_id == volume.name


def test_add_into_assembly_inherits_identity(pmt_graph, names):
    _, volume = add_volume(pmt_graph, {"type": "box", "mother_volume": "glass"}, names)
    assert volume.compound_id == "cid-pmt"
    assert volume.component_id


def test_add_same_template_assembly_inside_itself(pmt_graph, names):
    _, volume = add_volume(
        pmt_graph, {"type": "assembly", "mother_volume": "pmt", "_compoundId": "cid-pmt"}, names,
    )
    assert volume.mother_volume == WORLD_NAME


def test_rename_propagates_to_children(names):
    graph, parent = add_volume(VolumeGraph(), {"type": "box"}, names)
    graph, child = add_volume(graph, {"type": "sphere", "mother_volume": parent.name}, names)
    outcome = update_volume(graph, parent.name, {"name": "frame"})
    assert outcome.volume.name == "frame"
    assert outcome.graph.get(child.name).mother_volume == "frame"
    assert outcome.warnings == []


def test_update_missing_volume(pmt_graph):
    with pytest.raises(VolumeNotFoundError):
        update_volume(pmt_graph, "nope", {"material": "G4_Al"})
    with pytest.raises(FormatError):
        update_volume(pmt_graph, "glass", ["material"])


def test_move_under_own_descendant_goes_to_world(pmt_graph):
    outcome = update_volume(pmt_graph, "glass", {"mother_volume": "cathode"})
    assert outcome.volume.mother_volume == WORLD_NAME
    assert "cycle" in outcome.warnings[0]


def test_move_to_missing_parent(pmt_graph):
    outcome = update_volume(pmt_graph, "detector", {"mother_volume": "ghost"})
    assert outcome.volume.mother_volume == WORLD_NAME
    assert outcome.warnings


def test_same_template_assembly_move_rejected():
    graph = build_graph(
        {"name": "a1", "type": "assembly", "_compoundId": "cid"},
        {"name": "a2", "type": "assembly", "_compoundId": "cid"},
    )
    outcome = update_volume(graph, "a2", {"mother_volume": "a1"})
    assert outcome.volume.mother_volume == WORLD_NAME
    assert "same compound" in outcome.warnings[0]


def test_reparent_into_compound_stamps_subtree(pmt_graph):
    graph = build_graph(
        *[v.to_record() for v in pmt_graph.volumes],
        {"name": "holder", "type": "box"},
        {"name": "screw", "type": "box", "mother_volume": "holder"},
    )
    outcome = update_volume(graph, "holder", {"mother_volume": "glass"})
    assert outcome.volume.compound_id == "cid-pmt"
    assert outcome.graph.get("screw").compound_id == "cid-pmt"


def test_boolean_scope_limits_inheritance():
    config = EditorConfig(propagation_scope=PropagationScope.BOOLEAN)
    graph = build_graph(
        {"name": "u", "type": "union", "_compoundId": "cid-u"},
        {"name": "part", "type": "box", "_is_boolean_component": True},
        {"name": "plain", "type": "box"},
    )
    graph = update_volume(graph, "part", {"mother_volume": "u"}, config).graph
    graph = update_volume(graph, "plain", {"mother_volume": "u"}, config).graph
    assert graph.get("part").compound_id == "cid-u"
    assert graph.get("plain").compound_id is None


def test_remove_returns_count(pmt_graph):
    graph, removed = remove_volume(pmt_graph, "glass")
    assert removed == 2
    assert graph.names() == {WORLD_NAME, "detector", "pmt"}
    with pytest.raises(InvariantViolation):
        remove_volume(graph, WORLD_NAME)


def test_project_ids_nearest_template_wins():
    graph = build_graph(
        {"name": "outer", "type": "assembly"},
        {"name": "inner", "type": "assembly", "mother_volume": "outer"},
        {"name": "bolt", "type": "box", "mother_volume": "inner"},
        {"name": "plate", "type": "box", "mother_volume": "outer"},
    )
    graph = assign_project_compound_ids(graph)
    assert graph.get("outer").compound_id == "outer"
    assert graph.get("plate").compound_id == "outer"
    assert graph.get("inner").compound_id == "inner"
    assert graph.get("bolt").compound_id == "inner"
