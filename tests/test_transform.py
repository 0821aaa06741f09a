"""Tests for rigid transforms and world/local resolution."""

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from volumetree.core.resolver import TransformResolver
from volumetree.core.transform import Transform, euler_near, rotation_from_input
from volumetree.errors import CycleError

from conftest import build_graph


def test_compose_rotates_then_translates():
    parent = Transform.from_pose([10, 0, 0], [0, 0, 90])
    local = Transform.from_pose([5, 0, 0], [0, 0, 0])
    world = parent.compose(local)
    np.testing.assert_allclose(world.translation, [10, 5, 0], atol=1e-9)
    np.testing.assert_allclose(world.euler_degrees, [0, 0, 90], atol=1e-9)
    np.testing.assert_allclose((parent @ local).translation, world.translation)


def test_euler_order_is_intrinsic_xyz():
    transform = Transform.from_pose([0, 0, 0], [90, 90, 0])
    expected = Rotation.from_euler("x", 90, degrees=True) * Rotation.from_euler("y", 90, degrees=True)
    np.testing.assert_allclose(transform.rotation.as_matrix(), expected.as_matrix(), atol=1e-9)
    np.testing.assert_allclose(Transform.from_pose([0, 0, 0], [10, 20, 30]).euler_degrees, [10, 20, 30])


def test_inverse_undoes_compose():
    transform = Transform.from_pose([1, 2, 3], [30, -45, 60])
    result = transform.compose(transform.inverse())
    np.testing.assert_allclose(result.translation, [0, 0, 0], atol=1e-9)
    np.testing.assert_allclose(result.rotation.as_matrix(), np.eye(3), atol=1e-9)


def test_matrix_round_trip():
    transform = Transform.from_pose([4, -2, 7], [15, 25, 35])
    back = Transform.from_matrix(transform.to_matrix())
    np.testing.assert_allclose(back.translation, transform.translation)
    np.testing.assert_allclose(back.rotation.as_matrix(), transform.rotation.as_matrix(), atol=1e-9)
    np.testing.assert_allclose(transform.apply([1, 0, 0]), transform.to_matrix()[:3, :3] @ [1, 0, 0] + [4, -2, 7])


def test_copy_is_independent():
    transform = Transform.from_pose([1, 2, 3], [0, 0, 0])
    copy = transform.copy()
    copy.translation[0] = 99
    assert transform.translation[0] == 1


def test_rotation_from_input_forms():
    quat = Rotation.from_euler("XYZ", [0, 0, 45], degrees=True).as_quat()
    np.testing.assert_allclose(rotation_from_input(quat).as_quat(), quat)
    np.testing.assert_allclose(rotation_from_input([0, 0, 45]).as_quat(), quat)
    assert rotation_from_input(None).magnitude() == 0
    with pytest.raises(ValueError):
        rotation_from_input([1, 2])


def test_nested_world_transform():
    graph = build_graph(
        {"name": "arm", "type": "box", "position": {"x": 10}, "rotation": {"z": 90}},
        {"name": "hand", "type": "box", "mother_volume": "arm", "position": {"x": 5}},
    )
    resolver = TransformResolver(graph)
    np.testing.assert_allclose(resolver.world_transform("hand").translation, [10, 5, 0], atol=1e-9)
    position, quat = resolver.world_pose("hand")
    np.testing.assert_allclose(position, [10, 5, 0], atol=1e-9)
    np.testing.assert_allclose(Rotation.from_quat(quat).as_euler("XYZ", degrees=True), [0, 0, 90], atol=1e-9)


def test_world_to_local_inverts_world_transform():
    graph = build_graph(
        {"name": "frame", "type": "box", "position": {"x": 3, "y": -4, "z": 12}, "rotation": {"x": 20, "y": 35}},
        {"name": "part", "type": "box", "mother_volume": "frame",
         "position": {"x": 1, "y": 2, "z": 3, "unit": "cm"}, "rotation": {"z": 15}},
    )
    resolver = TransformResolver(graph)
    world = resolver.world_transform("part")
    position, rotation = resolver.world_to_local("part", world.translation, world.rotation)
    np.testing.assert_allclose(position.as_array(), [1, 2, 3], atol=1e-9)
    np.testing.assert_allclose(rotation.as_array(), [0, 0, 15], atol=1e-9)
    assert position.unit == "cm"


def test_world_to_local_places_at_desired_pose():
    graph = build_graph(
        {"name": "frame", "type": "box", "position": {"x": 50}, "rotation": {"z": 90}},
        {"name": "part", "type": "box", "mother_volume": "frame"},
    )
    position, rotation = TransformResolver(graph).world_to_local("part", [50, 20, 0], [0, 0, 90])
    moved = graph.update("part", {"position": position.to_record(), "rotation": rotation.to_record()})
    world = TransformResolver(moved).world_transform("part")
    np.testing.assert_allclose(world.translation, [50, 20, 0], atol=1e-9)
    np.testing.assert_allclose(world.euler_degrees, [0, 0, 90], atol=1e-9)


@pytest.mark.parametrize("rotation", [
    {"y": 120},
    {"x": 170, "y": -100, "z": 30},
    {"x": -200, "z": 270},
])
def test_world_to_local_keeps_stored_angles(rotation):
    graph = build_graph(
        {"name": "frame", "type": "box", "rotation": {"x": 10, "y": 95}},
        {"name": "part", "type": "box", "mother_volume": "frame", "rotation": rotation},
    )
    resolver = TransformResolver(graph)
    world = resolver.world_transform("part")
    _, local = resolver.world_to_local("part", world.translation, world.rotation)
    np.testing.assert_allclose(local.as_array(), graph.get("part").rotation.as_array(), atol=1e-9)


def test_euler_near_picks_closest_solution():
    turned = Rotation.from_euler("XYZ", [0, 150, 0], degrees=True)
    np.testing.assert_allclose(euler_near(turned, [0, 120, 0]), [0, 150, 0], atol=1e-9)
    assert not np.allclose(turned.as_euler("XYZ", degrees=True), [0, 150, 0])

    wrapped = Rotation.from_euler("XYZ", [0, 0, 350], degrees=True)
    np.testing.assert_allclose(euler_near(wrapped, [0, 0, 10]), [0, 0, -10], atol=1e-9)
    np.testing.assert_allclose(euler_near(wrapped, [0, 0, 340]), [0, 0, 350], atol=1e-9)


def test_override_moves_descendants():
    graph = build_graph(
        {"name": "arm", "type": "box"},
        {"name": "hand", "type": "box", "mother_volume": "arm", "position": {"x": 5}},
    )
    resolver = TransformResolver(graph, overrides={"arm": Transform.from_pose([0, 0, 100], [0, 0, 0])})
    np.testing.assert_allclose(resolver.world_transform("hand").translation, [5, 0, 100])


def test_cycle_detected():
    graph = build_graph(
        {"name": "a", "type": "box", "mother_volume": "b"},
        {"name": "b", "type": "box", "mother_volume": "a"},
    )
    with pytest.raises(CycleError):
        TransformResolver(graph).world_transform("a")
