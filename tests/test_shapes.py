"""Tests for shape parsing and the normalized dimensions format."""

import pytest

from volumetree.core.shapes import (
    SHAPE_REGISTRY,
    BoxShape,
    PolyconeShape,
    PolyhedraShape,
    TorusShape,
    ZSection,
    shape_class,
    shape_from_dimensions,
    shape_from_record,
)
from volumetree.errors import FormatError


@pytest.mark.parametrize("kind,shape_type", list(SHAPE_REGISTRY.items()))
def test_default_shape_survives_record_and_dimensions(kind, shape_type):
    """Every shape kind reads back what it writes, in both layouts."""
    shape = shape_type()
    assert shape_type.from_record(shape.to_record()) == shape
    assert shape_from_dimensions(kind, shape.dimensions()) == shape


def test_box_reads_size_with_unit():
    shape = shape_from_record({"type": "box", "size": {"x": 1, "y": 2, "z": 3, "unit": "cm"}})
    assert shape == BoxShape(1.0, 2.0, 3.0, "cm")
    assert shape.dimensions() == {"x": 1.0, "y": 2.0, "z": 3.0}


def test_camel_and_snake_case_record_keys():
    assert shape_from_record({"type": "torus", "majorRadius": 80, "minorRadius": 5}) == TorusShape(80.0, 5.0)
    assert shape_from_record({"type": "torus", "major_radius": 80, "minor_radius": 5}) == TorusShape(80.0, 5.0)


def test_unknown_type_is_a_format_error():
    with pytest.raises(FormatError, match="Unknown volume type"):
        shape_class("hexagon")


def test_non_numeric_field_is_a_format_error():
    with pytest.raises(FormatError, match="radius"):
        shape_from_record({"type": "sphere", "radius": "big"})


def test_polycone_sections_sorted_by_z():
    shape = shape_from_record({
        "type": "polycone",
        "zSections": [
            {"z": 10, "rMin": 1, "rMax": 4},
            {"z": -10, "rMin": 0, "rMax": 2},
            {"z": 0, "rMin": 0, "rMax": 3},
        ],
    })
    assert [s.z for s in shape.z_sections] == [-10.0, 0.0, 10.0]
    # The three arrays are permuted together
    assert shape.dimensions() == {"z": [-10.0, 0.0, 10.0], "rmin": [0.0, 0.0, 1.0], "rmax": [2.0, 3.0, 4.0]}


def test_polyhedra_carries_side_count():
    shape = PolyhedraShape(z_sections=(ZSection(0, 0, 1), ZSection(1, 0, 1)), num_sides=8)
    assert shape.dimensions()["num_sides"] == 8
    assert shape_from_dimensions("polyhedra", shape.dimensions()) == shape


def test_polycone_mismatched_dimension_arrays():
    with pytest.raises(FormatError, match="equal length"):
        PolyconeShape.from_dimensions({"z": [0, 1], "rmin": [0], "rmax": [1, 2]})


@pytest.mark.parametrize("dimensions", [
    {"z": 5, "rmin": [0], "rmax": [1]},
    {"z": [0], "rmin": "0", "rmax": [1]},
    {"z": [0], "rmin": [0], "rmax": {"a": 1}},
])
def test_polycone_dimension_arrays_must_be_lists(dimensions):
    with pytest.raises(FormatError, match="must be a list"):
        shape_from_dimensions("polycone", dimensions)


def test_union_keeps_free_form_parameters():
    shape = shape_from_record({"type": "union", "dimensions": {"operation": "add"}})
    assert shape.to_record() == {"dimensions": {"operation": "add"}}
    assert shape_from_record({"type": "union"}).to_record() == {}
