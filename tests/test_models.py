"""Tests for the scene model and its JSON round-trip."""

import json

import pytest

from elbow_router.models import (
    ArrowElement,
    Arrowhead,
    Binding,
    Bounds,
    Heading,
    Scene,
    ShapeElement,
    ShapeType,
    element_from_dict,
)


class TestHeading:
    def test_flip(self) -> None:
        assert Heading.UP.flip() is Heading.DOWN
        assert Heading.LEFT.flip() is Heading.RIGHT
        assert Heading.RIGHT.flip().flip() is Heading.RIGHT

    def test_vectors(self) -> None:
        assert (Heading.DOWN.dx, Heading.DOWN.dy) == (0, 1)
        assert Heading.LEFT.is_horizontal
        assert not Heading.UP.is_horizontal


class TestBounds:
    def test_expand_and_union(self) -> None:
        b = Bounds(0, 0, 10, 20).expand(5)
        assert b == Bounds(-5, -5, 15, 25)
        assert b.width == 20
        assert b.height == 30
        assert Bounds(0, 0, 1, 1).union(Bounds(5, -3, 6, 0)) == Bounds(0, -3, 6, 1)

    def test_contains_point(self) -> None:
        b = Bounds(0, 0, 10, 10)
        assert b.contains_point((10, 5))
        assert not b.contains_point((10, 5), strict=True)
        assert b.contains_point((5, 5), strict=True)
        assert not b.contains_point((11, 5))

    def test_from_point_is_degenerate(self) -> None:
        b = Bounds.from_point((3, 4))
        assert b.width == 0 and b.height == 0
        assert b.center == (3, 4)


class TestScene:
    def test_lookup_skips_deleted(self) -> None:
        scene = Scene()
        shape = ShapeElement(x=0, y=0)
        scene.insert_element(shape)
        assert scene.lookup(shape.id) is shape
        shape.is_deleted = True
        assert scene.lookup(shape.id) is None
        assert scene.non_deleted_elements() == []

    def test_lookup_missing(self) -> None:
        assert Scene().lookup("nope") is None

    def test_shapes_and_arrows(self) -> None:
        scene = Scene()
        scene.insert_element(ShapeElement())
        scene.insert_element(ArrowElement())
        assert len(scene.shapes()) == 1
        assert len(scene.arrows()) == 1


class TestPersistence:
    """Round-trip of the minimal scene document."""

    def _scene(self) -> Scene:
        scene = Scene()
        scene.insert_element(ShapeElement(id="r1", x=-150, y=-150, angle=0.5))
        scene.insert_element(ShapeElement(id="d1", type=ShapeType.DIAMOND, x=50, y=50))
        scene.insert_element(ArrowElement(
            id="a1",
            x=-45,
            y=-100.1,
            width=90,
            height=200,
            points=[(0, 0), (45, 0), (45, 200), (90, 200)],
            start_binding=Binding("r1", focus=-0.002, gap=5, fixed_point=(1.05, 0.499)),
            end_binding=Binding("d1", focus=0.1, gap=5),
            end_arrowhead=Arrowhead.TRIANGLE,
        ))
        return scene

    def test_document_shape(self) -> None:
        data = json.loads(self._scene().to_json())
        assert data["type"] == "scene"
        assert data["version"] == 1
        arrow = next(e for e in data["elements"] if e["type"] == "arrow")
        assert arrow["elbowed"] is True
        assert arrow["points"][1] == [45, 0]
        assert arrow["startBinding"] == {
            "elementId": "r1", "focus": -0.002, "gap": 5, "fixedPoint": [1.05, 0.499],
        }
        assert "fixedPoint" not in arrow["endBinding"]
        assert arrow["startArrowhead"] is None
        assert arrow["endArrowhead"] == "triangle"
        assert arrow["isDeleted"] is False

    def test_round_trip(self) -> None:
        original = self._scene()
        restored = Scene.from_json(original.to_json())
        assert restored.to_dict() == original.to_dict()
        arrow = restored.lookup("a1")
        assert isinstance(arrow, ArrowElement)
        assert arrow.start_binding.fixed_point == (1.05, 0.499)
        assert arrow.end_binding.fixed_point is None
        assert arrow.end_arrowhead is Arrowhead.TRIANGLE
        assert restored.lookup("d1").type is ShapeType.DIAMOND

    def test_null_bindings(self) -> None:
        record = ArrowElement(id="x").to_dict()
        assert record["startBinding"] is None
        arrow = element_from_dict(record)
        assert arrow.start_binding is None and arrow.end_binding is None

    def test_compact_json(self) -> None:
        scene = self._scene()
        compact = scene.to_json(pretty=False)
        assert "\n" not in compact
        assert json.loads(compact)["elements"][0] == scene.lookup("r1").to_dict()

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown element type"):
            element_from_dict({"id": "t", "type": "text"})

    def test_unknown_arrowhead_rejected(self) -> None:
        record = ArrowElement(id="x").to_dict()
        record["endArrowhead"] = "feather"
        with pytest.raises(ValueError):
            element_from_dict(record)


class TestArrowElement:
    def test_global_point(self) -> None:
        arrow = ArrowElement(x=10, y=20, points=[(0, 0), (5, 7)])
        assert arrow.global_point(0) == (10, 20)
        assert arrow.global_point(-1) == (15, 27)

    def test_is_bound_to(self) -> None:
        arrow = ArrowElement(end_binding=Binding("s"))
        assert arrow.is_bound_to("s")
        assert not arrow.is_bound_to("t")
        assert arrow.binding_for("end").element_id == "s"
        assert arrow.binding_for("start") is None
