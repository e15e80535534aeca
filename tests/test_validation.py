"""Tests for input validation in the MCP server tools."""

import json

import pytest

from elbow_router.server import _scenes, arrow, inspect, scene, shape
from elbow_router.validation import (
    ValidationError,
    validate_action,
    validate_arrowhead,
    validate_endpoints,
    validate_enum,
    validate_list,
    validate_non_empty_string,
    validate_non_negative_number,
    validate_number,
    validate_point,
    validate_positive_number,
    validate_shape_dict,
    validate_shape_type,
    validate_shapes,
    validate_start_or_end,
    _ARROW_ACTIONS,
    _SCENE_ACTIONS,
)


@pytest.fixture(autouse=True)
def _clear_scenes() -> None:
    """Clear scenes between tests."""
    _scenes.clear()


# ===================================================================
# Unit tests for primitive validators
# ===================================================================


class TestValidateNonEmptyString:
    def test_valid(self) -> None:
        assert validate_non_empty_string("hello", "f") == "hello"

    def test_strips(self) -> None:
        assert validate_non_empty_string("  hi  ", "f") == "hi"

    def test_empty(self) -> None:
        with pytest.raises(ValidationError, match="non-empty"):
            validate_non_empty_string("   ", "f")

    def test_not_string(self) -> None:
        with pytest.raises(ValidationError):
            validate_non_empty_string(42, "f")


class TestValidateNumber:
    def test_int_and_float(self) -> None:
        assert validate_number(3, "n") == 3.0
        assert validate_number(2.5, "n") == 2.5

    def test_bool_rejected(self) -> None:
        with pytest.raises(ValidationError, match="must be a number"):
            validate_number(True, "n")

    def test_not_finite(self) -> None:
        with pytest.raises(ValidationError, match="finite"):
            validate_number(float("nan"), "n")
        with pytest.raises(ValidationError, match="finite"):
            validate_number(float("inf"), "n")

    def test_range(self) -> None:
        with pytest.raises(ValidationError, match=">="):
            validate_number(-1, "n", min_val=0)
        with pytest.raises(ValidationError, match="<="):
            validate_number(11, "n", max_val=10)

    def test_positive_and_non_negative(self) -> None:
        assert validate_non_negative_number(0, "n") == 0
        with pytest.raises(ValidationError):
            validate_positive_number(0, "n")


class TestValidateList:
    def test_min_length(self) -> None:
        with pytest.raises(ValidationError, match="at least 1"):
            validate_list([], "items", min_length=1)

    def test_not_list(self) -> None:
        with pytest.raises(ValidationError, match="must be a list"):
            validate_list("abc", "items")


class TestValidateAction:
    def test_case_insensitive(self) -> None:
        assert validate_action("  Get_Json ", "scene", _SCENE_ACTIONS) == "get_json"

    def test_missing(self) -> None:
        with pytest.raises(ValidationError, match="requires an 'action'"):
            validate_action("", "arrow", _ARROW_ACTIONS)

    def test_unknown(self) -> None:
        with pytest.raises(ValidationError, match="Valid actions: add, bind, route, unbind"):
            validate_action("explode", "arrow", _ARROW_ACTIONS)


# ===================================================================
# Domain validators
# ===================================================================


class TestDomainValidators:
    def test_enum(self) -> None:
        assert validate_enum("start", "f", {"START", "END"}) == "START"

    def test_start_or_end(self) -> None:
        assert validate_start_or_end("END") == "end"
        with pytest.raises(ValidationError, match="start_or_end"):
            validate_start_or_end("middle")

    def test_shape_type(self) -> None:
        assert validate_shape_type("Diamond") == "diamond"
        with pytest.raises(ValidationError):
            validate_shape_type("hexagon")

    def test_arrowhead(self) -> None:
        assert validate_arrowhead("Triangle", "end_arrowhead") == "triangle"
        assert validate_arrowhead("  ", "end_arrowhead") is None
        with pytest.raises(ValidationError, match="end_arrowhead"):
            validate_arrowhead("feather", "end_arrowhead")

    def test_point(self) -> None:
        assert validate_point([1, 2.5], "p") == (1.0, 2.5)
        with pytest.raises(ValidationError, match=r"\[x, y\]"):
            validate_point([1, 2, 3], "p")
        with pytest.raises(ValidationError, match=r"p\[1\]"):
            validate_point([1, "2"], "p")

    def test_endpoints(self) -> None:
        assert validate_endpoints([[0, 0], [5, 5]]) == [(0.0, 0.0), (5.0, 5.0)]
        with pytest.raises(ValidationError, match="exactly 2"):
            validate_endpoints([[0, 0], [1, 1], [2, 2]])
        with pytest.raises(ValidationError, match="at least 2"):
            validate_endpoints([[0, 0]])


class TestValidateShapeDict:
    def test_valid(self) -> None:
        validate_shape_dict({"x": 0, "y": 0, "width": 10, "angle": 45, "type": "ellipse"}, 0)

    def test_missing_x(self) -> None:
        with pytest.raises(ValidationError, match="missing required key 'x'"):
            validate_shape_dict({"y": 0}, 0)

    def test_bad_size(self) -> None:
        with pytest.raises(ValidationError, match="'height' must be > 0"):
            validate_shape_dict({"x": 0, "y": 0, "height": 0}, 2)

    def test_bad_type(self) -> None:
        with pytest.raises(ValidationError, match="unknown type 'star'"):
            validate_shape_dict({"x": 0, "y": 0, "type": "star"}, 0)

    def test_not_dict(self) -> None:
        with pytest.raises(ValidationError, match="index 3 must be a dict"):
            validate_shape_dict([1, 2], 3)

    def test_batch_duplicate_ids(self) -> None:
        shapes = [{"id": "a", "x": 0, "y": 0}, {"x": 5, "y": 5}, {"id": "a", "x": 9, "y": 9}]
        with pytest.raises(ValidationError, match="index 2: duplicate id 'a'"):
            validate_shapes(shapes)
        assert validate_shapes(shapes[:2]) == shapes[:2]


# ===================================================================
# Tool-level validation (errors come back as strings)
# ===================================================================


class TestToolErrors:
    def test_unknown_action(self) -> None:
        result = scene(action="frobnicate")
        assert result.startswith("Error:")
        assert "Valid actions" in result

    def test_missing_scene(self) -> None:
        assert "not found" in shape(action="add", scene_name="nope", shapes=[{"x": 0, "y": 0}])
        assert "not found" in arrow(action="route", scene_name="nope", arrow_id="a")
        assert "not found" in inspect(action="elements", scene_name="nope")

    def test_bad_shapes(self) -> None:
        scene(action="create", name="s")
        result = shape(action="add", scene_name="s", shapes=[{"x": 0}])
        assert result.startswith("Error:")
        assert "'y'" in result

    def test_bad_arrow_points(self) -> None:
        scene(action="create", name="s")
        result = arrow(action="add", scene_name="s", start=[0, 0], end=[1])
        assert result.startswith("Error:")
        assert "'end'" in result

    def test_bad_start_or_end(self) -> None:
        scene(action="create", name="s")
        created = json.loads(arrow(action="add", scene_name="s", start=[0, 0], end=[50, 50]))
        result = arrow(action="unbind", scene_name="s", arrow_id=created["arrow_id"],
                       start_or_end="middle")
        assert result.startswith("Error:")

    def test_bad_config(self) -> None:
        result = scene(action="create", name="s", stub_length=0)
        assert result.startswith("Error:")
        assert "s" not in _scenes
