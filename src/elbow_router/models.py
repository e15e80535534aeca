"""
Core scene model classes for elbow arrow routing.

Provides a typed, composable API for the handful of scene elements the
router cares about (bindable shapes and elbow arrows) together with the
read-only scene snapshot they are resolved through, and the JSON record
format used to round-trip them inside a larger scene document.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

Point = tuple[float, float]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Heading(Enum):
    """Cardinal direction a path segment leaves or enters an endpoint along."""
    UP = (0, -1)
    RIGHT = (1, 0)
    DOWN = (0, 1)
    LEFT = (-1, 0)

    @property
    def dx(self) -> int:
        return self.value[0]

    @property
    def dy(self) -> int:
        return self.value[1]

    @property
    def is_horizontal(self) -> bool:
        return self.value[1] == 0

    def flip(self) -> Heading:
        return _FLIPPED[self]


_FLIPPED = {
    Heading.UP: Heading.DOWN,
    Heading.DOWN: Heading.UP,
    Heading.LEFT: Heading.RIGHT,
    Heading.RIGHT: Heading.LEFT,
}


class ShapeType(Enum):
    """Bindable shape types. All of them bind and route by their rectangle."""
    RECTANGLE = "rectangle"
    DIAMOND = "diamond"
    ELLIPSE = "ellipse"


class Arrowhead(Enum):
    """Arrow end markers. Any of them makes the router keep more room."""
    ARROW = "arrow"
    BAR = "bar"
    DOT = "dot"
    TRIANGLE = "triangle"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Bounds:
    """Axis-aligned bounding box in global coordinates."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def from_point(cls, point: Point) -> Bounds:
        return cls(point[0], point[1], point[0], point[1])

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Point:
        return ((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)

    def expand(self, amount: float) -> Bounds:
        """Grow the box by *amount* on every side."""
        return Bounds(
            self.min_x - amount,
            self.min_y - amount,
            self.max_x + amount,
            self.max_y + amount,
        )

    def union(self, other: Bounds) -> Bounds:
        return Bounds(
            min(self.min_x, other.min_x),
            min(self.min_y, other.min_y),
            max(self.max_x, other.max_x),
            max(self.max_y, other.max_y),
        )

    def contains_point(self, point: Point, strict: bool = False) -> bool:
        """Check if a point is inside the box.

        With ``strict=True`` points on the boundary are outside.
        """
        px, py = point
        if strict:
            return self.min_x < px < self.max_x and self.min_y < py < self.max_y
        return self.min_x <= px <= self.max_x and self.min_y <= py <= self.max_y


@dataclass
class Binding:
    """Non-owning reference from an arrow endpoint to a bindable shape.

    ``focus`` is the position along the bound side in ``[-1, 1]`` (0 is the
    side midpoint) and ``gap`` the clearance kept between the shape boundary
    and the endpoint. ``fixed_point`` pins the endpoint as a ratio of the
    shape's unrotated width/height; it also encodes which side is bound.
    """
    element_id: str
    focus: float = 0.0
    gap: float = 0.0
    fixed_point: Optional[Point] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "elementId": self.element_id,
            "focus": self.focus,
            "gap": self.gap,
        }
        if self.fixed_point is not None:
            data["fixedPoint"] = [self.fixed_point[0], self.fixed_point[1]]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Binding:
        fixed = data.get("fixedPoint")
        return cls(
            element_id=str(data["elementId"]),
            focus=float(data.get("focus", 0.0)),
            gap=float(data.get("gap", 0.0)),
            fixed_point=(float(fixed[0]), float(fixed[1])) if fixed else None,
        )


@dataclass
class ShapeElement:
    """A bindable shape. Read-only to the router for the duration of a call."""
    id: str = field(default_factory=lambda: _uid())
    type: ShapeType = ShapeType.RECTANGLE
    x: float = 0
    y: float = 0
    width: float = 100
    height: float = 100
    # Rotation about the shape centre, radians, clockwise in screen space
    angle: float = 0
    is_deleted: bool = False

    @property
    def center(self) -> Point:
        return (self.x + self.width / 2, self.y + self.height / 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "angle": self.angle,
            "isDeleted": self.is_deleted,
        }


@dataclass
class ArrowElement:
    """An elbow connector.

    ``x``/``y`` is the global position of local ``(0, 0)``, ``width``/``height``
    the extent of the local point list.
    """
    id: str = field(default_factory=lambda: _uid())
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    angle: float = 0
    points: list[Point] = field(default_factory=lambda: [(0.0, 0.0), (0.0, 0.0)])
    elbowed: bool = True
    start_binding: Optional[Binding] = None
    end_binding: Optional[Binding] = None
    start_arrowhead: Optional[Arrowhead] = None
    end_arrowhead: Optional[Arrowhead] = None
    is_deleted: bool = False

    type: str = field(default="arrow", init=False)

    def global_point(self, index: int) -> Point:
        """Return the point at *index* in scene coordinates."""
        px, py = self.points[index]
        return (self.x + px, self.y + py)

    def binding_for(self, start_or_end: str) -> Optional[Binding]:
        return self.start_binding if start_or_end == "start" else self.end_binding

    def arrowhead_for(self, start_or_end: str) -> Optional[Arrowhead]:
        return self.start_arrowhead if start_or_end == "start" else self.end_arrowhead

    def is_bound_to(self, element_id: str) -> bool:
        return any(
            b is not None and b.element_id == element_id
            for b in (self.start_binding, self.end_binding)
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "angle": self.angle,
            "isDeleted": self.is_deleted,
            "points": [[px, py] for px, py in self.points],
            "elbowed": self.elbowed,
            "startBinding": self.start_binding.to_dict() if self.start_binding else None,
            "endBinding": self.end_binding.to_dict() if self.end_binding else None,
            "startArrowhead": self.start_arrowhead.value if self.start_arrowhead else None,
            "endArrowhead": self.end_arrowhead.value if self.end_arrowhead else None,
        }


Element = Union[ShapeElement, ArrowElement]


@dataclass
class Scene:
    """Snapshot of scene elements, keyed by stable element id.

    The router only ever reads through :meth:`lookup` and
    :meth:`non_deleted_elements`; the surrounding application owns
    insertion and mutation.
    """
    elements: dict[str, Element] = field(default_factory=dict)

    def insert_element(self, element: Element) -> str:
        self.elements[element.id] = element
        return element.id

    def lookup(self, element_id: str) -> Optional[Element]:
        """Return the non-deleted element with *element_id*, or ``None``."""
        element = self.elements.get(element_id)
        if element is None or element.is_deleted:
            return None
        return element

    def non_deleted_elements(self) -> list[Element]:
        return [e for e in self.elements.values() if not e.is_deleted]

    def shapes(self) -> list[ShapeElement]:
        return [e for e in self.non_deleted_elements() if isinstance(e, ShapeElement)]

    def arrows(self) -> list[ArrowElement]:
        return [e for e in self.non_deleted_elements() if isinstance(e, ArrowElement)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "scene",
            "version": SCENE_VERSION,
            "elements": [element.to_dict() for element in self.elements.values()],
        }

    def to_json(self, pretty: bool = True) -> str:
        return json.dumps(self.to_dict(), indent=2 if pretty else None)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Scene:
        scene = cls()
        for record in data.get("elements", []):
            scene.insert_element(element_from_dict(record))
        return scene

    @classmethod
    def from_json(cls, text: str) -> Scene:
        return cls.from_dict(json.loads(text))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SCENE_VERSION = 1


def _uid() -> str:
    return uuid.uuid4().hex[:12]


def _arrowhead(value: Any) -> Optional[Arrowhead]:
    return Arrowhead(value) if value else None


def element_from_dict(data: dict[str, Any]) -> Element:
    """Rebuild a shape or arrow from its persisted record.

    Raises:
        ValueError: For an unknown element ``type`` or arrowhead.
    """
    kind = data.get("type")
    if kind == "arrow":
        start = data.get("startBinding")
        end = data.get("endBinding")
        return ArrowElement(
            id=str(data["id"]),
            x=float(data.get("x", 0)),
            y=float(data.get("y", 0)),
            width=float(data.get("width", 0)),
            height=float(data.get("height", 0)),
            angle=float(data.get("angle", 0)),
            points=[(float(px), float(py)) for px, py in data.get("points", [])],
            elbowed=bool(data.get("elbowed", True)),
            start_binding=Binding.from_dict(start) if start else None,
            end_binding=Binding.from_dict(end) if end else None,
            start_arrowhead=_arrowhead(data.get("startArrowhead")),
            end_arrowhead=_arrowhead(data.get("endArrowhead")),
            is_deleted=bool(data.get("isDeleted", False)),
        )
    try:
        shape_type = ShapeType(kind)
    except ValueError:
        raise ValueError(f"Unknown element type '{kind}'.") from None
    return ShapeElement(
        id=str(data["id"]),
        type=shape_type,
        x=float(data.get("x", 0)),
        y=float(data.get("y", 0)),
        width=float(data.get("width", 100)),
        height=float(data.get("height", 100)),
        angle=float(data.get("angle", 0)),
        is_deleted=bool(data.get("isDeleted", False)),
    )
