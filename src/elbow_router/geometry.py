"""
Plane geometry helpers shared by the binding resolver and the router.

Everything here works on plain ``(x, y)`` tuples and :class:`Bounds`:
- rotation of points about a centre and the envelope of a rotated rectangle
- Manhattan distance and vector -> cardinal heading snapping
- an exact open-interval test of route segments against a rectangle
"""

from __future__ import annotations

import math

from elbow_router.models import Bounds, Heading, Point, ShapeElement


# ---------------------------------------------------------------------------
# Points & rotation
# ---------------------------------------------------------------------------

def rotate_point(point: Point, center: Point, angle: float) -> Point:
    """Rotate *point* about *center* by *angle* radians."""
    if not angle:
        return point
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    dx = point[0] - center[0]
    dy = point[1] - center[1]
    return (
        dx * cos_a - dy * sin_a + center[0],
        dx * sin_a + dy * cos_a + center[1],
    )


def rotated_corners(shape: ShapeElement) -> list[Point]:
    """Corners of *shape* in global coordinates, clockwise from top-left."""
    center = shape.center
    corners = [
        (shape.x, shape.y),
        (shape.x + shape.width, shape.y),
        (shape.x + shape.width, shape.y + shape.height),
        (shape.x, shape.y + shape.height),
    ]
    return [rotate_point(c, center, shape.angle) for c in corners]


def aabb_for_shape(shape: ShapeElement) -> Bounds:
    """Axis-aligned envelope of the shape's rotated corners."""
    corners = rotated_corners(shape)
    xs = [c[0] for c in corners]
    ys = [c[1] for c in corners]
    return Bounds(min(xs), min(ys), max(xs), max(ys))


def manhattan(a: Point, b: Point) -> float:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def vector_to_heading(dx: float, dy: float) -> Heading:
    """Snap a vector to the closest cardinal heading.

    Diagonals (and the zero vector) resolve to the horizontal heading.
    """
    if abs(dx) >= abs(dy):
        return Heading.RIGHT if dx >= 0 else Heading.LEFT
    return Heading.DOWN if dy > 0 else Heading.UP


# ---------------------------------------------------------------------------
# Segment tests
# ---------------------------------------------------------------------------

def segment_crosses_interior(a: Point, b: Point, rect: Bounds) -> bool:
    """Check if the axis-aligned segment a-b passes through the strict interior of rect.

    Segments running exactly along the boundary do not count.

    Raises:
        ValueError: If a-b is neither horizontal nor vertical.
    """
    if a[1] == b[1]:  # Horizontal (or a single point)
        lo, hi = min(a[0], b[0]), max(a[0], b[0])
        if not rect.min_y < a[1] < rect.max_y:
            return False
        if lo == hi:
            return rect.min_x < lo < rect.max_x
        return lo < rect.max_x and hi > rect.min_x
    if a[0] == b[0]:  # Vertical
        lo, hi = min(a[1], b[1]), max(a[1], b[1])
        return (rect.min_x < a[0] < rect.max_x
                and lo < rect.max_y and hi > rect.min_y)
    raise ValueError(f"Segment {a} -> {b} is not axis-aligned.")
