"""
Binding resolution for elbow arrow endpoints.

An endpoint is either free or bound to a (possibly rotated) shape. This
module answers two questions for each endpoint:
- where does it attach (global coordinates), and
- which cardinal heading must the route leave / enter it along.

It also creates and removes bindings (``bind_linear_element`` /
``unbind_linear_element``); neither of those re-routes the arrow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from elbow_router.geometry import rotate_point, vector_to_heading
from elbow_router.models import (
    ArrowElement,
    Binding,
    Heading,
    Point,
    Scene,
    ShapeElement,
)

logger = logging.getLogger("elbow-router.binding")

# Clearance used when an endpoint is bound while sitting on or inside its shape
DEFAULT_GAP = 5.0

_ENDPOINTS = ("start", "end")


@dataclass(frozen=True)
class ResolvedEndpoint:
    """Attachment point + heading of one arrow endpoint."""
    point: Point
    heading: Heading
    shape: Optional[ShapeElement] = None
    binding: Optional[Binding] = None

    @property
    def is_bound(self) -> bool:
        return self.shape is not None


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def bound_shape(binding: Optional[Binding], scene: Scene) -> Optional[ShapeElement]:
    """Look up the shape a binding refers to.

    Returns ``None`` for no binding, and also when the id is missing from
    the snapshot or refers to something that is not a bindable shape; the
    endpoint is then treated as free for this call.
    """
    if binding is None:
        return None
    element = scene.lookup(binding.element_id)
    if not isinstance(element, ShapeElement):
        logger.debug("Bound element '%s' not found, treating endpoint as free",
                     binding.element_id)
        return None
    return element


def resolve_endpoint(
    point: Point,
    other_point: Point,
    binding: Optional[Binding],
    scene: Scene,
) -> ResolvedEndpoint:
    """Resolve the attachment point and heading of one endpoint.

    Args:
        point: The endpoint's desired (last known) global position.
        other_point: Global position of the opposite endpoint.
        binding: The endpoint's binding, if any.
        scene: Read-only snapshot used to resolve the binding.

    Returns:
        A free endpoint keeps *point* and faces *other_point*; a bound one
        attaches to the shape's rotated perimeter and faces outward from the
        bound side.
    """
    shape = bound_shape(binding, scene)
    if shape is None:
        heading = vector_to_heading(other_point[0] - point[0], other_point[1] - point[1])
        return ResolvedEndpoint(point, heading)

    if binding.fixed_point is not None:
        fx, fy = binding.fixed_point
        side = side_for_fixed_point(fx, fy)
        gap = binding.gap if binding.gap > 0 else DEFAULT_GAP
        fx, fy = snap_to_side(fx, fy, side, shape, gap)
        attachment = rotate_point(
            (shape.x + shape.width * fx, shape.y + shape.height * fy),
            shape.center,
            shape.angle,
        )
    else:
        side, attachment = _focus_attachment(shape, binding, other_point)

    return ResolvedEndpoint(attachment, rotate_heading(side, shape.angle), shape, binding)


def side_for_fixed_point(fx: float, fy: float) -> Heading:
    """Side of the unrotated shape a ratio point belongs to.

    The shape is split into four triangles by its diagonals; ties go to
    the horizontal sides.
    """
    return vector_to_heading(2 * fx - 1, 2 * fy - 1)


def snap_to_side(
    fx: float,
    fy: float,
    side: Heading,
    shape: ShapeElement,
    gap: float,
) -> Point:
    """Move a ratio point that lies on or inside the shape out onto *side*.

    The coordinate across the side is set to the boundary plus *gap*; the
    one along it is kept. Points already outside are returned unchanged.
    """
    if not (0 <= fx <= 1 and 0 <= fy <= 1):
        return (fx, fy)
    if side.is_horizontal:
        offset = gap / shape.width if shape.width else 0.0
        return (1 + offset if side is Heading.RIGHT else -offset, fy)
    offset = gap / shape.height if shape.height else 0.0
    return (fx, 1 + offset if side is Heading.DOWN else -offset)


def rotate_heading(heading: Heading, angle: float) -> Heading:
    """Rotate a heading by *angle* radians and snap it back to a cardinal."""
    dx, dy = rotate_point((heading.dx, heading.dy), (0.0, 0.0), angle)
    return vector_to_heading(dx, dy)


def _focus_attachment(
    shape: ShapeElement,
    binding: Binding,
    other_point: Point,
) -> tuple[Heading, Point]:
    """Attachment for bindings that only carry focus and gap."""
    cx, cy = shape.center
    half_w = shape.width / 2
    half_h = shape.height / 2
    lx, ly = rotate_point(other_point, shape.center, -shape.angle)
    side = vector_to_heading(
        (lx - cx) / half_w if half_w else 0.0,
        (ly - cy) / half_h if half_h else 0.0,
    )
    focus = max(-1.0, min(1.0, binding.focus))
    if side.is_horizontal:
        local = (cx + side.dx * (half_w + binding.gap), cy + focus * half_h)
    else:
        local = (cx + focus * half_w, cy + side.dy * (half_h + binding.gap))
    return side, rotate_point(local, shape.center, shape.angle)


# ---------------------------------------------------------------------------
# Binding lifecycle
# ---------------------------------------------------------------------------

def binding_for_point(shape: ShapeElement, point: Point) -> Binding:
    """Compute the binding that pins *point* to *shape* where it is now."""
    lx, ly = rotate_point(point, shape.center, -shape.angle)
    fx = (lx - shape.x) / shape.width if shape.width else 0.5
    fy = (ly - shape.y) / shape.height if shape.height else 0.5
    side = side_for_fixed_point(fx, fy)

    if side is Heading.RIGHT:
        distance = lx - (shape.x + shape.width)
    elif side is Heading.LEFT:
        distance = shape.x - lx
    elif side is Heading.DOWN:
        distance = ly - (shape.y + shape.height)
    else:
        distance = shape.y - ly

    gap = distance if distance > 0 else DEFAULT_GAP
    focus = 2 * fy - 1 if side.is_horizontal else 2 * fx - 1
    return Binding(
        element_id=shape.id,
        focus=max(-1.0, min(1.0, focus)),
        gap=gap,
        fixed_point=snap_to_side(fx, fy, side, shape, gap),
    )


def bind_linear_element(
    arrow: ArrowElement,
    shape: ShapeElement,
    start_or_end: str,
    scene: Scene,
) -> None:
    """Bind the arrow's start or end point to *shape* at its current position.

    Does not re-route; call ``mutate_elbow_arrow`` afterwards.

    Raises:
        ValueError: If *start_or_end* is not "start"/"end" or the shape is not
            part of the scene.
    """
    _check_endpoint(start_or_end)
    if scene.lookup(shape.id) is not shape:
        raise ValueError(f"Shape '{shape.id}' is not part of the scene.")
    index = 0 if start_or_end == "start" else -1
    binding = binding_for_point(shape, arrow.global_point(index))
    if start_or_end == "start":
        arrow.start_binding = binding
    else:
        arrow.end_binding = binding
    logger.debug("Bound %s of arrow '%s' to '%s' (fixed point %s)",
                 start_or_end, arrow.id, shape.id, binding.fixed_point)


def unbind_linear_element(arrow: ArrowElement, start_or_end: str) -> Optional[Binding]:
    """Detach one endpoint. Returns the removed binding, if there was one."""
    _check_endpoint(start_or_end)
    if start_or_end == "start":
        removed, arrow.start_binding = arrow.start_binding, None
    else:
        removed, arrow.end_binding = arrow.end_binding, None
    return removed


def _check_endpoint(start_or_end: str) -> None:
    if start_or_end not in _ENDPOINTS:
        raise ValueError(f"start_or_end must be 'start' or 'end', got '{start_or_end}'.")
