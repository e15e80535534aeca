"""
Orthogonal routing engine for elbow arrows.

Given an arrow whose endpoints are free or bound to (possibly rotated)
shapes, computes a polyline made only of horizontal and vertical segments
that connects the endpoints without entering the bound shapes:

1. Resolve each endpoint's attachment point and heading (``binding``).
2. Turn every bound shape into a padded axis-aligned obstacle and give
   its endpoint a clearance zone, with extra room in front of arrowheads.
   Zones of two diagonally placed ends that overlap are cut in two.
3. Build a sparse grid from obstacle and zone edges, endpoints, stubs and
   the channel midlines between the two ends.
4. A* over (node, heading) states with a per-turn penalty.
5. Drop redundant collinear points and re-express the path relative to its
   own minimum corner.

The pipeline is a pure function of its inputs: ``route_elbow_arrow`` returns
an :class:`ElbowRoute` and ``mutate_elbow_arrow`` assigns it to the arrow.
Routing never raises for geometric input; when no clear route exists a
direct two-turn path is used instead.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Optional, Sequence

from elbow_router.binding import ResolvedEndpoint, resolve_endpoint
from elbow_router.geometry import aabb_for_shape, manhattan, segment_crosses_interior
from elbow_router.models import (
    ArrowElement,
    Arrowhead,
    Binding,
    Bounds,
    Heading,
    Point,
    Scene,
    ShapeElement,
)

logger = logging.getLogger("elbow-router.routing")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class RouterConfig:
    """Tunable constants of the router."""
    # Clearance around a bound shape when neither the call nor the binding sets one
    default_gap: float = 5
    # How far a bound endpoint's zone reaches past its shape when the other
    # end is not straight ahead; also the margin of the outer detour ring
    stub_length: float = 40
    # Room kept in front of a bound side, without and with an arrowhead
    head_clearance: float = 10
    arrowhead_clearance: float = 30
    # Cost added per change of direction. None scales it with the route span
    # so that an extra turn never pays for itself.
    turn_penalty: Optional[float] = None


@dataclass
class ElbowRoute:
    """Routing result in the arrow's own coordinate frame."""
    points: list[Point]
    x: float
    y: float
    width: float
    height: float

    @property
    def origin(self) -> Point:
        return (self.x, self.y)

    @property
    def extent(self) -> tuple[float, float]:
        return (self.width, self.height)

    def global_points(self) -> list[Point]:
        return [(self.x + px, self.y + py) for px, py in self.points]


# ---------------------------------------------------------------------------
# Obstacle model
# ---------------------------------------------------------------------------

def obstacle_for(shape: ShapeElement, gap: float) -> Bounds:
    """Padded axis-aligned obstacle for a bound shape.

    Rotated shapes are represented by the envelope of their rotated corners,
    so a route may keep a wider berth than the true footprint needs but
    never enters it.
    """
    return aabb_for_shape(shape).expand(gap)


def _clearance(binding: Optional[Binding], gap: Optional[float], config: RouterConfig) -> float:
    if gap is not None:
        return gap
    if binding is not None and binding.gap > 0:
        return binding.gap
    return config.default_gap


# ---------------------------------------------------------------------------
# Clearance zones
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EndClearance:
    """Space a bound endpoint claims around its shape.

    ``obstacle`` is the padded shape, ``box`` the same box with the bound
    side pushed out far enough for the arrow head, and ``reach`` the most
    the endpoint's zone may grow to.
    """
    obstacle: Bounds
    box: Bounds
    reach: Bounds


def clearance_for(
    shape: ShapeElement,
    heading: Heading,
    gap: float,
    head: float,
    stub_length: float,
) -> EndClearance:
    """Clearance of an endpoint bound to *shape* on its *heading* side."""
    envelope = aabb_for_shape(shape)
    obstacle = obstacle_for(shape, gap)
    room = max(head, gap)
    if heading is Heading.RIGHT:
        box = replace(obstacle, max_x=envelope.max_x + room)
    elif heading is Heading.LEFT:
        box = replace(obstacle, min_x=envelope.min_x - room)
    elif heading is Heading.DOWN:
        box = replace(obstacle, max_y=envelope.max_y + room)
    else:
        box = replace(obstacle, min_y=envelope.min_y - room)
    return EndClearance(obstacle, box, envelope.expand(stub_length).union(box))


def clearance_zone(own: EndClearance, other: Bounds) -> Bounds:
    """Zone an endpoint routes out of before heading for the other end.

    On each side the zone stops halfway to *other* when *other* lies
    entirely beyond it, and runs out to the reach otherwise. When the boxes
    are apart on both axes the reach wins if it lies further out.
    """
    a, r = own.box, own.reach
    x_apart = a.max_x < other.min_x or other.max_x < a.min_x
    y_apart = a.max_y < other.min_y or other.max_y < a.min_y

    def _side(
        beyond: bool,
        mid: float,
        limit: float,
        outward: Callable[[float, float], float],
        apart: bool,
    ) -> float:
        if not beyond:
            return limit
        return outward(mid, limit) if apart else mid

    return Bounds(
        _side(a.min_x > other.max_x, (a.min_x + other.max_x) / 2, r.min_x, min, y_apart),
        _side(a.min_y > other.max_y, (a.min_y + other.max_y) / 2, r.min_y, min, x_apart),
        _side(a.max_x < other.min_x, (a.max_x + other.min_x) / 2, r.max_x, max, y_apart),
        _side(a.max_y < other.min_y, (a.max_y + other.min_y) / 2, r.max_y, max, x_apart),
    )


def _overlapping(a: Bounds, b: Bounds) -> bool:
    return (
        a.min_x < b.max_x and b.min_x < a.max_x
        and a.min_y < b.max_y and b.min_y < a.max_y
    )


def split_zones(
    start_zone: Bounds,
    end_zone: Bounds,
    start_box: Bounds,
    end_box: Bounds,
    start_heading: Heading,
    end_heading: Heading,
) -> tuple[Bounds, Bounds]:
    """Share out the space two diagonally placed endpoints both claim.

    The zones are cut along whichever axis leaves more of the stub sides
    where they are; on a tie, along the axis the boxes are further apart on.
    """
    if not _overlapping(start_zone, end_zone):
        return start_zone, end_zone
    if start_box.max_x < end_box.min_x:
        toward_x, apart_x = Heading.RIGHT, end_box.min_x - start_box.max_x
    elif end_box.max_x < start_box.min_x:
        toward_x, apart_x = Heading.LEFT, start_box.min_x - end_box.max_x
    else:
        return start_zone, end_zone
    if start_box.max_y < end_box.min_y:
        toward_y, apart_y = Heading.DOWN, end_box.min_y - start_box.max_y
    elif end_box.max_y < start_box.min_y:
        toward_y, apart_y = Heading.UP, start_box.min_y - end_box.max_y
    else:
        return start_zone, end_zone

    # Stub sides a cut on each axis would move
    moved_x = int(start_heading is toward_x) + int(end_heading is toward_x.flip())
    moved_y = int(start_heading is toward_y) + int(end_heading is toward_y.flip())
    if moved_x < moved_y or (moved_x == moved_y and apart_x >= apart_y):
        if toward_x is Heading.RIGHT:
            cut = (start_zone.max_x + end_zone.min_x) / 2
            return replace(start_zone, max_x=cut), replace(end_zone, min_x=cut)
        cut = (start_zone.min_x + end_zone.max_x) / 2
        return replace(start_zone, min_x=cut), replace(end_zone, max_x=cut)
    if toward_y is Heading.DOWN:
        cut = (start_zone.max_y + end_zone.min_y) / 2
        return replace(start_zone, max_y=cut), replace(end_zone, min_y=cut)
    cut = (start_zone.min_y + end_zone.max_y) / 2
    return replace(start_zone, min_y=cut), replace(end_zone, max_y=cut)


# ---------------------------------------------------------------------------
# Route graph
# ---------------------------------------------------------------------------

Node = tuple[int, int]

_DIRECTIONS = (Heading.UP, Heading.RIGHT, Heading.DOWN, Heading.LEFT)


@dataclass
class RouteGraph:
    """Sparse orthogonal grid.

    Nodes are the intersections of the sorted ``xs`` and ``ys`` grid lines,
    addressed as ``(xi, yi)``. Neighbouring nodes along a grid line are
    connected unless the segment between them crosses an obstacle interior.
    """
    xs: list[float]
    ys: list[float]
    obstacles: list[Bounds] = field(default_factory=list)
    start_stub: Optional[Point] = None
    end_stub: Optional[Point] = None
    _x_index: dict[float, int] = field(default_factory=dict, init=False, repr=False)
    _y_index: dict[float, int] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self._x_index = {x: i for i, x in enumerate(self.xs)}
        self._y_index = {y: i for i, y in enumerate(self.ys)}

    @property
    def node_count(self) -> int:
        return len(self.xs) * len(self.ys)

    def node_at(self, point: Point) -> Optional[Node]:
        xi = self._x_index.get(point[0])
        yi = self._y_index.get(point[1])
        if xi is None or yi is None:
            return None
        return (xi, yi)

    def position(self, node: Node) -> Point:
        return (self.xs[node[0]], self.ys[node[1]])

    def passable(self, a: Point, b: Point) -> bool:
        return not any(segment_crosses_interior(a, b, obs) for obs in self.obstacles)

    def neighbor(self, node: Node, heading: Heading) -> Optional[Node]:
        """Adjacent node in *heading* direction, or None if absent/blocked."""
        xi = node[0] + heading.dx
        yi = node[1] + heading.dy
        if not (0 <= xi < len(self.xs) and 0 <= yi < len(self.ys)):
            return None
        target = (xi, yi)
        if not self.passable(self.position(node), self.position(target)):
            return None
        return target


def stub_point(point: Point, heading: Heading, zone: Bounds) -> Point:
    """Where a bound endpoint's stub ends.

    On the ray from *point* along *heading*, at the edge of the endpoint's
    zone. Never behind *point*.
    """
    px, py = point
    if heading is Heading.RIGHT:
        return (max(zone.max_x, px), py)
    if heading is Heading.LEFT:
        return (min(zone.min_x, px), py)
    if heading is Heading.DOWN:
        return (px, max(zone.max_y, py))
    return (px, min(zone.min_y, py))


def _channel_midlines(a: Bounds, b: Bounds) -> tuple[list[float], list[float]]:
    """Midlines of the free channel between two boxes, per separated axis."""
    xs: list[float] = []
    ys: list[float] = []
    if a.max_x < b.min_x:
        xs.append((a.max_x + b.min_x) / 2)
    elif b.max_x < a.min_x:
        xs.append((b.max_x + a.min_x) / 2)
    if a.max_y < b.min_y:
        ys.append((a.max_y + b.min_y) / 2)
    elif b.max_y < a.min_y:
        ys.append((b.max_y + a.min_y) / 2)
    return xs, ys


def build_route_graph(
    start: Point,
    start_heading: Heading,
    end: Point,
    end_heading: Heading,
    start_clearance: Optional[EndClearance] = None,
    end_clearance: Optional[EndClearance] = None,
    stub_length: float = 40,
) -> RouteGraph:
    """Build the sparse routing grid for one arrow.

    Grid lines come from:
    - both endpoints and the stub point of each bound endpoint
    - every obstacle and zone edge
    - the midline of the channel between the start and end boxes
    - the common envelope of both boxes grown by *stub_length*

    Args:
        start: Start attachment point.
        start_heading: Heading the route leaves the start along.
        end: End attachment point.
        end_heading: Outward heading of the end (the route arrives against it).
        start_clearance: Clearance of the start's bound shape, if bound.
        end_clearance: Clearance of the end's bound shape, if bound.
        stub_length: Margin of the outer detour ring.

    Returns:
        The graph, carrying the stub points the search should run between.
    """
    start_box = start_clearance.box if start_clearance else Bounds.from_point(start)
    end_box = end_clearance.box if end_clearance else Bounds.from_point(end)

    start_zone = clearance_zone(start_clearance, end_box) if start_clearance else None
    end_zone = clearance_zone(end_clearance, start_box) if end_clearance else None
    if start_zone is not None and end_zone is not None:
        start_zone, end_zone = split_zones(
            start_zone, end_zone, start_box, end_box, start_heading, end_heading,
        )

    start_stub = stub_point(start, start_heading, start_zone) if start_zone else None
    end_stub = stub_point(end, end_heading, end_zone) if end_zone else None

    xs: set[float] = {start[0], end[0]}
    ys: set[float] = {start[1], end[1]}
    for stub in (start_stub, end_stub):
        if stub is not None:
            xs.add(stub[0])
            ys.add(stub[1])

    obstacles = [c.obstacle for c in (start_clearance, end_clearance) if c is not None]
    obstacles += [z for z in (start_zone, end_zone) if z is not None]
    for obs in obstacles:
        xs.update((obs.min_x, obs.max_x))
        ys.update((obs.min_y, obs.max_y))

    mid_xs, mid_ys = _channel_midlines(start_box, end_box)
    xs.update(mid_xs)
    ys.update(mid_ys)

    ring = start_box.union(end_box).expand(stub_length)
    xs.update((ring.min_x, ring.max_x))
    ys.update((ring.min_y, ring.max_y))

    # A search endpoint stuck inside an obstacle would have no way out
    search_ends = (start_stub or start, end_stub or end)
    blocking: list[Bounds] = []
    for obs in obstacles:
        if any(obs.contains_point(p, strict=True) for p in search_ends):
            logger.debug("Dropping obstacle %s that encloses a route end", obs)
            continue
        if obs not in blocking:
            blocking.append(obs)

    return RouteGraph(
        xs=sorted(xs),
        ys=sorted(ys),
        obstacles=blocking,
        start_stub=start_stub,
        end_stub=end_stub,
    )


# ---------------------------------------------------------------------------
# Pathfinder
# ---------------------------------------------------------------------------

State = tuple[Node, Optional[Heading]]


def find_path(
    graph: RouteGraph,
    start: Point,
    start_heading: Heading,
    goal: Point,
    goal_heading: Heading,
    *,
    strict_departure: bool = True,
    strict_arrival: bool = True,
    turn_penalty: Optional[float] = None,
) -> Optional[list[Point]]:
    """A* search for the cheapest orthogonal path between two grid nodes.

    States are ``(node, heading)``; reversing is never allowed and every
    change of heading costs *turn_penalty* on top of the travelled length.
    Ties are broken by fewer turns, then by turns that happen earlier.

    Args:
        graph: The routing grid; *start* and *goal* must be grid nodes.
        start: Search start.
        start_heading: Heading the path is already travelling at *start*.
        goal: Search goal.
        goal_heading: Outward heading of the goal; the path ends travelling
            the opposite way.
        strict_departure: The first edge must follow *start_heading*
            (free endpoints). Otherwise a turn at *start* is allowed and
            charged (stub points).
        strict_arrival: The last edge must travel against *goal_heading*.
            Otherwise any non-reversing arrival is allowed and a turn onto
            the final stub is charged.
        turn_penalty: Cost per turn; defaults to the Manhattan span + 1.

    Returns:
        Grid positions from *start* to *goal* (collinear points included),
        or None when no path exists.
    """
    start_node = graph.node_at(start)
    goal_node = graph.node_at(goal)
    if start_node is None or goal_node is None:
        return None
    if turn_penalty is None:
        turn_penalty = manhattan(start, goal) + 1
    arrival = goal_heading.flip()

    def _h(node: Node) -> float:
        return manhattan(graph.position(node), goal)

    counter = itertools.count()
    initial: State = (start_node, start_heading)
    # (f, turns, turn marks, seq, g, length, state, parent)
    open_set: list[tuple] = [
        (_h(start_node), 0, (), next(counter), 0.0, 0.0, initial, None)
    ]
    best: dict[State, tuple[float, int, tuple[float, ...]]] = {initial: (0.0, 0, ())}
    came_from: dict[State, Optional[State]] = {}

    while open_set:
        _, turns, marks, _, g, length, state, parent = heapq.heappop(open_set)
        if state in came_from:
            continue
        came_from[state] = parent
        node, heading = state

        if heading is None:
            return _reconstruct(graph, came_from, parent)

        if node == goal_node:
            extra = _arrival_turns(heading, arrival, strict_arrival)
            if extra is not None:
                final_g = g + extra * turn_penalty
                final_marks = marks + (length,) if extra else marks
                heapq.heappush(open_set, (
                    final_g, turns + extra, final_marks, next(counter),
                    final_g, length, (node, None), state,
                ))

        for direction in _DIRECTIONS:
            if direction is heading.flip():
                continue
            if strict_departure and parent is None and direction is not heading:
                continue
            neighbor = graph.neighbor(node, direction)
            if neighbor is None:
                continue
            next_state: State = (neighbor, direction)
            if next_state in came_from:
                continue

            step = manhattan(graph.position(node), graph.position(neighbor))
            turned = direction is not heading
            next_g = g + step + (turn_penalty if turned else 0.0)
            next_turns = turns + int(turned)
            next_marks = marks + (length,) if turned else marks

            label = (next_g, next_turns, next_marks)
            if next_state in best and best[next_state] <= label:
                continue
            best[next_state] = label
            heapq.heappush(open_set, (
                next_g + _h(neighbor), next_turns, next_marks, next(counter),
                next_g, length + step, next_state, state,
            ))

    return None


def _arrival_turns(heading: Heading, arrival: Heading, strict: bool) -> Optional[int]:
    """Turns needed to finish travelling *arrival*, None if not allowed."""
    if heading is arrival:
        return 0
    if strict or heading is arrival.flip():
        return None
    return 1


def _reconstruct(
    graph: RouteGraph,
    came_from: dict[State, Optional[State]],
    state: Optional[State],
) -> list[Point]:
    path: list[Point] = []
    while state is not None:
        path.append(graph.position(state[0]))
        state = came_from[state]
    path.reverse()
    return path


def fallback_path(start: Point, start_heading: Heading, end: Point) -> list[Point]:
    """Direct two-turn path that ignores clearance."""
    if start_heading.is_horizontal:
        mid_x = (start[0] + end[0]) / 2
        return [start, (mid_x, start[1]), (mid_x, end[1]), end]
    mid_y = (start[1] + end[1]) / 2
    return [start, (start[0], mid_y), (end[0], mid_y), end]


# ---------------------------------------------------------------------------
# Simplification & normalisation
# ---------------------------------------------------------------------------

def _direction(a: Point, b: Point) -> tuple[int, int]:
    return (
        (b[0] > a[0]) - (b[0] < a[0]),
        (b[1] > a[1]) - (b[1] < a[1]),
    )


def simplify_path(points: Sequence[Point]) -> list[Point]:
    """Remove repeated points and interior points on a straight run."""
    deduped: list[Point] = []
    for p in points:
        if not deduped or deduped[-1] != p:
            deduped.append(p)
    if len(deduped) < 3:
        return deduped

    result: list[Point] = [deduped[0]]
    for i in range(1, len(deduped) - 1):
        cur = deduped[i]
        if _direction(result[-1], cur) == _direction(cur, deduped[i + 1]):
            continue
        result.append(cur)
    result.append(deduped[-1])
    return result


def normalize_path(points: Sequence[Point]) -> ElbowRoute:
    """Re-express a global path relative to its own minimum corner.

    ``points[0]`` stays the first routed point; it is ``(0, 0)`` only when
    that point is also the minimum corner.
    """
    min_x = min(p[0] for p in points)
    min_y = min(p[1] for p in points)
    local = [(px - min_x, py - min_y) for px, py in points]
    return ElbowRoute(
        points=local,
        x=min_x,
        y=min_y,
        width=max(p[0] for p in local),
        height=max(p[1] for p in local),
    )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def _head_room(arrowhead: Optional[Arrowhead], config: RouterConfig) -> float:
    return config.arrowhead_clearance if arrowhead is not None else config.head_clearance


def route_between(
    start: ResolvedEndpoint,
    end: ResolvedEndpoint,
    *,
    gap: Optional[float] = None,
    config: Optional[RouterConfig] = None,
    start_arrowhead: Optional[Arrowhead] = None,
    end_arrowhead: Optional[Arrowhead] = None,
    arrow_id: str = "",
) -> list[Point]:
    """Global orthogonal path between two resolved endpoints (unsimplified)."""
    cfg = config or RouterConfig()
    if start.point == end.point:
        return [start.point]

    start_clearance = (
        clearance_for(
            start.shape, start.heading, _clearance(start.binding, gap, cfg),
            _head_room(start_arrowhead, cfg), cfg.stub_length,
        )
        if start.shape is not None else None
    )
    end_clearance = (
        clearance_for(
            end.shape, end.heading, _clearance(end.binding, gap, cfg),
            _head_room(end_arrowhead, cfg), cfg.stub_length,
        )
        if end.shape is not None else None
    )
    graph = build_route_graph(
        start.point, start.heading,
        end.point, end.heading,
        start_clearance, end_clearance,
        stub_length=cfg.stub_length,
    )

    search_start = graph.start_stub or start.point
    search_goal = graph.end_stub or end.point
    path = find_path(
        graph,
        search_start, start.heading,
        search_goal, end.heading,
        strict_departure=graph.start_stub is None,
        strict_arrival=graph.end_stub is None,
        turn_penalty=cfg.turn_penalty,
    )
    if path is None:
        logger.debug("No clear route for arrow '%s' between %s and %s, using direct path",
                     arrow_id, start.point, end.point)
        return fallback_path(start.point, start.heading, end.point)

    if graph.start_stub is not None:
        path.insert(0, start.point)
    if graph.end_stub is not None:
        path.append(end.point)
    return path


def route_elbow_arrow(
    arrow: ArrowElement,
    scene: Scene,
    endpoints: Optional[Sequence[Point]] = None,
    *,
    gap: Optional[float] = None,
    config: Optional[RouterConfig] = None,
) -> ElbowRoute:
    """Compute the elbow route of *arrow* without touching it.

    Args:
        arrow: The arrow to route; only its bindings, arrowheads and (by
            default) current endpoints are read.
        scene: Read-only snapshot the bindings are resolved through.
        endpoints: Desired global start and end points. Bound endpoints
            are overridden by their binding.
        gap: Obstacle clearance override for this call.
        config: Router constants.

    Returns:
        The route in the arrow's frame: local points, origin and extent.

    Raises:
        ValueError: If *endpoints* does not hold exactly two points.
    """
    if endpoints is None:
        endpoints = (arrow.global_point(0), arrow.global_point(-1))
    if len(endpoints) != 2:
        raise ValueError(f"Expected exactly two endpoints, got {len(endpoints)}.")
    desired_start = (float(endpoints[0][0]), float(endpoints[0][1]))
    desired_end = (float(endpoints[1][0]), float(endpoints[1][1]))

    start = resolve_endpoint(desired_start, desired_end, arrow.start_binding, scene)
    end = resolve_endpoint(desired_end, start.point, arrow.end_binding, scene)
    if not start.is_bound:
        start = resolve_endpoint(desired_start, end.point, None, scene)

    path = route_between(
        start, end,
        gap=gap,
        config=config,
        start_arrowhead=arrow.start_arrowhead,
        end_arrowhead=arrow.end_arrowhead,
        arrow_id=arrow.id,
    )
    return normalize_path(simplify_path(path))


def mutate_elbow_arrow(
    arrow: ArrowElement,
    scene: Scene,
    endpoints: Optional[Sequence[Point]] = None,
    *,
    gap: Optional[float] = None,
    config: Optional[RouterConfig] = None,
) -> ElbowRoute:
    """Route *arrow* and write the result into its points, origin and extent."""
    route = route_elbow_arrow(arrow, scene, endpoints, gap=gap, config=config)
    arrow.points = list(route.points)
    arrow.x = route.x
    arrow.y = route.y
    arrow.width = route.width
    arrow.height = route.height
    arrow.angle = 0
    return route


def reroute_bound_arrows(
    scene: Scene,
    shape_id: str,
    *,
    config: Optional[RouterConfig] = None,
) -> list[str]:
    """Re-route every elbow arrow bound to *shape_id*.

    Call after a shape moves, resizes or rotates.

    Returns:
        IDs of the arrows that were re-routed.
    """
    rerouted: list[str] = []
    for arrow in scene.arrows():
        if arrow.elbowed and arrow.is_bound_to(shape_id):
            mutate_elbow_arrow(arrow, scene, config=config)
            rerouted.append(arrow.id)
    return rerouted
