"""
Elbow Router MCP Server — route orthogonal connectors via Model Context Protocol.

Exposes 4 tools that let an LLM agent build a scene of shapes and elbow
arrows, bind arrow endpoints to shapes and get routes that keep clear of
the bound shapes, re-derived whenever something moves.

Tools:
  1. scene    — lifecycle: create, list, get_json, import_json, save, load, delete
  2. shape    — content:  add, update (re-routes bound arrows), delete
  3. arrow    — connectors: add, bind, unbind, route
  4. inspect  — read-only: arrow geometry, element records
"""

from __future__ import annotations

import json
import logging
import math
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from elbow_router.binding import bind_linear_element, unbind_linear_element
from elbow_router.models import ArrowElement, Arrowhead, Scene, ShapeElement, ShapeType
from elbow_router.routing import (
    ElbowRoute,
    RouterConfig,
    mutate_elbow_arrow,
    reroute_bound_arrows,
)
from elbow_router.validation import (
    ValidationError,
    validate_action,
    validate_arrowhead,
    validate_endpoints,
    validate_file_path,
    validate_non_empty_string,
    validate_non_negative_number,
    validate_number,
    validate_point,
    validate_positive_number,
    validate_shape_type,
    validate_shapes,
    validate_start_or_end,
    _ARROW_ACTIONS,
    _INSPECT_ACTIONS,
    _SCENE_ACTIONS,
    _SHAPE_ACTIONS,
)

# ---------------------------------------------------------------------------
# Logging: keep routine FastMCP INFO messages off stdio transports
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("elbow-router")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "elbow-router",
    instructions=(
        "MCP server that routes elbow (orthogonal) arrows between shapes.\n\n"
        "=== ONLY 4 TOOLS — use the 'action' parameter to pick the operation ===\n\n"
        "1. scene(action, ...) — lifecycle: create, list, get_json, import_json,\n"
        "   save, load, delete.\n"
        "2. shape(action, ...) — content: add, update, delete.\n"
        "3. arrow(action, ...) — connectors: add, bind, unbind, route.\n"
        "4. inspect(action, ...) — read-only: arrow, elements.\n\n"
        "=== RULES ===\n"
        "- ALL coordinates (x, y) are ABSOLUTE scene positions, y grows downward.\n"
        "- Shape angles are given in DEGREES, clockwise.\n"
        "- Arrow points are returned relative to the arrow origin.\n"
        "- Moving, resizing or rotating a shape re-routes every arrow bound to it.\n\n"
        "Read the resource elbow://guide for the full workflow.\n"
    ),
)


@dataclass
class SceneState:
    """A scene plus the router settings it is routed with."""
    scene: Scene = field(default_factory=Scene)
    config: RouterConfig = field(default_factory=RouterConfig)


# In-memory scene registry: name -> SceneState
# Guarded by _scenes_lock for thread-safety.
_scenes: dict[str, SceneState] = {}
_scenes_lock = threading.Lock()


# ===================================================================
# RESOURCES
# ===================================================================

@mcp.resource("elbow://guide")
def agent_guide() -> str:
    """Workflow guide for AI agents using the elbow router tools."""
    return """# Elbow Router — Agent Guide

You have 4 tools. Each tool uses an `action` parameter to pick the operation.

## Quick Recipe

```
1. scene(action='create', name='demo')
2. shape(action='add', scene_name='demo', shapes=[
       {"id": "a", "x": -150, "y": -150, "width": 100, "height": 100},
       {"id": "b", "x": 50, "y": 50, "width": 100, "height": 100}])
3. arrow(action='add', scene_name='demo', start=[-45, -100], end=[45, 100],
         start_shape_id='a', end_shape_id='b')
4. shape(action='update', scene_name='demo', shape_id='b', angle=40)
   -> the arrow is re-routed automatically
5. inspect(action='arrow', scene_name='demo', arrow_id='...')
6. scene(action='save', name='demo', file_path='/abs/path/demo.json')
```

## Binding

- An endpoint is bound where it currently sits: place the endpoint next to
  the side you want it to leave from, then bind it.
- A bound endpoint always leaves its shape perpendicular to the bound side
  and keeps the binding's gap as clearance.
- Free endpoints stay exactly where you put them.

## Routes

- Routes only use horizontal and vertical segments.
- They avoid the interiors of the two bound shapes (other shapes are not
  obstacles).
- New arrows get an arrowhead at the end (`end_arrowhead=''` for none).
  A bound end with an arrowhead keeps more room in front of its shape.
- `arrow(action='route', gap=...)` overrides the clearance for one call.
- Deleting a shape unbinds every arrow attached to it.
"""


# ===================================================================
# TOOL 1: scene — lifecycle
# ===================================================================

@mcp.tool()
def scene(
    action: str,
    name: str = "",
    file_path: str = "",
    json_content: str = "",
    default_gap: float = 5,
    stub_length: float = 40,
    turn_penalty: float = 0,
) -> str:
    """Scene lifecycle management.

    Actions:
      create      — Create a new empty scene. Params: name, default_gap,
                    stub_length, turn_penalty (0 = automatic).
      list        — List all in-memory scenes. No params needed.
      get_json    — Get the scene document as JSON. Params: name.
      import_json — Import a scene document. Params: name, json_content.
      save        — Save a scene to a .json file. Params: name, file_path.
      load        — Load a scene from a .json file. Params: name, file_path.
      delete      — Drop a scene from memory. Params: name.

    Args:
        action: One of: create, list, get_json, import_json, save, load, delete.
        name: Scene name (used as key in memory).
        file_path: Absolute path for save/load operations.
        json_content: Scene document for import_json.
        default_gap: Clearance around bound shapes when a binding has none.
        stub_length: How far routes leave a shape before turning.
        turn_penalty: Cost per turn; 0 scales it with the route span.

    Returns:
        Result string or JSON depending on action.
    """
    try:
        action = validate_action(action, "scene", _SCENE_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "create":
        try:
            name = validate_non_empty_string(name, "name")
            default_gap = validate_non_negative_number(default_gap, "default_gap")
            stub_length = validate_positive_number(stub_length, "stub_length")
            turn_penalty = validate_non_negative_number(turn_penalty, "turn_penalty")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        config = RouterConfig(
            default_gap=default_gap,
            stub_length=stub_length,
            turn_penalty=turn_penalty or None,
        )
        with _scenes_lock:
            _scenes[name] = SceneState(config=config)
        return f"Scene '{name}' created."

    elif action == "list":
        result: list[dict[str, Any]] = []
        for n, state in _scenes.items():
            result.append({
                "name": n,
                "shapes": len(state.scene.shapes()),
                "arrows": len(state.scene.arrows()),
            })
        return json.dumps(result, indent=2)

    elif action == "get_json":
        try:
            name = validate_non_empty_string(name, "name")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        state = _scenes.get(name)
        if not state:
            return f"Error: scene '{name}' not found."
        return state.scene.to_json()

    elif action == "import_json":
        try:
            name = validate_non_empty_string(name, "name")
            validate_non_empty_string(json_content, "json_content")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        return _import_json_impl(name, json_content)

    elif action == "save":
        try:
            name = validate_non_empty_string(name, "name")
            validate_file_path(file_path, "file_path")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        state = _scenes.get(name)
        if not state:
            return f"Error: scene '{name}' not found."
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(state.scene.to_json(), encoding="utf-8")
        return f"Scene saved to {path.resolve()}"

    elif action == "load":
        try:
            name = validate_non_empty_string(name, "name")
            validate_file_path(file_path, "file_path")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        path = Path(file_path)
        if not path.exists():
            return f"Error: file '{file_path}' not found."
        return _import_json_impl(name, path.read_text(encoding="utf-8"))

    elif action == "delete":
        try:
            name = validate_non_empty_string(name, "name")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        with _scenes_lock:
            removed = _scenes.pop(name, None)
        if removed is None:
            return f"Error: scene '{name}' not found."
        return f"Scene '{name}' deleted."

    else:
        return f"Error: unknown scene action '{action}'. Use: create, list, get_json, import_json, save, load, delete."


# ===================================================================
# TOOL 2: shape — bindable shapes
# ===================================================================

@mcp.tool()
def shape(
    action: str,
    scene_name: str = "",
    shapes: list[dict[str, Any]] | None = None,
    shape_id: str = "",
    x: float | None = None,
    y: float | None = None,
    width: float | None = None,
    height: float | None = None,
    angle: float | None = None,
) -> str:
    """Add, update, or delete bindable shapes.

    Actions:
      add    — Add one or more shapes. Params: shapes (list of
               {x, y, width?, height?, angle? (degrees), type?, id?}).
      update — Move / resize / rotate a shape and re-route every arrow
               bound to it. Params: shape_id, x?, y?, width?, height?, angle?.
      delete — Delete a shape, unbind arrows attached to it and re-route
               them. Params: shape_id.

    Args:
        action: One of: add, update, delete.
        scene_name: Target scene name.
        shapes: List of shape dicts for add.
        shape_id: Shape ID for update / delete.
        x: New left edge (update).
        y: New top edge (update).
        width: New width (update).
        height: New height (update).
        angle: New rotation in degrees, clockwise (update).

    Returns:
        JSON result with shape IDs and re-routed arrow IDs.
    """
    try:
        action = validate_action(action, "shape", _SHAPE_ACTIONS)
        validate_non_empty_string(scene_name, "scene_name")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    state = _scenes.get(scene_name)
    if not state:
        return f"Error: scene '{scene_name}' not found."
    sc = state.scene

    # ----- add -----
    if action == "add":
        try:
            validate_shapes(shapes or [])
        except ValidationError as exc:
            return f"Error: {exc.message}"
        for i, s in enumerate(shapes):
            if s.get("id") and s["id"].strip() in sc.elements:
                return f"Error: shape at index {i}: element '{s['id']}' already exists."
        ids: list[str] = []
        for s in shapes:
            element = ShapeElement(
                type=ShapeType(validate_shape_type(s.get("type", "rectangle"))),
                x=float(s["x"]),
                y=float(s["y"]),
                width=float(s.get("width", 100)),
                height=float(s.get("height", 100)),
                angle=math.radians(s.get("angle", 0)),
            )
            if s.get("id"):
                element.id = s["id"].strip()
            ids.append(sc.insert_element(element))
        return json.dumps(ids)

    try:
        shape_id = validate_non_empty_string(shape_id, "shape_id")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    target = sc.lookup(shape_id)
    if not isinstance(target, ShapeElement):
        return f"Error: shape '{shape_id}' not found."

    # ----- update -----
    if action == "update":
        try:
            if x is not None:
                x = validate_number(x, "x")
            if y is not None:
                y = validate_number(y, "y")
            if width is not None:
                width = validate_positive_number(width, "width")
            if height is not None:
                height = validate_positive_number(height, "height")
            if angle is not None:
                angle = validate_number(angle, "angle")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        if x is not None:
            target.x = x
        if y is not None:
            target.y = y
        if width is not None:
            target.width = width
        if height is not None:
            target.height = height
        if angle is not None:
            target.angle = math.radians(angle)
        rerouted = reroute_bound_arrows(sc, shape_id, config=state.config)
        return json.dumps({"shape_id": shape_id, "rerouted": rerouted})

    # ----- delete -----
    elif action == "delete":
        affected = [a for a in sc.arrows() if a.is_bound_to(shape_id)]
        target.is_deleted = True
        for arrow in affected:
            for end in ("start", "end"):
                b = arrow.binding_for(end)
                if b is not None and b.element_id == shape_id:
                    unbind_linear_element(arrow, end)
            mutate_elbow_arrow(arrow, sc, config=state.config)
        logger.debug("Deleted shape '%s', unbound %d arrow(s)", shape_id, len(affected))
        return json.dumps({"deleted": shape_id, "rerouted": [a.id for a in affected]})

    else:
        return f"Error: unknown shape action '{action}'. Use: add, update, delete."


# ===================================================================
# TOOL 3: arrow — elbow connectors
# ===================================================================

@mcp.tool()
def arrow(
    action: str,
    scene_name: str = "",
    arrow_id: str = "",
    start: list[float] | None = None,
    end: list[float] | None = None,
    start_shape_id: str = "",
    end_shape_id: str = "",
    shape_id: str = "",
    start_or_end: str = "",
    endpoints: list[list[float]] | None = None,
    gap: float | None = None,
    start_arrowhead: str = "",
    end_arrowhead: str = "arrow",
) -> str:
    """Create, bind, and route elbow arrows.

    Actions:
      add    — Add an arrow between two absolute points and route it.
               Params: start, end, start_shape_id?, end_shape_id? (bind the
               endpoint to that shape where it sits), start_arrowhead?,
               end_arrowhead? (arrow, bar, dot, triangle or "" for none;
               the end gets an arrow by default).
      bind   — Bind one endpoint to a shape where it currently sits, then
               re-route. Params: arrow_id, shape_id, start_or_end.
      unbind — Detach one endpoint and re-route. Params: arrow_id, start_or_end.
      route  — Re-route an arrow. Params: arrow_id, endpoints? ([[x, y], [x, y]]
               absolute; bound endpoints ignore theirs), gap? (clearance override).

    Args:
        action: One of: add, bind, unbind, route.
        scene_name: Target scene name.
        arrow_id: Arrow ID for bind / unbind / route.
        start: Absolute [x, y] start point (add).
        end: Absolute [x, y] end point (add).
        start_shape_id: Shape to bind the start to (add).
        end_shape_id: Shape to bind the end to (add).
        shape_id: Shape to bind to (bind).
        start_or_end: Which endpoint, "start" or "end" (bind / unbind).
        endpoints: Desired absolute endpoints (route).
        gap: Obstacle clearance override (route).
        start_arrowhead: Marker at the start, "" for none (add).
        end_arrowhead: Marker at the end, "" for none (add).

    Returns:
        JSON with the arrow's routed geometry.
    """
    try:
        action = validate_action(action, "arrow", _ARROW_ACTIONS)
        validate_non_empty_string(scene_name, "scene_name")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    state = _scenes.get(scene_name)
    if not state:
        return f"Error: scene '{scene_name}' not found."
    sc = state.scene

    # ----- add -----
    if action == "add":
        try:
            sx, sy = validate_point(start, "start")
            ex, ey = validate_point(end, "end")
            heads = (
                validate_arrowhead(start_arrowhead, "start_arrowhead"),
                validate_arrowhead(end_arrowhead, "end_arrowhead"),
            )
        except ValidationError as exc:
            return f"Error: {exc.message}"
        bindings: list[tuple[str, ShapeElement]] = []
        for which, sid in (("start", start_shape_id), ("end", end_shape_id)):
            if not sid:
                continue
            bound = sc.lookup(sid)
            if not isinstance(bound, ShapeElement):
                return f"Error: shape '{sid}' not found."
            bindings.append((which, bound))
        element = ArrowElement(
            x=sx,
            y=sy,
            points=[(0.0, 0.0), (ex - sx, ey - sy)],
            start_arrowhead=Arrowhead(heads[0]) if heads[0] else None,
            end_arrowhead=Arrowhead(heads[1]) if heads[1] else None,
        )
        sc.insert_element(element)
        for which, bound in bindings:
            bind_linear_element(element, bound, which, sc)
        route = mutate_elbow_arrow(element, sc, config=state.config)
        return json.dumps(_route_summary(element, route))

    try:
        arrow_id = validate_non_empty_string(arrow_id, "arrow_id")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    target = sc.lookup(arrow_id)
    if not isinstance(target, ArrowElement):
        return f"Error: arrow '{arrow_id}' not found."

    # ----- bind -----
    if action == "bind":
        try:
            which = validate_start_or_end(start_or_end)
            shape_id = validate_non_empty_string(shape_id, "shape_id")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        bound = sc.lookup(shape_id)
        if not isinstance(bound, ShapeElement):
            return f"Error: shape '{shape_id}' not found."
        bind_linear_element(target, bound, which, sc)
        route = mutate_elbow_arrow(target, sc, config=state.config)
        return json.dumps(_route_summary(target, route))

    # ----- unbind -----
    elif action == "unbind":
        try:
            which = validate_start_or_end(start_or_end)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        removed = unbind_linear_element(target, which)
        if removed is None:
            return f"Error: {which} of arrow '{arrow_id}' is not bound."
        route = mutate_elbow_arrow(target, sc, config=state.config)
        return json.dumps(_route_summary(target, route))

    # ----- route -----
    elif action == "route":
        try:
            points = validate_endpoints(endpoints) if endpoints is not None else None
            if gap is not None:
                gap = validate_non_negative_number(gap, "gap")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        route = mutate_elbow_arrow(target, sc, points, gap=gap, config=state.config)
        return json.dumps(_route_summary(target, route))

    else:
        return f"Error: unknown arrow action '{action}'. Use: add, bind, unbind, route."


# ===================================================================
# TOOL 4: inspect — read-only
# ===================================================================

@mcp.tool()
def inspect(
    action: str,
    scene_name: str = "",
    arrow_id: str = "",
) -> str:
    """Read-only inspection of scenes.

    Actions:
      arrow    — Routed geometry and bindings of one arrow.
                 Params: scene_name, arrow_id.
      elements — All non-deleted element records. Params: scene_name.

    Args:
        action: One of: arrow, elements.
        scene_name: Target scene name.
        arrow_id: Arrow ID for the arrow action.

    Returns:
        JSON data.
    """
    try:
        action = validate_action(action, "inspect", _INSPECT_ACTIONS)
        validate_non_empty_string(scene_name, "scene_name")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    state = _scenes.get(scene_name)
    if not state:
        return f"Error: scene '{scene_name}' not found."

    if action == "arrow":
        try:
            arrow_id = validate_non_empty_string(arrow_id, "arrow_id")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        target = state.scene.lookup(arrow_id)
        if not isinstance(target, ArrowElement):
            return f"Error: arrow '{arrow_id}' not found."
        info = _arrow_geometry(target)
        info["start_binding"] = target.start_binding.to_dict() if target.start_binding else None
        info["end_binding"] = target.end_binding.to_dict() if target.end_binding else None
        return json.dumps(info, indent=2)

    elif action == "elements":
        return json.dumps(
            [e.to_dict() for e in state.scene.non_deleted_elements()], indent=2
        )

    else:
        return f"Error: unknown inspect action '{action}'. Use: arrow, elements."


# ===================================================================
# Internal helpers
# ===================================================================

def _arrow_geometry(element: ArrowElement) -> dict[str, Any]:
    return {
        "arrow_id": element.id,
        "origin": [element.x, element.y],
        "extent": [element.width, element.height],
        "points": [[px, py] for px, py in element.points],
        "global_points": [
            list(element.global_point(i)) for i in range(len(element.points))
        ],
    }


def _route_summary(element: ArrowElement, route: ElbowRoute) -> dict[str, Any]:
    """Routed geometry plus which endpoints ended up bound."""
    info = _arrow_geometry(element)
    info["segments"] = len(route.points) - 1
    info["bound"] = {
        "start": element.start_binding.element_id if element.start_binding else None,
        "end": element.end_binding.element_id if element.end_binding else None,
    }
    return info


def _import_json_impl(name: str, json_content: str) -> str:
    """Parse a scene document and register it under *name*."""
    try:
        data = json.loads(json_content)
    except json.JSONDecodeError as exc:
        return f"Error: invalid JSON: {exc.msg} (line {exc.lineno})."
    if not isinstance(data, dict) or data.get("type") != "scene":
        return "Error: document is not a scene (expected {\"type\": \"scene\", ...})."
    try:
        imported = Scene.from_dict(data)
    except (KeyError, TypeError, ValueError) as exc:
        return f"Error: invalid element record: {exc}"
    with _scenes_lock:
        _scenes[name] = SceneState(scene=imported)
    return (
        f"Imported '{name}' with {len(imported.shapes())} shape(s) "
        f"and {len(imported.arrows())} arrow(s)."
    )


# ===================================================================
# Entry point
# ===================================================================

def main() -> None:
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
