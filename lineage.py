"""Lay out and draw the parent/variant graph of generated vibes.

Every generation set occupies a 200px band. Vibes without a ``parentId`` sit
in a row at the top of their band; variants hang 150px below their parent,
fanned out over a quarter turn and joined to it by a curved arrow.
"""
import io
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from PIL import Image, ImageDraw, ImageFilter, ImageFont

ROW_HEIGHT = 200
MIN_HEIGHT = 600
BOTTOM_MARGIN = 100
PARENT_SPACING = 250
VARIANT_RADIUS = 150
VARIANT_DROP = 150

PARENT_RADIUS = 25
VARIANT_RADIUS_PX = 20
LABEL_OFFSET = 40
ARROW_LENGTH = 10

COLORS = {
    "background": (0, 0, 0, 255),
    "primary": (79, 70, 229, 255),
    "secondary": (99, 102, 241, 255),
    "highlight": (129, 140, 248, 255),
    "line": (99, 102, 241, 153),
    "label": (255, 255, 255, 255),
}


@dataclass
class Node:
    id: str
    x: float
    y: float
    label: str
    is_parent: bool
    image_url: Optional[str] = None


@dataclass
class Edge:
    parent_id: str
    child_id: str


@dataclass
class Layout:
    width: int
    height: int
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)

    def node(self, node_id):
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None


def layout(generation_sets, width=1200) -> Layout:
    height = max(MIN_HEIGHT, len(generation_sets) * ROW_HEIGHT + BOTTOM_MARGIN)
    result = Layout(width=int(width), height=int(height))
    positions: Dict[str, Node] = {}

    for set_index, gen_set in enumerate(generation_sets):
        base_y = set_index * ROW_HEIGHT + 100
        vibes = gen_set.get("vibes") or []

        for i, vibe in enumerate(vibes):
            if vibe.get("parentId"):
                continue
            node = Node(
                id=str(vibe.get("id") or f"{gen_set.get('id', set_index)}:{i}"),
                x=width / 2 + (i - 1) * PARENT_SPACING,
                y=base_y,
                label=str(vibe.get("label") or f"Original {i + 1}"),
                is_parent=True,
                image_url=vibe.get("imageUrl"),
            )
            positions[node.id] = node
            result.nodes.append(node)

        for i, vibe in enumerate(vibes):
            parent = positions.get(str(vibe.get("parentId") or ""))
            if parent is None:
                continue
            angle = i * (math.pi / 2) - math.pi / 4
            node = Node(
                id=str(vibe.get("id") or f"{gen_set.get('id', set_index)}:{i}"),
                x=parent.x + math.cos(angle) * VARIANT_RADIUS,
                y=base_y + VARIANT_DROP,
                label=str(vibe.get("label") or f"Variant {i + 1}"),
                is_parent=False,
                image_url=vibe.get("imageUrl"),
            )
            positions[node.id] = node
            result.nodes.append(node)
            result.edges.append(Edge(parent_id=parent.id, child_id=node.id))

    return result


def _bezier(p0, p1, p2, p3, steps=32):
    points = []
    for step in range(steps + 1):
        t = step / steps
        mt = 1 - t
        x = mt ** 3 * p0[0] + 3 * mt ** 2 * t * p1[0] + 3 * mt * t ** 2 * p2[0] + t ** 3 * p3[0]
        y = mt ** 3 * p0[1] + 3 * mt ** 2 * t * p1[1] + 3 * mt * t ** 2 * p2[1] + t ** 3 * p3[1]
        points.append((x, y))
    return points


def _draw_connection(draw, start, end):
    (sx, sy), (ex, ey) = start, end
    c1 = (sx, sy + (ey - sy) * 0.2)
    c2 = (ex, ey - (ey - sy) * 0.2)
    draw.line(_bezier(start, c1, c2, end), fill=COLORS["line"], width=2)

    angle = math.atan2(ey - c2[1], ex - c2[0])
    for side in (-1, 1):
        tip = (
            ex - ARROW_LENGTH * math.cos(angle + side * math.pi / 6),
            ey - ARROW_LENGTH * math.sin(angle + side * math.pi / 6),
        )
        draw.line([end, tip], fill=COLORS["line"], width=2)


def _draw_glow(glow, node):
    radius = (PARENT_RADIUS if node.is_parent else VARIANT_RADIUS_PX) + (8 if node.is_parent else 5)
    ImageDraw.Draw(glow).ellipse(
        [node.x - radius, node.y - radius, node.x + radius, node.y + radius],
        fill=COLORS["highlight"],
    )


def _draw_node(draw, node, font):
    radius = PARENT_RADIUS if node.is_parent else VARIANT_RADIUS_PX
    draw.ellipse(
        [node.x - radius, node.y - radius, node.x + radius, node.y + radius],
        fill=COLORS["primary"] if node.is_parent else COLORS["secondary"],
        outline=COLORS["highlight"],
        width=2,
    )
    text_width = draw.textlength(node.label, font=font)
    top = node.y + LABEL_OFFSET - getattr(font, "size", 12)
    draw.text((node.x - text_width / 2, top), node.label, fill=COLORS["label"], font=font)


def render_png(generation_sets, width=1200) -> bytes:
    graph = layout(generation_sets, width)
    size = (graph.width, graph.height)

    glow = Image.new("RGBA", size, (0, 0, 0, 0))
    for node in graph.nodes:
        _draw_glow(glow, node)
    glow = glow.filter(ImageFilter.GaussianBlur(8))

    canvas = Image.new("RGBA", size, COLORS["background"])
    canvas.alpha_composite(glow)

    lines = Image.new("RGBA", size, (0, 0, 0, 0))
    line_draw = ImageDraw.Draw(lines)
    for edge in graph.edges:
        parent, child = graph.node(edge.parent_id), graph.node(edge.child_id)
        _draw_connection(line_draw, (parent.x, parent.y), (child.x, child.y))
    canvas.alpha_composite(lines)

    draw = ImageDraw.Draw(canvas)
    parent_font = ImageFont.load_default(size=14)
    variant_font = ImageFont.load_default(size=12)
    for node in graph.nodes:
        _draw_node(draw, node, parent_font if node.is_parent else variant_font)

    buf = io.BytesIO()
    canvas.convert("RGB").save(buf, format="PNG")
    return buf.getvalue()
