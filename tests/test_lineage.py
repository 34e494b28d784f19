import io
import math

import pytest
from PIL import Image

import app as app_module
from lineage import layout, render_png

ORIGINALS = {
    "id": "s1",
    "vibes": [
        {"id": "a", "label": "Neon Rain"},
        {"id": "b", "label": "Desert Dawn"},
        {"id": "c", "label": ""},
    ],
}

VARIANTS = {
    "id": "s2",
    "vibes": [
        {"id": "a1", "label": "Neon Fog", "parentId": "a"},
        {"id": "a2", "label": "", "parentId": "a"},
        {"id": "z1", "label": "Orphan", "parentId": "missing"},
    ],
}


def test_parent_row():
    graph = layout([ORIGINALS], width=1000)
    assert graph.height == 600
    xs = [n.x for n in graph.nodes]
    assert xs == [250, 500, 750]
    assert all(n.y == 100 and n.is_parent for n in graph.nodes)
    assert graph.node("c").label == "Original 3"


def test_variants_hang_below_parent():
    graph = layout([ORIGINALS, VARIANTS], width=1000)
    a1, a2 = graph.node("a1"), graph.node("a2")

    assert a1.y == a2.y == 200 + 100 + 150
    assert a1.x == pytest.approx(250 + math.cos(-math.pi / 4) * 150)
    assert a2.x == pytest.approx(250 + math.cos(math.pi / 4) * 150)
    assert a2.label == "Variant 2"
    assert not a1.is_parent
    assert [(e.parent_id, e.child_id) for e in graph.edges] == [("a", "a1"), ("a", "a2")]


def test_variant_with_unknown_parent_is_skipped():
    graph = layout([ORIGINALS, VARIANTS], width=1000)
    assert graph.node("z1") is None


def test_height_grows_with_sets():
    sets = [{"id": str(i), "vibes": []} for i in range(5)]
    assert layout(sets).height == 1100


def test_last_band_variants_fit_on_canvas():
    sets = [{"id": str(i), "vibes": []} for i in range(3)] + [ORIGINALS, VARIANTS]
    graph = layout(sets)
    lowest = max(n.y for n in graph.nodes)
    assert lowest == 4 * 200 + 100 + 150
    assert lowest + 40 < graph.height


def test_non_string_labels_are_drawn():
    sets = [{"vibes": [{"id": 1, "label": 7}, {"id": "b", "label": ["x"]}]}]
    assert layout(sets).nodes[0].label == "7"
    data = render_png(sets, width=600)
    with Image.open(io.BytesIO(data)) as img:
        assert img.size == (600, 600)


def test_render_png_size():
    data = render_png([ORIGINALS, VARIANTS], width=800)
    with Image.open(io.BytesIO(data)) as img:
        assert img.format == "PNG"
        assert img.size == (800, 600)


def test_lineage_route(client):
    res = client.post("/api/lineage", json={"generationSets": [ORIGINALS, VARIANTS], "width": 900})
    assert res.status_code == 200
    assert res.mimetype == "image/png"
    with Image.open(io.BytesIO(res.data)) as img:
        assert img.size == (900, 600)


def test_lineage_route_clamps_width(client):
    res = client.post("/api/lineage", json={"generationSets": [], "width": 10})
    with Image.open(io.BytesIO(res.data)) as img:
        assert img.size[0] == 400


@pytest.mark.parametrize("body", [
    {},
    {"generationSets": "nope"},
    {"generationSets": [1, 2]},
    {"generationSets": [{"vibes": "x"}]},
    {"generationSets": [], "width": "wide"},
])
def test_lineage_route_rejects_bad_input(client, body):
    res = client.post("/api/lineage", json=body)
    assert res.status_code == 400


def test_lineage_route_non_string_label(client):
    res = client.post("/api/lineage", json={"generationSets": [{"vibes": [{"id": "a", "label": 7}]}]})
    assert res.status_code == 200
    assert res.mimetype == "image/png"


def test_lineage_route_rejects_array_body(client):
    res = client.post("/api/lineage", json=[{"vibes": []}])
    assert res.status_code == 400
    assert res.get_json() == {"error": "Request body must be a JSON object"}


def test_lineage_route_caps_set_count(client):
    res = client.post("/api/lineage", json={"generationSets": [{}] * (app_module.MAX_LINEAGE_SETS + 1)})
    assert res.status_code == 400
    assert "At most" in res.get_json()["error"]

    res = client.post("/api/lineage", json={"generationSets": [{}] * app_module.MAX_LINEAGE_SETS})
    assert res.status_code == 200
