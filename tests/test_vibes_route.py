import io
import json

from PIL import Image

import app as app_module
from system_prompt import IMAGE_ONLY_HINT
from conftest import make_png

VIBES_JSON = json.dumps({
    "vibes": [
        {"label": "Neon Rain", "prompt": "A rain-soaked neon street at midnight"},
        {"label": "Desert Dawn", "prompt": "Sunrise over rippling dunes"},
        {"label": "Deep Sea", "prompt": "Bioluminescent creatures in the abyss"},
    ]
})


class RateLimited(Exception):
    code = 429


def test_missing_api_key(client, settings):
    settings.gemini_api_key = None
    res = client.post("/api/vibes", data={"prompt": "a cat"})
    assert res.status_code == 500
    assert res.get_json()["error"] == "Server configuration error: GEMINI_API_KEY is not set."


def test_requires_prompt_or_image(client, fake_genai):
    fake = fake_genai(VIBES_JSON)
    res = client.post("/api/vibes", data={})
    assert res.status_code == 400
    assert res.get_json()["error"] == "Missing required parameters: prompt or image is required"
    assert fake.models.calls == []


def test_prompt_only(client, fake_genai, settings):
    fake = fake_genai("```json\n" + VIBES_JSON + "\n```")
    res = client.post("/api/vibes", data={"prompt": "  a cat on a roof  "})
    assert res.status_code == 200

    vibes = res.get_json()["vibes"]
    assert [v["label"] for v in vibes] == ["Neon Rain", "Desert Dawn", "Deep Sea"]
    assert all(v["id"] for v in vibes)
    assert len({v["id"] for v in vibes}) == 3
    assert all("parentId" not in v for v in vibes)

    call = fake.models.calls[0]
    assert call["model"] == settings.vibe_model
    assert call["contents"][0].text == "User's initial prompt: a cat on a roof"
    assert "three distinct variations" in call["contents"][-1].text
    assert call["config"].response_mime_type == "application/json"


def test_image_only(client, fake_genai):
    fake = fake_genai(VIBES_JSON)
    png = make_png()
    res = client.post(
        "/api/vibes",
        data={"image": (io.BytesIO(png), "cat.png", "image/png")},
        content_type="multipart/form-data",
    )
    assert res.status_code == 200

    contents = fake.models.calls[0]["contents"]
    assert contents[0].inline_data.mime_type == "image/png"
    assert contents[0].inline_data.data == png
    assert contents[1].text == IMAGE_ONLY_HINT


def test_non_image_mime_defaults_to_jpeg(client, fake_genai):
    fake = fake_genai(VIBES_JSON)
    res = client.post(
        "/api/vibes",
        data={"prompt": "x", "image": (io.BytesIO(make_png()), "blob", "application/octet-stream")},
        content_type="multipart/form-data",
    )
    assert res.status_code == 200
    contents = fake.models.calls[0]["contents"]
    assert contents[1].inline_data.mime_type == "image/jpeg"
    assert IMAGE_ONLY_HINT not in [p.text for p in contents if p.text]


def test_invalid_upload(client, fake_genai):
    fake_genai(VIBES_JSON)
    res = client.post(
        "/api/vibes",
        data={"image": (io.BytesIO(b"not an image"), "notes.png", "image/png")},
        content_type="multipart/form-data",
    )
    assert res.status_code == 400
    assert "not a valid image" in res.get_json()["error"]


def test_oversized_upload_is_downscaled(client, fake_genai, settings):
    settings.max_image_side = 64
    fake = fake_genai(VIBES_JSON)
    res = client.post(
        "/api/vibes",
        data={"image": (io.BytesIO(make_png((200, 100))), "wide.png", "image/png")},
        content_type="multipart/form-data",
    )
    assert res.status_code == 200
    sent = fake.models.calls[0]["contents"][0].inline_data
    with Image.open(io.BytesIO(sent.data)) as img:
        assert img.size == (64, 32)
    assert sent.mime_type == "image/png"


def test_unparseable_response(client, fake_genai):
    fake_genai("Sorry, I can only describe images.")
    res = client.post("/api/vibes", data={"prompt": "a cat"})
    assert res.status_code == 500
    body = res.get_json()
    assert body["error"] == "Failed to process model response into expected JSON structure."
    assert body["details"] == "Could not find or parse JSON block in the response."
    assert body["rawOutput"] == "Sorry, I can only describe images."


def test_model_without_text(client, fake_genai):
    fake_genai(text=None)
    res = client.post("/api/vibes", data={"prompt": "a cat"})
    assert res.status_code == 500
    assert "Unexpected model response structure" in res.get_json()["details"]


def test_sdk_error_status_is_relayed(client, fake_genai):
    fake_genai(error=RateLimited("Resource exhausted"))
    res = client.post("/api/vibes", data={"prompt": "a cat"})
    assert res.status_code == 429
    assert res.get_json() == {"error": "Resource exhausted"}


def test_unexpected_error_is_500(client, fake_genai):
    fake_genai(error=RuntimeError("boom"))
    res = client.post("/api/vibes", data={"prompt": "a cat"})
    assert res.status_code == 500
    assert res.get_json() == {"error": "boom"}


def test_variations_carry_parent_id(client, fake_genai):
    fake = fake_genai(VIBES_JSON)
    res = client.post("/api/vibes", data={
        "parent_id": "abc123",
        "parent_label": "Neon Rain",
        "parent_prompt": "A rain-soaked neon street at midnight",
    })
    assert res.status_code == 200
    vibes = res.get_json()["vibes"]
    assert all(v["parentId"] == "abc123" for v in vibes)

    instruction = fake.models.calls[0]["contents"][-1].text
    assert "Label: Neon Rain" in instruction
    assert "Prompt: A rain-soaked neon street at midnight" in instruction


def test_upload_too_large(client, fake_genai):
    fake_genai(VIBES_JSON)
    app_module.app.config["MAX_CONTENT_LENGTH"] = 1024
    try:
        res = client.post(
            "/api/vibes",
            data={"image": (io.BytesIO(b"x" * 4096), "big.png", "image/png")},
            content_type="multipart/form-data",
        )
    finally:
        app_module.app.config["MAX_CONTENT_LENGTH"] = 10 * 1024 * 1024
    assert res.status_code == 413
    assert "too large" in res.get_json()["error"]
