import base64
import io
import logging
import os
import time
import uuid

from flask import Flask, Response, request, jsonify, send_from_directory
from google import genai
from google.genai import types
from openai import OpenAI
from PIL import Image, UnidentifiedImageError

from image_backends import (
    EditNotSupported,
    GeminiImageBackend,
    GeneratedImage,
    NoImageReturned,
    OpenAIImageBackend,
)
from lineage import render_png
from settings import ConfigurationError, Settings
from system_prompt import build_vibe_contents
from vibe_parser import Vibe, VibeParseError, parse_vibes

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("vibe-studio")

settings = Settings.from_env()

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_mb * 1024 * 1024

THINKING_MODELS = {
    "gemini-3.1-pro-preview",
    "gemini-3-pro-preview",
    "gemini-3-flash-preview",
}

IMAGE_MODES = ("generate", "edit")

EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}

LINEAGE_WIDTH = (400, 4000)
MAX_LINEAGE_SETS = 50

_genai_client = None
_openai_client = None


class UploadError(ValueError):
    pass


def get_genai_client():
    global _genai_client
    if _genai_client is None:
        _genai_client = genai.Client(
            api_key=settings.require("GEMINI_API_KEY"),
            http_options=types.HttpOptions(timeout=300_000),
        )
    return _genai_client


def get_openai_client():
    global _openai_client
    if _openai_client is None:
        _openai_client = OpenAI(api_key=settings.require("OPENAI_API_KEY"))
    return _openai_client


def get_image_backend():
    if settings.image_provider == "openai":
        return OpenAIImageBackend(
            get_openai_client(),
            settings.image_model,
            size=settings.image_size,
            quality=settings.image_quality,
        )
    return GeminiImageBackend(get_genai_client(), settings.image_model)


def build_vibe_config(model):
    kwargs = {"response_mime_type": "application/json"}
    if model in THINKING_MODELS:
        kwargs["thinking_config"] = types.ThinkingConfig(thinking_level="low")
    return types.GenerateContentConfig(**kwargs)


def error_status(exc):
    """HTTP status carried by an SDK error (``code``/``status_code``/``status``), else 500."""
    for attr in ("code", "status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool) and 400 <= value < 600:
            return value
    return 500


def read_upload(file):
    """Return (bytes, mime type) for an uploaded image, downscaled if oversized."""
    raw = file.read()
    if not raw:
        raise UploadError("Uploaded image is empty")

    mime = file.mimetype if (file.mimetype or "").startswith("image/") else "image/jpeg"

    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise UploadError(f"Uploaded file is not a valid image: {file.filename}") from e

    limit = settings.max_image_side
    if max(img.size) > limit:
        fmt = img.format or "PNG"
        original_size = img.size
        img.thumbnail((limit, limit), Image.LANCZOS)
        if fmt == "JPEG" and img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        buf = io.BytesIO()
        img.save(buf, format=fmt)
        raw = buf.getvalue()
        mime = Image.MIME.get(fmt, mime)
        logger.info("Downscaled upload %s from %s to %s", file.filename, original_size, img.size)

    return raw, mime


def decode_data_uri(value):
    try:
        header, b64 = value.split(",", 1)
        mime = header.split(":")[1].split(";")[0]
        return base64.b64decode(b64), mime
    except (ValueError, IndexError) as e:
        raise UploadError("Invalid image data") from e


def save_image(image: GeneratedImage):
    """Write a generated image under GENERATED_DIR and describe it for the client."""
    os.makedirs(settings.generated_dir, exist_ok=True)
    filename = f"{uuid.uuid4().hex}.{EXTENSIONS.get(image.mime_type, 'png')}"
    with open(os.path.join(settings.generated_dir, filename), "wb") as f:
        f.write(image.data)

    width = height = None
    try:
        with Image.open(io.BytesIO(image.data)) as img:
            width, height = img.size
    except (UnidentifiedImageError, OSError):
        logger.warning("Could not read dimensions of generated image %s", filename)

    return {
        "b64_json": base64.b64encode(image.data).decode("utf-8"),
        "path": f"/generated/{filename}",
        "filename": filename,
        "mimeType": image.mime_type,
        "width": width,
        "height": height,
    }


def _preview(text, limit=50):
    if not text:
        return "N/A"
    return text[:limit] + "..." if len(text) > limit else text


@app.errorhandler(413)
def too_large(_e):
    return jsonify({"error": f"Upload too large (limit {settings.max_upload_mb} MB)"}), 413


@app.route("/")
def index():
    return HTML_PAGE


@app.route("/health")
def health():
    return jsonify({
        "ok": True,
        "vibeModel": settings.vibe_model,
        "imageProvider": settings.image_provider,
        "imageModel": settings.image_model,
    })


@app.route("/api/vibes", methods=["POST"])
def generate_vibes():
    try:
        client = get_genai_client()
    except ConfigurationError as e:
        logger.error("%s", e)
        return jsonify({"error": str(e)}), 500

    prompt = (request.form.get("prompt") or "").strip()
    image_file = request.files.get("image")
    if image_file is not None and not image_file.filename:
        image_file = None

    parent = None
    parent_prompt = (request.form.get("parent_prompt") or "").strip()
    if parent_prompt:
        parent = Vibe(
            label=(request.form.get("parent_label") or "").strip() or "Untitled",
            prompt=parent_prompt,
            id=request.form.get("parent_id") or None,
        )

    logger.info(
        "Vibe request: prompt=%s image=%s parent=%s",
        _preview(prompt),
        image_file.filename if image_file else "N/A",
        parent.id if parent else "N/A",
    )

    if not prompt and image_file is None and parent is None:
        return jsonify({"error": "Missing required parameters: prompt or image is required"}), 400

    image_bytes, mime = None, "image/jpeg"
    if image_file is not None:
        try:
            image_bytes, mime = read_upload(image_file)
        except UploadError as e:
            return jsonify({"error": str(e)}), 400

    contents = build_vibe_contents(prompt, image_bytes, mime, parent=parent)
    model = settings.vibe_model

    try:
        start = time.time()
        logger.info("Calling %s for vibe generation", model)
        response = client.models.generate_content(
            model=model, contents=contents, config=build_vibe_config(model),
        )
        elapsed = round(time.time() - start, 1)
    except Exception as e:
        logger.exception("Vibe model call failed")
        return jsonify({"error": str(e)}), error_status(e)

    text = getattr(response, "text", None)
    try:
        vibes = parse_vibes(text)
    except VibeParseError as e:
        logger.error("Failed to parse vibe response: %s", e)
        raw = e.raw_output if e.raw_output is not None else str(response)
        return jsonify({
            "error": "Failed to process model response into expected JSON structure.",
            "details": str(e),
            "rawOutput": raw,
        }), 500

    for vibe in vibes:
        vibe.id = uuid.uuid4().hex[:12]
        if parent is not None and parent.id:
            vibe.parent_id = parent.id

    logger.info("Generated %d vibes in %ss", len(vibes), elapsed)
    return jsonify({"vibes": [v.to_dict() for v in vibes], "elapsed": elapsed})


@app.route("/api/images", methods=["POST"])
def generate_image():
    if request.is_json:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            data = {}
        image_file = None
    else:
        data = request.form
        image_file = request.files.get("image")
        if image_file is not None and not image_file.filename:
            image_file = None

    prompt = str(data.get("prompt") or "").strip()
    mode = str(data.get("mode") or "generate").strip().lower()

    if not prompt:
        return jsonify({"error": "Prompt is required"}), 400
    if mode not in IMAGE_MODES:
        return jsonify({"error": f"Unknown mode: {mode}"}), 400

    source = None
    if mode == "edit":
        try:
            if image_file is not None:
                source = read_upload(image_file)
            elif data.get("image_data"):
                source = decode_data_uri(str(data["image_data"]))
        except UploadError as e:
            return jsonify({"error": str(e)}), 400
        if source is None:
            return jsonify({"error": "An image is required for edit mode"}), 400

    try:
        backend = get_image_backend()
    except ConfigurationError as e:
        logger.error("%s", e)
        return jsonify({"error": str(e)}), 500

    logger.info("Image request (%s via %s): %s", mode, backend.provider, _preview(prompt))

    try:
        start = time.time()
        if source is not None:
            image = backend.edit(prompt, *source)
        else:
            image = backend.generate(prompt)
        elapsed = round(time.time() - start, 1)
    except EditNotSupported as e:
        logger.warning("%s", e)
        return jsonify({"error": str(e)}), 400
    except NoImageReturned as e:
        logger.warning("%s", e)
        return jsonify({"error": str(e)}), 502
    except Exception as e:
        logger.exception("Error generating image")
        return jsonify({"error": str(e) or "An error occurred during image generation"}), error_status(e)

    saved = save_image(image)
    logger.info("Saved generated image %s (%ss)", saved["filename"], elapsed)
    return jsonify({
        "imageUrl": saved["path"],
        "images": [saved],
        "text": image.text,
        "revisedPrompt": image.revised_prompt,
        "elapsed": elapsed,
    })


@app.route("/generated/<path:filename>")
def generated_file(filename):
    return send_from_directory(os.path.abspath(settings.generated_dir), filename)


@app.route("/api/lineage", methods=["POST"])
def lineage_png():
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    sets = data.get("generationSets")
    if not isinstance(sets, list) or not all(isinstance(s, dict) for s in sets):
        return jsonify({"error": "generationSets must be a list of objects"}), 400
    if len(sets) > MAX_LINEAGE_SETS:
        return jsonify({"error": f"At most {MAX_LINEAGE_SETS} generation sets can be drawn"}), 400
    for gen_set in sets:
        vibes = gen_set.get("vibes", [])
        if not isinstance(vibes, list) or not all(isinstance(v, dict) for v in vibes):
            return jsonify({"error": "Each generation set needs a list of vibe objects"}), 400

    try:
        width = int(data.get("width") or 1200)
    except (TypeError, ValueError):
        return jsonify({"error": "width must be an integer"}), 400
    width = min(max(width, LINEAGE_WIDTH[0]), LINEAGE_WIDTH[1])

    return Response(render_png(sets, width), mimetype="image/png")


HTML_PAGE = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Vibe Studio</title>
<style>
  *, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }

  body {
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
    background: #0f0f0f;
    color: #e0e0e0;
    min-height: 100vh;
  }

  .container {
    max-width: 1100px;
    margin: 0 auto;
    padding: 32px 20px 80px;
    display: flex;
    flex-direction: column;
    gap: 24px;
  }

  .top-bar {
    display: flex;
    align-items: center;
    justify-content: space-between;
  }
  .top-bar h1 { font-size: 1.3rem; font-weight: 600; color: #fff; }
  .top-bar h1 span { color: #8b5cf6; }

  .card {
    background: #141414;
    border: 1px solid #1e1e1e;
    border-radius: 12px;
    padding: 20px 24px;
    display: flex;
    flex-direction: column;
    gap: 14px;
  }

  label.field { font-size: 0.78rem; color: #888; display: block; margin-bottom: 6px; }

  textarea {
    width: 100%;
    min-height: 110px;
    background: #1a1a1a;
    color: #e0e0e0;
    border: 1px solid #2a2a2a;
    border-radius: 10px;
    padding: 14px;
    font-size: 0.9rem;
    font-family: inherit;
    resize: vertical;
    outline: none;
    transition: border-color 0.2s;
    line-height: 1.5;
  }
  textarea:focus { border-color: #8b5cf6; }
  textarea::placeholder { color: #555; }

  input[type=file] { font-size: 0.8rem; color: #888; }

  button {
    background: #8b5cf6;
    color: #fff;
    border: none;
    border-radius: 8px;
    padding: 8px 20px;
    font-size: 0.82rem;
    font-weight: 500;
    cursor: pointer;
    transition: background 0.2s, opacity 0.2s;
  }
  button:hover { background: #7c3aed; }
  button:disabled { opacity: 0.5; cursor: not-allowed; }

  button.ghost {
    background: #232323;
    color: #aaa;
    font-size: 0.72rem;
    padding: 4px 12px;
    border-radius: 6px;
    border: 1px solid #333;
  }
  button.ghost:hover { background: #2e2e2e; color: #e0e0e0; }

  .error-box {
    border: 1px solid #ef4444;
    color: #fca5a5;
    background: #1a1111;
    border-radius: 10px;
    padding: 12px 16px;
    font-size: 0.85rem;
    display: none;
  }
  .error-box.visible { display: block; }

  .status { font-size: 0.78rem; color: #888; min-height: 1.2em; }
  .status .timer { color: #8b5cf6; font-variant-numeric: tabular-nums; }

  .loading { display: flex; flex-direction: column; align-items: center; gap: 10px; color: #888; font-size: 0.8rem; }
  .spinner {
    width: 20px; height: 20px;
    border: 2px solid #333;
    border-top-color: #8b5cf6;
    border-radius: 50%;
    animation: spin 0.8s linear infinite;
  }
  @keyframes spin { to { transform: rotate(360deg); } }

  .set-input { font-size: 0.82rem; color: #aaa; border-bottom: 1px solid #1e1e1e; padding-bottom: 10px; }
  .set-input b { color: #a78bfa; font-weight: 600; }

  .vibe-grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(300px, 1fr)); gap: 16px; }

  .vibe {
    background: #1a1a1a;
    border: 1px solid #2a2a2a;
    border-radius: 10px;
    padding: 14px;
    display: flex;
    flex-direction: column;
    gap: 10px;
  }
  .vibe h3 { text-align: center; color: #a78bfa; font-size: 0.95rem; }
  .vibe .parent-tag { text-align: center; font-size: 0.65rem; color: #666; text-transform: uppercase; letter-spacing: 0.5px; }
  .vibe .prompt { background: #111; border-radius: 6px; padding: 8px; font-size: 0.78rem; color: #bbb; max-height: 120px; overflow: auto; }
  .vibe .frame {
    aspect-ratio: 1 / 1;
    background: #232323;
    border-radius: 8px;
    display: flex;
    align-items: center;
    justify-content: center;
    overflow: hidden;
  }
  .vibe .frame img { width: 100%; height: 100%; object-fit: cover; }
  .vibe .frame .img-error { color: #fca5a5; font-size: 0.75rem; padding: 10px; text-align: center; word-break: break-word; }
  .vibe .actions { display: flex; gap: 6px; justify-content: center; }

  #lineageImg { width: 100%; border-radius: 8px; display: none; }
</style>
</head>
<body>

<div class="container">
  <div class="top-bar">
    <h1>Vibe <span>Studio</span></h1>
    <button class="ghost" onclick="clearHistory()">Clear history</button>
  </div>

  <form id="vibeForm" class="card">
    <div>
      <label class="field" for="prompt">Text Prompt (Optional)</label>
      <textarea id="prompt" placeholder="Enter your prompt here..." autofocus></textarea>
    </div>
    <div>
      <label class="field" for="image">Image File (Optional)</label>
      <input id="image" type="file" accept="image/*">
    </div>
    <button id="submitBtn" type="submit">Generate 3 Image Vibes</button>
    <div id="status" class="status"></div>
  </form>

  <div id="errorBox" class="error-box"></div>

  <div id="sets" style="display:flex;flex-direction:column;gap:24px"></div>

  <div class="card">
    <div style="display:flex;justify-content:space-between;align-items:center">
      <label class="field" style="margin:0">Lineage</label>
      <button class="ghost" onclick="refreshLineage()">Draw lineage</button>
    </div>
    <img id="lineageImg" alt="Vibe lineage">
  </div>
</div>

<script>
  const HISTORY_KEY = 'vibeStudio.history';
  const MAX_HISTORY = 50;

  const form = document.getElementById('vibeForm');
  const promptEl = document.getElementById('prompt');
  const imageEl = document.getElementById('image');
  const submitBtn = document.getElementById('submitBtn');
  const statusEl = document.getElementById('status');
  const errorBox = document.getElementById('errorBox');
  const setsEl = document.getElementById('sets');
  const lineageImg = document.getElementById('lineageImg');

  let generationSets = loadHistory();
  let busy = false;

  // ── History (localStorage) ──
  function loadHistory() {
    try {
      const sets = JSON.parse(localStorage.getItem(HISTORY_KEY) || '[]');
      if (!Array.isArray(sets)) return [];
      sets.forEach(s => (s.vibes || []).forEach(v => { v.isGeneratingImage = false; }));
      return sets;
    } catch (e) {
      console.warn('Discarding unreadable history', e);
      return [];
    }
  }

  function saveHistory() {
    const trimmed = generationSets.slice(-MAX_HISTORY).map(s => ({
      ...s,
      vibes: s.vibes.map(({ isGeneratingImage, ...rest }) => rest),
    }));
    try {
      localStorage.setItem(HISTORY_KEY, JSON.stringify(trimmed));
    } catch (e) {
      console.warn('Could not persist history', e);
    }
  }

  function clearHistory() {
    if (busy) return;
    generationSets = [];
    localStorage.removeItem(HISTORY_KEY);
    lineageImg.style.display = 'none';
    render();
  }

  // ── Timer helper ──
  function createTimer(el) {
    let interval = null;
    return {
      start(label) {
        const t0 = Date.now();
        clearInterval(interval);
        interval = setInterval(() => {
          const s = ((Date.now() - t0) / 1000).toFixed(1);
          el.innerHTML = '<span class="timer">' + s + 's</span> ' + label;
        }, 100);
      },
      stop() { clearInterval(interval); interval = null; el.textContent = ''; }
    };
  }
  const timer = createTimer(statusEl);

  function showError(message) {
    errorBox.textContent = message ? 'Error: ' + message : '';
    errorBox.classList.toggle('visible', !!message);
  }

  function setBusy(value, label) {
    busy = value;
    submitBtn.disabled = value;
    submitBtn.textContent = value ? label : 'Generate 3 Image Vibes';
    document.querySelectorAll('.variations-btn').forEach(b => { b.disabled = value; });
  }

  // ── Rendering ──
  function findSet(setId) {
    return generationSets.find(s => s.id === setId);
  }

  function findVibe(vibeId) {
    for (const s of generationSets) {
      const v = s.vibes.find(v => v.id === vibeId);
      if (v) return v;
    }
    return null;
  }

  function renderVibe(set, vibe, index) {
    const card = document.createElement('div');
    card.className = 'vibe';

    const title = document.createElement('h3');
    title.textContent = vibe.label || ('Vibe ' + (index + 1));
    card.appendChild(title);

    if (vibe.parentId) {
      const parent = findVibe(vibe.parentId);
      const tag = document.createElement('div');
      tag.className = 'parent-tag';
      tag.textContent = 'Variation of ' + (parent ? parent.label : 'an earlier vibe');
      card.appendChild(tag);
    }

    const prompt = document.createElement('div');
    prompt.className = 'prompt';
    prompt.textContent = vibe.prompt;
    card.appendChild(prompt);

    const frame = document.createElement('div');
    frame.className = 'frame';
    if (vibe.isGeneratingImage) {
      frame.innerHTML = '<div class="loading"><div class="spinner"></div>Rendering vibe...</div>';
    } else if (vibe.imageError) {
      const err = document.createElement('div');
      err.className = 'img-error';
      err.textContent = vibe.imageError;
      frame.appendChild(err);
    } else if (vibe.imageUrl) {
      const img = document.createElement('img');
      img.src = vibe.imageUrl;
      img.alt = 'Generated image for ' + vibe.label;
      frame.appendChild(img);
    } else {
      const pending = document.createElement('div');
      pending.className = 'loading';
      pending.textContent = 'Waiting to render...';
      frame.appendChild(pending);
    }
    card.appendChild(frame);

    const actions = document.createElement('div');
    actions.className = 'actions';
    const retry = document.createElement('button');
    retry.className = 'ghost';
    retry.textContent = vibe.imageUrl ? 'Re-render' : 'Render';
    retry.disabled = vibe.isGeneratingImage;
    retry.addEventListener('click', () => generateImage(set.id, index));
    const variations = document.createElement('button');
    variations.className = 'ghost variations-btn';
    variations.textContent = 'Variations';
    variations.disabled = busy;
    variations.addEventListener('click', () => makeVariations(vibe));
    actions.appendChild(retry);
    actions.appendChild(variations);
    card.appendChild(actions);

    return card;
  }

  function render() {
    setsEl.innerHTML = '';
    generationSets.slice().reverse().forEach(set => {
      const card = document.createElement('div');
      card.className = 'card';

      const input = document.createElement('div');
      input.className = 'set-input';
      const parts = [];
      if (set.inputPrompt) parts.push(['Prompt', set.inputPrompt]);
      if (set.inputImageName) parts.push(['Image', set.inputImageName]);
      if (set.parentLabel) parts.push(['Variations of', set.parentLabel]);
      parts.forEach(([k, v]) => {
        const row = document.createElement('div');
        const b = document.createElement('b');
        b.textContent = k + ': ';
        row.appendChild(b);
        row.appendChild(document.createTextNode(v));
        input.appendChild(row);
      });
      card.appendChild(input);

      const grid = document.createElement('div');
      grid.className = 'vibe-grid';
      set.vibes.forEach((vibe, i) => grid.appendChild(renderVibe(set, vibe, i)));
      card.appendChild(grid);

      setsEl.appendChild(card);
    });
  }

  function updateVibe(setId, index, patch) {
    const set = findSet(setId);
    if (!set) return;
    set.vibes[index] = { ...set.vibes[index], ...patch };
    saveHistory();
    render();
  }

  // ── API calls ──
  async function postJson(url, body) {
    const res = await fetch(url, {
      method: 'POST',
      headers: { 'Content-Type': 'application/json' },
      body: JSON.stringify(body),
    });
    const data = await res.json();
    if (!res.ok) throw new Error(data.error || data.message || 'HTTP ' + res.status);
    return data;
  }

  async function generateImage(setId, index) {
    const set = findSet(setId);
    if (!set) return;
    updateVibe(setId, index, { isGeneratingImage: true, imageError: null });
    try {
      const data = await postJson('/api/images', { prompt: set.vibes[index].prompt, mode: 'generate' });
      const imageUrl = data.imageUrl || (data.images && data.images[0] && data.images[0].path);
      if (!imageUrl) throw new Error('Image URL not found in the response from /api/images');
      updateVibe(setId, index, { imageUrl, isGeneratingImage: false });
    } catch (e) {
      console.error('Image generation failed', e);
      updateVibe(setId, index, { imageError: e.message || 'Unknown error', isGeneratingImage: false });
    }
  }

  async function requestVibes(formData, meta) {
    const res = await fetch('/api/vibes', { method: 'POST', body: formData });
    const data = await res.json();
    if (!res.ok) throw new Error(data.error || 'Vibe request failed with status ' + res.status);
    if (!data || !Array.isArray(data.vibes) || data.vibes.length === 0) {
      throw new Error('Invalid response structure received from /api/vibes. Expected { vibes: [...] }.');
    }

    const set = {
      id: Date.now().toString(),
      createdAt: new Date().toISOString(),
      ...meta,
      vibes: data.vibes.map(v => ({ ...v, imageUrl: null, imageError: null, isGeneratingImage: false })),
    };
    generationSets.push(set);
    saveHistory();
    render();

    timer.stop();
    for (let i = 0; i < set.vibes.length; i++) {
      await generateImage(set.id, i);
    }
  }

  form.addEventListener('submit', async e => {
    e.preventDefault();
    if (busy) return;
    showError(null);

    const prompt = promptEl.value.trim();
    const imageFile = imageEl.files && imageEl.files[0];
    if (!prompt && !imageFile) {
      showError('Please provide either a text prompt or an image.');
      return;
    }

    const formData = new FormData();
    if (prompt) formData.append('prompt', prompt);
    if (imageFile) formData.append('image', imageFile);

    setBusy(true, 'Generating Vibes & Images...');
    timer.start('waiting for vibes...');
    try {
      await requestVibes(formData, {
        inputPrompt: prompt || null,
        inputImageName: imageFile ? imageFile.name : null,
      });
      promptEl.value = '';
      imageEl.value = '';
    } catch (err) {
      console.error(err);
      showError(err.message || 'An unknown error occurred.');
    } finally {
      timer.stop();
      setBusy(false);
    }
  });

  promptEl.addEventListener('keydown', e => {
    if (e.key === 'Enter' && (e.metaKey || e.ctrlKey)) { e.preventDefault(); form.requestSubmit(); }
  });

  async function makeVariations(vibe) {
    if (busy) return;
    showError(null);
    const formData = new FormData();
    formData.append('parent_id', vibe.id);
    formData.append('parent_label', vibe.label);
    formData.append('parent_prompt', vibe.prompt);

    setBusy(true, 'Generating Variations...');
    timer.start('waiting for variations...');
    try {
      await requestVibes(formData, { inputPrompt: null, inputImageName: null, parentLabel: vibe.label });
    } catch (err) {
      console.error(err);
      showError(err.message || 'An unknown error occurred.');
    } finally {
      timer.stop();
      setBusy(false);
    }
  }

  async function refreshLineage() {
    try {
      const res = await fetch('/api/lineage', {
        method: 'POST',
        headers: { 'Content-Type': 'application/json' },
        body: JSON.stringify({ generationSets: generationSets.slice(-MAX_HISTORY), width: Math.round(setsEl.clientWidth || 1100) }),
      });
      if (!res.ok) {
        const data = await res.json();
        throw new Error(data.error || 'HTTP ' + res.status);
      }
      const blob = await res.blob();
      if (lineageImg.src) URL.revokeObjectURL(lineageImg.src);
      lineageImg.src = URL.createObjectURL(blob);
      lineageImg.style.display = 'block';
    } catch (err) {
      showError(err.message);
    }
  }

  render();
</script>
</body>
</html>
"""


if __name__ == "__main__":
    app.run(debug=True, port=settings.port, threaded=True)
