import base64
import io
import logging
from dataclasses import dataclass
from typing import Optional

from google.genai import types
from google.genai.types import Modality
from PIL import Image

logger = logging.getLogger(__name__)


class NoImageReturned(RuntimeError):
    """The model answered, but without any image data."""


class EditNotSupported(ValueError):
    """The configured model has no image-edit endpoint."""


@dataclass
class GeneratedImage:
    data: bytes
    mime_type: str = "image/png"
    text: Optional[str] = None
    revised_prompt: Optional[str] = None


class GeminiImageBackend:
    provider = "gemini"

    def __init__(self, client, model):
        self.client = client
        self.model = model

    def _config(self):
        return types.GenerateContentConfig(
            response_modalities=[Modality.TEXT, Modality.IMAGE],
        )

    def _collect(self, response):
        image = None
        texts = []
        candidates = getattr(response, "candidates", None) or []
        content = candidates[0].content if candidates else None
        for part in getattr(content, "parts", None) or []:
            if getattr(part, "text", None):
                texts.append(part.text)
            elif getattr(part, "inline_data", None) and image is None:
                image = GeneratedImage(
                    data=part.inline_data.data,
                    mime_type=part.inline_data.mime_type or "image/png",
                )
        if image is None:
            raise NoImageReturned("Model did not return an image")
        image.text = "\n".join(texts) or None
        return image

    def generate(self, prompt):
        logger.info("Gemini image generation with model %s", self.model)
        response = self.client.models.generate_content(
            model=self.model, contents=prompt, config=self._config(),
        )
        return self._collect(response)

    def edit(self, prompt, image_bytes, mime_type):
        logger.info("Gemini image edit with model %s", self.model)
        contents = [
            types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
            types.Part.from_text(text=prompt),
        ]
        response = self.client.models.generate_content(
            model=self.model, contents=contents, config=self._config(),
        )
        return self._collect(response)


# Only these model families are accepted by the images/edits endpoint.
OPENAI_EDIT_MODELS = ("dall-e-2", "gpt-image-")


def _as_png(image_bytes, square=False):
    with Image.open(io.BytesIO(image_bytes)) as img:
        img = img.convert("RGBA")
    if square and img.width != img.height:
        side = min(img.size)
        left = (img.width - side) // 2
        top = (img.height - side) // 2
        img = img.crop((left, top, left + side, top + side))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class OpenAIImageBackend:
    provider = "openai"

    def __init__(self, client, model, size="1024x1024", quality="standard"):
        self.client = client
        self.model = model
        self.size = size
        self.quality = quality

    def _format_kwargs(self):
        # gpt-image-* models always answer with base64 and reject response_format.
        if self.model.startswith("dall-e"):
            return {"response_format": "b64_json"}
        return {}

    def _collect(self, response):
        data = getattr(response, "data", None) or []
        first = data[0] if data else None
        b64 = getattr(first, "b64_json", None)
        if not b64:
            raise NoImageReturned("Model did not return an image")
        return GeneratedImage(
            data=base64.b64decode(b64),
            mime_type="image/png",
            revised_prompt=getattr(first, "revised_prompt", None),
        )

    def generate(self, prompt):
        logger.info("OpenAI image generation with model %s", self.model)
        response = self.client.images.generate(
            model=self.model,
            prompt=prompt,
            n=1,
            quality=self.quality,
            size=self.size,
            **self._format_kwargs(),
        )
        return self._collect(response)

    def supports_edit(self):
        return self.model.startswith(OPENAI_EDIT_MODELS)

    def edit(self, prompt, image_bytes, mime_type):
        if not self.supports_edit():
            raise EditNotSupported(
                f"{self.model} cannot edit images; set IMAGE_MODEL to dall-e-2 or gpt-image-1"
            )
        logger.info("OpenAI image edit with model %s", self.model)
        # dall-e-2 edits take a square PNG only.
        png = _as_png(image_bytes, square=self.model.startswith("dall-e-2"))
        response = self.client.images.edit(
            model=self.model,
            image=("upload.png", png, "image/png"),
            prompt=prompt,
            n=1,
            size=self.size,
            **self._format_kwargs(),
        )
        return self._collect(response)
