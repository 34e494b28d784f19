import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

IMAGE_PROVIDERS = ("gemini", "openai")

DEFAULT_IMAGE_MODELS = {
    "gemini": "gemini-2.5-flash-image",
    "openai": "dall-e-3",
}


class ConfigurationError(RuntimeError):
    """Raised when a required setting (usually an API key) is missing."""


@dataclass
class Settings:
    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    vibe_model: str = "gemini-2.5-flash"
    image_provider: str = "gemini"
    image_model: Optional[str] = None
    image_size: str = "1024x1024"
    image_quality: str = "standard"
    generated_dir: str = "generated"
    max_upload_mb: int = 10
    max_image_side: int = 2048
    port: int = 5001

    def __post_init__(self):
        if self.image_provider not in IMAGE_PROVIDERS:
            raise ValueError(
                f"Unknown IMAGE_PROVIDER: {self.image_provider!r} "
                f"(expected one of {', '.join(IMAGE_PROVIDERS)})"
            )
        if not self.image_model:
            self.image_model = DEFAULT_IMAGE_MODELS[self.image_provider]

    @classmethod
    def from_env(cls, environ=None):
        if environ is None:
            load_dotenv()
            environ = os.environ
        return cls(
            gemini_api_key=environ.get("GEMINI_API_KEY") or None,
            openai_api_key=environ.get("OPENAI_API_KEY") or None,
            vibe_model=environ.get("VIBE_MODEL", cls.vibe_model),
            image_provider=environ.get("IMAGE_PROVIDER", cls.image_provider).lower(),
            image_model=environ.get("IMAGE_MODEL") or None,
            image_size=environ.get("IMAGE_SIZE", cls.image_size),
            image_quality=environ.get("IMAGE_QUALITY", cls.image_quality),
            generated_dir=environ.get("GENERATED_DIR", cls.generated_dir),
            max_upload_mb=int(environ.get("MAX_UPLOAD_MB", cls.max_upload_mb)),
            max_image_side=int(environ.get("MAX_IMAGE_SIDE", cls.max_image_side)),
            port=int(environ.get("PORT", cls.port)),
        )

    def require(self, name):
        """Return the value of an API key setting, or raise ConfigurationError."""
        value = getattr(self, name.lower())
        if not value:
            raise ConfigurationError(f"Server configuration error: {name} is not set.")
        return value
