"""Pull the ``{"vibes": [...]}`` payload out of a model's free-text answer."""
import json
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)

# Whichever comes first: a fenced block (```json or bare ```) or the widest {...} span.
_JSON_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```|({[\s\S]*})")


class VibeParseError(ValueError):
    def __init__(self, message, raw_output=None):
        super().__init__(message)
        self.raw_output = raw_output


@dataclass
class Vibe:
    label: str
    prompt: str
    id: Optional[str] = None
    parent_id: Optional[str] = None

    def to_dict(self):
        data = {"label": self.label, "prompt": self.prompt}
        if self.id is not None:
            data["id"] = self.id
        if self.parent_id is not None:
            data["parentId"] = self.parent_id
        return data


def extract_json_block(text: str) -> Optional[str]:
    match = _JSON_BLOCK_RE.search(text)
    if not match:
        return None
    return match.group(1) or match.group(2) or None


def validate_payload(payload) -> List[Vibe]:
    """Check the decoded JSON has a non-empty ``vibes`` list of label/prompt pairs."""
    if not isinstance(payload, dict) or not isinstance(payload.get("vibes"), list):
        raise ValueError("Parsed JSON is missing the 'vibes' array.")
    entries = payload["vibes"]
    if not entries:
        raise ValueError("Parsed JSON contains an empty 'vibes' array.")

    vibes = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValueError(f"Vibe {i + 1} is not an object.")
        label = entry.get("label")
        prompt = entry.get("prompt")
        if not isinstance(label, str) or not label.strip():
            raise ValueError(f"Vibe {i + 1} is missing a label.")
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValueError(f"Vibe {i + 1} is missing a prompt.")
        vibes.append(Vibe(label=label.strip(), prompt=prompt.strip()))
    return vibes


def parse_vibes(text) -> List[Vibe]:
    if not isinstance(text, str):
        raise VibeParseError(
            "Unexpected model response structure: expected text content, "
            f"received {type(text).__name__}.",
            raw_output=text,
        )

    raw = text.strip()
    logger.debug("Raw vibe output: %s", raw)

    block = extract_json_block(raw)
    if block is not None:
        try:
            return validate_payload(json.loads(block))
        except ValueError as e:
            raise VibeParseError(str(e), raw_output=raw) from e

    try:
        return validate_payload(json.loads(raw))
    except ValueError as e:
        raise VibeParseError(
            "Could not find or parse JSON block in the response.", raw_output=raw
        ) from e
