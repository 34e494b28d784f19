from google.genai import types

IMAGE_ONLY_HINT = "Analyze the provided image."

_OUTPUT_CONTRACT = """\
For each vibe, provide:
1.  A short, descriptive label (3 words or less).
2.  A detailed, elaborate image generation prompt suitable for maximizing creative output, incorporating specific details, artistic styles, and moods based on the input.

Format your response STRICTLY as a JSON object containing a single key "vibes", which is an array of three objects. Each object in the array must have two keys: "label" (string) and "prompt" (string).

Example JSON output structure:
{
  "vibes": [
    { "label": "Cyberpunk Night", "prompt": "Expansive cyberpunk cityscape bathed in neon light, rain-slicked streets reflecting towering holographic advertisements, flying vehicles weaving through the dense architecture, moody, atmospheric, cinematic lighting, photorealistic, 8k." },
    { "label": "Solarpunk Utopia", "prompt": "Lush green rooftop gardens integrated into sleek, futuristic buildings, solar panels gleaming in the warm sunset light, people relaxing on balconies overlooking a clean, vibrant city, high-tech eco-friendly transport visible, optimistic, bright, detailed illustration." },
    { "label": "Ancient Ruin", "prompt": "Sun-drenched ancient stone ruins overgrown with vibrant jungle foliage, mysterious glowing artifacts scattered around, shafts of light piercing the canopy, exploration theme, fantasy art style, highly detailed." }
  ]
}

Ensure the output is ONLY the JSON object, without any introductory text, explanations, or markdown formatting."""

VIBE_PROMPT = """\
Based on the preceding input (image and/or text), generate three distinct variations ("vibes") for an image generation model like Imagen, DALL-E or Midjourney.
""" + _OUTPUT_CONTRACT

VARIANT_PROMPT = """\
The user liked the following vibe and wants to explore around it:

Label: {label}
Prompt: {prompt}

Using the vibe above (and any preceding input) as the starting point, generate three new variations ("vibes") that keep its core subject but push it in clearly different directions: composition, medium, palette, era or mood.
"""


def build_vibe_contents(prompt=None, image_bytes=None, mime_type="image/jpeg", parent=None):
    """Assemble the ordered message parts sent to the vibe model.

    ``parent`` is a Vibe; when given, the variant instruction replaces the
    regular one.
    """
    parts = []
    if prompt:
        parts.append(types.Part.from_text(text=f"User's initial prompt: {prompt}"))

    if image_bytes:
        parts.append(types.Part.from_bytes(data=image_bytes, mime_type=mime_type))
        if not prompt:
            parts.append(types.Part.from_text(text=IMAGE_ONLY_HINT))

    if parent is not None:
        # The contract holds literal JSON braces, so it is appended after format().
        instruction = VARIANT_PROMPT.format(label=parent.label, prompt=parent.prompt) + _OUTPUT_CONTRACT
    else:
        instruction = VIBE_PROMPT
    parts.append(types.Part.from_text(text=instruction))
    return parts
