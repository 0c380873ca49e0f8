import base64
import logging
from google import genai
from google.genai import types
from google.genai.types import Modality

from pipeline import (
    Candidate,
    GenerationReply,
    ImagePart,
    InlineDataPart,
    ReplyTextPart,
)

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"

MODALITIES = {
    "IMAGE": Modality.IMAGE,
    "TEXT": Modality.TEXT,
}


def to_sdk_parts(request):
    parts = []
    for part in request.parts:
        if isinstance(part, ImagePart):
            parts.append(types.Part.from_bytes(
                data=base64.b64decode(part.image.data),
                mime_type=part.image.mime_type,
            ))
        else:
            parts.append(types.Part.from_text(text=part.text))
    return parts


def from_sdk_response(response):
    """Map an SDK response onto explicitly tagged reply parts.

    Parts with neither inline data nor text (thought signatures, function
    calls) are dropped.
    """
    candidates = []
    for candidate in response.candidates or []:
        content = getattr(candidate, "content", None)
        parts = []
        for part in (content.parts if content and content.parts else []):
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                parts.append(InlineDataPart(data=inline.data, mime_type=inline.mime_type))
            elif getattr(part, "text", None) is not None:
                parts.append(ReplyTextPart(text=part.text))
        candidates.append(Candidate(parts=tuple(parts)))
    return GenerationReply(candidates=tuple(candidates))


class GeminiImageGenerator:
    """ImageGenerator backed by the Gemini image models."""

    def __init__(self, api_key, model=DEFAULT_IMAGE_MODEL, timeout=60):
        self.model = model
        self.client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )

    def generate(self, request):
        config = types.GenerateContentConfig(
            response_modalities=[MODALITIES[m] for m in request.response_modalities],
        )
        logger.info("Calling %s with %d parts", self.model, len(request.parts))
        response = self.client.models.generate_content(
            model=self.model,
            contents=to_sdk_parts(request),
            config=config,
        )
        return from_sdk_response(response)
