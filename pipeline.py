"""Image transformation pipeline shared by both HTTP endpoints.

Flow for one request:
    1. Check every required upload slot is populated.
    2. Encode each upload to base64 with its content type, then check the API key.
    3. Compose the ordered parts: images in slot order, then one instruction.
    4. Call the injected image generator.
    5. Resolve the reply to an image, a text-only answer, or nothing.

Nothing here touches Flask or the Gemini SDK; both sit behind the
`ImageGenerator` protocol and the `uploads` mapping.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple, Union

from errors import (
    ConfigurationError,
    InvalidInputError,
    MissingInputError,
    UpstreamDeclinedError,
    UpstreamEmptyError,
    UpstreamTransportError,
)
from prompts import DEFAULT_TRANSFORM_PROMPT, WHEEL_SWAP_PROMPT

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_MIME_TYPE = "image/jpeg"
DEFAULT_RESULT_MIME_TYPE = "image/png"
RESPONSE_MODALITIES = ("IMAGE", "TEXT")


@dataclass(frozen=True)
class EncodedImage:
    data: str
    mime_type: str

    @property
    def data_uri(self):
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass(frozen=True)
class ImagePart:
    image: EncodedImage


@dataclass(frozen=True)
class TextPart:
    text: str


RequestPart = Union[ImagePart, TextPart]


@dataclass(frozen=True)
class GenerationRequest:
    parts: Tuple[RequestPart, ...]
    response_modalities: Tuple[str, ...] = RESPONSE_MODALITIES


# Reply side. The SDK hands back parts that may carry inline bytes, text, or
# neither; the generator adapter maps them onto these two variants.
@dataclass(frozen=True)
class InlineDataPart:
    data: bytes
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class ReplyTextPart:
    text: str


ReplyPart = Union[InlineDataPart, ReplyTextPart]


@dataclass(frozen=True)
class Candidate:
    parts: Tuple[ReplyPart, ...] = ()


@dataclass(frozen=True)
class GenerationReply:
    candidates: Tuple[Candidate, ...] = ()


@dataclass(frozen=True)
class ImageOutcome:
    data: str
    mime_type: str

    def to_dict(self):
        return {"success": True, "image": {"data": self.data, "mimeType": self.mime_type}}


@dataclass(frozen=True)
class TextOnlyOutcome:
    text: str


@dataclass(frozen=True)
class EmptyOutcome:
    pass


GenerationOutcome = Union[ImageOutcome, TextOnlyOutcome, EmptyOutcome]


class ImageGenerator(Protocol):
    def generate(self, request: GenerationRequest) -> GenerationReply: ...


@dataclass(frozen=True)
class Slot:
    field: str
    label: str
    missing_message: Optional[str] = None


@dataclass(frozen=True)
class Variant:
    name: str
    endpoint: str
    slots: Tuple[Slot, ...]
    default_prompt: str
    prompt_overridable: bool = True


SINGLE_IMAGE = Variant(
    name="transform",
    endpoint="/api/transform",
    slots=(Slot("image", "image", "No image provided"),),
    default_prompt=DEFAULT_TRANSFORM_PROMPT,
)

WHEEL_SWAP = Variant(
    name="swap",
    endpoint="/api/swap",
    slots=(
        Slot("carImage", "car"),
        Slot("wheelzImage", "wheelz"),
    ),
    default_prompt=WHEEL_SWAP_PROMPT,
    prompt_overridable=False,
)


def is_image_type(content_type):
    return bool(content_type) and content_type.lower().startswith("image/")


def encode_image(data, content_type=None):
    """Base64-encode raw upload bytes, keeping the declared content type."""
    if content_type and not is_image_type(content_type):
        raise InvalidInputError("Please upload an image file")
    return EncodedImage(
        data=base64.b64encode(data).decode("utf-8"),
        mime_type=content_type or DEFAULT_UPLOAD_MIME_TYPE,
    )


def compose_request(images: Sequence[EncodedImage], prompt=None,
                    default_prompt=DEFAULT_TRANSFORM_PROMPT, overridable=True):
    instruction = prompt if overridable else None
    if not instruction or not instruction.strip():
        instruction = default_prompt

    parts = [ImagePart(image) for image in images]
    parts.append(TextPart(instruction))
    return GenerationRequest(parts=tuple(parts))


def interpret_reply(reply: GenerationReply) -> GenerationOutcome:
    """Resolve a reply: first inline image wins, then first text, else empty."""
    parts = [part for candidate in reply.candidates for part in candidate.parts]

    for part in parts:
        if isinstance(part, InlineDataPart):
            return ImageOutcome(
                data=base64.b64encode(part.data).decode("utf-8"),
                mime_type=part.mime_type or DEFAULT_RESULT_MIME_TYPE,
            )

    for part in parts:
        if isinstance(part, ReplyTextPart):
            return TextOnlyOutcome(part.text)

    return EmptyOutcome()


def run_variant(variant: Variant, uploads, prompt, generator: ImageGenerator, api_key):
    """Run one request end to end and return the ImageOutcome.

    `uploads` maps each slot's form field to `(bytes, content_type)` or None.
    Raises a PipelineError subclass for every non-image result.
    """
    for slot in variant.slots:
        if not uploads.get(slot.field):
            raise MissingInputError(slot.label, slot.missing_message)

    images = [encode_image(*uploads[slot.field]) for slot in variant.slots]

    if not api_key:
        raise ConfigurationError("Google AI API key not configured")

    request = compose_request(
        images, prompt,
        default_prompt=variant.default_prompt,
        overridable=variant.prompt_overridable,
    )

    try:
        reply = generator.generate(request)
    except Exception as e:
        logger.exception("Image generation failed for %s", variant.name)
        raise UpstreamTransportError(e) from e

    outcome = interpret_reply(reply)
    if isinstance(outcome, TextOnlyOutcome):
        logger.info("Model declined %s with text: %.200s", variant.name, outcome.text)
        raise UpstreamDeclinedError(outcome.text)
    if isinstance(outcome, EmptyOutcome):
        raise UpstreamEmptyError()
    return outcome
