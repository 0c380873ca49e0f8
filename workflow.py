"""Client-side upload → submit → result/error → reset workflow.

Mirrors the state machine the browser page runs, so the command-line client
and the tests can drive the same transitions:

    IDLE --all slots filled--> READY_TO_SUBMIT --submit--> SUBMITTING
    SUBMITTING --image--> SUCCEEDED
    SUBMITTING --text only / empty / transport error--> FAILED
    any --reset--> IDLE

Only one submission is live at a time. Each one carries a token; a reset
drops the pending token so a response that arrives afterwards is ignored.
"""

import enum
import logging
import mimetypes
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

from pipeline import SINGLE_IMAGE, Variant, encode_image, is_image_type

logger = logging.getLogger(__name__)


class State(enum.Enum):
    IDLE = "idle"
    READY_TO_SUBMIT = "ready"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class UploadSlot:
    name: str
    raw_file: Optional[bytes] = None
    content_type: Optional[str] = None
    preview_uri: Optional[str] = None
    file_name: Optional[str] = None
    is_drag_active: bool = False

    @property
    def filled(self):
        return self.raw_file is not None

    def clear(self):
        self.raw_file = None
        self.content_type = None
        self.preview_uri = None
        self.file_name = None
        self.is_drag_active = False


@dataclass(frozen=True)
class Submission:
    token: int
    endpoint: str
    files: Dict[str, Tuple[str, bytes, str]]
    form: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DownloadLink:
    href: str
    filename: str


# (submission) -> (status code, decoded JSON body)
Transport = Callable[[Submission], Tuple[int, dict]]

class Workflow:
    def __init__(self, variant: Variant = SINGLE_IMAGE, transport: Optional[Transport] = None):
        self.variant = variant
        self.transport = transport
        self.slots = {slot.field: UploadSlot(slot.label) for slot in variant.slots}
        self.prompt = ""
        self.state = State.IDLE
        self.error: Optional[str] = None
        self.result_uri: Optional[str] = None
        self._token = 0
        self._pending: Optional[int] = None

    def _slot(self, name):
        """Look a slot up by form field or by label ("car", "wheelz")."""
        if name in self.slots:
            return self.slots[name]
        for slot in self.slots.values():
            if slot.name == name:
                return slot
        raise KeyError(name)

    @property
    def ready(self):
        return all(slot.filled for slot in self.slots.values())

    def select_file(self, slot_name, data, file_name=None, content_type=None):
        """Validate and encode one file into a slot. Returns False if rejected."""
        slot = self._slot(slot_name)
        if not is_image_type(content_type):
            self.error = "Please upload an image file"
            return False
        encoded = encode_image(data, content_type)

        slot.raw_file = data
        slot.content_type = encoded.mime_type
        slot.preview_uri = encoded.data_uri
        slot.file_name = file_name
        self.error = None
        self.result_uri = None
        if self.state != State.SUBMITTING:
            self.state = State.READY_TO_SUBMIT if self.ready else State.IDLE
        return True

    def browse(self, slot_name, data, file_name=None, content_type=None):
        if content_type is None and file_name:
            content_type = mimetypes.guess_type(file_name)[0]
        return self.select_file(slot_name, data, file_name, content_type)

    def drag_enter(self, slot_name):
        self._slot(slot_name).is_drag_active = True

    def drag_leave(self, slot_name):
        self._slot(slot_name).is_drag_active = False

    def drop(self, slot_name, data=None, file_name=None, content_type=None):
        self.drag_leave(slot_name)
        if data is None:
            return False
        return self.browse(slot_name, data, file_name, content_type)

    def begin_submit(self):
        """Move to SUBMITTING and return the request to send, or None if refused."""
        if self.state == State.SUBMITTING or not self.ready:
            return None

        self._token += 1
        self._pending = self._token
        self.state = State.SUBMITTING
        self.error = None
        self.result_uri = None

        files = {
            field_name: (slot.file_name or f"{slot.name}.img", slot.raw_file, slot.content_type)
            for field_name, slot in self.slots.items()
        }
        form = {"prompt": self.prompt} if self.variant.prompt_overridable else {}
        return Submission(self._token, self.variant.endpoint, files, form)

    def _is_current(self, submission):
        return self._pending is not None and submission.token == self._pending

    def complete(self, submission, status, body):
        """Apply the server's JSON reply to a submission."""
        if not self._is_current(submission):
            logger.debug("Ignoring reply for abandoned submission %d", submission.token)
            return
        self._pending = None
        body = body or {}

        image = (body.get("image") or {}) if 200 <= status < 300 else {}
        if body.get("success") and image.get("data") and image.get("mimeType"):
            self.result_uri = f"data:{image['mimeType']};base64,{image['data']}"
            self.state = State.SUCCEEDED
            return

        if 200 <= status < 300:
            message = body.get("error") or "No image returned"
        else:
            message = body.get("text") or body.get("error") or "Failed to transform image"
        self.error = message
        self.state = State.FAILED

    def fail(self, submission, message):
        if not self._is_current(submission):
            return
        self._pending = None
        self.error = message or "An error occurred"
        self.state = State.FAILED

    def submit(self):
        submission = self.begin_submit()
        if submission is None:
            if not self.ready:
                self.error = "Please upload an image first"
            return self.state

        try:
            status, body = self.transport(submission)
        except Exception as e:
            logger.warning("Submission %d failed: %s", submission.token, e)
            self.fail(submission, str(e))
        else:
            self.complete(submission, status, body)
        return self.state

    def reset(self):
        for slot in self.slots.values():
            slot.clear()
        self.prompt = ""
        self.error = None
        self.result_uri = None
        self._pending = None
        self.state = State.IDLE

    def download(self):
        if self.state != State.SUCCEEDED or not self.result_uri:
            return None
        mime_type = self.result_uri[len("data:"):].split(";", 1)[0]
        ext = mimetypes.guess_extension(mime_type) or ".png"
        first = next(iter(self.slots.values()))
        link = DownloadLink(self.result_uri, f"transformed-{first.file_name or 'image'}{ext}")
        logger.info("Downloading result as %s", link.filename)
        return link
