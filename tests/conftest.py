import io

import pytest

from app import create_app
from pipeline import Candidate, GenerationReply, InlineDataPart, ReplyTextPart

# Smallest valid PNG: 1x1 transparent pixel.
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6360000002000154a24f5d0000000049454e44ae426082"
)
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00fake-jpeg-body\xff\xd9"


class FakeGenerator:
    """Records every request; returns `reply` or raises `error`."""

    def __init__(self, reply=None, error=None):
        self.reply = reply if reply is not None else image_reply(PNG_BYTES)
        self.error = error
        self.requests = []

    def generate(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.reply


def image_reply(data, mime_type="image/png"):
    return GenerationReply(candidates=(Candidate(parts=(InlineDataPart(data, mime_type),)),))


def text_reply(text):
    return GenerationReply(candidates=(Candidate(parts=(ReplyTextPart(text),)),))


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def app(generator):
    return create_app({"TESTING": True, "GEMINI_API_KEY": "test-key"}, generator=generator)


@pytest.fixture
def client(app):
    return app.test_client()


def upload(data, filename, content_type):
    return (io.BytesIO(data), filename, content_type)


def flask_transport(test_client):
    """Workflow transport that posts through a Flask test client."""
    def send(submission):
        data = dict(submission.form)
        for field_name, (filename, content, content_type) in submission.files.items():
            data[field_name] = upload(content, filename, content_type)
        r = test_client.post(submission.endpoint, data=data, content_type="multipart/form-data")
        return r.status_code, r.get_json()
    return send
