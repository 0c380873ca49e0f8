import base64

from client import HttpTransport, main
from conftest import JPEG_BYTES, PNG_BYTES
from workflow import Submission


class RecordingTransport:
    def __init__(self, status, body):
        self.status = status
        self.body = body
        self.submissions = []

    def __call__(self, submission):
        self.submissions.append(submission)
        return self.status, self.body


def write(tmp_path, name, data):
    path = tmp_path / name
    path.write_bytes(data)
    return str(path)


def test_transform_writes_result(tmp_path, capsys):
    car = write(tmp_path, "car.jpg", JPEG_BYTES)
    out = tmp_path / "out.png"
    transport = RecordingTransport(200, {
        "success": True,
        "image": {"data": base64.b64encode(PNG_BYTES).decode(), "mimeType": "image/png"},
    })

    code = main(["--out", str(out), "transform", car, "--prompt", "gold rims"], transport=transport)

    assert code == 0
    assert out.read_bytes() == PNG_BYTES
    (submission,) = transport.submissions
    assert submission.form == {"prompt": "gold rims"}
    assert capsys.readouterr().out.strip() == str(out)


def test_swap_reports_declined(tmp_path, capsys):
    car = write(tmp_path, "car.jpg", JPEG_BYTES)
    rims = write(tmp_path, "rims.png", PNG_BYTES)
    transport = RecordingTransport(422, {
        "success": False,
        "error": "Model returned text instead of image",
        "text": "I cannot edit this image",
    })

    assert main(["swap", car, rims], transport=transport) == 1
    assert "I cannot edit this image" in capsys.readouterr().err
    assert list(transport.submissions[0].files) == ["carImage", "wheelzImage"]


def test_rejects_non_image_file(tmp_path, capsys):
    notes = write(tmp_path, "notes.txt", b"hello")
    transport = RecordingTransport(200, {})
    assert main(["transform", notes], transport=transport) == 1
    assert "Please upload an image file" in capsys.readouterr().err
    assert transport.submissions == []


def test_missing_file(tmp_path):
    assert main(["transform", str(tmp_path / "nope.jpg")], transport=RecordingTransport(200, {})) == 1


class FakeResponse:
    def __init__(self, status_code, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("not json")
        return self._body


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return self.response


def test_http_transport_posts_multipart():
    session = FakeSession(FakeResponse(200, {"success": True}))
    transport = HttpTransport("http://wheelz.local/", timeout=5, session=session)
    submission = Submission(1, "/api/swap", {"carImage": ("car.jpg", b"x", "image/jpeg")})

    assert transport(submission) == (200, {"success": True})
    url, kwargs = session.calls[0]
    assert url == "http://wheelz.local/api/swap"
    assert kwargs["files"] == {"carImage": ("car.jpg", b"x", "image/jpeg")}
    assert kwargs["timeout"] == 5


def test_http_transport_non_json_body():
    session = FakeSession(FakeResponse(502, text="Bad Gateway"))
    status, body = HttpTransport(session=session)(Submission(1, "/api/transform", {}))
    assert status == 502
    assert body == {"error": "HTTP 502: Bad Gateway"}
