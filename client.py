"""Command-line client for a running Wheelz server.

    python client.py transform car.jpg --prompt "make the rims gold"
    python client.py swap car.jpg wheels.png --out result.png

Drives the same Workflow the browser page runs, then writes the result image
to disk. Exit code 0 on success, 1 on any failure.
"""

import argparse
import base64
import logging
import os
import sys

import requests

from pipeline import SINGLE_IMAGE, WHEEL_SWAP
from workflow import State, Workflow

DEFAULT_URL = os.getenv("WHEELZ_URL", "http://127.0.0.1:5001")


class HttpTransport:
    def __init__(self, base_url=DEFAULT_URL, timeout=90, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def __call__(self, submission):
        r = self.session.post(
            self.base_url + submission.endpoint,
            files=submission.files,
            data=submission.form,
            timeout=self.timeout,
        )
        try:
            body = r.json()
        except ValueError:
            body = {"error": f"HTTP {r.status_code}: {r.text[:200]}"}
        return r.status_code, body


def build_parser():
    parser = argparse.ArgumentParser(description="Transform car images with Wheelz.")
    parser.add_argument("--url", default=DEFAULT_URL, help="server base URL")
    parser.add_argument("--out", help="where to write the result image")
    parser.add_argument("--timeout", type=float, default=90)
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    t = sub.add_parser("transform", help="transform one image")
    t.add_argument("image")
    t.add_argument("--prompt", default="")

    s = sub.add_parser("swap", help="put the wheels from one image on another car")
    s.add_argument("car")
    s.add_argument("wheelz")
    return parser


def load_into(workflow, slot, path):
    with open(path, "rb") as f:
        data = f.read()
    if not workflow.browse(slot, data, file_name=os.path.basename(path)):
        raise ValueError(f"{path}: {workflow.error}")


def main(argv=None, transport=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    transport = transport or HttpTransport(args.url, timeout=args.timeout)
    if args.command == "transform":
        workflow = Workflow(SINGLE_IMAGE, transport)
        inputs = [("image", args.image)]
        workflow.prompt = args.prompt
    else:
        workflow = Workflow(WHEEL_SWAP, transport)
        inputs = [("car", args.car), ("wheelz", args.wheelz)]

    try:
        for slot, path in inputs:
            load_into(workflow, slot, path)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if workflow.submit() != State.SUCCEEDED:
        print(f"Error: {workflow.error}", file=sys.stderr)
        return 1

    link = workflow.download()
    out = args.out or link.filename
    _header, b64 = link.href.split(",", 1)
    with open(out, "wb") as f:
        f.write(base64.b64decode(b64))
    print(out)
    return 0


if __name__ == "__main__":
    sys.exit(main())
