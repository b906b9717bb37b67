# studybuddy/webui/server.py

# NOTE: Serves the static quiz page and forwards form posts to FormActions.

import http.server
import json
import logging
import socketserver
import urllib.parse
from pathlib import Path

from studybuddy.actions import FormActions

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 20 * 1024 * 1024


def parse_form_body(body: bytes, content_type: str) -> dict:
    """Decode a urlencoded or JSON request body into a flat field mapping."""
    media_type = content_type.split(";", 1)[0].strip().lower()
    text = body.decode("utf-8")
    if media_type == "application/json":
        data = json.loads(text or "{}")
        if not isinstance(data, dict):
            raise ValueError("JSON body must be an object")
        return data
    return {key: values[-1] for key, values in urllib.parse.parse_qs(text).items()}


class QuizRequestHandler(http.server.SimpleHTTPRequestHandler):
    """HTTP handler serving the quiz page and the /action endpoint."""

    def __init__(self, *args, actions=None, **kwargs):
        self.actions = actions
        webui_dir = Path(__file__).parent.resolve()
        super().__init__(*args, directory=str(webui_dir), **kwargs)

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_GET(self):
        parsed_url = urllib.parse.urlparse(self.path)

        if parsed_url.path == "/favicon.ico":
            self.send_response(204)
            self.end_headers()
            return

        if parsed_url.path == "/":
            self.path = "/index.html"
        elif parsed_url.path != "/index.html":
            self.send_error(404, "Not found")
            return

        return http.server.SimpleHTTPRequestHandler.do_GET(self)

    def do_POST(self):
        parsed_url = urllib.parse.urlparse(self.path)
        if parsed_url.path != "/action":
            self.send_error(404, "Not found")
            return

        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = -1
        if length < 0:
            self.send_json_response({"error": "Invalid Content-Length header"}, status=400)
            return
        if length > MAX_BODY_BYTES:
            self.send_error(413, "Request body too large")
            return

        try:
            fields = parse_form_body(
                self.rfile.read(length), self.headers.get("Content-Type", "")
            )
        except (UnicodeDecodeError, ValueError) as exc:
            self.send_json_response({"error": f"Malformed request body: {exc}"}, status=400)
            return

        result = self.actions.handle(fields)
        self.send_json_response(result.model_dump())

    def send_json_response(self, data, status: int = 200):
        payload = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)


# Factory that injects the form actions into each handler instance.
def create_handler_factory(actions: FormActions):
    def handler_factory(*args, **kwargs):
        return QuizRequestHandler(*args, actions=actions, **kwargs)
    return handler_factory


class ReusableThreadingTCPServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True


def start_server(port: int, actions: FormActions, host: str = ""):
    with ReusableThreadingTCPServer((host, port), create_handler_factory(actions)) as httpd:
        print(f"[*] Quiz server running at http://{host or '0.0.0.0'}:{port}")
        httpd.serve_forever()
