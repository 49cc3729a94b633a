import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from types import SimpleNamespace
from urllib.parse import parse_qs, unquote, urlparse

import pytest

ENV_VARS = (
    "CONDUCTOR_SERVER_API_URL",
    "CONDUCTOR_SERVER_URL",
    "CONDUCTOR_ACCESS_TOKEN",
    "CONDUCTOR_KEY_ID",
    "CONDUCTOR_AUTH_KEY",
    "CONDUCTOR_KEY",
    "CONDUCTOR_KEY_SECRET",
    "CONDUCTOR_AUTH_SECRET",
    "CONDUCTOR_SECRET",
    "CONDUCTOR_VERIFY_TLS",
    "CONDUCTOR_HTTP_TIMEOUT_SEC",
    "OPENAI_API_KEY",
    "OPENAI_INTEGRATION_NAME",
    "OPENAI_MODELS",
    "PROMPT_MODEL_ASSOCIATION",
    "CONDUCTOR_SETUP_LOG_LEVEL",
    "CONDUCTOR_SETUP_LOG_FILE_LEVEL",
    "CONDUCTOR_SETUP_LOG_DIR",
)

TOKEN = "TKN-123"
KEY_ID = "kid"
KEY_SECRET = "ksecret"


class _ConductorHandler(BaseHTTPRequestHandler):
    """In-memory Conductor metadata API (only the endpoints the provisioner uses)."""

    # class-level state so tests can seed the server and inspect the calls
    state = {}
    calls = []
    fail = set()      # (METHOD, path) answered with 500
    user_info = {}

    protocol_version = "HTTP/1.1"

    @classmethod
    def reset(cls):
        cls.state = {
            "integrations": set(),
            "models": set(),
            "taskdefs": set(),
            "forms": set(),
            "prompts": {},
            "workflows": set(),
        }
        cls.calls = []
        cls.fail = set()
        cls.user_info = {"id": "dev@example.com", "name": "Dev"}

    def _send(self, status: int, obj=None, text: str = "") -> None:
        raw = json.dumps(obj).encode("utf-8") if obj is not None else text.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json" if obj is not None else "text/plain")
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)

    def _read_body(self) -> str:
        length = int(self.headers.get("Content-Length", "0"))
        return self.rfile.read(length).decode("utf-8") if length else ""

    def _route(self, method: str):
        parsed = urlparse(self.path)
        path = unquote(parsed.path)
        body = self._read_body() if method == "POST" else ""
        _ConductorHandler.calls.append(
            {
                "method": method,
                "path": path,
                "query": {k: v[0] for k, v in parse_qs(parsed.query).items()},
                "body": body,
                "content_type": self.headers.get("Content-Type", ""),
                "auth": self.headers.get("X-Authorization", ""),
            }
        )

        if not path.startswith("/api/"):
            return self._send(404, {"error": "not found"})
        rel = path[len("/api/"):]

        if method == "POST" and rel == "token":
            data = json.loads(body or "{}")
            if data.get("keyId") == KEY_ID and data.get("keySecret") == KEY_SECRET:
                return self._send(200, {"token": TOKEN})
            return self._send(401, {"error": "bad credentials"})

        if self.headers.get("X-Authorization") != TOKEN:
            return self._send(401, {"error": "unauthorized"})
        if (method, rel) in _ConductorHandler.fail:
            return self._send(500, {"error": "boom"})

        st = _ConductorHandler.state
        parts = rel.split("/")

        if method == "GET":
            if rel == "version":
                return self._send(200, text="5.1.0")
            if rel == "token/userInfo":
                return self._send(200, _ConductorHandler.user_info)
            if rel == "human/template":
                return self._send(200, [{"name": n, "version": 1} for n in sorted(st["forms"])])
            if parts[:2] == ["integrations", "provider"] and len(parts) == 3:
                return self._exists(parts[2] in st["integrations"])
            if parts[:2] == ["integrations", "provider"] and len(parts) == 5:
                return self._exists((parts[2], parts[4]) in st["models"])
            if parts[:2] == ["metadata", "taskdefs"] and len(parts) == 3:
                return self._exists(parts[2] in st["taskdefs"])
            if parts[0] == "prompts" and len(parts) == 2:
                return self._exists(parts[1] in st["prompts"])
            if parts[:2] == ["metadata", "workflow"] and len(parts) == 3:
                return self._exists(parts[2] in st["workflows"])
            return self._send(404, {"error": "not found"})

        if method == "POST":
            if parts[:2] == ["integrations", "provider"] and len(parts) == 3:
                st["integrations"].add(parts[2])
                return self._send(200, text="")
            if parts[:2] == ["integrations", "provider"] and len(parts) == 5:
                st["models"].add((parts[2], parts[4]))
                return self._send(200, text="")
            if rel == "metadata/taskdefs":
                for item in json.loads(body):
                    st["taskdefs"].add(item["name"])
                return self._send(200, text="")
            if rel == "human/template":
                st["forms"].add(json.loads(body)["name"])
                return self._send(200, {"name": json.loads(body)["name"]})
            if parts[0] == "prompts" and len(parts) == 2:
                st["prompts"][parts[1]] = body
                return self._send(200, text="")
            if rel == "metadata/workflow":
                st["workflows"].add(json.loads(body)["name"])
                return self._send(200, text="")
        return self._send(404, {"error": "not found"})

    def _exists(self, found: bool) -> None:
        if found:
            self._send(200, {"found": True})
        else:
            self._send(404, {"error": "not found"})

    def do_GET(self):  # noqa: N802
        self._route("GET")

    def do_POST(self):  # noqa: N802
        self._route("POST")

    def do_PUT(self):  # noqa: N802
        self._route("PUT")

    def do_DELETE(self):  # noqa: N802
        self._route("DELETE")

    def log_message(self, fmt, *args):  # silence test server logs
        return


@pytest.fixture
def conductor():
    """Fake Conductor server; yields its API base URL and the handler class."""
    _ConductorHandler.reset()
    server = ThreadingHTTPServer(("127.0.0.1", 0), _ConductorHandler)
    t = threading.Thread(target=server.serve_forever, daemon=True)
    t.start()
    base = f"http://{server.server_address[0]}:{server.server_address[1]}"
    try:
        yield SimpleNamespace(
            base_url=base,
            api_url=f"{base}/api",
            token=TOKEN,
            key_id=KEY_ID,
            key_secret=KEY_SECRET,
            handler=_ConductorHandler,
            state=_ConductorHandler.state,
            mutations=lambda: [
                c for c in _ConductorHandler.calls
                if c["method"] != "GET" and c["path"] != "/api/token"
            ],
        )
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """setup_logging() replaces the root handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)


@pytest.fixture
def clean_env(tmp_path, monkeypatch):
    """Run from an empty tmp dir with no provisioner variables in the environment."""
    for name in ENV_VARS:
        # set-then-delete so values later loaded from a .env file are undone at teardown
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    return tmp_path
