import logging
from pathlib import Path
from typing import Optional, Tuple, Union
from urllib.parse import unquote, urlparse

from websockets.datastructures import Headers
from websockets.http11 import Response

CONTENT_TYPES = {
    ".html": "text/html",
    ".js": "text/javascript",
    ".css": "text/css",
}
DEFAULT_CONTENT_TYPE = "text/plain"
INDEX_FILE = "/index.html"
NOT_FOUND_BODY = b"File not found"


def content_type_for(path: Union[str, Path]) -> str:
    return CONTENT_TYPES.get(Path(path).suffix.lower(), DEFAULT_CONTENT_TYPE)


class StaticFiles:
    """Plain file server for the chat page, answered on the WebSocket port."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    def lookup(self, request_path: str) -> Optional[Path]:
        path = unquote(urlparse(request_path).path)
        if path in ("", "/"):
            path = INDEX_FILE
        candidate = (self.root / path.lstrip("/")).resolve()
        # Never serve anything outside the static root
        try:
            candidate.relative_to(self.root)
        except ValueError:
            return None
        return candidate if candidate.is_file() else None

    def load(self, request_path: str) -> Tuple[int, str, bytes]:
        target = self.lookup(request_path)
        if target is None:
            return 404, DEFAULT_CONTENT_TYPE, NOT_FOUND_BODY
        try:
            body = target.read_bytes()
        except OSError as exc:
            logging.warning("Reading %s failed: %s", target, exc)
            return 404, DEFAULT_CONTENT_TYPE, NOT_FOUND_BODY
        return 200, content_type_for(target), body

    def respond(self, request_path: str) -> Response:
        status, content_type, body = self.load(request_path)
        logging.debug("GET %s -> %d", request_path, status)
        headers = Headers()
        headers["Content-Type"] = content_type
        headers["Content-Length"] = str(len(body))
        headers["Connection"] = "close"
        reason = "OK" if status == 200 else "Not Found"
        return Response(status, reason, headers, body)
