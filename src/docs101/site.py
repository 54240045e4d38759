import gzip
import html as html_lib
import io
import mimetypes
import os
import re
import socket
import sys
import threading
import urllib.parse
from functools import partial
from http.server import SimpleHTTPRequestHandler
from typing import Dict, Optional

import brotli

# The documentation handler:
# - Serves the pre-rendered pages under the content directory, "/" -> index.html
# - Stamps the configured theme onto <body data-theme="...">
# - Keeps rendered pages in memory for requests to 127.0.0.1, never for localhost
# - Compresses text responses (br, then gzip)

CACHED_HOST = "127.0.0.1"
CACHED_MAX_AGE = 3600
COMPRESSIBLE = {".html", ".htm", ".css", ".js", ".mjs", ".json", ".svg", ".txt"}
HTML_TYPES = {".html", ".htm"}

_BODY_TAG = re.compile(r"<body(?![^>]*\bdata-theme=)[^>]*>", re.I)


def stamp_theme(page: str, theme: str) -> str:
    """Add data-theme to the first <body> tag unless it already has one."""
    if not theme:
        return page

    def _inject(m):
        tag_open = m.group(0)
        return tag_open[:-1] + f' data-theme="{html_lib.escape(theme, quote=True)}">'

    return _BODY_TAG.sub(_inject, page, count=1)


class Site:
    """The documentation being served: where it lives, how it is themed, and
    the page cache shared by all request threads."""

    def __init__(self, content_dir: str, theme: str = ""):
        self.content_dir = os.path.abspath(content_dir)
        self.theme = theme
        self._cache: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def render(self, fs_path: str) -> bytes:
        with open(fs_path, "rb") as f:
            raw = f.read()
        if self.theme and os.path.splitext(fs_path)[1].lower() in HTML_TYPES:
            text = raw.decode("utf-8", errors="replace")
            raw = stamp_theme(text, self.theme).encode("utf-8")
        return raw

    def page(self, fs_path: str, cached: bool) -> bytes:
        if not cached:
            return self.render(fs_path)
        with self._lock:
            hit = self._cache.get(fs_path)
        if hit is not None:
            return hit
        data = self.render(fs_path)
        with self._lock:
            self._cache[fs_path] = data
        return data

    def cached_paths(self):
        with self._lock:
            return sorted(self._cache)

    def invalidate(self):
        with self._lock:
            self._cache.clear()

    def handler_class(self):
        return partial(DocsHandler, site=self)


def _accepted_encodings(header: str):
    return {part.split(";", 1)[0].strip().lower() for part in (header or "").split(",") if part.strip()}


def compress(data: bytes, accept_encoding: str):
    """Returns (body, content_encoding_or_None) for the client's Accept-Encoding."""
    accepted = _accepted_encodings(accept_encoding)
    if "br" in accepted:
        return brotli.compress(data), "br"
    if "gzip" in accepted:
        return gzip.compress(data, compresslevel=6), "gzip"
    return data, None


class DocsHandler(SimpleHTTPRequestHandler):
    extensions_map = {
        **getattr(SimpleHTTPRequestHandler, "extensions_map", {}),
        ".js": "application/javascript",
        ".mjs": "application/javascript",
        ".json": "application/json",
        ".svg": "image/svg+xml",
        ".wasm": "application/wasm",
    }

    def __init__(self, *args, site: Site, **kwargs):
        self.site = site
        super().__init__(*args, directory=site.content_dir, **kwargs)

    # Read/write deadlines come from the server, see DocServer. The socket
    # timeout bounds each recv/send, the timer bounds the whole phase.
    def _arm(self, seconds: Optional[float]):
        self._disarm()
        self.connection.settimeout(seconds)
        if seconds is None:
            return
        self._deadline = threading.Timer(seconds, self._expire)
        self._deadline.daemon = True
        self._deadline.start()

    def _disarm(self):
        timer = getattr(self, "_deadline", None)
        if timer is not None:
            timer.cancel()
            self._deadline = None

    def _expire(self):
        try:
            self.connection.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Connection already gone
            return

    def handle_one_request(self):
        self._arm(getattr(self.server, "read_timeout", None))
        try:
            super().handle_one_request()
        finally:
            self._disarm()

    def parse_request(self):
        ok = super().parse_request()
        if ok:
            self._arm(getattr(self.server, "write_timeout", None))
        return ok

    def _request_host(self) -> str:
        headers = getattr(self, "headers", None)
        host = (headers.get("Host", "") if headers else "") or ""
        if host.startswith("["):
            return host[1:].split("]", 1)[0].lower()
        return host.split(":", 1)[0].lower()

    def _is_cached_host(self) -> bool:
        return self._request_host() == CACHED_HOST

    def end_headers(self):
        # 127.0.0.1 is the cached version of the site, anything else is live
        if self._is_cached_host():
            self.send_header("Cache-Control", f"public, max-age={CACHED_MAX_AGE}")
        else:
            self.send_header("Cache-Control", "no-store, no-cache, must-revalidate, max-age=0")
            self.send_header("Pragma", "no-cache")
            self.send_header("Expires", "0")
        super().end_headers()

    def log_message(self, fmt, *args):
        sys.stdout.write("[HTTP] " + (fmt % args) + "\n")

    def _fs_path(self, requested: str) -> Optional[str]:
        if requested.endswith("/"):
            requested += "index.html"
        fs_path = self.translate_path(requested)
        if os.path.isfile(fs_path):
            return fs_path
        return None

    def send_head(self):
        """Send status and headers; return the body as a file object, or None.

        Shared by do_GET and do_HEAD so both report the same headers.
        """
        requested = urllib.parse.urlsplit(self.path).path or "/"

        fs_path = self._fs_path(requested)
        if requested == "/favicon.ico" and fs_path is None:
            self.send_response(204)
            self.send_header("Content-Length", "0")
            self.end_headers()
            return None

        if fs_path is None or os.path.splitext(fs_path)[1].lower() not in COMPRESSIBLE:
            return super().send_head()

        try:
            raw = self.site.page(fs_path, cached=self._is_cached_host())
        except OSError:
            self.send_error(404, "File not found")
            return None
        data, encoding = compress(raw, self.headers.get("Accept-Encoding", ""))
        ctype = self.guess_type(fs_path) or mimetypes.guess_type(fs_path)[0] or "application/octet-stream"
        if ctype.startswith("text/") and "charset" not in ctype:
            ctype += "; charset=utf-8"
        self.send_response(200)
        self.send_header("Content-Type", ctype)
        if encoding:
            self.send_header("Content-Encoding", encoding)
        self.send_header("Vary", "Accept-Encoding")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        return io.BytesIO(data)
