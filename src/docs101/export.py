"""
Static export of the documentation site.

Crawls a running docs101 server starting from its root URL and writes every
page and asset it can reach into an output directory, so the mirror can be
published on any static host:

    docs101 -gen -out static-site

Only same-origin links are followed: href/src/srcset attributes in HTML and url(...)
references in CSS. Query strings and fragments are dropped, the mirror is
plain files. JavaScript is minified with rjsmin on the way out.
"""
from __future__ import annotations

import os
import re
import urllib.error
import urllib.parse
import urllib.request
from collections import deque
from typing import Iterable, List, Tuple

from rjsmin import jsmin

from .errors import ExportError

DEFAULT_OUT_DIR = "static-site"
FETCH_TIMEOUT = 30.0

_HTML_LINK = re.compile(r"""\b(?:href|src)\s*=\s*["']([^"']+)["']""", re.I)
_CSS_URL = re.compile(r"""url\(\s*["']?([^"')]+)["']?\s*\)""", re.I)
_SRCSET = re.compile(r"""\bsrcset\s*=\s*["']([^"']+)["']""", re.I)


def minify_js(code: str) -> str:
    return jsmin(code)


def _normalize(url: str) -> str:
    parts = urllib.parse.urlsplit(url)
    return urllib.parse.urlunsplit((parts.scheme, parts.netloc, parts.path or "/", "", ""))


def _fetch(url: str, timeout: float) -> Tuple[bytes, str, str]:
    req = urllib.request.Request(url, headers={"User-Agent": "docs101-export", "Accept-Encoding": "identity"})
    with urllib.request.urlopen(req, timeout=timeout) as resp:
        ctype = resp.headers.get_content_type()
        return resp.read(), ctype, resp.geturl()


def _links(body: bytes, ctype: str) -> Iterable[str]:
    if ctype == "text/html":
        pattern = _HTML_LINK
    elif ctype == "text/css":
        pattern = _CSS_URL
    else:
        return []
    text = body.decode("utf-8", errors="replace")
    links = [m.group(1).strip() for m in pattern.finditer(text)]
    if pattern is _HTML_LINK:
        # srcset="a.png 1x, b.png 2x": each candidate is a URL plus a descriptor
        for m in _SRCSET.finditer(text):
            links.extend(c.split()[0] for c in m.group(1).split(",") if c.strip())
    return links


def local_path(out_dir: str, url: str, ctype: str) -> str:
    """Where ``url`` lands inside ``out_dir``. Directory-like URLs get an index.html."""
    path = urllib.parse.unquote(urllib.parse.urlsplit(url).path) or "/"
    if path.endswith("/"):
        path += "index.html"
    elif ctype == "text/html" and not os.path.splitext(path)[1]:
        path += "/index.html"
    root = os.path.abspath(out_dir)
    target = os.path.abspath(os.path.join(root, path.lstrip("/")))
    if os.path.commonpath([root, target]) != root:
        raise ExportError(f"refusing to write {url} outside of {out_dir}")
    return target


def gen_static_files(
    root_url: str,
    out_dir: str = DEFAULT_OUT_DIR,
    minify: bool = True,
    timeout: float = FETCH_TIMEOUT,
) -> List[str]:
    """Mirror the site at ``root_url`` into ``out_dir``; returns the files written.

    Raises ExportError when the root page itself cannot be fetched. Any other
    resource that fails is logged and left out of the mirror.
    """
    origin = urllib.parse.urlsplit(root_url)
    start = _normalize(root_url)
    queue = deque([start])
    seen = {start}
    written: List[str] = []
    done = set()

    print(f"[GEN] Exporting {root_url} to {os.path.abspath(out_dir)}")
    while queue:
        url = queue.popleft()
        try:
            body, ctype, final_url = _fetch(url, timeout)
        except (urllib.error.URLError, OSError) as e:
            if url == start:
                raise ExportError(f"could not fetch {url}: {e}") from e
            print(f"[GEN] Warning: skipping {url}: {e}")
            continue

        try:
            dest = local_path(out_dir, final_url, ctype)
        except ExportError as e:
            print(f"[GEN] Warning: skipping {url}: {e}")
            continue
        if dest in done:
            # "/" and "/index.html" are the same file
            continue
        done.add(dest)

        for link in _links(body, ctype):
            target = urllib.parse.urljoin(final_url, link)
            parts = urllib.parse.urlsplit(target)
            if (parts.scheme, parts.netloc) != (origin.scheme, origin.netloc):
                continue
            target = _normalize(target)
            if target not in seen:
                seen.add(target)
                queue.append(target)

        if minify and ctype in ("application/javascript", "text/javascript"):
            body = minify_js(body.decode("utf-8", errors="replace")).encode("utf-8")

        os.makedirs(os.path.dirname(dest), exist_ok=True)
        with open(dest, "wb") as f:
            f.write(body)
        written.append(dest)

    print(f"[GEN] Wrote {len(written)} files")
    return written
