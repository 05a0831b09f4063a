"""Document extraction: turn URLs and uploaded files into ingestible text.

URL fetching:
- Allowed URL schemes: https:// and http:// only.
- SSRF guard: the hostname is resolved and private/loopback/link-local/
  reserved ranges are rejected before any connection is made.
- Content-Type whitelist: text/html and text/plain.
- Max response body: 5 MB. Timeout: 30 seconds. Max redirects: 3.

Files:
- .pdf via pypdf (page text concatenated; image-only pages skipped)
- .txt .md .markdown .rst .csv .log .json read as UTF-8
"""

from __future__ import annotations

import ipaddress
import socket
import urllib.error
import urllib.parse
import urllib.request
from http.client import HTTPResponse
from pathlib import Path

import html2text
import pypdf
from bs4 import BeautifulSoup

_USER_AGENT = "quire/0.1"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_TIMEOUT = 30  # seconds
_MAX_REDIRECTS = 3
_ALLOWED_SCHEMES = {"https", "http"}
_ALLOWED_CONTENT_TYPES = {"text/html", "text/plain"}

_PDF_EXTS = {".pdf"}
_TEXT_EXTS = {".txt", ".text", ".md", ".markdown", ".rst", ".csv", ".log", ".json"}
SUPPORTED_EXTENSIONS = _PDF_EXTS | _TEXT_EXTS

_h2t = html2text.HTML2Text()
_h2t.ignore_links = True
_h2t.ignore_images = True
_h2t.body_width = 0


class SsrfError(ValueError):
    """Raised when a URL resolves to a private or reserved address."""


# ------------------------------------------------------------------
# URLs
# ------------------------------------------------------------------


def extract_from_url(url: str) -> str:
    """Validate, fetch, and convert *url* to plain text.

    Raises:
        ValueError: Unsupported scheme or Content-Type, body too large.
        SsrfError: The host resolves to a private address.
        RuntimeError: The fetch itself failed.
    """
    _validate_scheme(url)
    _check_ssrf(url)
    raw, content_type = _fetch(url)
    return _to_plain_text(raw, content_type)


def _validate_scheme(url: str) -> None:
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        raise ValueError(
            f"Unsupported URL scheme '{parsed.scheme}'. Only https:// and http:// are allowed."
        )


def _check_ssrf(url: str) -> None:
    parsed = urllib.parse.urlparse(url)
    hostname = parsed.hostname
    if not hostname:
        raise ValueError(f"URL has no hostname: {url}")

    try:
        addrinfos = socket.getaddrinfo(hostname, None)
    except socket.gaierror as exc:
        raise ValueError(f"DNS resolution failed for '{hostname}': {exc}") from exc

    for addrinfo in addrinfos:
        addr_str = addrinfo[4][0]
        try:
            ip = ipaddress.ip_address(addr_str)
        except ValueError:
            continue
        if (
            ip.is_private
            or ip.is_loopback
            or ip.is_link_local
            or ip.is_reserved
            or ip.is_multicast
            or ip.is_unspecified
        ):
            raise SsrfError(
                f"URL resolves to private address ({ip}). "
                "Access to internal network addresses is not allowed."
            )


def _fetch(url: str) -> tuple[bytes, str]:
    """Fetch *url*; returns (body_bytes, content_type_without_params)."""
    request = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
    opener = urllib.request.build_opener(_LimitedRedirectHandler(_MAX_REDIRECTS))

    try:
        response: HTTPResponse = opener.open(request, timeout=_TIMEOUT)
    except urllib.error.URLError as exc:
        raise RuntimeError(f"Failed to fetch URL '{url}': {exc}") from exc

    raw_ct = response.headers.get("Content-Type", "text/html")
    ct = raw_ct.split(";")[0].strip().lower()
    if ct not in _ALLOWED_CONTENT_TYPES:
        raise ValueError(
            f"Unsupported Content-Type '{ct}' for URL '{url}'. "
            f"Accepted: {', '.join(sorted(_ALLOWED_CONTENT_TYPES))}"
        )

    body = response.read(_MAX_BYTES + 1)
    if len(body) > _MAX_BYTES:
        raise ValueError(
            f"Response body exceeds {_MAX_BYTES // (1024 * 1024)} MB limit for URL '{url}'."
        )

    return body, ct


def _to_plain_text(body: bytes, content_type: str) -> str:
    text = body.decode("utf-8", errors="replace")
    if content_type == "text/plain":
        return text

    soup = BeautifulSoup(text, "html.parser")
    for tag in soup.find_all(["script", "style", "nav", "footer", "head"]):
        tag.decompose()
    return _h2t.handle(str(soup)).strip()


class _LimitedRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Raise an error after more than *max_redirects* redirects."""

    def __init__(self, max_redirects: int) -> None:
        self._max_redirects = max_redirects
        self._count = 0

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        self._count += 1
        if self._count > self._max_redirects:
            raise RuntimeError(
                f"Too many redirects (>{self._max_redirects}) for URL '{req.full_url}'."
            )
        return super().redirect_request(req, fp, code, msg, headers, newurl)


# ------------------------------------------------------------------
# Files
# ------------------------------------------------------------------


def extract_document(path: str | Path) -> str:
    """Return the text content of the document at *path*.

    Raises:
        FileNotFoundError: *path* does not exist.
        ValueError: The extension is not supported.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"No such file: '{file_path}'")

    ext = file_path.suffix.lower()
    if ext in _PDF_EXTS:
        return _extract_pdf(file_path)
    if ext in _TEXT_EXTS:
        return file_path.read_text(encoding="utf-8", errors="replace")
    raise ValueError(
        f"Unsupported file type '{ext}'. "
        f"Supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
    )


def _extract_pdf(path: Path) -> str:
    reader = pypdf.PdfReader(str(path))
    parts: list[str] = []
    for page in reader.pages:
        stripped = (page.extract_text() or "").strip()
        if stripped:
            parts.append(stripped)
    return "\n\n".join(parts)
