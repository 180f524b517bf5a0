"""Remote content retrieval and visible-text extraction."""

from __future__ import annotations

import logging
from urllib import error, parse, request

from bs4 import BeautifulSoup

from .errors import EmptyContentError, FetchError

logger = logging.getLogger(__name__)

# Hard cap on extracted text placed into a prompt.
MAX_CONTENT_CHARS = 8000

# Elements whose text is never rendered.
_HIDDEN_TAGS = ["script", "style", "noscript", "template"]

_USER_AGENT = "workflow-api/0.1 (+content-fetcher)"

# Only web documents are fetched; file:, data:, ftp: and similar are refused.
_ALLOWED_SCHEMES = ("http", "https")


class ContentFetcher:
    """Fetch a URL with one GET and return at most ``max_chars`` of its visible text."""

    def __init__(self, *, timeout_s: float, max_chars: int = MAX_CONTENT_CHARS) -> None:
        self.timeout_s = timeout_s
        self.max_chars = max_chars

    def fetch(self, url: str) -> str:
        html = self._download(url)
        text = extract_visible_text(html)
        if not text:
            logger.warning("content_fetch event=empty url=%s", url)
            raise EmptyContentError()
        content = text[: self.max_chars]
        logger.info(
            "content_fetch event=completed url=%s extracted_chars=%d content_chars=%d",
            url,
            len(text),
            len(content),
        )
        return content

    def _download(self, url: str) -> str:
        # Redirects follow urllib's default handler; nothing is retried.
        try:
            scheme = parse.urlsplit(url).scheme.lower()
            req = request.Request(
                url=url,
                method="GET",
                headers={"Accept": "text/html,*/*", "User-Agent": _USER_AGENT},
            )
        except ValueError as exc:
            logger.warning("content_fetch event=failed url=%s reason=%s", url, exc)
            raise FetchError() from exc
        if scheme not in _ALLOWED_SCHEMES:
            logger.warning("content_fetch event=rejected url=%s scheme=%s", url, scheme)
            raise FetchError()

        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                status = getattr(response, "status", None)
                raw_body = response.read()
                charset = _response_charset(response)
        except error.HTTPError as exc:
            logger.warning("content_fetch event=failed url=%s status=%s", url, exc.code)
            raise FetchError() from exc
        except error.URLError as exc:
            logger.warning("content_fetch event=failed url=%s reason=%s", url, exc.reason)
            raise FetchError() from exc
        except (TimeoutError, OSError, ValueError) as exc:
            logger.warning("content_fetch event=failed url=%s reason=%s", url, exc)
            raise FetchError() from exc

        if status is None or not 200 <= status < 300:
            logger.warning("content_fetch event=failed url=%s status=%s", url, status)
            raise FetchError()
        return raw_body.decode(charset, errors="replace")


def extract_visible_text(html: str) -> str:
    """Return the rendered text of the document body, markup discarded.

    Documents without a ``<body>`` element fall back to the whole document.
    Leading/trailing whitespace is stripped, so whitespace-only pages yield "".
    """
    soup = BeautifulSoup(html, "html.parser")
    for hidden in soup.find_all(_HIDDEN_TAGS):
        hidden.decompose()
    root = soup.body
    if root is None:
        if soup.head is not None:
            soup.head.decompose()
        root = soup
    return root.get_text().strip()


def _response_charset(response: object) -> str:
    headers = getattr(response, "headers", None)
    charset = None
    if headers is not None and hasattr(headers, "get_content_charset"):
        charset = headers.get_content_charset()
    if not charset:
        return "utf-8"
    try:
        "".encode(charset)
    except LookupError:
        return "utf-8"
    return charset
