"""OpenGraph metadata extraction from a stream of HTML bytes.

The extractor is an event-driven tokenizer: no tree is built, only a stack of
currently open tag names is kept to answer "is this position inside <T>".
"""

import codecs
import logging
from collections.abc import Iterable
from html.parser import HTMLParser
from typing import Optional
from urllib.parse import urljoin

from media_api.errors import ParseError
from media_api.schemas import SiteMetadata

logger = logging.getLogger(__name__)

# Elements that never have an end tag and so are never pushed on the stack.
VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)

OG_FIELDS = {
    "og:description": "description",
    "og:type": "type",
    "og:title": "title",
    "og:url": "url",
}
OG_IMAGE_PROPERTIES = frozenset({"og:image", "og:image:url"})


def is_absolute_url(url: str) -> bool:
    return "://" in url or url.startswith("//")


class MetadataExtractor(HTMLParser):
    """Collects SiteMetadata from one HTML document.

    Bytes are pushed in with :meth:`push` as they arrive and :meth:`finish`
    returns the result. With ``early_exit`` the extractor reports itself done
    as soon as it is inside ``<body>`` and has both a title and an image, and
    ignores everything after that point.
    """

    def __init__(self, encoding: Optional[str] = None, early_exit: bool = True) -> None:
        super().__init__(convert_charrefs=True)
        try:
            decoder_factory = codecs.getincrementaldecoder(encoding or "utf-8")
        except LookupError:
            logger.debug("Unknown charset %r, decoding as utf-8", encoding)
            decoder_factory = codecs.getincrementaldecoder("utf-8")
        self._decoder = decoder_factory(errors="replace")
        self.early_exit = early_exit
        self.site = SiteMetadata()
        self.done = False
        self._stack: list[str] = []
        self._base = ""
        self._title_parts: Optional[list[str]] = None

    def push(self, chunk: bytes) -> bool:
        """Feed a chunk of raw bytes. Returns True once no more input is needed."""
        if self.done:
            return True
        text = self._decoder.decode(chunk)
        if text:
            self._feed(text)
        return self.done

    def finish(self) -> SiteMetadata:
        if not self.done:
            tail = self._decoder.decode(b"", final=True)
            if tail:
                self._feed(tail)
            if not self.done:
                try:
                    self.close()
                except AssertionError as exc:
                    logger.debug("Stopped tokenizing at end of document: %s", exc)
        self._commit_title()
        return self.site

    def set_property(self, prop: str, content: str) -> None:
        """Record an OpenGraph property. Scalar fields keep their first value."""
        content = content.strip()
        if not content:
            return
        if prop in OG_IMAGE_PROPERTIES:
            self.site.images.append(content)
            return
        field = OG_FIELDS.get(prop)
        if field and not getattr(self.site, field):
            setattr(self.site, field, content)

    # HTMLParser callbacks

    def handle_starttag(self, tag: str, attrs: list[tuple[str, Optional[str]]]) -> None:
        if self.done:
            return
        self._handle_tag(tag, attrs)
        if tag not in VOID_ELEMENTS:
            self._stack.append(tag)
        self._check_done()

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, Optional[str]]]) -> None:
        if self.done:
            return
        self._handle_tag(tag, attrs)
        self._check_done()

    def handle_endtag(self, tag: str) -> None:
        if self.done:
            return
        if tag == "title":
            self._commit_title()
        for i in range(len(self._stack) - 1, -1, -1):
            if self._stack[i] == tag:
                del self._stack[i:]
                break

    def handle_data(self, data: str) -> None:
        if self.done or self._title_parts is None:
            return
        if self._inside("title") and not self._inside("body"):
            self._title_parts.append(data)

    def parse_marked_section(self, i: int, report: int = 1) -> int:
        # html.parser asserts on marked sections such as "<![ if !IE ]>" or
        # "<![foo]>"; skip them like any other unknown declaration.
        try:
            return super().parse_marked_section(i, report)
        except AssertionError:
            end = self.rawdata.find(">", i)
            if end < 0:
                return -1
            logger.debug("Skipping malformed marked section %r", self.rawdata[i : end + 1])
            return end + 1

    # internals

    def _feed(self, text: str) -> None:
        try:
            self.feed(text)
        except AssertionError as exc:
            logger.debug("Stopped tokenizing malformed markup: %s", exc)
            self.done = True

    def _inside(self, tag: str) -> bool:
        return tag in self._stack

    def _handle_tag(self, tag: str, attrs: list[tuple[str, Optional[str]]]) -> None:
        if tag == "meta":
            values = {name: value or "" for name, value in attrs}
            prop = values.get("property", "")
            if not self.site.description and values.get("name", "").lower() == "description":
                prop = "og:description"
            self.set_property(prop, values.get("content", ""))
        elif tag == "base":
            href = dict(attrs).get("href")
            if href:
                self._base = href
        elif tag == "img":
            if not self._inside("a"):
                self._add_image(dict(attrs).get("src") or "")
        elif tag == "title":
            if not self.site.title and not self._inside("body"):
                self._title_parts = []
        elif tag == "body":
            self._commit_title()

    def _add_image(self, src: str) -> None:
        src = src.strip()
        if not src:
            return
        if not is_absolute_url(src) and self._base:
            src = urljoin(self._base, src)
        self.site.images.append(src)

    def _commit_title(self) -> None:
        if self._title_parts is None:
            return
        text = "".join(self._title_parts).strip()
        self._title_parts = None
        if text and not self.site.title:
            self.site.title = text

    def _check_done(self) -> None:
        if (
            self.early_exit
            and self._inside("body")
            and self.site.title
            and self.site.images
        ):
            self.done = True


def extract(
    chunks: Iterable[bytes],
    encoding: Optional[str] = None,
    early_exit: bool = True,
) -> SiteMetadata:
    """Extract metadata from an iterable of HTML byte chunks."""
    extractor = MetadataExtractor(encoding=encoding, early_exit=early_exit)
    try:
        for chunk in chunks:
            if extractor.push(chunk):
                break
    except OSError as exc:
        raise ParseError(f"failed to read html: {exc}") from exc
    return extractor.finish()


def resolve_images(site: SiteMetadata, page_url: str) -> SiteMetadata:
    """Return a copy of ``site`` with every image URL made absolute."""
    resolved = []
    for image in site.images:
        try:
            resolved.append(urljoin(page_url, image))
        except ValueError:
            logger.debug("Dropping unresolvable image url %r", image)
    return site.model_copy(update={"images": resolved})
