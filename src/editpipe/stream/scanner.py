from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    AsyncIterable,
    AsyncIterator,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
)
import asyncio
import re

from editpipe.logger import logger


ATTRIBUTE_RE = re.compile(r'([A-Za-z_][\w.\-:]*)\s*=\s*"([^"]*)"')


def _noop_start(attributes: Dict[str, str]) -> None:
    return None


def _noop_end(content: str, attributes: Dict[str, str]) -> bool:
    return False


@dataclass
class TagDescriptor:
    """
    Registry entry for one tag name.
    on_end returning True stops the whole scan.
    """

    attribute_names: List[str] = field(default_factory=list)
    on_start: Callable[[Dict[str, str]], None] = _noop_start
    on_end: Callable[[str, Dict[str, str]], bool] = _noop_end


@dataclass
class IncompleteTag:
    name: str
    attributes: Dict[str, str] = field(default_factory=dict)
    # Number of body characters received (and discarded) before the stream ended
    partial_length: int = 0


def parse_attributes(text: str, attribute_names: Iterable[str]) -> Dict[str, str]:
    """
    Parse name="value" pairs from an opening tag's attribute string.
    Only declared names are kept; the last duplicate wins; anything else is
    dropped without error.
    """
    allowed = set(attribute_names)
    out: Dict[str, str] = {}
    for m in ATTRIBUTE_RE.finditer(text or ""):
        name, value = m.group(1), m.group(2)
        if name in allowed:
            out[name] = value
    return out


class TagStreamScanner:
    """
    Incremental scanner over a chunked text stream.

    States are Outside (active_tag is None) and InsideTag(active_tag). Text
    outside registered tags and the tag delimiters themselves pass through;
    tag bodies are handed to the tag's on_end callback and never emitted.
    """

    def __init__(self, tags: Mapping[str, TagDescriptor]):
        self._tags: Dict[str, TagDescriptor] = dict(tags)
        names = sorted(self._tags.keys(), key=len, reverse=True)
        self._open_re: Optional[re.Pattern[str]] = None
        if names:
            alt = "|".join(re.escape(n) for n in names)
            self._open_re = re.compile(rf"<({alt})(?=[\s>])([^>]*)>")
        self._close_res: Dict[str, re.Pattern[str]] = {
            n: re.compile(rf"</{re.escape(n)}\s*>") for n in names
        }

        self.buffer: str = ""
        # Number of leading buffer characters that were already yielded
        self.emitted: int = 0
        self.active_tag: Optional[str] = None
        self.active_attributes: Dict[str, str] = {}
        self.done: bool = False
        self.incomplete: Optional[IncompleteTag] = None
        self._finished: bool = False

    @property
    def finished(self) -> bool:
        return self._finished

    def feed(self, chunk: str) -> List[str]:
        if self._finished:
            raise RuntimeError("Cannot feed a scanner after finish()")
        if self.done or not chunk:
            return []

        self.buffer += chunk
        out: List[str] = []

        while not self.done:
            if self.active_tag is None:
                m = self._open_re.search(self.buffer) if self._open_re else None
                if m is None:
                    if self.emitted < len(self.buffer):
                        out.append(self.buffer[self.emitted :])
                    self._keep_possible_open_tag()
                    break

                name = m.group(1)
                desc = self._tags[name]
                attrs = parse_attributes(m.group(2), desc.attribute_names)
                self.active_tag = name
                self.active_attributes = attrs
                logger.debug("scanner.tag_start", tag=name, attributes=attrs)
                desc.on_start(dict(attrs))

                end = m.end()
                if end > self.emitted:
                    out.append(self.buffer[self.emitted : end])
                self.buffer = self.buffer[end:]
                self.emitted = 0
                continue

            name = self.active_tag
            close = self._close_res[name].search(self.buffer)
            if close is None:
                break

            content = self.buffer[: close.start()]
            attrs = self.active_attributes
            logger.debug("scanner.tag_end", tag=name, length=len(content))
            stop = self._tags[name].on_end(content, dict(attrs))

            out.append(close.group(0))
            self.buffer = self.buffer[close.end() :]
            self.emitted = 0
            self.active_tag = None
            self.active_attributes = {}
            if stop:
                self.done = True
                self.buffer = ""

        return out

    def finish(self) -> Optional[IncompleteTag]:
        """
        Mark the end of input. Returns the still-open tag, if any; its
        partial body is discarded and on_end is not called.
        """
        if self._finished:
            return self.incomplete
        self._finished = True
        result: Optional[IncompleteTag] = None
        if self.active_tag is not None and not self.done:
            result = IncompleteTag(
                name=self.active_tag,
                attributes=dict(self.active_attributes),
                partial_length=len(self.buffer),
            )
            logger.warning(
                "scanner.incomplete_tag",
                tag=result.name,
                attributes=result.attributes,
                partial_length=result.partial_length,
            )
        self.incomplete = result
        self._discard()
        return result

    def scan(self, chunks: Iterable[str]) -> Iterator[str]:
        try:
            for chunk in chunks:
                yield from self.feed(chunk)
                if self.done:
                    break
        except GeneratorExit:
            self._discard()
            raise
        self.finish()

    async def ascan(self, chunks: AsyncIterable[str]) -> AsyncIterator[str]:
        try:
            async for chunk in chunks:
                for fragment in self.feed(chunk):
                    yield fragment
                if self.done:
                    break
        except (GeneratorExit, asyncio.CancelledError):
            self._discard()
            raise
        self.finish()

    def _discard(self) -> None:
        self.buffer = ""
        self.emitted = 0
        self.active_tag = None
        self.active_attributes = {}

    def _keep_possible_open_tag(self) -> None:
        # Everything is emitted; retain only a tail that may still grow into an open tag.
        start = self.buffer.rfind(">") + 1
        pos = self.buffer.find("<", start)
        while pos != -1:
            if self._could_open(self.buffer[pos:]):
                self.buffer = self.buffer[pos:]
                self.emitted = len(self.buffer)
                return
            pos = self.buffer.find("<", pos + 1)
        self.buffer = ""
        self.emitted = 0

    def _could_open(self, tail: str) -> bool:
        rest = tail[1:]
        name_match = re.match(r"[^\s>]*", rest)
        candidate = name_match.group(0) if name_match else ""
        if len(candidate) < len(rest):
            return candidate in self._tags
        return any(n.startswith(candidate) for n in self._tags)


def scan_stream(
    chunks: Iterable[str], tags: Mapping[str, TagDescriptor]
) -> Iterator[str]:
    return TagStreamScanner(tags).scan(chunks)


def ascan_stream(
    chunks: AsyncIterable[str], tags: Mapping[str, TagDescriptor]
) -> AsyncIterator[str]:
    return TagStreamScanner(tags).ascan(chunks)
