from typing import Dict, List, Tuple

import pytest

from editpipe.stream import (
    IncompleteTag,
    TagDescriptor,
    TagStreamScanner,
    ascan_stream,
    parse_attributes,
    scan_stream,
)


def _recording_tags(
    name: str = "file", attrs: Tuple[str, ...] = ("path",), stop: bool = False
):
    starts: List[Dict[str, str]] = []
    ends: List[Tuple[str, Dict[str, str]]] = []

    def on_start(a: Dict[str, str]) -> None:
        starts.append(a)

    def on_end(content: str, a: Dict[str, str]) -> bool:
        ends.append((content, a))
        return stop

    tags = {name: TagDescriptor(attribute_names=list(attrs), on_start=on_start, on_end=on_end)}
    return tags, starts, ends


async def _agen(chunks: List[str]):
    for c in chunks:
        yield c


def test_basic_pass_through_and_callbacks():
    tags, starts, ends = _recording_tags()
    out = list(
        scan_stream(["before", '<file path="test.txt">file content</file>', "after"], tags)
    )

    assert out == ["before", '<file path="test.txt">', "</file>", "after"]
    assert starts == [{"path": "test.txt"}]
    assert ends == [("file content", {"path": "test.txt"})]


def test_tag_split_across_many_chunks():
    tags, starts, ends = _recording_tags("tool_call", ("name",))
    chunks = [
        "I will run bun install for",
        " you. <tool_call ",
        'name="run_terminal_',
        'command">bun ',
        "install</tool_call>",
    ]
    out = list(scan_stream(chunks, tags))

    assert out == [
        "I will run bun install for",
        " you. <tool_call ",
        'name="run_terminal_',
        'command">',
        "</tool_call>",
    ]
    assert starts == [{"name": "run_terminal_command"}]
    assert ends == [("bun install", {"name": "run_terminal_command"})]


def test_chunk_split_invariance():
    text = (
        'Intro <b>bold</b> text. <file path="a.py">print(1)\n</file> middle '
        '<file path="b.py">x < y\n</file> tail <fil'
    )
    tags, _, whole_ends = _recording_tags()
    whole = "".join(scan_stream([text], tags))

    for size in (1, 2, 3, 7, 13):
        chunks = [text[i : i + size] for i in range(0, len(text), size)]
        tags, _, ends = _recording_tags()
        out = "".join(scan_stream(chunks, tags))
        assert out == whole
        assert ends == whole_ends

    assert whole_ends == [
        ("print(1)\n", {"path": "a.py"}),
        ("x < y\n", {"path": "b.py"}),
    ]
    assert whole == (
        'Intro <b>bold</b> text. <file path="a.py"></file> middle '
        '<file path="b.py"></file> tail <fil'
    )


def test_several_tags_in_one_chunk():
    tags, starts, ends = _recording_tags()
    out = list(
        scan_stream(['<file path="a">one</file> and <file path="b">two</file>!'], tags)
    )

    assert "".join(out) == '<file path="a"></file> and <file path="b"></file>!'
    assert [s["path"] for s in starts] == ["a", "b"]
    assert ends == [("one", {"path": "a"}), ("two", {"path": "b"})]


def test_truncated_stream_reports_incomplete_tag():
    tags, starts, ends = _recording_tags()
    scanner = TagStreamScanner(tags)
    out = list(scanner.scan(["text ", '<file path="x.py">partial bo', "dy"]))

    assert out == ["text ", '<file path="x.py">']
    assert starts == [{"path": "x.py"}]
    assert ends == []
    assert scanner.incomplete == IncompleteTag(
        name="file", attributes={"path": "x.py"}, partial_length=len("partial body")
    )
    assert scanner.buffer == ""


def test_on_end_true_stops_scan():
    tags, _, ends = _recording_tags(stop=True)
    scanner = TagStreamScanner(tags)
    out = list(scanner.scan(['<file path="a">one</file> rest', '<file path="b">two</file>']))

    assert out == ['<file path="a">', "</file>"]
    assert ends == [("one", {"path": "a"})]
    assert scanner.done
    assert scanner.incomplete is None


def test_early_close_discards_buffer():
    tags, _, ends = _recording_tags()
    scanner = TagStreamScanner(tags)
    gen = scanner.scan(["a", '<file path="x">body', " more", "</file>"])

    assert next(gen) == "a"
    assert next(gen) == '<file path="x">'
    gen.close()

    assert ends == []
    assert scanner.buffer == ""
    assert scanner.active_tag is None


def test_unregistered_tags_pass_through():
    tags, _, ends = _recording_tags()
    text = '<div class="x">hi</div> <files path="no">keep</files> <filepath>'
    out = "".join(scan_stream([text[:9], text[9:30], text[30:]], tags))

    assert out == text
    assert ends == []


def test_feed_and_finish_api():
    tags, _, ends = _recording_tags()
    scanner = TagStreamScanner(tags)

    assert scanner.feed("a <fi") == ["a <fi"]
    assert scanner.feed('le path="p">') == ['le path="p">']
    assert scanner.feed("body</fi") == []
    assert scanner.feed("le>z") == ["</file>", "z"]
    assert scanner.finish() is None
    assert scanner.finished
    assert ends == [("body", {"path": "p"})]

    with pytest.raises(RuntimeError):
        scanner.feed("more")


def test_close_tag_allows_trailing_whitespace():
    tags, _, ends = _recording_tags()
    out = list(scan_stream(['<file path="a">x</file >'], tags))

    assert out == ['<file path="a">', "</file >"]
    assert ends == [("x", {"path": "a"})]


def test_parse_attributes():
    assert parse_attributes(' path="a.py" mode="w"', ["path"]) == {"path": "a.py"}
    assert parse_attributes(' path="a" path="b"', ["path"]) == {"path": "b"}
    assert parse_attributes(" path=a.py other='x'", ["path", "other"]) == {}
    assert parse_attributes(' path = "spaced"', ["path"]) == {"path": "spaced"}
    assert parse_attributes("", ["path"]) == {}


@pytest.mark.asyncio
async def test_async_scan_matches_sync():
    chunks = ["x ", '<file pa', 'th="a">1', "2</file> y"]
    tags, _, ends = _recording_tags()
    out = [frag async for frag in ascan_stream(_agen(chunks), tags)]

    assert out == ["x ", "<file pa", 'th="a">', "</file>", " y"]
    assert ends == [("12", {"path": "a"})]


@pytest.mark.asyncio
async def test_async_scan_reports_incomplete():
    tags, _, ends = _recording_tags()
    scanner = TagStreamScanner(tags)
    out = [frag async for frag in scanner.ascan(_agen(['<file path="a">never closed']))]

    assert out == ['<file path="a">']
    assert ends == []
    assert scanner.incomplete is not None
    assert scanner.incomplete.name == "file"
