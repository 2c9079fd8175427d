"""
Tests for record decoders.
"""

import pytest

from bucketspool.decoders import (
    END_OF_OBJECT,
    DelimitedDecoder,
    JsonLinesDecoder,
    LogDecoder,
    TextDecoder,
    build_default_decoder_registry,
    create_decoder,
)
from bucketspool.exceptions import ConfigurationError, DecodeError
from bucketspool.stores.memory import InMemoryObjectStore

COMMON_LINE = '127.0.0.1 ss h [10/Oct/2000:13:55:36 -0700] "GET /apache_pb.gif HTTP/1.0" 200 2326'
COMBINED_LINE = COMMON_LINE + ' "http://www.example.com/start.html" "Mozilla/4.08 [en] (Win98; I ;Nav)"'


def put(body, key="data.log"):
    store = InMemoryObjectStore(config={"config": {"buckets": ["b"]}})
    store.put_object("b", key, body)
    return store, store.head_object("b", key)


def read_all(decoder, body, start=0):
    store, handle = put(body)
    records = []
    with decoder.open(store, handle, start) as reader:
        while (record := reader.read_next()) is not END_OF_OBJECT:
            records.append(record)
    return records


class TestTextDecoder:
    """Tests for line-oriented text decoding."""

    def test_lines_and_offsets(self):
        records = read_all(TextDecoder(), b"one\ntwo\r\nthree")
        assert [r.value for r in records] == [{"text": "one"}, {"text": "two"}, {"text": "three"}]
        assert [(r.offset, r.next_offset) for r in records] == [(0, 4), (4, 9), (9, 14)]

    def test_resume_from_next_offset(self):
        body = b"one\ntwo\nthree\n"
        first = read_all(TextDecoder(), body)
        resumed = read_all(TextDecoder(), body, start=first[0].next_offset)
        assert [r.value["text"] for r in resumed] == ["two", "three"]
        assert resumed[0].offset == first[1].offset

    def test_blank_lines_are_records(self):
        assert [r.value for r in read_all(TextDecoder(), b"a\n\nb\n")] == [{"text": "a"}, {"text": ""}, {"text": "b"}]

    def test_empty_object(self):
        assert read_all(TextDecoder(), b"") == []

    def test_truncation(self):
        records = read_all(TextDecoder(max_line_length=3), b"abcdef\n")
        assert records[0].value == {"text": "abc", "truncated": True}

    def test_multibyte_offsets_are_bytes(self):
        records = read_all(TextDecoder(), "€\nx\n".encode())
        assert records[1].offset == 4

    def test_charset(self):
        records = read_all(TextDecoder(charset="latin-1"), "café\n".encode("latin-1"))
        assert records[0].value == {"text": "café"}

    def test_invalid_bytes(self):
        store, handle = put(b"ok\n\xff\xfe\n")
        with TextDecoder().open(store, handle) as reader:
            reader.read_next()
            with pytest.raises(DecodeError) as exc_info:
                reader.read_next()
        assert exc_info.value.offset == 3
        assert exc_info.value.key == "data.log"

    def test_small_chunks(self, monkeypatch):
        monkeypatch.setattr("bucketspool.decoders.base.LineRecordReader.chunk_size", 2)
        records = read_all(TextDecoder(), b"alpha\nbeta\ngamma\n")
        assert [r.value["text"] for r in records] == ["alpha", "beta", "gamma"]

    def test_invalid_max_line_length(self):
        with pytest.raises(ValueError):
            TextDecoder(max_line_length=0)


class TestLogDecoder:
    """Tests for access log parsing."""

    def test_common(self):
        records = read_all(LogDecoder(mode="common"), (COMMON_LINE + "\n").encode())
        value = records[0].value
        assert value["clientip"] == "127.0.0.1"
        assert value["verb"] == "GET"
        assert value["request"] == "/apache_pb.gif"
        assert value["httpversion"] == "1.0"
        assert value["response"] == 200
        assert value["bytes"] == 2326
        assert value["originalLine"] == COMMON_LINE

    def test_combined(self):
        value = read_all(LogDecoder(mode="combined"), COMBINED_LINE.encode())[0].value
        assert value["referrer"] == "http://www.example.com/start.html"
        assert value["agent"].startswith("Mozilla/4.08")

    def test_dash_bytes(self):
        value = read_all(LogDecoder(), COMMON_LINE.replace("2326", "-").encode())[0].value
        assert value["bytes"] is None

    def test_regex(self):
        decoder = LogDecoder(mode="regex", regex=r"(?P<level>\w+): (?P<message>.*)")
        value = read_all(decoder, b"ERROR: disk full\n")[0].value
        assert value["level"] == "ERROR"
        assert value["message"] == "disk full"

    def test_non_matching_line(self):
        store, handle = put(f"{COMMON_LINE}\ngarbage\n".encode())
        with LogDecoder().open(store, handle) as reader:
            reader.read_next()
            with pytest.raises(DecodeError, match="does not match"):
                reader.read_next()

    def test_line_too_long(self):
        store, handle = put(COMMON_LINE.encode())
        with LogDecoder(max_line_length=10).open(store, handle) as reader:
            with pytest.raises(DecodeError, match="exceeds"):
                reader.read_next()

    def test_regex_mode_requires_pattern(self):
        with pytest.raises(ValueError):
            LogDecoder(mode="regex")

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown log mode"):
            LogDecoder(mode="nginx")


class TestJsonLinesDecoder:
    def test_objects_and_scalars(self):
        records = read_all(JsonLinesDecoder(), b'{"a": 1}\n\n[1, 2]\n"x"\n')
        assert [r.value for r in records] == [{"a": 1}, {"value": [1, 2]}, {"value": "x"}]

    def test_invalid_json(self):
        store, handle = put(b'{"a": 1}\n{broken\n')
        with JsonLinesDecoder().open(store, handle) as reader:
            reader.read_next()
            with pytest.raises(DecodeError) as exc_info:
                reader.read_next()
        assert exc_info.value.offset == 9


class TestDelimitedDecoder:
    """Tests for CSV decoding."""

    BODY = b"name,city\nalice,Paris\n\"bob, jr\",Oslo\n"

    def test_header(self):
        records = read_all(DelimitedDecoder(), self.BODY)
        assert [r.value for r in records] == [
            {"name": "alice", "city": "Paris"},
            {"name": "bob, jr", "city": "Oslo"},
        ]
        assert records[0].offset == 10

    def test_resume_rereads_header(self):
        first = read_all(DelimitedDecoder(), self.BODY)
        resumed = read_all(DelimitedDecoder(), self.BODY, start=first[0].next_offset)
        assert [r.value for r in resumed] == [{"name": "bob, jr", "city": "Oslo"}]

    def test_tab_delimiter_without_header(self):
        records = read_all(DelimitedDecoder(delimiter="\t", header=False), b"a\tb\nc\td\n")
        assert [r.value for r in records] == [{"columns": ["a", "b"]}, {"columns": ["c", "d"]}]

    def test_field_count_mismatch(self):
        store, handle = put(b"a,b\n1,2,3\n")
        with DelimitedDecoder().open(store, handle) as reader:
            with pytest.raises(DecodeError, match="expected 2 fields"):
                reader.read_next()

    def test_invalid_delimiter(self):
        with pytest.raises(ValueError):
            DelimitedDecoder(delimiter="::")


class TestRegistry:
    def test_default_registry(self):
        assert set(build_default_decoder_registry()) == {"text", "log", "json", "delimited"}

    def test_create_default_is_text(self):
        assert isinstance(create_decoder(None), TextDecoder)

    def test_create_with_options(self):
        decoder = create_decoder({"type": "log", "mode": "combined", "charset": "latin-1"})
        assert isinstance(decoder, LogDecoder)
        assert decoder.mode == "combined"
        assert decoder.charset == "latin-1"

    def test_unknown_type(self):
        with pytest.raises(ConfigurationError, match="Unknown data format"):
            create_decoder({"type": "avro"})

    def test_invalid_options(self):
        with pytest.raises(ConfigurationError, match="Invalid options"):
            create_decoder({"type": "text", "bogus": True})
