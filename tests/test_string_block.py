import io

import pytest

from androaxml.exceptions import (
    AXMLIOError,
    InvalidStringBlockSizeError,
    InvalidStringPoolHeaderError,
    StringIndexError,
)
from androaxml.stream import ByteStream
from androaxml.string_block import StringBlock, StyleSpan, optional_index
from androaxml.internal_types import NO_INDEX

from axml_factory import AXMLWriter, u32s

STRINGS = ["", "manifest", "héllo wörld", "日本語", "emoji \U0001F600", "x" * 200]


def read_pool(data):
    return StringBlock(ByteStream(io.BytesIO(data)))


class TestStringBlock:
    @pytest.mark.parametrize("utf8", [False, True])
    def test_every_string_decodes(self, utf8):
        sb = read_pool(AXMLWriter(STRINGS, utf8=utf8).string_pool())
        assert len(sb) == len(STRINGS)
        assert list(sb) == STRINGS
        assert sb.is_utf8 == utf8

    def test_strings_are_decoded_lazily(self):
        sb = read_pool(AXMLWriter(STRINGS).string_pool())
        assert sb._cache == {}
        assert sb[3] == "日本語"
        assert list(sb._cache) == [3]

    def test_null_markers_before_pool_are_skipped(self):
        pool = AXMLWriter(["a", "b"]).string_pool()
        sb = read_pool(u32s(0, 0, 0) + pool)
        assert list(sb) == ["a", "b"]

    def test_wrong_tag_is_rejected(self):
        with pytest.raises(InvalidStringPoolHeaderError):
            read_pool(u32s(0x00080180, 8))

    def test_empty_pool(self):
        sb = read_pool(AXMLWriter([]).string_pool())
        assert len(sb) == 0
        assert list(sb) == []

    def test_misaligned_string_data_is_rejected(self):
        w = AXMLWriter(["abc"], spans={0: [(0, 0, 1)]})
        good = read_pool(w.string_pool())
        misaligned = w.string_pool(styles_offset=good.stylesOffset - 2)
        with pytest.raises(InvalidStringBlockSizeError):
            read_pool(misaligned)

    def test_misaligned_chunk_size_is_rejected(self):
        w = AXMLWriter(["abc"])
        pool = w.string_pool()
        with pytest.raises(InvalidStringBlockSizeError):
            read_pool(w.string_pool(chunk_size=len(pool) + 2) + b"\x00\x00")

    def test_strings_offset_inside_offset_table_is_rejected(self):
        w = AXMLWriter(["abc", "def"])
        with pytest.raises(InvalidStringBlockSizeError):
            read_pool(w.string_pool(strings_offset=28))

    def test_offset_tables_larger_than_chunk_are_rejected(self):
        data = u32s(0x001C0001, 28, 1000, 0, 0, 0, 0)
        with pytest.raises(InvalidStringBlockSizeError):
            read_pool(data)

    def test_truncated_pool_is_an_io_error(self):
        pool = AXMLWriter(STRINGS).string_pool()
        with pytest.raises(AXMLIOError):
            read_pool(pool[:-6])

    def test_string_offset_past_buffer_is_rejected(self):
        pool = bytearray(AXMLWriter(["abc"]).string_pool())
        # "abc" in UTF-16 fills exactly 12 bytes, point the offset at the end
        pool[28:32] = u32s(12)
        sb = read_pool(bytes(pool))
        with pytest.raises(InvalidStringBlockSizeError):
            sb[0]

    def test_out_of_range_index(self):
        sb = read_pool(AXMLWriter(["a"]).string_pool())
        with pytest.raises(StringIndexError):
            sb[1]
        with pytest.raises(StringIndexError):
            sb.check_index(NO_INDEX)

    def test_lookup_of_absent_index(self):
        sb = read_pool(AXMLWriter(["a"]).string_pool())
        assert sb.lookup(None) is None
        assert sb.lookup(optional_index(NO_INDEX)) is None
        assert sb.lookup(0) == "a"

    def test_style_spans(self):
        w = AXMLWriter(["b", "bold text", "plain"], spans={1: [(0, 0, 3), (0, 5, 8)]})
        sb = read_pool(w.string_pool())
        assert sb.styleCount == 2
        assert sb.get_spans(1) == [StyleSpan(0, 0, 3), StyleSpan(0, 5, 8)]
        assert sb.get_spans(0) == []
        assert sb.get_spans(2) == []
        assert sb.styles[-2:] == [NO_INDEX, NO_INDEX]
        assert sb.getStyle(0) == NO_INDEX
        assert sb.getStyle(1) == 0

    def test_sorted_flag(self):
        pool = bytearray(AXMLWriter(["a"]).string_pool())
        pool[16:20] = u32s(1)
        assert read_pool(bytes(pool)).is_sorted
