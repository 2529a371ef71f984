from struct import unpack
from typing import Iterator, List, NamedTuple, Optional

from loguru import logger

from .exceptions import (
    InvalidStringBlockSizeError,
    InvalidStringPoolHeaderError,
    StringIndexError,
)
from .internal_types import (
    CHUNK_NULL,
    CHUNK_STRINGPOOL_TYPE,
    NO_INDEX,
    SORTED_FLAG,
    STRING_POOL_HEADER_SIZE,
    UTF8_FLAG,
)
from .stream import ByteStream


def optional_index(value: int) -> Optional[int]:
    """
    Map the on-disk "no string" sentinel to `None`.

    Every string reference read from a chunk goes through here, so the rest
    of the package only ever sees `None` or a real index.
    """
    if value == NO_INDEX:
        return None
    return value


class StyleSpan(NamedTuple):
    name: int
    first_char: int
    last_char: int


class StringBlock:
    """
    StringBlock is the CHUNK inside an AXML File: `ResStringPool_header`
    It contains all strings, which are used by referencing to ID's

    Only the raw character buffer and the offset tables are kept after
    reading; a string is decoded the first time it is asked for.

    See http://androidxref.com/9.0.0_r3/xref/frameworks/base/libs/androidfw/include/androidfw/ResourceTypes.h#436
    """

    def __init__(self, stream: ByteStream) -> None:
        """
        :raises InvalidStringPoolHeaderError: if the chunk is not a string pool
        :raises InvalidStringBlockSizeError: if declared sizes are inconsistent
        :raises AXMLIOError: if the stream ends before the chunk does
        :param stream: stream positioned at the start of the chunk
        """
        self._cache = {}

        # Packers like to put null words in front of the pool
        while True:
            tag = stream.read_u32()
            if tag == CHUNK_NULL:
                logger.debug("Skipping null chunk marker before string pool")
                continue
            if tag == CHUNK_STRINGPOOL_TYPE:
                break
            raise InvalidStringPoolHeaderError(
                "Expected string pool tag 0x{:08x}, got 0x{:08x}".format(
                    CHUNK_STRINGPOOL_TYPE, tag
                ),
                stream.tell() - 4,
            )
        self.start = stream.tell() - 4

        (
            self.chunkSize,
            self.stringCount,
            self.styleCount,
            self.flags,
            self.stringsOffset,
            self.stylesOffset,
        ) = stream.read_u32s(6)
        self.m_isUTF8 = (self.flags & UTF8_FLAG) != 0

        logger.debug(f"chunkSize: {self.chunkSize}")
        logger.debug(f"stringCount: {self.stringCount}")
        logger.debug(f"styleCount: {self.styleCount}")
        logger.debug(f"flags: {self.flags}")
        logger.debug(f"m_isUTF8: {self.m_isUTF8}")
        logger.debug(f"stringsOffset: {self.stringsOffset}")
        logger.debug(f"stylesOffset: {self.stylesOffset}")

        tables_end = STRING_POOL_HEADER_SIZE + 4 * (self.stringCount + self.styleCount)
        if tables_end > self.chunkSize:
            raise InvalidStringBlockSizeError(
                "Offset tables ({} bytes) do not fit into the chunk ({} bytes)".format(
                    tables_end, self.chunkSize
                ),
                self.start,
            )

        # Next, there is a list of string following.
        # This is only a list of offsets (4 byte each)
        self.m_stringOffsets = list(stream.read_u32s(self.stringCount))
        # And a list of styles
        # again, a list of offsets
        self.m_styleOffsets = list(stream.read_u32s(self.styleCount))

        if self.styleCount == 0 and self.stylesOffset > 0:
            logger.info(
                "Styles Offset given, but styleCount is zero. "
                "This is not a problem but could indicate packers."
            )

        strings_offset = self.stringsOffset
        if self.stringCount == 0 and strings_offset == 0:
            strings_offset = tables_end
        if strings_offset < tables_end:
            raise InvalidStringBlockSizeError(
                "Strings offset {} points into the offset tables (end {})".format(
                    strings_offset, tables_end
                ),
                self.start,
            )

        # The character data ends where the styles begin
        strings_end = self.stylesOffset if self.stylesOffset != 0 else self.chunkSize
        size = strings_end - strings_offset
        if size < 0 or size % 4 != 0:
            raise InvalidStringBlockSizeError(
                "Size of strings ({}) is not aligned by four bytes".format(size),
                self.start,
            )

        stream.skip(strings_offset - tables_end)
        self.m_charbuff = stream.read(size)

        self.m_styles = []
        if self.stylesOffset != 0:
            size = self.chunkSize - self.stylesOffset
            if size < 0 or size % 4 != 0:
                raise InvalidStringBlockSizeError(
                    "Size of styles ({}) is not aligned by four bytes".format(size),
                    self.start,
                )
            self.m_styles = list(stream.read_u32s(size // 4))

    def __repr__(self):
        return "<StringPool #strings={}, #styles={}, UTF8={}>".format(
            self.stringCount, self.styleCount, self.m_isUTF8
        )

    def __getitem__(self, idx):
        return self.getString(idx)

    def __len__(self):
        return self.stringCount

    def __iter__(self) -> Iterator[str]:
        for i in range(self.stringCount):
            yield self.getString(i)

    @property
    def is_utf8(self) -> bool:
        return self.m_isUTF8

    @property
    def is_sorted(self) -> bool:
        return (self.flags & SORTED_FLAG) != 0

    @property
    def styles(self) -> List[int]:
        """The raw style words, as found on disk"""
        return list(self.m_styles)

    def check_index(self, idx: Optional[int], what: str = "string") -> None:
        """
        :raises StringIndexError: if `idx` is neither `None` nor a valid index
        """
        if idx is None:
            return
        if idx < 0 or idx >= self.stringCount:
            raise StringIndexError(
                "{} index {} is out of range, pool has {} strings".format(
                    what, idx, self.stringCount
                )
            )

    def lookup(self, idx: Optional[int]) -> Optional[str]:
        """
        Resolve an optional string reference.

        :returns: `None` for an absent reference, the string otherwise
        :raises StringIndexError: if the index is out of range
        """
        if idx is None:
            return None
        return self.getString(idx)

    def getString(self, idx: int) -> str:
        """
        Return the string at the index in the string table

        :param idx: index in the string table
        :return: the string
        """
        if idx in self._cache:
            return self._cache[idx]

        self.check_index(idx)

        offset = self.m_stringOffsets[idx]

        if self.m_isUTF8:
            self._cache[idx] = self._decode8(offset)
        else:
            self._cache[idx] = self._decode16(offset)
        logger.debug(f"getString: {idx}: CACHED: {self._cache[idx]}")

        return self._cache[idx]

    def getStyle(self, idx: int) -> int:
        return self.m_styles[idx]

    def get_spans(self, idx: int) -> List[StyleSpan]:
        """
        Return the style spans of the string at `idx`.

        Strings past the end of the style offset table have no spans.
        """
        self.check_index(idx)
        if idx >= len(self.m_styleOffsets):
            return []

        pos = self.m_styleOffsets[idx] // 4
        spans = []
        while True:
            if pos >= len(self.m_styles):
                raise InvalidStringBlockSizeError(
                    "Style spans of string {} run past the style data".format(idx)
                )
            if self.getStyle(pos) == NO_INDEX:
                break
            if pos + 3 > len(self.m_styles):
                raise InvalidStringBlockSizeError(
                    "Truncated style span for string {}".format(idx)
                )
            spans.append(StyleSpan(*(self.getStyle(i) for i in range(pos, pos + 3))))
            pos += 3
        return spans

    def _check_extent(self, offset: int, size: int) -> None:
        if offset + size > len(self.m_charbuff):
            raise InvalidStringBlockSizeError(
                "String at offset {} with {} bytes exceeds the string data ({} bytes)".format(
                    offset, size, len(self.m_charbuff)
                ),
                self.start,
            )

    def _decode8(self, offset: int) -> str:
        """
        Decode an UTF-8 String at the given offset

        :param offset: offset of the string inside the data
        :return: the decoded string
        """
        # UTF-8 Strings contain two lengths, as they might differ:
        # 1) the UTF-16 length
        str_len, skip = self._decode_length(offset, 1)
        offset += skip

        # 2) the utf-8 string length
        encoded_bytes, skip = self._decode_length(offset, 1)
        offset += skip

        self._check_extent(offset, encoded_bytes)
        data = self.m_charbuff[offset : offset + encoded_bytes]

        # platform/frameworks/base/libs/androidfw/ResourceTypes.cpp#789
        if self.m_charbuff[offset + encoded_bytes : offset + encoded_bytes + 1] != b"\x00":
            logger.warning(
                "UTF-8 String is not null terminated! At offset={}".format(offset)
            )

        return self._decode_bytes(data, 'utf-8', str_len)

    def _decode16(self, offset: int) -> str:
        """
        Decode an UTF-16 String at the given offset

        :param offset: offset of the string inside the data
        :return: the decoded string
        """
        str_len, skip = self._decode_length(offset, 2)
        offset += skip

        # The len is the string len in utf-16 units
        encoded_bytes = str_len * 2

        self._check_extent(offset, encoded_bytes)
        data = self.m_charbuff[offset : offset + encoded_bytes]

        if (
            self.m_charbuff[offset + encoded_bytes : offset + encoded_bytes + 2]
            != b"\x00\x00"
        ):
            logger.warning(
                "UTF-16 String is not null terminated! At offset={}".format(offset)
            )

        return self._decode_bytes(data, 'utf-16-le', str_len)

    @staticmethod
    def _decode_bytes(data: bytes, encoding: str, str_len: int) -> str:
        """
        The string is decoded from bytes with the given encoding, then the length
        of the string is checked. Undecodable bytes are replaced.
        """
        string = data.decode(encoding, 'replace')
        if len(string) != str_len:
            logger.warning("invalid decoded string length")
        return string

    def _decode_length(self, offset: int, sizeof_char: int) -> tuple:
        """
        Generic Length Decoding at offset of string

        The method works for both 8 and 16 bit Strings. A length with the high
        bit set continues in the next unit.

        :param offset: offset into the string data section of the beginning of
        the string
        :param sizeof_char: number of bytes per char (1 = 8bit, 2 = 16bit)
        :returns: tuple of (length, read bytes)
        """
        sizeof_2chars = sizeof_char << 1
        fmt = "<2{}".format('B' if sizeof_char == 1 else 'H')
        highbit = 0x80 << (8 * (sizeof_char - 1))

        self._check_extent(offset, sizeof_char)
        if offset + sizeof_2chars <= len(self.m_charbuff):
            length1, length2 = unpack(
                fmt, self.m_charbuff[offset : (offset + sizeof_2chars)]
            )
        else:
            length1 = unpack(
                fmt[0] + fmt[2], self.m_charbuff[offset : offset + sizeof_char]
            )[0]
            length2 = 0

        if (length1 & highbit) != 0:
            self._check_extent(offset, sizeof_2chars)
            length = ((length1 & ~highbit) << (8 * sizeof_char)) | length2
            size = sizeof_2chars
        else:
            length = length1
            size = sizeof_char

        return length, size
