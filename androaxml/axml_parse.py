# Based on androguard's code https://androguard.readthedocs.io/en/latest/intro/axml.html

import io
from dataclasses import dataclass
from typing import BinaryIO, Optional, Tuple, Union

from loguru import logger

from .exceptions import (
    InvalidChunkSizeError,
    InvalidStartElementError,
    InvalidTagError,
)
from .internal_types import (
    ATTRIBUTE_IX_NAME,
    ATTRIBUTE_IX_NAMESPACE_URI,
    ATTRIBUTE_IX_VALUE_DATA,
    ATTRIBUTE_IX_VALUE_STRING,
    ATTRIBUTE_IX_VALUE_TYPE,
    ATTRIBUTE_LENGTH,
    CHUNK_AXML_FILE,
    CHUNK_NAMES,
    CHUNK_RESOURCEIDS,
    CHUNK_XML_END_NAMESPACE,
    CHUNK_XML_END_TAG,
    CHUNK_XML_START_NAMESPACE,
    CHUNK_XML_START_TAG,
    CHUNK_XML_TEXT,
)
from .stream import ByteStream
from .string_block import StringBlock, optional_index

# Fixed byte size of each structural chunk, tag and header included
NAMESPACE_CHUNK_SIZE = 24
START_TAG_CHUNK_SIZE = 36
END_TAG_CHUNK_SIZE = 24
TEXT_CHUNK_SIZE = 28
ATTRIBUTE_SIZE = ATTRIBUTE_LENGTH * 4


@dataclass(frozen=True)
class ChunkHeader:
    """`ResXMLTree_node`: shared by every namespace, element and text chunk"""

    size: int
    line_number: int
    comment: Optional[int]


@dataclass(frozen=True)
class ResourceIds:
    ids: Tuple[int, ...]


@dataclass(frozen=True)
class StartNamespace:
    header: ChunkHeader
    prefix: Optional[int]
    uri: Optional[int]


@dataclass(frozen=True)
class EndNamespace:
    header: ChunkHeader
    prefix: Optional[int]
    uri: Optional[int]


@dataclass(frozen=True)
class RawAttribute:
    """One `ResXMLTree_attribute` record, with the `Res_value` split up"""

    namespace_uri: Optional[int]
    name: int
    raw_value: Optional[int]
    value_size: int
    value_type: int
    value_data: int


@dataclass(frozen=True)
class StartElement:
    header: ChunkHeader
    namespace_uri: Optional[int]
    name: int
    attribute_start: int
    attribute_size: int
    # 1-based positions into attributes, 0 means not set
    id_index: int
    class_index: int
    style_index: int
    attributes: Tuple[RawAttribute, ...]

    @property
    def attribute_count(self) -> int:
        return len(self.attributes)


@dataclass(frozen=True)
class EndElement:
    header: ChunkHeader
    namespace_uri: Optional[int]
    name: int


@dataclass(frozen=True)
class Text:
    header: ChunkHeader
    name: int
    reserved: Tuple[int, int]


Chunk = Union[ResourceIds, StartNamespace, EndNamespace, StartElement, EndElement, Text]


class AXMLParser:
    """
    `AXMLParser` reads through all chunks in the AXML file and hands them
    out one by one, in the order they are stored.

    An AXML file is a file which contains multiple chunks of data, defined
    by the `ResChunk_header`. It starts with the file chunk tag `0x00080003`
    and a padding word, followed by the string pool. Everything after the
    pool is a flat sequence of resource id, namespace, element and text
    chunks. There is no chunk count: the sequence ends where the source
    ends, as long as that happens on a chunk boundary.

    The string pool is read eagerly when the parser is created, the other
    chunks are read lazily while iterating:

        parser = AXMLParser(raw_bytes)
        for chunk in parser:
            ...

    String references inside chunks are only checked against the bounds of
    the pool here, never resolved.

    See http://androidxref.com/9.0.0_r3/xref/frameworks/base/libs/androidfw/include/androidfw/ResourceTypes.h#563
    """

    def __init__(self, source: Union[bytes, bytearray, BinaryIO]) -> None:
        logger.debug("AXMLParser")
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(source)
        self.buff = ByteStream(source)
        self._done = False

        tag = self.buff.read_u32()
        if tag != CHUNK_AXML_FILE:
            raise InvalidStartElementError(
                "This does not look like an AXML file. File tag is 0x{:08x}".format(tag),
                0,
            )
        # Usually the file size; nothing depends on it
        self.filesize = self.buff.read_u32()
        logger.debug(f"filesize: {self.filesize}")

        self.sb = StringBlock(self.buff)
        logger.debug("STRING_POOL {}".format(self.sb))

    def __iter__(self):
        return self

    def __next__(self) -> Chunk:
        if self._done:
            raise StopIteration

        start = self.buff.tell()
        tag = self.buff.read_u32_or_eof()
        if tag is None:
            self._done = True
            raise StopIteration

        logger.debug(
            "__next__: 0x{:08x} {} at 0x{:08x}".format(
                tag, CHUNK_NAMES.get(tag, "UNKNOWN"), start
            )
        )

        if tag == CHUNK_RESOURCEIDS:
            return self._read_resource_ids(start)
        if tag in (CHUNK_XML_START_NAMESPACE, CHUNK_XML_END_NAMESPACE):
            return self._read_namespace(tag, start)
        if tag == CHUNK_XML_START_TAG:
            return self._read_start_tag(start)
        if tag == CHUNK_XML_END_TAG:
            return self._read_end_tag(start)
        if tag == CHUNK_XML_TEXT:
            return self._read_text(start)

        # Chunk boundaries are only known from the type-specific layout,
        # so an unknown chunk can not be skipped.
        raise InvalidTagError("Unknown chunk tag 0x{:08x}".format(tag), start)

    def _string_ref(self, value: int, what: str) -> Optional[int]:
        idx = optional_index(value)
        self.sb.check_index(idx, what)
        return idx

    def _required_string_ref(self, value: int, what: str) -> int:
        self.sb.check_index(value, what)
        return value

    def _read_header(self, start: int, fixed_size: int) -> ChunkHeader:
        size, line_number, comment = self.buff.read_u32s(3)
        logger.debug(f"size: {size}, m_lineNumber: {line_number}, comment: {comment}")
        if size < fixed_size:
            raise InvalidChunkSizeError(
                "Declared chunk size {} is smaller than required size of {}".format(
                    size, fixed_size
                ),
                start,
            )
        return ChunkHeader(size, line_number, self._comment_ref(comment, start))

    def _comment_ref(self, value: int, start: int) -> Optional[int]:
        # The comment word is padding for most writers, never fatal
        idx = optional_index(value)
        if idx is not None and idx >= len(self.sb):
            logger.warning(
                "Ignoring comment index 0x{:08x} of chunk at 0x{:08x}, "
                "pool has {} strings".format(value, start, len(self.sb))
            )
            return None
        return idx

    def _finish_chunk(self, start: int, header: ChunkHeader) -> None:
        # Move to the declared end, in case the chunk carries more than we know about
        extra = header.size - (self.buff.tell() - start)
        if extra > 0:
            logger.warning(
                "Chunk at 0x{:08x} has {} unknown trailing bytes, skipping them".format(
                    start, extra
                )
            )
            self.buff.skip(extra)

    def _read_resource_ids(self, start: int) -> ResourceIds:
        # Check size: < 8 bytes mean that the chunk is not complete
        # Should be aligned to 4 bytes.
        size = self.buff.read_u32()
        if size < 8 or (size % 4) != 0:
            raise InvalidChunkSizeError(
                "Invalid chunk size {} in chunk XML_RESOURCE_MAP".format(size), start
            )
        ids = self.buff.read_u32s(size // 4 - 2)
        logger.debug(f"m_resourceIDs: {len(ids)} entries")
        return ResourceIds(ids)

    def _read_namespace(self, tag: int, start: int):
        header = self._read_header(start, NAMESPACE_CHUNK_SIZE)
        if header.comment is not None:
            logger.warning(
                "Unhandled Comment at namespace chunk: '{}'".format(
                    self.sb[header.comment]
                )
            )
        prefix, uri = self.buff.read_u32s(2)
        logger.debug(f"prefix: {prefix}, uri: {uri}")
        prefix = self._string_ref(prefix, "namespace prefix")
        uri = self._string_ref(uri, "namespace uri")
        self._finish_chunk(start, header)

        if tag == CHUNK_XML_START_NAMESPACE:
            return StartNamespace(header, prefix, uri)
        return EndNamespace(header, prefix, uri)

    def _read_start_tag(self, start: int) -> StartElement:
        # The TAG consists of some fields:
        # * (chunk_size, line_number, comment_index - we read before)
        # * namespace_uri
        # * name
        # * flags (attribute start and attribute size, 16 bit each)
        # * attribute_count (high 16 bits: id attribute)
        # * class_attribute (low 16 bits: class, high 16 bits: style)
        # After that, there is the list of attributes, 20 bytes each
        header = self._read_header(start, START_TAG_CHUNK_SIZE)
        namespace_uri, name, flags, attribute_count, class_attribute = self.buff.read_u32s(5)
        logger.debug(f"m_namespaceUri: {namespace_uri}, m_name: {name}")

        attribute_start = flags & 0xFFFF
        attribute_size = flags >> 16
        id_index = attribute_count >> 16
        count = attribute_count & 0xFFFF
        class_index = class_attribute & 0xFFFF
        style_index = class_attribute >> 16
        logger.debug(
            f"attributeCount: {count}, id: {id_index}, class: {class_index}, style: {style_index}"
        )

        if header.size < START_TAG_CHUNK_SIZE + count * ATTRIBUTE_SIZE:
            raise InvalidChunkSizeError(
                "Declared chunk size {} can not hold {} attributes".format(
                    header.size, count
                ),
                start,
            )

        words = self.buff.read_u32s(count * ATTRIBUTE_LENGTH)
        attributes = []
        for i in range(0, len(words), ATTRIBUTE_LENGTH):
            # Each Attribute contains:
            # * Namespace URI (String ID)
            # * Name (String ID)
            # * Value (String ID)
            # * Res_value size (16 bit), res0 (8 bit), type (8 bit)
            # * Res_value data
            value_word = words[i + ATTRIBUTE_IX_VALUE_TYPE]
            attributes.append(
                RawAttribute(
                    namespace_uri=self._string_ref(
                        words[i + ATTRIBUTE_IX_NAMESPACE_URI], "attribute namespace"
                    ),
                    name=self._required_string_ref(
                        words[i + ATTRIBUTE_IX_NAME], "attribute name"
                    ),
                    raw_value=self._string_ref(
                        words[i + ATTRIBUTE_IX_VALUE_STRING], "attribute value"
                    ),
                    value_size=value_word & 0xFFFF,
                    value_type=value_word >> 24,
                    value_data=words[i + ATTRIBUTE_IX_VALUE_DATA],
                )
            )

        element = StartElement(
            header=header,
            namespace_uri=self._string_ref(namespace_uri, "element namespace"),
            name=self._required_string_ref(name, "element name"),
            attribute_start=attribute_start,
            attribute_size=attribute_size,
            id_index=id_index,
            class_index=class_index,
            style_index=style_index,
            attributes=tuple(attributes),
        )
        self._finish_chunk(start, header)
        return element

    def _read_end_tag(self, start: int) -> EndElement:
        header = self._read_header(start, END_TAG_CHUNK_SIZE)
        namespace_uri, name = self.buff.read_u32s(2)
        element = EndElement(
            header=header,
            namespace_uri=self._string_ref(namespace_uri, "element namespace"),
            name=self._required_string_ref(name, "element name"),
        )
        self._finish_chunk(start, header)
        return element

    def _read_text(self, start: int) -> Text:
        # The CDATA field is like an attribute.
        # It contains an index into the String pool
        # as well as a typed value, usually set to UNDEFINED.
        # The typed value is kept as it is.
        header = self._read_header(start, TEXT_CHUNK_SIZE)
        name, reserved0, reserved1 = self.buff.read_u32s(3)
        logger.debug(
            "found a CDATA Chunk: index={: 6d}, reserved=({}, {})".format(
                name, reserved0, reserved1
            )
        )
        text = Text(
            header=header,
            name=self._required_string_ref(name, "text"),
            reserved=(reserved0, reserved1),
        )
        self._finish_chunk(start, header)
        return text
