from struct import unpack
from typing import BinaryIO, Optional

from loguru import logger

from .exceptions import AXMLIOError


class ByteStream:
    """
    Little-endian cursor over a readable binary source.

    Every read is exact: the source may deliver less than asked for, so reads
    are repeated until the requested size is collected. Running dry in the
    middle of a read raises [AXMLIOError][androaxml.exceptions.AXMLIOError],
    as does any `OSError` of the underlying source.
    """

    def __init__(self, source: BinaryIO) -> None:
        self._source = source
        self._offset = 0

    def tell(self) -> int:
        """Number of bytes consumed so far"""
        return self._offset

    def _read_some(self, size: int) -> bytes:
        parts = []
        remaining = size
        while remaining > 0:
            try:
                data = self._source.read(remaining)
            except OSError as e:
                raise AXMLIOError(
                    "Reading from the source failed: {}".format(e), self._offset
                ) from e
            if not data:
                break
            parts.append(data)
            remaining -= len(data)
        data = b"".join(parts)
        self._offset += len(data)
        return data

    def read(self, size: int) -> bytes:
        data = self._read_some(size)
        if len(data) != size:
            raise AXMLIOError(
                "Unexpected end of stream: wanted {} bytes, got {}".format(
                    size, len(data)
                ),
                self._offset,
            )
        return data

    def read_u32(self) -> int:
        return unpack('<I', self.read(4))[0]

    def read_u32s(self, count: int) -> tuple:
        if count == 0:
            return ()
        return unpack('<{}I'.format(count), self.read(4 * count))

    def read_u32_or_eof(self) -> Optional[int]:
        """
        Read a word, or return `None` if the source is exhausted exactly
        at the current position.

        A partial word is still an error.
        """
        data = self._read_some(4)
        if not data:
            logger.debug("End of stream at offset 0x{:08x}".format(self._offset))
            return None
        if len(data) != 4:
            raise AXMLIOError(
                "Unexpected end of stream inside a chunk tag: got {} bytes".format(
                    len(data)
                ),
                self._offset,
            )
        return unpack('<I', data)[0]

    def skip(self, size: int) -> None:
        if size > 0:
            self.read(size)
