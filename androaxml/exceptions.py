from typing import Optional


class ResParserError(Exception):
    """Base exception for everything that can go wrong while decoding AXML"""

    def __init__(self, message: str, offset: Optional[int] = None) -> None:
        if offset is not None:
            message = "{} (offset=0x{:08x})".format(message, offset)
        super().__init__(message)
        self.offset = offset


class AXMLIOError(ResParserError):
    """The byte source ended early or failed to deliver data."""


class InvalidStartElementError(ResParserError):
    """The stream does not start with the AXML file chunk."""


class InvalidStringPoolHeaderError(ResParserError):
    """The first chunk after the file header is not a string pool."""


class InvalidStringBlockSizeError(ResParserError):
    """Declared string pool offsets and sizes do not fit together."""


class InvalidChunkSizeError(ResParserError):
    """A chunk declares a size it cannot have."""


class InvalidTagError(ResParserError):
    """Unknown chunk tag, or events that do not form a document."""


class StructuralError(InvalidTagError):
    """Start and end events do not nest properly."""


class TruncatedDocumentError(StructuralError):
    """The chunk stream ended while elements were still open."""


class StringIndexError(ResParserError):
    """A chunk references a string outside of the string pool."""


class ApkError(Exception):
    """The package could not be opened or has no manifest entry."""
