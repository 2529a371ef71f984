"""androaxml: decoder for Android binary XML (AXML) resources.

Quick start:
    >>> from androaxml import read_manifest
    >>> manifest = read_manifest("app.apk")
    >>> manifest.root.get("package").value
    'com.example.app'
"""

__version__ = "0.1.0"

from .apk import read_manifest
from .axml_parse import (
    AXMLParser,
    ChunkHeader,
    EndElement,
    EndNamespace,
    RawAttribute,
    ResourceIds,
    StartElement,
    StartNamespace,
    Text,
)
from .document import (
    Attribute,
    Document,
    DocumentBuilder,
    Element,
    TextNode,
    TypedValue,
    decode,
)
from .exceptions import (
    ApkError,
    AXMLIOError,
    InvalidChunkSizeError,
    InvalidStartElementError,
    InvalidStringBlockSizeError,
    InvalidStringPoolHeaderError,
    InvalidTagError,
    ResParserError,
    StringIndexError,
    StructuralError,
    TruncatedDocumentError,
)
from .string_block import StringBlock, StyleSpan
