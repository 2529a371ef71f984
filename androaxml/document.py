import re
from dataclasses import dataclass, field
from struct import pack, unpack
from typing import BinaryIO, Iterator, List, Optional, Tuple, Union

from loguru import logger
from lxml import etree

from .axml_parse import (
    AXMLParser,
    Chunk,
    EndElement,
    EndNamespace,
    RawAttribute,
    ResourceIds,
    StartElement,
    StartNamespace,
    Text,
)
from .exceptions import StructuralError, TruncatedDocumentError
from .internal_types import (
    COMPLEX_UNIT_MASK,
    DIMENSION_UNITS,
    FRACTION_UNITS,
    RADIX_MULTS,
    TYPE_ATTRIBUTE,
    TYPE_DIMENSION,
    TYPE_DYNAMIC_ATTRIBUTE,
    TYPE_DYNAMIC_REFERENCE,
    TYPE_FIRST_COLOR_INT,
    TYPE_FIRST_INT,
    TYPE_FLOAT,
    TYPE_FRACTION,
    TYPE_INT_BOOLEAN,
    TYPE_INT_DEC,
    TYPE_INT_HEX,
    TYPE_LAST_COLOR_INT,
    TYPE_LAST_INT,
    TYPE_NULL,
    TYPE_REFERENCE,
    TYPE_STRING,
)
from .string_block import StringBlock

# Table used to lookup the kind of a typed value
TYPE_TABLE = {
    TYPE_NULL: "null",
    TYPE_REFERENCE: "reference",
    TYPE_DYNAMIC_REFERENCE: "reference",
    TYPE_ATTRIBUTE: "attribute",
    TYPE_DYNAMIC_ATTRIBUTE: "attribute",
    TYPE_STRING: "string",
    TYPE_FLOAT: "float",
    TYPE_DIMENSION: "dimension",
    TYPE_FRACTION: "fraction",
    TYPE_INT_DEC: "int_dec",
    TYPE_INT_HEX: "int_hex",
    TYPE_INT_BOOLEAN: "boolean",
}


def _signed32(value: int) -> int:
    return (0x7FFFFFFF & value) - 0x80000000 if value > 0x7FFFFFFF else value


def complex_to_float(xcomplex: int) -> float:
    """Convert a complex unit (dimension or fraction) into its float value"""
    return float(_signed32(xcomplex & 0xFFFFFF00)) * RADIX_MULTS[(xcomplex >> 4) & 3]


@dataclass(frozen=True)
class TypedValue:
    """
    A `Res_value`: a one byte type code and a 32 bit payload.

    References and attributes stay numeric, there is no resource table to
    resolve them against. For string values `string` holds the resolved text.
    """

    type: int
    data: int
    string: Optional[str] = None

    @property
    def kind(self) -> str:
        if self.type in TYPE_TABLE:
            return TYPE_TABLE[self.type]
        if TYPE_FIRST_COLOR_INT <= self.type <= TYPE_LAST_COLOR_INT:
            return "color"
        if TYPE_FIRST_INT <= self.type <= TYPE_LAST_INT:
            return "int_dec"
        return "raw"

    @property
    def value(self):
        kind = self.kind
        if kind == "null":
            return None
        if kind == "string":
            return self.string
        if kind == "float":
            return unpack("<f", pack("<I", self.data))[0]
        if kind == "int_dec":
            return _signed32(self.data)
        if kind == "boolean":
            return self.data != 0
        if kind == "dimension":
            unit = self.data & COMPLEX_UNIT_MASK
            return (
                complex_to_float(self.data),
                DIMENSION_UNITS[unit] if unit < len(DIMENSION_UNITS) else None,
            )
        if kind == "fraction":
            unit = self.data & COMPLEX_UNIT_MASK
            return (
                complex_to_float(self.data),
                FRACTION_UNITS[unit] if unit < len(FRACTION_UNITS) else None,
            )
        # reference, attribute, int_hex, color and raw keep the payload as is
        return self.data

    def format(self) -> str:
        """
        Format the value the way aapt prints it.
        """
        # android: prefix for attributes/references from the android package
        fmt_package = "android:" if self.data >> 24 == 1 else ""
        kind = self.kind

        if kind == "null":
            return ""
        if kind == "string":
            return self.string or ""
        if kind == "attribute":
            return "?{}{:08X}".format(fmt_package, self.data)
        if kind == "reference":
            return "@{}{:08X}".format(fmt_package, self.data)
        if kind == "float":
            return "%f" % self.value
        if kind == "int_hex":
            return "0x%08X" % self.data
        if kind == "boolean":
            return "true" if self.value else "false"
        if kind == "dimension":
            number, unit = self.value
            return "{:f}{}".format(number, unit or "")
        if kind == "fraction":
            number, unit = self.value
            return "{:f}{}".format(number * 100, unit or "")
        if kind == "color":
            return "#%08X" % self.data
        if kind == "int_dec":
            return "%d" % self.value
        return "<0x{:X}, type 0x{:02X}>".format(self.data, self.type)


@dataclass
class Attribute:
    namespace_index: Optional[int]
    name_index: int
    raw_value_index: Optional[int]
    typed_value: TypedValue
    name: str
    namespace: Optional[str] = None
    prefix: Optional[str] = None
    raw_value: Optional[str] = None

    @property
    def value(self):
        return self.typed_value.value

    @property
    def qualified_name(self) -> str:
        if self.prefix:
            return "{}:{}".format(self.prefix, self.name)
        return self.name


@dataclass
class TextNode:
    index: int
    text: str
    line_number: int
    reserved: Tuple[int, int] = (0, 0)


@dataclass
class Element:
    namespace_index: Optional[int]
    name_index: int
    name: str
    line_number: int
    namespace: Optional[str] = None
    prefix: Optional[str] = None
    comment: Optional[str] = None
    attributes: List[Attribute] = field(default_factory=list)
    children: List[Union["Element", TextNode]] = field(default_factory=list)
    # (prefix, uri) pairs declared right before this element was opened
    namespaces: List[Tuple[Optional[str], Optional[str]]] = field(default_factory=list)
    # raw 1-based positions into attributes, 0 means not set
    id_index: int = 0
    class_index: int = 0
    style_index: int = 0

    @property
    def qualified_name(self) -> str:
        if self.prefix:
            return "{}:{}".format(self.prefix, self.name)
        return self.name

    def _positional(self, position: int) -> Optional[Attribute]:
        if position == 0:
            return None
        if position > len(self.attributes):
            logger.warning(
                "Attribute position {} of <{}> is out of range ({} attributes)".format(
                    position, self.name, len(self.attributes)
                )
            )
            return None
        return self.attributes[position - 1]

    @property
    def id_attribute(self) -> Optional[Attribute]:
        return self._positional(self.id_index)

    @property
    def class_attribute(self) -> Optional[Attribute]:
        return self._positional(self.class_index)

    @property
    def style_attribute(self) -> Optional[Attribute]:
        return self._positional(self.style_index)

    @property
    def elements(self) -> List["Element"]:
        return [child for child in self.children if isinstance(child, Element)]

    @property
    def text(self) -> str:
        return "".join(
            child.text for child in self.children if isinstance(child, TextNode)
        )

    def get(self, name: str, namespace: Optional[str] = None) -> Optional[Attribute]:
        """Return the first attribute called `name` in `namespace`, if any"""
        for attribute in self.attributes:
            if attribute.name == name and (
                namespace is None or attribute.namespace == namespace
            ):
                return attribute
        return None

    def iter(self) -> Iterator["Element"]:
        """Walk this element and all descendants in document order"""
        stack = [self]
        while stack:
            element = stack.pop()
            yield element
            stack.extend(reversed(element.elements))


@dataclass(frozen=True)
class NamespaceScope:
    prefix_index: Optional[int]
    uri_index: Optional[int]
    prefix: Optional[str]
    uri: Optional[str]
    # number of open elements when the scope was pushed
    depth: int


@dataclass
class Document:
    string_pool: StringBlock = field(compare=False, repr=False)
    root: Element
    resource_ids: Tuple[int, ...] = ()

    def iter(self) -> Iterator[Element]:
        return self.root.iter()

    def to_etree(self) -> etree._Element:
        """
        Convert the document into a lxml ElementTree element.
        """
        return XMLRenderer(self).render()

    def get_xml(self) -> bytes:
        """
        Get the XML as an UTF-8 string

        :returns: bytes encoded as UTF-8
        """
        return etree.tostring(self.to_etree(), encoding="utf-8")


class DocumentBuilder:
    """
    Assembles the tree from the flat chunk sequence.

    Elements and namespace scopes are tracked on two explicit stacks. Every
    end event must match the top of its stack; anything else is a
    [StructuralError][androaxml.exceptions.StructuralError].
    """

    def __init__(self, string_pool: StringBlock) -> None:
        self.sb = string_pool
        self.root = None
        self.resource_ids = []
        self._elements = []
        self._scopes = []
        self._pending = []
        self._handlers = {
            ResourceIds: self._on_resource_ids,
            StartNamespace: self._on_start_namespace,
            EndNamespace: self._on_end_namespace,
            StartElement: self._on_start_element,
            EndElement: self._on_end_element,
            Text: self._on_text,
        }

    def feed(self, chunk: Chunk) -> None:
        self._handlers[type(chunk)](chunk)

    def close(self) -> Document:
        if self._elements:
            raise TruncatedDocumentError(
                "Chunk stream ended with {} open element(s), innermost <{}>".format(
                    len(self._elements), self._elements[-1].name
                )
            )
        if self.root is None:
            raise StructuralError("Chunk stream contains no root element")
        if self._scopes:
            logger.warning("Not all namespace mappings were closed! Malformed AXML?")

        return Document(self.sb, self.root, tuple(self.resource_ids))

    def _resolve_prefix(self, uri_index: Optional[int]) -> Optional[str]:
        if uri_index is None:
            return None
        uri = self.sb.lookup(uri_index)
        for scope in reversed(self._scopes):
            if scope.uri_index == uri_index or scope.uri == uri:
                return scope.prefix
        logger.warning("Namespace '{}' is not bound to any prefix".format(uri))
        return None

    def _on_resource_ids(self, chunk: ResourceIds) -> None:
        self.resource_ids.extend(chunk.ids)

    def _on_start_namespace(self, chunk: StartNamespace) -> None:
        scope = NamespaceScope(
            prefix_index=chunk.prefix,
            uri_index=chunk.uri,
            prefix=self.sb.lookup(chunk.prefix),
            uri=self.sb.lookup(chunk.uri),
            depth=len(self._elements),
        )
        logger.debug(
            "Start of Namespace mapping: prefix {}: '{}' --> uri {}: '{}'".format(
                scope.prefix_index, scope.prefix, scope.uri_index, scope.uri
            )
        )
        if not scope.uri:
            logger.warning(
                "Namespace prefix '{}' resolves to empty URI. "
                "This might be a packer.".format(scope.prefix)
            )
        self._scopes.append(scope)
        self._pending.append(scope)

    def _on_end_namespace(self, chunk: EndNamespace) -> None:
        if not self._scopes:
            raise StructuralError(
                "Reached a NAMESPACE_END without an open namespace "
                "(line {})".format(chunk.header.line_number)
            )
        top = self._scopes[-1]
        if (top.prefix_index, top.uri_index) != (chunk.prefix, chunk.uri):
            raise StructuralError(
                "NAMESPACE_END ({}, {}) does not match open namespace ({}, {}) "
                "(line {})".format(
                    chunk.prefix,
                    chunk.uri,
                    top.prefix_index,
                    top.uri_index,
                    chunk.header.line_number,
                )
            )
        if len(self._elements) > top.depth:
            raise StructuralError(
                "Namespace '{}' closed while <{}> is still open (line {})".format(
                    top.prefix, self._elements[-1].name, chunk.header.line_number
                )
            )
        self._scopes.pop()
        if top in self._pending:
            self._pending.remove(top)

    def _build_attribute(self, raw: RawAttribute) -> Attribute:
        raw_value = self.sb.lookup(raw.raw_value)
        string = None
        if raw.value_type == TYPE_STRING:
            string = raw_value if raw_value is not None else self.sb[raw.value_data]
        attribute = Attribute(
            namespace_index=raw.namespace_uri,
            name_index=raw.name,
            raw_value_index=raw.raw_value,
            typed_value=TypedValue(raw.value_type, raw.value_data, string),
            name=self.sb[raw.name],
            namespace=self.sb.lookup(raw.namespace_uri),
            prefix=self._resolve_prefix(raw.namespace_uri),
            raw_value=raw_value,
        )
        logger.debug(
            "found an attribute: {}='{}'".format(
                attribute.qualified_name, attribute.typed_value.format()
            )
        )
        return attribute

    def _on_start_element(self, chunk: StartElement) -> None:
        if not self._elements and self.root is not None:
            raise StructuralError(
                "Second root element <{}> at line {}".format(
                    self.sb[chunk.name], chunk.header.line_number
                )
            )

        element = Element(
            namespace_index=chunk.namespace_uri,
            name_index=chunk.name,
            name=self.sb[chunk.name],
            line_number=chunk.header.line_number,
            namespace=self.sb.lookup(chunk.namespace_uri),
            prefix=self._resolve_prefix(chunk.namespace_uri),
            comment=self.sb.lookup(chunk.header.comment),
            attributes=[self._build_attribute(raw) for raw in chunk.attributes],
            namespaces=[(scope.prefix, scope.uri) for scope in self._pending],
            id_index=chunk.id_index,
            class_index=chunk.class_index,
            style_index=chunk.style_index,
        )
        self._pending = []
        logger.debug(
            "START_TAG: {} (line={})".format(element.qualified_name, element.line_number)
        )

        if self._elements:
            self._elements[-1].children.append(element)
        else:
            self.root = element
        self._elements.append(element)

    def _on_end_element(self, chunk: EndElement) -> None:
        if not self._elements:
            raise StructuralError(
                "Too many END_TAG! No open element for </{}> at line {}".format(
                    self.sb[chunk.name], chunk.header.line_number
                )
            )
        top = self._elements[-1]
        if (top.namespace_index, top.name_index) != (chunk.namespace_uri, chunk.name) and (
            top.namespace,
            top.name,
        ) != (self.sb.lookup(chunk.namespace_uri), self.sb[chunk.name]):
            raise StructuralError(
                "Closing tag '{}' does not match open tag '{}' at line {}".format(
                    self.sb[chunk.name], top.name, chunk.header.line_number
                )
            )
        if self._scopes and self._scopes[-1].depth >= len(self._elements):
            raise StructuralError(
                "Element <{}> closed while namespace '{}' opened inside it is "
                "still open (line {})".format(
                    top.name, self._scopes[-1].prefix, chunk.header.line_number
                )
            )
        self._elements.pop()

    def _on_text(self, chunk: Text) -> None:
        if not self._elements:
            raise StructuralError(
                "Text outside of any element at line {}".format(chunk.header.line_number)
            )
        self._elements[-1].children.append(
            TextNode(
                index=chunk.name,
                text=self.sb[chunk.name],
                line_number=chunk.header.line_number,
                reserved=chunk.reserved,
            )
        )


def decode(source: Union[bytes, bytearray, BinaryIO]) -> Document:
    """
    Decode an AXML resource into a [Document][androaxml.document.Document].

    :param source: the raw bytes, or a binary file object positioned at the
        start of the resource
    :raises ResParserError: if the stream is not a well-formed AXML document
    """
    parser = AXMLParser(source)
    builder = DocumentBuilder(parser.sb)
    for chunk in parser:
        builder.feed(chunk)
    return builder.close()


class XMLRenderer:
    """
    Converter for decoded documents into a lxml ElementTree.

    Names and values are cleaned up so lxml accepts them; the document
    itself is not touched.

    A Reference Implementation can be found at http://androidxref.com/9.0.0_r3/xref/frameworks/base/tools/aapt/XMLNode.cpp
    """

    _charrange = re.compile(
        '^[\u0020-\uD7FF\u0009\u000A\u000D\uE000-\uFFFD\U00010000-\U0010FFFF]*$'
    )
    _replacement = re.compile(
        '[^\u0020-\uD7FF\u0009\u000A\u000D\uE000-\uFFFD\U00010000-\U0010FFFF]'
    )
    _ncname = re.compile(r"^[A-Za-z_][A-Za-z0-9._-]*$")
    # Unicode letters are allowed, digits and "." and "-" only after the first character
    _name_start = re.compile(r"^[^\W\d]")
    _name_chars = re.compile(r"^[\w.-]*$")
    _name_replacement = re.compile(r"[^\w.-]")

    def __init__(self, document: Document) -> None:
        self.document = document
        self._uris = {}

    def render(self) -> etree._Element:
        root = self._make_element(self.document.root)
        stack = [(self.document.root, root)]
        while stack:
            node, elem = stack.pop()
            children = []
            for child in node.children:
                if isinstance(child, TextNode):
                    self._append_text(elem, self._fix_value(child.text))
                    continue
                if child.comment:
                    elem.append(etree.Comment(self._fix_comment(child.comment)))
                sub = self._make_element(child)
                elem.append(sub)
                children.append((child, sub))
            stack.extend(reversed(children))
        return root

    @staticmethod
    def _append_text(elem, text: str) -> None:
        if len(elem):
            elem[-1].tail = (elem[-1].tail or "") + text
        else:
            elem.text = (elem.text or "") + text

    def _make_element(self, node: Element) -> etree._Element:
        nsmap = {}
        for prefix, uri in node.namespaces:
            uri = self._checked_uri(uri)
            if not uri:
                continue
            if prefix and not self._ncname.match(prefix):
                logger.warning("Dropping invalid namespace prefix '{}'".format(prefix))
                continue
            nsmap[prefix or None] = uri

        elem = etree.Element(self._qualify(node.namespace, node.name), nsmap=nsmap)
        for attribute in node.attributes:
            key = self._qualify(attribute.namespace, attribute.name)
            if key in elem.attrib:
                logger.warning("Duplicate attribute '{}'! Will overwrite!".format(key))
            elem.set(key, self._fix_value(attribute.typed_value.format()))
        return elem

    def _checked_uri(self, uri: Optional[str]) -> Optional[str]:
        """
        Return the stripped URI, or `None` if lxml does not accept it
        """
        if uri not in self._uris:
            cleaned = uri.strip() if uri else None
            if cleaned:
                try:
                    etree.Element("{{{}}}_".format(cleaned))
                except ValueError as e:
                    logger.error("Dropping namespace '{}': {}".format(uri, e))
                    cleaned = None
            self._uris[uri] = cleaned
        return self._uris[uri]

    def _qualify(self, namespace: Optional[str], name: str) -> str:
        name = self._fix_name(name)
        namespace = self._checked_uri(namespace)
        if namespace:
            return "{{{}}}{}".format(namespace, name)
        return name

    def _fix_name(self, name: str) -> str:
        """
        Replace everything an XML name can not contain by underscores.

        > Like element names, attribute names are case-sensitive and must start with a letter or underscore.
        > The rest of the name can contain letters, digits, hyphens, underscores, and periods.
        """
        if not name or not self._name_start.match(name):
            logger.warning(
                "Invalid start for name '{}'. XML name must start with a letter.".format(name)
            )
            name = "_{}".format(name)
        if not self._name_chars.match(name):
            logger.warning("Name '{}' contains invalid characters!".format(name))
            name = self._name_replacement.sub("_", name)
        return name

    def _fix_comment(self, comment: str) -> str:
        """
        XML comments may neither contain `--` nor end with `-`.
        """
        value = self._fix_value(comment)
        fixed = value
        while "--" in fixed:
            fixed = fixed.replace("--", "- -")
        if fixed.endswith("-"):
            fixed += " "
        if fixed != value:
            logger.warning("Comment '{}' is not valid XML, rewritten.".format(value))
        return fixed

    def _fix_value(self, value: str) -> str:
        """
        Return a cleaned version of a value
        according to the specification:
        > Char	   ::=   	#x9 | #xA | #xD | [#x20-#xD7FF] | [#xE000-#xFFFD] | [#x10000-#x10FFFF]

        See <https://www.w3.org/TR/xml/#charsets>
        """
        # Reading string until \x00. This is the same as aapt does.
        if "\x00" in value:
            logger.warning(
                "Null byte found in value at position {}".format(value.find("\x00"))
            )
            value = value[: value.find("\x00")]

        if not self._charrange.match(value):
            logger.warning("Invalid character in value found. Replacing with '_'.")
            value = self._replacement.sub('_', value)
        return value
