# Wire constants of the Android binary XML format.
# see http://aospxref.com/android-13.0.0_r3/xref/frameworks/base/libs/androidfw/include/androidfw/ResourceTypes.h

# Chunk tags as they appear on the wire: the low 16 bits are the chunk type,
# the high 16 bits the header size.
CHUNK_NULL = 0x00000000
CHUNK_AXML_FILE = 0x00080003
CHUNK_STRINGPOOL_TYPE = 0x001C0001
CHUNK_RESOURCEIDS = 0x00080180
CHUNK_XML_START_NAMESPACE = 0x00100100
CHUNK_XML_END_NAMESPACE = 0x00100101
CHUNK_XML_START_TAG = 0x00100102
CHUNK_XML_END_TAG = 0x00100103
CHUNK_XML_TEXT = 0x00100104

CHUNK_NAMES = {
    CHUNK_RESOURCEIDS: "RESOURCE_IDS",
    CHUNK_XML_START_NAMESPACE: "START_NAMESPACE",
    CHUNK_XML_END_NAMESPACE: "END_NAMESPACE",
    CHUNK_XML_START_TAG: "START_TAG",
    CHUNK_XML_END_TAG: "END_TAG",
    CHUNK_XML_TEXT: "TEXT",
}

# Sentinel for "no string" in every string reference
NO_INDEX = 0xFFFFFFFF

# Flags in the STRING Section
SORTED_FLAG = 1 << 0
UTF8_FLAG = 1 << 8

# Fixed part of the string pool header, tag included
STRING_POOL_HEADER_SIZE = 0x1C

# Position of the fields inside an attribute
ATTRIBUTE_IX_NAMESPACE_URI = 0
ATTRIBUTE_IX_NAME = 1
ATTRIBUTE_IX_VALUE_STRING = 2
ATTRIBUTE_IX_VALUE_TYPE = 3
ATTRIBUTE_IX_VALUE_DATA = 4
ATTRIBUTE_LENGTH = 5

# Res_value data types
TYPE_NULL = 0x00
TYPE_REFERENCE = 0x01
TYPE_ATTRIBUTE = 0x02
TYPE_STRING = 0x03
TYPE_FLOAT = 0x04
TYPE_DIMENSION = 0x05
TYPE_FRACTION = 0x06
TYPE_DYNAMIC_REFERENCE = 0x07
TYPE_DYNAMIC_ATTRIBUTE = 0x08
TYPE_FIRST_INT = 0x10
TYPE_INT_DEC = 0x10
TYPE_INT_HEX = 0x11
TYPE_INT_BOOLEAN = 0x12
TYPE_FIRST_COLOR_INT = 0x1C
TYPE_INT_COLOR_ARGB8 = 0x1C
TYPE_INT_COLOR_RGB8 = 0x1D
TYPE_INT_COLOR_ARGB4 = 0x1E
TYPE_INT_COLOR_RGB4 = 0x1F
TYPE_LAST_COLOR_INT = 0x1F
TYPE_LAST_INT = 0x1F

RADIX_MULTS = [0.00390625, 3.051758e-005, 1.192093e-007, 4.656613e-010]
DIMENSION_UNITS = ["px", "dip", "sp", "pt", "in", "mm"]
FRACTION_UNITS = ["%", "%p"]

COMPLEX_UNIT_MASK = 0x0F
