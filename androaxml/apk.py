import zipfile
from typing import BinaryIO, Union

from loguru import logger

from .document import Document, decode
from .exceptions import ApkError

MANIFEST_ENTRY = "AndroidManifest.xml"


def is_zip(path) -> bool:
    return zipfile.is_zipfile(path)


def read_manifest(
    path: Union[str, BinaryIO], entry: str = MANIFEST_ENTRY
) -> Document:
    """
    Open an APK and decode one of its binary XML entries.

    An APK file is just a ZIP file; the archive reader takes care of
    decompression, the entry is streamed straight into the decoder.

    :param path: path or binary file object of the package
    :param entry: name of the entry inside the archive
    :raises ApkError: if the file is not an archive or has no such entry
    :raises ResParserError: if the entry is not valid AXML
    """
    try:
        archive = zipfile.ZipFile(path)
    except zipfile.BadZipFile as e:
        raise ApkError("{} is not a ZIP archive: {}".format(path, e)) from e

    with archive:
        try:
            info = archive.getinfo(entry)
        except KeyError as e:
            raise ApkError("{} has no entry '{}'".format(path, entry)) from e
        logger.debug(
            "Decoding {} ({} bytes, {} compressed)".format(
                entry, info.file_size, info.compress_size
            )
        )
        try:
            with archive.open(info) as fp:
                return decode(fp)
        except zipfile.BadZipFile as e:
            # CRC errors surface while the entry is being read
            raise ApkError("Entry '{}' is corrupt: {}".format(entry, e)) from e
