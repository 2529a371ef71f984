import zipfile

import pytest

from androaxml import read_manifest
from androaxml.exceptions import ApkError, InvalidStartElementError

from axml_factory import AXMLWriter


def test_manifest_is_read_from_the_archive(apk_path):
    doc = read_manifest(str(apk_path))
    assert doc.root.name == "manifest"
    assert doc.root.get("package").value == "com.example.app"


def test_file_object_is_accepted(apk_path):
    with open(apk_path, "rb") as fp:
        assert read_manifest(fp).root.name == "manifest"


def test_other_entry(tmp_path):
    w = AXMLWriter(["LinearLayout"])
    w.start_element("LinearLayout").end_element("LinearLayout")
    path = tmp_path / "layout.apk"
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("res/layout/main.xml", w.build())
    doc = read_manifest(path, "res/layout/main.xml")
    assert doc.root.name == "LinearLayout"


def test_missing_manifest(tmp_path):
    path = tmp_path / "empty.apk"
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("classes.dex", b"dex\n035\x00")
    with pytest.raises(ApkError):
        read_manifest(path)


def test_not_an_archive(tmp_path, manifest_bytes):
    path = tmp_path / "AndroidManifest.xml"
    path.write_bytes(manifest_bytes)
    with pytest.raises(ApkError):
        read_manifest(path)


def test_decode_errors_propagate(tmp_path):
    path = tmp_path / "plain.apk"
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("AndroidManifest.xml", b'<?xml version="1.0"?><manifest/>')
    with pytest.raises(InvalidStartElementError):
        read_manifest(path)
