import pytest
from loguru import logger
from lxml import etree

from androaxml.cli import main
from androaxml.document import Document

from axml_factory import ANDROID_NS, AXMLWriter


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    # the CLI sink points at the captured stderr of the test
    logger.remove()


def test_prints_manifest_from_apk(apk_path, capsys):
    assert main([str(apk_path)]) == 0
    out = capsys.readouterr().out
    root = etree.fromstring(out.encode("utf-8"))
    assert root.tag == "manifest"
    assert root.get("{%s}versionCode" % ANDROID_NS) == "7"


def test_prints_bare_axml_file(tmp_path, manifest_bytes, capsys):
    path = tmp_path / "AndroidManifest.xml"
    path.write_bytes(manifest_bytes)
    assert main(["--raw", str(path)]) == 0
    out = capsys.readouterr().out
    assert "<StringPool #strings=13, #styles=0, UTF8=False>" in out
    assert "0x0101021b" in out
    assert "com.example.app" in out


def test_corrupt_file_exits_with_error(tmp_path, manifest_bytes, capsys):
    path = tmp_path / "AndroidManifest.xml"
    path.write_bytes(manifest_bytes[:-10])
    assert main([str(path)]) == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "AXMLIOError" in captured.err


def test_missing_file(tmp_path):
    assert main([str(tmp_path / "nope.apk")]) == 1


def test_usage_error():
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 2


def test_comment_with_double_dash_is_printed(tmp_path, capsys):
    w = AXMLWriter(["root", "child", "a -- b"])
    w.start_element("root")
    w.start_element("child", comment="a -- b").end_element("child")
    w.end_element("root")
    path = tmp_path / "layout.xml"
    path.write_bytes(w.build())
    assert main([str(path)]) == 0
    root = etree.fromstring(capsys.readouterr().out.encode("utf-8"))
    assert root[0].text == "a - - b"


def test_rendering_error_exits_with_error(apk_path, capsys, monkeypatch):
    def broken(self):
        raise ValueError("Invalid tag name")

    monkeypatch.setattr(Document, "get_xml", broken)
    assert main([str(apk_path)]) == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "ValueError" in captured.err
