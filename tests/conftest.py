"""Shared fixtures for the decoder tests."""

import io
import zipfile

import pytest

from axml_factory import manifest_writer


@pytest.fixture
def manifest_bytes():
    return manifest_writer().build()


@pytest.fixture
def manifest_bytes_utf8():
    return manifest_writer(utf8=True).build()


@pytest.fixture
def apk_path(tmp_path, manifest_bytes):
    path = tmp_path / "app.apk"
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("AndroidManifest.xml", manifest_bytes)
        zf.writestr("classes.dex", b"dex\n035\x00")
    return path


class TrickleReader(io.RawIOBase):
    """Delivers at most `step` bytes per read, like a slow socket."""

    def __init__(self, data, step=3):
        self._data = io.BytesIO(data)
        self._step = step

    def readable(self):
        return True

    def read(self, size=-1):
        if size < 0 or size > self._step:
            size = self._step
        return self._data.read(size)


class FailingReader(io.RawIOBase):
    """Raises an OSError once `limit` bytes have been handed out."""

    def __init__(self, data, limit):
        self._data = io.BytesIO(data)
        self._limit = limit

    def readable(self):
        return True

    def read(self, size=-1):
        if self._data.tell() >= self._limit:
            raise OSError("device not ready")
        return self._data.read(min(size, self._limit - self._data.tell()))


@pytest.fixture
def trickle_reader():
    return TrickleReader


@pytest.fixture
def failing_reader():
    return FailingReader
