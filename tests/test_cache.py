"""Tests for pvetemplate.cache module."""

from __future__ import annotations

import hashlib
from unittest.mock import patch

URL = "https://cloud.debian.org/images/cloud/bookworm/debian-12.qcow2"


class TestPathFor:
    def test_hash_and_basename(self, image_cache):
        digest = hashlib.md5(URL.encode("utf-8")).hexdigest()
        assert image_cache.path_for(URL) == image_cache.directory / f"{digest}-debian-12.qcow2"

    def test_query_string_not_in_name(self, image_cache):
        path = image_cache.path_for(URL + "?sig=abc")
        assert path.name.endswith("-debian-12.qcow2")
        assert path != image_cache.path_for(URL)


class TestEnsureImage:
    def test_uses_cached_file(self, image_cache):
        cached = image_cache.path_for(URL)
        cached.parent.mkdir(parents=True)
        cached.write_bytes(b"disk")
        with patch("pvetemplate.cache.download_file") as mock_download:
            assert image_cache.ensure_image(URL) == cached
        mock_download.assert_not_called()

    def test_downloads_when_missing(self, image_cache):
        with patch("pvetemplate.cache.download_file") as mock_download:
            path = image_cache.ensure_image(URL)
        assert image_cache.directory.is_dir()
        mock_download.assert_called_once_with(URL, path, label="Downloading cloud image from")

    def test_no_cache_redownloads(self, image_cache):
        cached = image_cache.path_for(URL)
        cached.parent.mkdir(parents=True)
        cached.write_bytes(b"stale")
        with patch("pvetemplate.cache.download_file") as mock_download:
            image_cache.ensure_image(URL, no_cache=True)
        mock_download.assert_called_once()
        assert not cached.exists()


class TestDelete:
    def test_delete_existing(self, image_cache, tmp_path):
        target = tmp_path / "img"
        target.write_bytes(b"x")
        assert image_cache.delete(target) is True
        assert not target.exists()

    def test_delete_missing(self, image_cache, tmp_path):
        assert image_cache.delete(tmp_path / "nope") is False
