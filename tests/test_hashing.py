"""Tests for hashing module."""

from xref.hashing import cache_key, compute_hash, compute_plugin_set_hash
from xref.plugins.base import Plugin


class FakePlugin(Plugin):
    def __init__(self, plugin_id, version="1"):
        super().__init__(plugin_id, plugin_id)
        self.version = version


def test_compute_hash_length():
    assert len(compute_hash(b"<?php echo 1;")) == 12


def test_compute_hash_is_deterministic():
    assert compute_hash(b"abc") == compute_hash(b"abc")
    assert compute_hash(b"abc") != compute_hash(b"abd")


def test_compute_hash_str_and_bytes_agree():
    assert compute_hash("héllo") == compute_hash("héllo".encode("utf8"))


def test_plugin_set_hash_depends_on_plugins():
    a = FakePlugin("a")
    b = FakePlugin("b")

    assert compute_plugin_set_hash([a], "1.0") != compute_plugin_set_hash([a, b], "1.0")


def test_plugin_set_hash_depends_on_plugin_version():
    assert compute_plugin_set_hash([FakePlugin("a", "1")], "1.0") != \
        compute_plugin_set_hash([FakePlugin("a", "2")], "1.0")


def test_plugin_set_hash_depends_on_engine_version():
    plugins = [FakePlugin("a")]

    assert compute_plugin_set_hash(plugins, "1.0") != compute_plugin_set_hash(plugins, "1.1")


def test_cache_key():
    assert cache_key("src/a.php", "abc", "def") == "src/a.php:abc:def"
