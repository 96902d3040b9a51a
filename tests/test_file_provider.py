import tempfile
from pathlib import Path

import pytest

from xref.file_provider import FileSystemFileProvider, is_excluded


@pytest.fixture
def temp_repo():
    """Create a directory tree with PHP and other files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "src" / "Model").mkdir(parents=True)
        (root / "src" / "vendor" / "lib").mkdir(parents=True)
        (root / ".git").mkdir()
        (root / "src" / "a.php").write_text("<?php echo 1;")
        (root / "src" / "Model" / "User.PHP").write_text("<?php class User {}")
        (root / "src" / "vendor" / "lib" / "x.php").write_text("<?php")
        (root / "src" / "notes.txt").write_text("not php")
        (root / ".git" / "hook.php").write_text("<?php")
        (root / "index.php").write_text("<?php")
        yield root


def test_is_excluded():
    assert is_excluded("src/vendor/a.php", ["src/vendor"])
    assert is_excluded("src/vendor/a.php", ["/src/vendor/"])
    assert is_excluded("src/a.php", ["src/a.php"])
    assert not is_excluded("src/vendorx/a.php", ["src/vendor"])
    assert not is_excluded("src/a.php", [])


def test_get_files(temp_repo):
    provider = FileSystemFileProvider(temp_repo)

    assert provider.get_files() == [
        "index.php",
        "src/Model/User.PHP",
        "src/a.php",
        "src/vendor/lib/x.php",
    ]


def test_get_files_below_paths(temp_repo):
    provider = FileSystemFileProvider(temp_repo, ["src/Model", "index.php"])

    assert provider.get_files() == ["index.php", "src/Model/User.PHP"]


def test_exclude_paths(temp_repo):
    provider = FileSystemFileProvider(temp_repo, ["src"])
    provider.exclude_paths(["src/vendor"])

    assert provider.get_files() == ["src/Model/User.PHP", "src/a.php"]


def test_other_extensions(temp_repo):
    provider = FileSystemFileProvider(temp_repo, extensions=["txt"])

    assert provider.get_files() == ["src/notes.txt"]


def test_missing_path_yields_no_files(temp_repo):
    provider = FileSystemFileProvider(temp_repo, ["does-not-exist"])

    assert provider.get_files() == []


def test_get_file_content(temp_repo):
    provider = FileSystemFileProvider(temp_repo)

    assert provider.get_file_content("src/a.php") == b"<?php echo 1;"


def test_get_missing_file_content(temp_repo):
    provider = FileSystemFileProvider(temp_repo)

    with pytest.raises(FileNotFoundError):
        provider.get_file_content("src/missing.php")
