import io

import pytest

from ground.errors import InputInvalid, PathOutsideHome
from ground.services import uploads


@pytest.mark.parametrize(
    "filename,expected",
    [
        ("report.pdf", ("", "report.pdf")),
        ("docs/2024/report.pdf", ("docs/2024", "report.pdf")),
        ("docs\\report.pdf", ("docs", "report.pdf")),
    ],
)
def test_split_upload_name(filename, expected):
    assert uploads.split_upload_name(filename) == expected


@pytest.mark.parametrize("filename", ["", "docs/", "../x", "a/../../x", ".."])
def test_split_upload_name_rejects(filename):
    with pytest.raises(InputInvalid):
        uploads.split_upload_name(filename)


def test_save_upload_creates_directories(alice, home_root):
    root = str(home_root / "alice")
    target = uploads.save_upload(alice, root, "photos/2024/a.jpg", io.BytesIO(b"jpeg"))
    assert target == f"{root}/photos/2024/a.jpg"
    assert (home_root / "alice" / "photos" / "2024" / "a.jpg").read_bytes() == b"jpeg"


def test_save_upload_collisions(alice, home_root):
    docs = home_root / "alice" / "docs"
    docs.mkdir()
    names = [uploads.save_upload(alice, str(docs), "report.pdf", io.BytesIO(b"x")).rsplit("/", 1)[1] for _ in range(3)]
    assert names == ["report.pdf", "report(1).pdf", "report(2).pdf"]


class TestSymlinkedDirectories:
    @pytest.fixture
    def outside(self, alice, home_root, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (home_root / "alice" / "evil").symlink_to(outside)
        return outside

    def test_upload_through_symlinked_directory_rejected(self, alice, home_root, outside):
        with pytest.raises(PathOutsideHome):
            uploads.save_upload(alice, str(home_root / "alice"), "evil/pwn.txt", io.BytesIO(b"x"))
        assert list(outside.iterdir()) == []

    def test_nested_upload_through_symlinked_directory_rejected(self, alice, home_root, outside):
        with pytest.raises(PathOutsideHome):
            uploads.save_upload(alice, str(home_root / "alice"), "evil/deep/pwn.txt", io.BytesIO(b"x"))
        assert list(outside.iterdir()) == []

    def test_dangling_symlink_name_is_not_followed(self, alice, home_root, tmp_path):
        victim = tmp_path / "victim.txt"
        (home_root / "alice" / "a.txt").symlink_to(victim)

        target = uploads.save_upload(alice, str(home_root / "alice"), "a.txt", io.BytesIO(b"x"))
        assert target.endswith("/a(1).txt")
        assert not victim.exists()
