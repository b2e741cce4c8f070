import pytest

from ground.errors import InputInvalid, PathNotFound, PathOutsideHome
from ground.services import filesystem


class TestMakeDirectory:
    def test_creates_directory(self, alice, home_root):
        target = filesystem.make_directory(alice, "/", "docs")
        assert target == str(home_root / "alice" / "docs")
        assert (home_root / "alice" / "docs").is_dir()

    def test_existing_directory(self, alice, home_root):
        (home_root / "alice" / "docs").mkdir()
        with pytest.raises(InputInvalid, match="Directory already exists."):
            filesystem.make_directory(alice, "/", "docs")

    @pytest.mark.parametrize("name", ["..", "a/b", "."])
    def test_bad_names(self, alice, name):
        with pytest.raises(InputInvalid):
            filesystem.make_directory(alice, "/", name)


class TestMove:
    @pytest.fixture
    def tree(self, alice, home_root):
        home = home_root / "alice"
        (home / "a").mkdir()
        (home / "b").mkdir()
        (home / "a" / "f.txt").write_text("f")
        return home

    def test_moves_into_other_directory(self, alice, tree):
        filesystem.move(alice, "/a/f.txt", "/b/f.txt")
        assert (tree / "b" / "f.txt").read_text() == "f"
        assert not (tree / "a" / "f.txt").exists()

    def test_creates_missing_parents(self, alice, tree):
        filesystem.move(alice, "/a/f.txt", "/c/d/f.txt")
        assert (tree / "c" / "d" / "f.txt").exists()

    def test_rename_rejected(self, alice, tree):
        with pytest.raises(InputInvalid, match="names do not match"):
            filesystem.move(alice, "/a/f.txt", "/b/g.txt")

    def test_same_parent_rejected(self, alice, tree):
        with pytest.raises(InputInvalid):
            filesystem.move(alice, "/a", "/a")

    def test_into_itself_rejected(self, alice, tree):
        with pytest.raises(InputInvalid, match="into itself"):
            filesystem.move(alice, "/a", "/a/x/a")

    def test_existing_destination_rejected(self, alice, tree):
        (tree / "b" / "f.txt").write_text("other")
        with pytest.raises(InputInvalid, match="Destination already exists."):
            filesystem.move(alice, "/a/f.txt", "/b/f.txt")

    def test_missing_source(self, alice, tree):
        with pytest.raises(PathNotFound):
            filesystem.move(alice, "/nope", "/b/nope")


def test_create_missing_directories_rejects_parent_refs(alice, home_root):
    with pytest.raises(InputInvalid):
        filesystem.create_missing_directories(str(home_root / "alice"), "a/../../b", alice.uid, alice.gid)


class TestSymlinkedDirectories:
    @pytest.fixture
    def outside(self, alice, home_root, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (home_root / "alice" / "evil").symlink_to(outside)
        return outside

    def test_make_directory_under_symlink_rejected(self, alice, outside):
        with pytest.raises(PathOutsideHome):
            filesystem.make_directory(alice, "/evil", "made")
        assert list(outside.iterdir()) == []

    def test_move_into_symlinked_directory_rejected(self, alice, home_root, outside):
        (home_root / "alice" / "f.txt").write_text("f")
        with pytest.raises(PathOutsideHome):
            filesystem.move(alice, "/f.txt", "/evil/f.txt")
        assert (home_root / "alice" / "f.txt").exists()
        assert list(outside.iterdir()) == []

    def test_move_out_of_symlinked_directory_rejected(self, alice, home_root, outside):
        (outside / "secret").write_text("s")
        (home_root / "alice" / "b").mkdir()
        with pytest.raises(PathOutsideHome):
            filesystem.move(alice, "/evil/secret", "/b/secret")
        assert (outside / "secret").exists()

    def test_missing_directories_stop_at_symlink(self, alice, home_root, outside):
        with pytest.raises(PathOutsideHome):
            filesystem.create_missing_directories(str(home_root / "alice"), "evil/a/b", alice.uid, alice.gid)
        assert list(outside.iterdir()) == []

    def test_upload_root_must_stay_in_home(self, alice, outside):
        with pytest.raises(PathOutsideHome):
            filesystem.require_directory("alice", "/evil")
