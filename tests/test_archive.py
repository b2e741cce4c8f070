import pytest

from ground.errors import CommandFailed, InputInvalid, PathOutsideHome
from ground.services import archive


@pytest.fixture
def project(alice, home_root):
    project = home_root / "alice" / "project"
    (project / "src").mkdir(parents=True)
    (project / "src" / "main.txt").write_text("hello")
    return project


def test_compress_then_extract(alice, home_root, project, host):
    compressed = archive.compress(alice, "/project")
    assert compressed == str(home_root / "alice" / "project.tar.gz")

    extracted = archive.extract(alice, "/project.tar.gz")
    assert extracted == str(home_root / "alice" / "project(1)")
    assert (home_root / "alice" / "project(1)" / "src" / "main.txt").read_text() == "hello"
    assert [args[2] for program, args in host.calls if program == "su"] == ["alice", "alice"]


def test_compress_picks_free_name(alice, home_root, project):
    (home_root / "alice" / "project.tar.gz").write_bytes(b"")
    assert archive.compress(alice, "/project").endswith("/project(1).tar.gz")


def test_compress_rejects_files_and_home(alice, home_root):
    (home_root / "alice" / "a.txt").write_text("")
    with pytest.raises(InputInvalid):
        archive.compress(alice, "/a.txt")
    with pytest.raises(InputInvalid):
        archive.compress(alice, "/")


def test_extract_requires_tar_gz(alice, home_root):
    (home_root / "alice" / "a.zip").write_bytes(b"")
    with pytest.raises(InputInvalid, match="File is not compressed."):
        archive.extract(alice, "/a.zip")


def test_quotes_in_path_rejected(alice, home_root):
    (home_root / "alice" / "it's").mkdir()
    with pytest.raises(InputInvalid):
        archive.compress(alice, "/it's")


def test_tar_failure_surfaces(alice, home_root, host):
    (home_root / "alice" / "broken.tar.gz").write_bytes(b"not a tarball")
    with pytest.raises(CommandFailed, match="Failed to extract file."):
        archive.extract(alice, "/broken.tar.gz")


def test_extract_beside_symlinked_directory_rejected(alice, home_root, tmp_path, host):
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "x.tar.gz").write_bytes(b"")
    (home_root / "alice" / "evil").symlink_to(outside)

    with pytest.raises(PathOutsideHome):
        archive.extract(alice, "/evil/x.tar.gz")
    assert [p.name for p in outside.iterdir()] == ["x.tar.gz"]
    assert "su" not in host.programs()
