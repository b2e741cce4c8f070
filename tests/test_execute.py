import subprocess

import pytest

from ground.errors import CommandFailed, InputInvalid
from ground.services import execute


class Recorder:
    def __init__(self, returncode=0):
        self.returncode = returncode
        self.calls = []

    def __call__(self, argv, **kwargs):
        self.calls.append((argv, kwargs))
        return subprocess.CompletedProcess(argv, self.returncode, stdout=b"out", stderr=b"err")


def test_disallowed_program():
    with pytest.raises(ValueError):
        execute.run("rm", "-rf", "/")


def test_runs_with_closed_stdin(monkeypatch):
    recorder = Recorder()
    monkeypatch.setattr(subprocess, "run", recorder)
    result = execute.run("uptime", "--pretty")

    argv, kwargs = recorder.calls[0]
    assert argv == ["uptime", "--pretty"]
    assert kwargs["stdin"] is subprocess.DEVNULL
    assert result.stdout == b"out"


def test_never_switches_credentials(monkeypatch):
    recorder = Recorder()
    monkeypatch.setattr(subprocess, "run", recorder)
    execute.run("df", "-h")

    _argv, kwargs = recorder.calls[0]
    assert not {"user", "group", "extra_groups"} & kwargs.keys()
    with pytest.raises(TypeError):
        execute.run("df", as_user=object())


def test_passes_stdin(monkeypatch):
    recorder = Recorder()
    monkeypatch.setattr(subprocess, "run", recorder)
    execute.run("passwd", "--stdin", "alice", stdin=b"pw\n")
    assert recorder.calls[0][1]["input"] == b"pw\n"


def test_non_zero_exit(monkeypatch):
    monkeypatch.setattr(subprocess, "run", Recorder(returncode=3))
    with pytest.raises(CommandFailed) as excinfo:
        execute.run("userdel", "bob", failure="Failed to delete user.")
    assert excinfo.value.detail == "Failed to delete user."
    assert excinfo.value.returncode == 3
    assert excinfo.value.status_code == 500


def test_missing_binary(monkeypatch):
    def boom(argv, **kwargs):
        raise FileNotFoundError(argv[0])

    monkeypatch.setattr(subprocess, "run", boom)
    with pytest.raises(CommandFailed, match="Failed to run df."):
        execute.run("df")


def test_tar_command_lines(monkeypatch):
    recorder = Recorder()
    monkeypatch.setattr(subprocess, "run", recorder)
    execute.tar_compress("alice", "/home/alice/p", "/home/alice/p.tar.gz")
    execute.tar_extract("alice", "/home/alice/p.tar.gz", "/home/alice/p(1)")

    assert recorder.calls[0][0] == ["su", "-c", "tar -zchf '/home/alice/p.tar.gz' --directory='/home/alice/p' .", "alice"]
    assert recorder.calls[1][0] == ["su", "-c", "tar -xzf '/home/alice/p.tar.gz' --directory='/home/alice/p(1)'", "alice"]


def test_tar_rejects_quotes():
    with pytest.raises(InputInvalid):
        execute.tar_compress("alice", "/home/alice/it's", "/home/alice/x.tar.gz")


def test_missing_programs(monkeypatch):
    monkeypatch.setattr(execute.shutil, "which", lambda name: None if name == "tar" else f"/usr/bin/{name}")
    assert execute.missing_programs(["su", "tar"]) == ["tar"]
