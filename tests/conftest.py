from __future__ import annotations

import os
import subprocess

import pytest
from fastapi.testclient import TestClient

from ground.config import settings
from ground.errors import CommandFailed
from ground.schemas.users import Requestor
from ground.services import execute, monitor, security, users
from ground.services.ratelimit import login_rate_limiter


class FakeHost:
    """Stands in for the host utilities behind ``execute.run``.

    Records every call. Accounts, passwords and admin membership live in
    plain dicts; ``tar`` commands given to ``su -c`` are run for real.
    """

    def __init__(self):
        self.calls: list[tuple[str, tuple[str, ...]]] = []
        self.passwords: dict[str, str] = {}
        self.admins: set[str] = set()
        self.failing: set[str] = set()

    def _done(self, args, stdout: str = "") -> subprocess.CompletedProcess:
        return subprocess.CompletedProcess(list(args), 0, stdout=stdout.encode(), stderr=b"")

    def run(self, program, *args, stdin=None, failure=None):
        if program not in execute.ALLOWED_PROGRAMS:
            raise ValueError(f"Program '{program}' is not allowed")
        self.calls.append((program, args))
        if program in self.failing:
            raise CommandFailed(program, failure, returncode=1, stderr=b"failed")

        if program == "su":
            return self._su(args, stdin, failure)
        if program == "groups":
            username = args[0]
            groups = [username] + (["sudo"] if username in self.admins else [])
            return self._done(args, f"{username} : {' '.join(groups)}\n")
        if program == "gpasswd":
            flag, username, _group = args
            if flag == "-a":
                self.admins.add(username)
            else:
                self.admins.discard(username)
            return self._done(args)
        if program == "passwd":
            self.passwords[args[-1]] = stdin.decode().rstrip("\n")
            return self._done(args)
        if program == "df":
            return self._done(args, "Filesystem Size Used Avail Capacity Mounted on\n/dev/sda1 100G 10G 90G 10% /\n")
        if program == "du":
            return self._done(args, f"4.0K\t{args[-1]}\n")
        if program == "uptime":
            return self._done(args, "up 3 hours, 2 minutes\n")
        if program == "sed":
            # only "-i <n>d <file>" is ever issued
            line = int(args[1][:-1])
            with open(args[2], encoding="utf-8") as fh:
                lines = fh.readlines()
            del lines[line - 1]
            with open(args[2], "w", encoding="utf-8") as fh:
                fh.writelines(lines)
            return self._done(args)
        return self._done(args)

    def _su(self, args, stdin, failure):
        _flag, command, username = args
        if command.startswith("tar "):
            result = subprocess.run(["sh", "-c", command], capture_output=True, check=False)
            if result.returncode != 0:
                raise CommandFailed("su", failure, returncode=result.returncode, stderr=result.stderr)
            return result
        if command == f"su -c exit {username}":
            password = (stdin or b"").decode().rstrip("\n")
            if self.passwords.get(username) != password:
                raise CommandFailed("su", failure, returncode=1, stderr=b"su: Authentication failure")
            return self._done(args)
        raise AssertionError(f"unexpected su command {command!r}")

    def programs(self) -> list[str]:
        return [program for program, _ in self.calls]


@pytest.fixture
def home_root(tmp_path, monkeypatch):
    root = tmp_path / "home"
    root.mkdir()
    monkeypatch.setattr(settings, "home_root", str(root))
    return root


@pytest.fixture
def host(monkeypatch, home_root):
    fake = FakeHost()
    monkeypatch.setattr(execute, "run", fake.run)

    def fake_user_ids(username):
        if not (home_root / username).is_dir() and username not in fake.passwords:
            raise KeyError(username)
        return os.getuid(), os.getgid()

    monkeypatch.setattr(users, "_user_ids", fake_user_ids)
    monkeypatch.setattr(users, "_admin_group", "sudo")
    monitor._disk_size.cache_clear()
    login_rate_limiter.reset()
    yield fake
    monitor._disk_size.cache_clear()
    login_rate_limiter.reset()


def add_user(host: FakeHost, home_root, username: str, password: str = "pw", admin: bool = False) -> Requestor:
    (home_root / username).mkdir()
    host.passwords[username] = password
    if admin:
        host.admins.add(username)
    return Requestor(username=username, uid=os.getuid(), gid=os.getgid(), is_admin=admin)


@pytest.fixture
def alice(host, home_root) -> Requestor:
    return add_user(host, home_root, "alice")


@pytest.fixture
def root_admin(host, home_root) -> Requestor:
    return add_user(host, home_root, "boss", admin=True)


@pytest.fixture
def client(host):
    from ground.main import app

    with TestClient(app, headers={"origin": "http://testserver"}) as test_client:
        yield test_client


def login_as(client: TestClient, username: str) -> None:
    token, _ = security.issue_token(username)
    client.cookies.set(security.USER_TOKEN_COOKIE, token)


def cookie_value(response, name: str) -> str | None:
    value = response.cookies.get(name)
    return value.strip('"') if value is not None else None
