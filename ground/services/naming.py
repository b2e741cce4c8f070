from __future__ import annotations

import os
import re

from ground.errors import NamingExhausted

_COPY_NAME_RE = re.compile(r"(.*)\(([0-9]+)\)$", re.DOTALL)


def split_extension(name: str) -> tuple[str, str]:
    """Splits ``name`` at its first dot, keeping a leading dot in the core.

    ``.bashrc`` -> (``.bashrc``, ``""``), ``.tar.gz`` -> (``.tar``, ``.gz``),
    ``a.tar.gz`` -> (``a``, ``.tar.gz``).
    """
    prefix = ""
    rest = name
    if name.startswith("."):
        prefix, rest = ".", name[1:]
    core, dot, ext = rest.partition(".")
    return prefix + core, dot + ext


def next_copy_name(name: str) -> str:
    core, ext = split_extension(name)
    match = _COPY_NAME_RE.fullmatch(core)
    if match:
        new_core = f"{match.group(1)}({int(match.group(2)) + 1})"
    else:
        new_core = f"{core}(1)"
    if new_core == core:
        raise NamingExhausted()
    return new_core + ext


def available_name(directory: str, name: str) -> str:
    """Returns the first name derived from ``name`` that is free in ``directory``."""
    while os.path.lexists(os.path.join(directory, name)):
        name = next_copy_name(name)
    return name


def available_path(directory: str, name: str) -> str:
    return os.path.join(directory, available_name(directory, name))
