# server/core/utils.py

import os
import re
import shutil
from pathlib import Path

from fastapi import UploadFile

import config


_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]+")


def normalize_username(raw: str | None) -> str:
    return _NON_ALNUM.sub("", raw or "")


def avatar_path(filename: str | None) -> Path | None:
    """
    Target path of an uploaded avatar inside AVATAR_DIR, or None when the
    client-supplied name has no usable base name ('', '.', '..', '/').
    """
    name = Path(filename or "").name
    if name in ("", ".", ".."):
        return None
    return Path(config.AVATAR_DIR) / name


def save_avatar(file: UploadFile, path: Path):
    os.makedirs(path.parent, exist_ok=True)
    with path.open("wb") as buffer:
        shutil.copyfileobj(file.file, buffer)
