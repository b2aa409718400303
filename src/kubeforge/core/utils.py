#!/usr/bin/env python3
"""
KUBEFORGE UTILITIES
-------------------
Name sanitization and filesystem helpers used by processors and the
artifact manager.

Author: KubeForge Team
Date: 2026-10-18
"""

import os
import re
import shutil
from pathlib import Path
from typing import Any, Optional, Union

from kubeforge.core.errors import ArtifactIOError

# DNS-1123 label: lowercase alphanumerics and '-', at most 63 characters
MAX_NAME_LENGTH = 63
_INVALID_CHARS = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUNS = re.compile(r"-{2,}")


def get_valid_name(name: str, postfix: str = "") -> str:
    """
    Converts an arbitrary identifier into a valid Kubernetes resource name.

    'HELLO_WORLD.DEMO' -> 'hello-world-demo'. The function is idempotent.
    With a postfix ('-svc', '-hpa', ...) the base is shortened so that
    base + postfix still fits in MAX_NAME_LENGTH characters. A base that
    sanitizes to nothing yields an empty name.
    """
    if name is None:
        return ""
    cleaned = _INVALID_CHARS.sub("-", str(name).lower())
    cleaned = _HYPHEN_RUNS.sub("-", cleaned).strip("-")
    # Trim again after truncation so the name never ends with a hyphen
    base = cleaned[:MAX_NAME_LENGTH - len(postfix)].strip("-")
    if not base:
        return ""
    return base + postfix


def is_blank(value: Optional[Any]) -> bool:
    return value is None or str(value).strip() == ""


def extract_executable_name(path: Union[str, Path]) -> Optional[str]:
    """Returns the file stem of an executable path, or None for directories."""
    p = Path(path)
    if p.is_dir() or not p.suffix:
        return None
    return p.stem


def delete_directory(path: Union[str, Path]):
    """Deletes a file or a directory tree. Missing paths are ignored."""
    p = Path(path)
    try:
        if p.is_dir() and not p.is_symlink():
            shutil.rmtree(p)
        elif p.exists() or p.is_symlink():
            p.unlink()
    except OSError as e:
        raise ArtifactIOError(f"unable to delete {p}: {e}")


def copy_file_or_directory(source: Union[str, Path], destination: Union[str, Path]):
    """
    Copies a file or the contents of a directory.

    A file copied onto an existing directory lands inside it; a directory's
    children are copied into the destination directory.
    """
    src = Path(source)
    dst = Path(destination)
    try:
        if src.is_dir():
            dst.mkdir(parents=True, exist_ok=True)
            for child in sorted(src.iterdir()):
                copy_file_or_directory(child, dst / child.name)
        elif dst.is_dir():
            shutil.copy2(src, dst / src.name)
        else:
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src, dst)
    except OSError as e:
        raise ArtifactIOError(f"unable to copy {src} to {dst}: {e}")


def atomic_write(target_path: Path, content: str):
    """Writes through a temp file and os.replace so readers never see half a file."""
    if not os.access(target_path.parent, os.W_OK):
        raise ArtifactIOError(f"No write access to {target_path.parent}")
    temp_file = target_path.with_suffix(target_path.suffix + ".kubeforge.tmp")
    try:
        temp_file.write_text(content, encoding="utf-8")
        os.replace(temp_file, target_path)
    except OSError as e:
        if temp_file.exists():
            temp_file.unlink()
        raise ArtifactIOError(f"Atomic write failed: {str(e)}")
