"""
Host — ownership and permission helpers shared by path adapters.
"""

from __future__ import annotations

import grp
import os
import pwd
import shutil
import stat
from pathlib import Path


def _user_name(uid: int) -> str:
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def _group_name(gid: int) -> str:
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return str(gid)


def attribute_drift(
    path: Path,
    owner: str | None = None,
    group: str | None = None,
    mode: int | None = None,
) -> list[str]:
    """Describe owner/group/mode differences of an existing path.

    Attributes left as None are not managed.
    """
    st = path.stat()
    changes: list[str] = []

    current_owner = _user_name(st.st_uid)
    if owner is not None and current_owner != owner:
        changes.append(f"owner {current_owner} → {owner}")

    current_group = _group_name(st.st_gid)
    if group is not None and current_group != group:
        changes.append(f"group {current_group} → {group}")

    current_mode = stat.S_IMODE(st.st_mode)
    if mode is not None and current_mode != mode:
        changes.append(f"mode {current_mode:04o} → {mode:04o}")

    return changes


def desired_attributes(
    owner: str | None = None,
    group: str | None = None,
    mode: int | None = None,
) -> list[str]:
    """Describe attributes that will be set on a path that does not exist yet."""
    changes = []
    if owner is not None:
        changes.append(f"owner → {owner}")
    if group is not None:
        changes.append(f"group → {group}")
    if mode is not None:
        changes.append(f"mode → {mode:04o}")
    return changes


def apply_attributes(
    path: Path,
    owner: str | None = None,
    group: str | None = None,
    mode: int | None = None,
) -> list[str]:
    """Bring owner/group/mode in line and return what was changed.

    Raises:
        LookupError: Unknown user or group.
        OSError: chown/chmod refused.
    """
    changes = attribute_drift(path, owner, group, mode)
    if not changes:
        return []

    if owner is not None or group is not None:
        shutil.chown(path, user=owner, group=group)
    if mode is not None:
        os.chmod(path, mode)
    return changes


def carry_attributes(replacement: int | Path, previous: os.stat_result) -> None:
    """Give a replacement file (path or open fd) the mode and ownership of ``previous``.

    Raises:
        OSError: chown/chmod refused.
    """
    os.chmod(replacement, stat.S_IMODE(previous.st_mode))
    st = os.stat(replacement)
    if (st.st_uid, st.st_gid) != (previous.st_uid, previous.st_gid):
        os.chown(replacement, previous.st_uid, previous.st_gid)
