# -*- Mode:Python; indent-tabs-mode:nil; tab-width:4 -*-
#
# Copyright 2024 Canonical Ltd.
#
# This program is free software; you can redistribute it and/or
# modify it under the terms of the GNU Lesser General Public
# License version 3 as published by the Free Software Foundation.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
# Lesser General Public License for more details.
#
# You should have received a copy of the GNU Lesser General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

"""Translate union mount requests into mount(8) invocations."""

from pathlib import Path
from typing import List, Sequence, Union

from . import errors
from .filesystems import FilesystemKind

PathLike = Union[str, Path]

# aufs branch separator in the br= mount option
_AUFS_BRANCH_SEPARATOR = ":"


def build_mount_command(
    kind: FilesystemKind, layers: Sequence[PathLike], mount_point: PathLike
) -> List[str]:
    """Build the command that mounts a layer stack.

    The mount point itself is used as the writable top layer. The result
    is an argument vector meant to be executed without a shell.

    :param kind: The union filesystem to use.
    :param layers: The read-only layers, lowest priority first.
    :param mount_point: The directory to mount the union on.

    :returns: The mount command arguments.

    :raises NoLayersDefined: If the layer list is empty.
    :raises UnsupportedLayerCount: If the filesystem can't stack the layers.
    :raises UnsupportedFilesystem: If the filesystem is unknown.
    """
    if not layers:
        raise errors.NoLayersDefined()

    mount_point = str(mount_point)

    if kind == FilesystemKind.AUFS:
        branches = _AUFS_BRANCH_SEPARATOR.join(
            [mount_point, *[str(p) for p in layers]]
        )
        return ["mount", "-t", "aufs", "-o", f"br={branches}", "none", mount_point]

    if kind == FilesystemKind.OVERLAY:
        # FIXME: stack multiple lower dirs
        if len(layers) > 1:
            raise errors.UnsupportedLayerCount(str(kind), len(layers))

        return [
            "mount",
            "-t",
            "overlay",
            "overlay",
            "-o",
            f"lowerdir={layers[0]!s},upperdir={mount_point}",
            mount_point,
        ]

    raise errors.UnsupportedFilesystem(str(kind))

