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

"""Supported union filesystems."""

import enum

from . import errors


@enum.unique
class FilesystemKind(str, enum.Enum):
    """The union filesystem used to realize a volume.

    The enum value is the filesystem type passed to ``mount(8)``.
    """

    AUFS = "aufs"
    OVERLAY = "overlay"

    def __repr__(self):
        return f"{self.__class__.__name__}.{self.name}"

    def __str__(self):
        return self.value


_FILESYSTEM_TOKENS = {
    "aufs": FilesystemKind.AUFS,
    "overlay": FilesystemKind.OVERLAY,
    "overlayfs": FilesystemKind.OVERLAY,
}


def resolve(token: str) -> FilesystemKind:
    """Obtain the filesystem kind corresponding to the given name.

    The match is case-insensitive.

    :param token: The filesystem name.

    :returns: The filesystem kind.

    :raises UnsupportedFilesystem: If the name doesn't match a supported
        filesystem.
    """
    try:
        return _FILESYSTEM_TOKENS[token.lower()]
    except KeyError:
        raise errors.UnsupportedFilesystem(token) from None
