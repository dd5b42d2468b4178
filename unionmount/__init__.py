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

"""Manage layered union filesystem volumes for a container host."""

from .dirs import DriverDirs
from .driver import UnionMountDriver, VolumeInfo
from .errors import VolumeError
from .filesystems import FilesystemKind
from .state import DriverState, StateWriter

try:
    from ._version import __version__
except ImportError:  # pragma: no cover
    from importlib.metadata import version, PackageNotFoundError

    try:
        __version__ = version("unionmount")
    except PackageNotFoundError:
        __version__ = "dev"


__all__ = [
    "__version__",
    "DriverDirs",
    "DriverState",
    "FilesystemKind",
    "StateWriter",
    "UnionMountDriver",
    "VolumeError",
    "VolumeInfo",
]
