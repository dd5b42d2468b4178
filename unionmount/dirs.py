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

"""Definitions for driver directories."""

from pathlib import Path
from typing import Union

DEFAULT_ROOT_DIR = Path("/var/lib/docker/plugins/_unionmount")


def is_valid_volume_name(name: str) -> bool:
    """Verify that the volume name is a single directory name component."""
    if not name or name in (".", ".."):
        return False

    return "/" not in name and "\0" not in name


class DriverDirs:
    """The driver's main directories.

    :param root_dir: The directory containing volume mount points and
        the persisted driver state.

    :ivar root_dir: The root of the driver directories.
    :ivar volumes_dir: The directory containing one mount point per volume.
    :ivar state_file: The file holding the persisted driver state.
    """

    def __init__(self, root_dir: Union[Path, str] = DEFAULT_ROOT_DIR) -> None:
        self.root_dir = Path(root_dir).expanduser().resolve()
        self.volumes_dir = self.root_dir / "volumes"
        self.state_file = self.root_dir / "state.yaml"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(root_dir={str(self.root_dir)!r})"

    def get_mount_point(self, name: str) -> Path:
        """Return the mount point for the given volume name."""
        return self.volumes_dir / name
