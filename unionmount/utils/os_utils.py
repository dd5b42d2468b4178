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

"""Utilities related to the operating system."""

import logging
import subprocess
from typing import Sequence

logger = logging.getLogger(__name__)


def mount(command: Sequence[str]) -> None:
    """Mount a filesystem.

    :param command: The complete ``mount(8)`` invocation.

    :raises subprocess.CalledProcessError: on error.
    """
    logger.debug("mount command=%r", command)
    subprocess.check_call(list(command))


def umount(mountpoint: str, *args: str) -> None:
    """Unmount a filesystem.

    :param mountpoint: The mount point or device to unmount.
    :param *args: Additional arguments to ``umount(8)``.

    :raises subprocess.CalledProcessError: on error.
    """
    logger.debug("umount mountpoint=%r, args=%r", mountpoint, args)
    subprocess.check_call(["umount", *args, mountpoint])
