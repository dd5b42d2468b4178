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

"""Per-volume mount state and reference counting."""

import logging
import shutil
import threading
from pathlib import Path
from subprocess import CalledProcessError
from typing import Callable, Optional, Sequence, Tuple

from . import errors
from .filesystems import FilesystemKind
from .mount_command import build_mount_command
from .state import VolumeState
from .utils import os_utils

logger = logging.getLogger(__name__)


class Volume:
    """A union mount volume.

    The layer stack, filesystem and mount point are fixed at creation
    time. The reference count tracks how many consumers are using the
    volume: the union filesystem is only mounted on the first use and
    unmounted after the last one. All reference count transitions and
    the physical mount and unmount operations are serialized by the
    volume lock.

    :param name: The volume name.
    :param filesystem: The union filesystem used to mount the volume.
    :param layers: The read-only layers, lowest priority first.
    :param mount_point: The directory where the volume is mounted.
    :param ref_count: The initial reference count.
    """

    def __init__(
        self,
        name: str,
        *,
        filesystem: FilesystemKind,
        layers: Sequence[str],
        mount_point: Path,
        ref_count: int = 0,
    ):
        if ref_count < 0:
            raise ValueError("reference count cannot be negative")

        self._name = name
        self._filesystem = filesystem
        self._layers = tuple(layers)
        self._mount_point = mount_point
        self._ref_count = ref_count
        self._lock = threading.Lock()
        self._removed = False

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name={self._name!r}, "
            f"filesystem={self._filesystem!r}, layers={self._layers!r}, "
            f"mount_point={str(self._mount_point)!r})"
        )

    @property
    def name(self) -> str:
        """Return the volume name."""
        return self._name

    @property
    def filesystem(self) -> FilesystemKind:
        """Return the union filesystem used by this volume."""
        return self._filesystem

    @property
    def layers(self) -> Tuple[str, ...]:
        """Return the volume layers, lowest priority first."""
        return self._layers

    @property
    def mount_point(self) -> Path:
        """Return the volume mount point."""
        return self._mount_point

    @property
    def ref_count(self) -> int:
        """Return the number of active users of this volume."""
        with self._lock:
            return self._ref_count

    def mount(self) -> Path:
        """Acquire a reference to the volume, mounting it if needed.

        :returns: The volume mount point.

        :raises VolumeNotFound: If the volume has been removed.
        :raises VolumeMountError: If the union filesystem can't be mounted.
        """
        with self._lock:
            if self._removed:
                raise errors.VolumeNotFound(self._name)

            if self._ref_count == 0:
                command = build_mount_command(
                    self._filesystem, self._layers, self._mount_point
                )
                logger.debug("mount volume %r on %s", self._name, self._mount_point)
                try:
                    os_utils.mount(command)
                except (CalledProcessError, OSError) as err:
                    raise errors.VolumeMountError(
                        str(self._mount_point), message=str(err)
                    ) from err

            self._ref_count += 1
            logger.debug("volume %r ref count: %d", self._name, self._ref_count)
            return self._mount_point

    def unmount(self) -> None:
        """Release a reference to the volume, unmounting it on last use.

        A failure to unmount is logged and the reference is released
        anyway.

        :raises VolumeNotMounted: If the volume has no active references.
        """
        with self._lock:
            if self._ref_count == 0:
                raise errors.VolumeNotMounted(self._name)

            if self._ref_count == 1:
                logger.debug("unmount volume %r from %s", self._name, self._mount_point)
                try:
                    os_utils.umount(str(self._mount_point), "-f")
                except (CalledProcessError, OSError) as err:
                    logger.warning(
                        "cannot unmount volume %r from %s: %s",
                        self._name,
                        self._mount_point,
                        err,
                    )

            self._ref_count -= 1
            logger.debug("volume %r ref count: %d", self._name, self._ref_count)

    def remove_mount_point(
        self, on_removed: Optional[Callable[[], None]] = None
    ) -> bool:
        """Remove the volume mount point if the volume is not in use.

        :param on_removed: Called with the volume lock held after the mount
            point is removed.

        :returns: Whether the mount point was removed.

        :raises VolumeNotFound: If the volume has already been removed.
        :raises VolumeRemoveError: If the mount point can't be removed.
        """
        with self._lock:
            if self._removed:
                raise errors.VolumeNotFound(self._name)

            if self._ref_count > 0:
                logger.debug(
                    "volume %r in use (ref count %d), not removed",
                    self._name,
                    self._ref_count,
                )
                return False

            logger.debug("remove mount point %s", self._mount_point)
            try:
                shutil.rmtree(self._mount_point)
            except FileNotFoundError:
                pass
            except OSError as err:
                raise errors.VolumeRemoveError(
                    str(self._mount_point), message=str(err)
                ) from err

            self._removed = True
            if on_removed:
                on_removed()

            return True

    def ensure_mount_point(self) -> None:
        """Create the mount point directory unless the volume was removed.

        :raises OSError: If the directory can't be created.
        """
        with self._lock:
            if not self._removed:
                self._mount_point.mkdir(parents=True, exist_ok=True)

    def to_state(self) -> VolumeState:
        """Return the persistent state of this volume."""
        with self._lock:
            return VolumeState(
                filesystem=self._filesystem,
                layers=list(self._layers),
                mount_point=str(self._mount_point),
                ref_count=self._ref_count,
            )

