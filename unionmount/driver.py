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

"""Volume registry and lifecycle operations."""

import dataclasses
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from . import errors, filesystems
from .dirs import DriverDirs, is_valid_volume_name
from .filesystems import FilesystemKind
from .state import DriverState, StateWriter, load_state
from .volume import Volume

logger = logging.getLogger(__name__)

# separator of the layers option
LAYER_SEPARATOR = ":"


@dataclasses.dataclass(frozen=True)
class VolumeInfo:
    """Public information about a registered volume.

    :param name: The volume name.
    :param mount_point: The directory where the volume is mounted.
    """

    name: str
    mount_point: Path


class UnionMountDriver:
    """Manage a set of named union mount volumes.

    The registry lock only protects the name to volume mapping and is
    never held while directories are created or removed, or while
    filesystems are mounted or unmounted. Operations that change a
    volume's mount state are serialized by that volume's own lock.

    :param dirs: The driver directories.
    :param default_filesystem: The filesystem used when a volume creation
        request doesn't specify one.
    :param state_writer: The writer used to persist registry snapshots, or
        None to disable persistence.
    """

    def __init__(
        self,
        dirs: DriverDirs,
        *,
        default_filesystem: FilesystemKind = FilesystemKind.AUFS,
        state_writer: Optional[StateWriter] = None,
    ):
        self._dirs = dirs
        self._default_filesystem = default_filesystem
        self._state_writer = state_writer
        self._volumes: Dict[str, Volume] = {}
        self._lock = threading.Lock()

    @property
    def dirs(self) -> DriverDirs:
        """Return the driver directories."""
        return self._dirs

    @property
    def default_filesystem(self) -> FilesystemKind:
        """Return the filesystem used for volumes that don't specify one."""
        return self._default_filesystem

    @classmethod
    def restore(
        cls,
        dirs: DriverDirs,
        *,
        default_filesystem: FilesystemKind = FilesystemKind.AUFS,
        state_writer: Optional[StateWriter] = None,
    ) -> "UnionMountDriver":
        """Create a driver populated with the persisted volumes.

        If the persisted state can't be loaded the driver starts with
        no volumes. Reference counts are restored as persisted.

        :param dirs: The driver directories.
        :param default_filesystem: The filesystem used when a volume
            creation request doesn't specify one.
        :param state_writer: The writer used to persist registry snapshots.

        :returns: The restored driver.
        """
        driver = cls(
            dirs, default_filesystem=default_filesystem, state_writer=state_writer
        )

        try:
            state = load_state(dirs.state_file)
        except errors.StateError as err:
            logger.warning("%s", err)
            logger.info("starting with an empty volume registry")
            return driver

        if Path(state.root_dir) != dirs.root_dir:
            logger.warning(
                "state root directory %s differs from %s",
                state.root_dir,
                dirs.root_dir,
            )

        for name, volume_state in state.volumes.items():
            driver._volumes[name] = Volume(
                name,
                filesystem=volume_state.filesystem,
                layers=volume_state.layers,
                mount_point=dirs.get_mount_point(name),
                ref_count=volume_state.ref_count,
            )

        logger.info(
            "restored %d volume(s) from %s", len(state.volumes), dirs.state_file
        )
        return driver

    def create(self, name: str, options: Optional[Mapping[str, str]] = None) -> None:
        """Register a new volume.

        :param name: The volume name.
        :param options: The volume options. ``layers`` is a colon-separated
            list of absolute paths, lowest priority first. ``filesystem``
            selects the union filesystem.

        :raises VolumeValidationError: If the name or options are invalid.
        :raises VolumeCreateError: If the mount point can't be created.
        :raises DuplicateVolume: If a volume with this name already exists.
        """
        _validate_name(name)
        options = options or {}

        layers_option = options.get("layers")
        if not layers_option:
            raise errors.NoLayersDefined()

        layers = layers_option.split(LAYER_SEPARATOR)
        for path in layers:
            if not os.path.isabs(path):
                raise errors.RelativeLayerPath(path)

        for path in layers:
            if not os.path.exists(path):
                raise errors.LayerNotFound(path)

        filesystem = self._default_filesystem
        if "filesystem" in options:
            filesystem = filesystems.resolve(options["filesystem"])

        # FIXME: stack multiple lower dirs with overlay
        if filesystem == FilesystemKind.OVERLAY and len(layers) > 1:
            raise errors.UnsupportedLayerCount(str(filesystem), len(layers))

        mount_point = self._dirs.get_mount_point(name)
        try:
            mount_point.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise errors.VolumeCreateError(name, message=str(err)) from err

        with self._lock:
            if name in self._volumes:
                raise errors.DuplicateVolume(name)

            volume = Volume(
                name, filesystem=filesystem, layers=layers, mount_point=mount_point
            )
            self._volumes[name] = volume

        # a concurrent removal of a previous volume with this name may have
        # deleted the directory before the new volume was registered
        try:
            volume.ensure_mount_point()
        except OSError as err:
            with self._lock:
                if self._volumes.get(name) is volume:
                    del self._volumes[name]
            raise errors.VolumeCreateError(name, message=str(err)) from err

        logger.info(
            "created %s volume %r with %d layer(s)", filesystem, name, len(layers)
        )
        self._save_state()

    def remove(self, name: str) -> None:
        """Remove a volume that is not in use.

        Removing a volume that is currently mounted does nothing.

        :param name: The volume name.

        :raises VolumeNotFound: If the volume doesn't exist.
        :raises VolumeRemoveError: If the mount point can't be removed.
        """
        volume = self._get_volume(name)

        def _unregister() -> None:
            with self._lock:
                if self._volumes.get(name) is volume:
                    del self._volumes[name]

        if volume.remove_mount_point(on_removed=_unregister):
            logger.info("removed volume %r", name)
        else:
            logger.info("volume %r is in use, not removed", name)

        self._save_state()

    def mount(self, name: str, mount_id: Optional[str] = None) -> Path:
        """Acquire a volume, mounting it on first use.

        :param name: The volume name.
        :param mount_id: The identifier of the caller, if any.

        :returns: The volume mount point.

        :raises VolumeNotFound: If the volume doesn't exist.
        :raises VolumeMountError: If the volume can't be mounted.
        """
        volume = self._get_volume(name)
        logger.debug("mount request for volume %r (id=%s)", name, mount_id)
        return volume.mount()

    def unmount(self, name: str, mount_id: Optional[str] = None) -> None:
        """Release a volume, unmounting it after last use.

        :param name: The volume name.
        :param mount_id: The identifier of the caller, if any.

        :raises VolumeNotFound: If the volume doesn't exist.
        :raises VolumeNotMounted: If the volume is not mounted.
        """
        volume = self._get_volume(name)
        logger.debug("unmount request for volume %r (id=%s)", name, mount_id)
        volume.unmount()

    def path(self, name: str) -> Path:
        """Return the mount point of the given volume.

        :raises VolumeNotFound: If the volume doesn't exist.
        """
        return self._get_volume(name).mount_point

    def get(self, name: str) -> VolumeInfo:
        """Return information about the given volume.

        :raises VolumeNotFound: If the volume doesn't exist.
        """
        volume = self._get_volume(name)
        return VolumeInfo(name=name, mount_point=volume.mount_point)

    def list(self) -> List[VolumeInfo]:
        """Return information about all registered volumes, sorted by name."""
        with self._lock:
            volumes = list(self._volumes.items())

        return [
            VolumeInfo(name=name, mount_point=volume.mount_point)
            for name, volume in sorted(volumes)
        ]

    def capabilities(self) -> Dict[str, Any]:
        """Return the driver capabilities."""
        return {"Scope": "local"}

    def to_state(self) -> DriverState:
        """Return a snapshot of the registry."""
        with self._lock:
            volumes = dict(self._volumes)

        return DriverState(
            root_dir=str(self._dirs.root_dir),
            default_filesystem=self._default_filesystem,
            volumes={name: vol.to_state() for name, vol in volumes.items()},
        )

    def _get_volume(self, name: str) -> Volume:
        with self._lock:
            volume = self._volumes.get(name)

        if volume is None:
            raise errors.VolumeNotFound(name)

        return volume

    def _save_state(self) -> None:
        if self._state_writer:
            self._state_writer.submit(self.to_state)


def _validate_name(name: str) -> None:
    """Ensure the volume name can be used as a directory name."""
    if not is_valid_volume_name(name):
        raise errors.InvalidVolumeName(name)
