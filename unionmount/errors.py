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

"""Union mount volume errors."""

import dataclasses
from typing import Optional


@dataclasses.dataclass(repr=True)
class VolumeError(Exception):
    """Unexpected error.

    :param brief: Brief description of error.
    :param details: Detailed information.
    :param resolution: Recommendation, if any.
    """

    brief: str
    details: Optional[str] = None
    resolution: Optional[str] = None

    def __str__(self) -> str:
        components = [self.brief]

        if self.details:
            components.append(self.details)

        if self.resolution:
            components.append(self.resolution)

        return "\n".join(components)


class VolumeValidationError(VolumeError):
    """Base class for volume creation request errors."""


class InvalidVolumeName(VolumeValidationError):
    """The volume name cannot be used as a mount point directory name.

    :param name: The invalid volume name.
    """

    def __init__(self, name: str):
        self.name = name
        brief = f"Volume name {name!r} is invalid."
        resolution = "Volume names must be non-empty and cannot contain '/'."

        super().__init__(brief=brief, resolution=resolution)


class NoLayersDefined(VolumeValidationError):
    """The volume creation request has no layers."""

    def __init__(self) -> None:
        brief = "No layers defined."
        resolution = "Set the 'layers' option to a colon-separated list of paths."

        super().__init__(brief=brief, resolution=resolution)


class RelativeLayerPath(VolumeValidationError):
    """A layer path is not absolute.

    :param path: The relative layer path.
    """

    def __init__(self, path: str):
        self.path = path
        brief = f"Layer path {path!r} is not absolute."
        resolution = "Layer paths must be absolute host paths."

        super().__init__(brief=brief, resolution=resolution)


class LayerNotFound(VolumeValidationError):
    """A layer path does not exist on the host.

    :param path: The missing layer path.
    """

    def __init__(self, path: str):
        self.path = path
        brief = f"Layer path {path!r} does not exist."

        super().__init__(brief=brief)


class UnsupportedFilesystem(VolumeValidationError):
    """The requested union filesystem is not supported.

    :param filesystem: The filesystem name.
    """

    def __init__(self, filesystem: str):
        self.filesystem = filesystem
        brief = f"Filesystem {filesystem!r} is not supported."
        resolution = "Supported filesystems are 'aufs' and 'overlay'."

        super().__init__(brief=brief, resolution=resolution)


class UnsupportedLayerCount(VolumeValidationError):
    """The filesystem cannot stack the requested number of layers.

    :param filesystem: The filesystem name.
    :param count: The number of layers requested.
    """

    def __init__(self, filesystem: str, count: int):
        self.filesystem = filesystem
        self.count = count
        brief = f"Filesystem {filesystem!r} does not support {count} layers."
        resolution = "Use a single layer or select the 'aufs' filesystem."

        super().__init__(brief=brief, resolution=resolution)


class VolumeNotFound(VolumeError):
    """The requested volume is not registered.

    :param name: The volume name.
    """

    def __init__(self, name: str):
        self.name = name
        brief = f"Volume {name!r} does not exist."

        super().__init__(brief=brief)


class DuplicateVolume(VolumeError):
    """A volume with the same name is already registered.

    :param name: The volume name.
    """

    def __init__(self, name: str):
        self.name = name
        brief = f"Volume {name!r} already exists."

        super().__init__(brief=brief)


class VolumeNotMounted(VolumeError):
    """An unmount was requested on a volume that is not mounted.

    :param name: The volume name.
    """

    def __init__(self, name: str):
        self.name = name
        brief = f"Volume {name!r} is not mounted."

        super().__init__(brief=brief)


class VolumeCreateError(VolumeError):
    """Failed to create the volume mount point.

    :param name: The volume name.
    :param message: The error message.
    """

    def __init__(self, name: str, message: str):
        self.name = name
        self.message = message
        brief = f"Failed to create volume {name!r}: {message}"

        super().__init__(brief=brief)


class VolumeRemoveError(VolumeError):
    """Failed to remove the volume mount point.

    :param mountpoint: The volume mount point.
    :param message: The error message.
    """

    def __init__(self, mountpoint: str, message: str):
        self.mountpoint = mountpoint
        self.message = message
        brief = f"Failed to remove volume path {mountpoint!r}: {message}"

        super().__init__(brief=brief)


class VolumeMountError(VolumeError):
    """Failed to mount a union filesystem.

    :param mountpoint: The filesystem mount point.
    :param message: The error message.
    """

    def __init__(self, mountpoint: str, message: str):
        self.mountpoint = mountpoint
        self.message = message
        brief = f"Failed to mount volume on {mountpoint}: {message}"

        super().__init__(brief=brief)


class StateError(VolumeError):
    """The persisted driver state cannot be used.

    :param filename: The state file path.
    :param message: The error message.
    """

    def __init__(self, filename: str, message: str):
        self.filename = filename
        self.message = message
        brief = f"Cannot load state from {filename!r}: {message}"

        super().__init__(brief=brief)


class DockerConnectionError(VolumeError):
    """Failed to query the Docker daemon.

    :param url: The URL that failed.
    :param message: The error message.
    """

    def __init__(self, url: str, message: str):
        self.url = url
        self.message = message
        brief = f"Failed to query the Docker daemon at {url!r}: {message}"
        resolution = "Make sure the Docker daemon is running."

        super().__init__(brief=brief, resolution=resolution)


class InvalidPluginRequest(VolumeError):
    """A plugin protocol request could not be decoded.

    :param message: The error message.
    """

    def __init__(self, message: str):
        self.message = message
        brief = f"Invalid plugin request: {message}"

        super().__init__(brief=brief)
