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

"""Helpers to query the Docker daemon."""

import logging
from typing import Any, Dict

import requests_unixsocket  # type: ignore
from requests import exceptions

from . import errors, filesystems
from .filesystems import FilesystemKind

logger = logging.getLogger(__name__)

# Docker storage driver names that differ from the union filesystem name
_STORAGE_DRIVER_FILESYSTEMS = {
    "overlay2": FilesystemKind.OVERLAY,
}


def get_docker_socket_path_template() -> str:
    """Return the template for the Docker API socket URI."""
    return "http+unix://%2Fvar%2Frun%2Fdocker.sock/{}"


def get_docker_info() -> Dict[str, Any]:
    """Return the Docker daemon system information.

    :raises DockerConnectionError: If the daemon can't be queried.
    """
    url = get_docker_socket_path_template().format("info")
    try:
        response = requests_unixsocket.get(url)
        response.raise_for_status()
        return response.json()
    except exceptions.RequestException as err:
        raise errors.DockerConnectionError(url, message=str(err)) from err
    except ValueError as err:
        raise errors.DockerConnectionError(url, message="invalid response") from err


def get_storage_driver() -> str:
    """Return the name of the Docker daemon storage driver.

    :raises DockerConnectionError: If the daemon can't be queried.
    """
    info = get_docker_info()
    driver = info.get("Driver")
    if not isinstance(driver, str):
        raise errors.DockerConnectionError(
            get_docker_socket_path_template().format("info"),
            message="storage driver not reported",
        )

    return driver


def detect_default_filesystem(
    fallback: FilesystemKind = FilesystemKind.AUFS,
) -> FilesystemKind:
    """Select the union filesystem matching the Docker storage driver.

    :param fallback: The filesystem to use if the storage driver can't be
        determined or is not a supported union filesystem.

    :returns: The filesystem to use by default.
    """
    try:
        driver = get_storage_driver()
    except errors.DockerConnectionError as err:
        logger.warning("cannot get docker's storage driver: %s", err.brief)
        return fallback

    if driver in _STORAGE_DRIVER_FILESYSTEMS:
        return _STORAGE_DRIVER_FILESYSTEMS[driver]

    try:
        return filesystems.resolve(driver)
    except errors.UnsupportedFilesystem:
        logger.warning(
            "docker storage driver %r is not supported, using %s", driver, fallback
        )
        return fallback
