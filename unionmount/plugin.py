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

"""Docker volume plugin protocol server.

The plugin protocol is made of JSON-encoded HTTP POST requests sent by
the Docker daemon to a unix socket. Errors are reported in the ``Err``
field of the response body rather than by the HTTP status.
"""

import http.server
import json
import logging
import os
import socketserver
from pathlib import Path
from typing import Any, Callable, Dict, Union

from overrides import overrides

from . import errors
from .driver import UnionMountDriver

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_PATH = Path("/run/docker/plugins/unionmount.sock")

CONTENT_TYPE = "application/vnd.docker.plugins.v1.2+json"

Request = Dict[str, Any]
Response = Dict[str, Any]


def _get_name(request: Request) -> str:
    name = request.get("Name")
    if not isinstance(name, str):
        raise errors.InvalidPluginRequest("volume name not specified")
    return name


def _activate(driver: UnionMountDriver, request: Request) -> Response:  # noqa: ARG001
    return {"Implements": ["VolumeDriver"]}


def _create(driver: UnionMountDriver, request: Request) -> Response:
    options = request.get("Opts") or {}
    if not isinstance(options, dict):
        raise errors.InvalidPluginRequest("volume options must be a mapping")

    driver.create(_get_name(request), {k: str(v) for k, v in options.items()})
    return {"Err": ""}


def _remove(driver: UnionMountDriver, request: Request) -> Response:
    driver.remove(_get_name(request))
    return {"Err": ""}


def _mount(driver: UnionMountDriver, request: Request) -> Response:
    mount_point = driver.mount(_get_name(request), request.get("ID"))
    return {"Mountpoint": str(mount_point), "Err": ""}


def _unmount(driver: UnionMountDriver, request: Request) -> Response:
    driver.unmount(_get_name(request), request.get("ID"))
    return {"Err": ""}


def _path(driver: UnionMountDriver, request: Request) -> Response:
    mount_point = driver.path(_get_name(request))
    return {"Mountpoint": str(mount_point), "Err": ""}


def _get(driver: UnionMountDriver, request: Request) -> Response:
    info = driver.get(_get_name(request))
    return {
        "Volume": {"Name": info.name, "Mountpoint": str(info.mount_point)},
        "Err": "",
    }


def _list(driver: UnionMountDriver, request: Request) -> Response:  # noqa: ARG001
    volumes = [
        {"Name": info.name, "Mountpoint": str(info.mount_point)}
        for info in driver.list()
    ]
    return {"Volumes": volumes, "Err": ""}


def _capabilities(
    driver: UnionMountDriver, request: Request  # noqa: ARG001
) -> Response:
    return {"Capabilities": driver.capabilities()}


_ENDPOINTS: Dict[str, Callable[[UnionMountDriver, Request], Response]] = {
    "/Plugin.Activate": _activate,
    "/VolumeDriver.Create": _create,
    "/VolumeDriver.Remove": _remove,
    "/VolumeDriver.Mount": _mount,
    "/VolumeDriver.Unmount": _unmount,
    "/VolumeDriver.Path": _path,
    "/VolumeDriver.Get": _get,
    "/VolumeDriver.List": _list,
    "/VolumeDriver.Capabilities": _capabilities,
}


def handle_request(driver: UnionMountDriver, path: str, body: bytes) -> Response:
    """Execute a plugin protocol request.

    :param driver: The volume driver serving the request.
    :param path: The protocol endpoint.
    :param body: The JSON-encoded request.

    :returns: The response data.

    :raises KeyError: If the endpoint is unknown.
    """
    endpoint = _ENDPOINTS[path]

    try:
        request = json.loads(body) if body.strip() else {}
        if not isinstance(request, dict):
            raise errors.InvalidPluginRequest("request body must be a JSON object")
        return endpoint(driver, request)
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        logger.debug("%s: malformed request: %s", path, err)
        return {"Err": errors.InvalidPluginRequest(str(err)).brief}
    except errors.VolumeError as err:
        logger.debug("%s: %s", path, err)
        return {"Err": err.brief}


class PluginRequestHandler(http.server.BaseHTTPRequestHandler):
    """Serve volume plugin protocol requests."""

    server: "PluginServer"

    @overrides
    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        # the client address of a unix socket connection is empty
        logger.debug(format, *args)

    def do_POST(self):  # noqa: N802
        """Dispatch a request to the volume driver."""
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length > 0 else b""

        if self.path not in _ENDPOINTS:
            logger.error("unknown plugin endpoint %s", self.path)
            self._send_json(404, {"Err": f"unknown endpoint {self.path}"})
            return

        response = handle_request(self.server.driver, self.path, body)
        self._send_json(200, response)

    def _send_json(self, status: int, data: Response) -> None:
        payload = json.dumps(data).encode()
        self.send_response(status)
        self.send_header("Content-Type", CONTENT_TYPE)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)


class PluginServer(socketserver.ThreadingMixIn, socketserver.UnixStreamServer):
    """A threaded volume plugin server listening on a unix socket.

    :param socket_path: The path to the unix socket to create.
    :param driver: The volume driver serving the requests.
    """

    daemon_threads = True

    def __init__(self, socket_path: Union[Path, str], driver: UnionMountDriver):
        self.socket_path = Path(socket_path)
        self.driver = driver

        self.socket_path.parent.mkdir(parents=True, exist_ok=True)
        if self.socket_path.is_socket():
            logger.debug("remove stale socket %s", self.socket_path)
            self.socket_path.unlink()

        super().__init__(str(self.socket_path), PluginRequestHandler)

    @overrides
    def server_close(self) -> None:
        super().server_close()
        if self.socket_path.is_socket():
            os.unlink(self.socket_path)
