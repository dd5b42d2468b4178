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

import os
import tempfile
import threading
from pathlib import Path
from typing import List
from unittest import mock

import pytest
from unionmount.dirs import DriverDirs
from unionmount.driver import UnionMountDriver
from unionmount.plugin import PluginServer

from . import fake_servers


@pytest.fixture
def new_dir(monkeypatch, tmp_path):
    """Change to a new temporary directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def dirs(tmp_path) -> DriverDirs:
    """Driver directories in a temporary root."""
    return DriverDirs(tmp_path / "root")


@pytest.fixture
def layers(tmp_path) -> List[str]:
    """Two existing layer directories, lowest priority first."""
    paths = [tmp_path / "layers" / "a", tmp_path / "layers" / "b"]
    for path in paths:
        path.mkdir(parents=True)
    return [str(p) for p in paths]


@pytest.fixture
def driver(dirs) -> UnionMountDriver:
    """A driver without state persistence."""
    return UnionMountDriver(dirs)


@pytest.fixture
def mock_mount(mocker):
    """Replace the mount(8) invocation."""
    return mocker.patch("unionmount.utils.os_utils.mount")


@pytest.fixture
def mock_umount(mocker):
    """Replace the umount(8) invocation."""
    return mocker.patch("unionmount.utils.os_utils.umount")


def _new_socket_path() -> str:
    socket_path = tempfile.mkstemp()[1]
    os.unlink(socket_path)  # noqa: PTH108
    return socket_path


@pytest.fixture
def fake_docker():
    """Provide a fake Docker daemon."""
    socket_path = _new_socket_path()
    server = fake_servers.FakeDocker(socket_path)

    socket_path_patcher = mock.patch(
        "unionmount.docker.get_docker_socket_path_template"
    )
    escaped_path = socket_path.replace("/", "%2F")
    mock_socket_path = socket_path_patcher.start()
    mock_socket_path.return_value = f"http+unix://{escaped_path}/{{}}"

    thread = threading.Thread(target=server.serve_forever)
    thread.start()

    yield server

    server.shutdown()
    server.server_close()
    thread.join()
    socket_path_patcher.stop()


@pytest.fixture
def plugin_server(driver):
    """Serve the driver over the plugin protocol on a temporary socket."""
    server = PluginServer(Path(_new_socket_path()), driver)
    thread = threading.Thread(target=server.serve_forever)
    thread.start()

    yield server

    server.shutdown()
    server.server_close()
    thread.join()


@pytest.fixture
def plugin_url(plugin_server):
    """Return the base URL of the plugin server."""
    escaped_path = str(plugin_server.socket_path).replace("/", "%2F")
    return f"http+unix://{escaped_path}"
