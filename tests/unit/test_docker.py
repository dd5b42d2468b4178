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

import logging

import pytest
from unionmount import docker, errors
from unionmount.filesystems import FilesystemKind


class TestDockerInfo:
    """Query the Docker daemon."""

    def test_get_docker_socket_path_template(self):
        assert (
            docker.get_docker_socket_path_template()
            == "http+unix://%2Fvar%2Frun%2Fdocker.sock/{}"
        )

    def test_get_docker_info(self, fake_docker):
        fake_docker.info = {"Driver": "overlay2", "Containers": 3}
        assert docker.get_docker_info() == {"Driver": "overlay2", "Containers": 3}

    def test_get_storage_driver(self, fake_docker):
        fake_docker.info = {"Driver": "aufs"}
        assert docker.get_storage_driver() == "aufs"

    def test_get_storage_driver_missing(self, fake_docker):
        fake_docker.info = {}
        with pytest.raises(errors.DockerConnectionError) as raised:
            docker.get_storage_driver()
        assert raised.value.message == "storage driver not reported"

    def test_get_docker_info_http_error(self, fake_docker):
        fake_docker.info_status = 500
        with pytest.raises(errors.DockerConnectionError) as raised:
            docker.get_docker_info()
        assert "500" in raised.value.message

    def test_get_docker_info_not_running(self, mocker, tmp_path):
        escaped_path = str(tmp_path / "docker.sock").replace("/", "%2F")
        mocker.patch(
            "unionmount.docker.get_docker_socket_path_template",
            return_value=f"http+unix://{escaped_path}/{{}}",
        )
        with pytest.raises(errors.DockerConnectionError) as raised:
            docker.get_docker_info()
        assert raised.value.url.endswith("docker.sock/info")


class TestDetectDefaultFilesystem:
    """Select the default filesystem from the storage driver."""

    @pytest.mark.parametrize(
        ("driver", "kind"),
        [
            ("aufs", FilesystemKind.AUFS),
            ("overlay", FilesystemKind.OVERLAY),
            ("overlay2", FilesystemKind.OVERLAY),
        ],
    )
    def test_detect(self, fake_docker, driver, kind):
        fake_docker.info = {"Driver": driver}
        assert docker.detect_default_filesystem() == kind

    def test_detect_unsupported(self, fake_docker, caplog):
        fake_docker.info = {"Driver": "btrfs"}
        assert docker.detect_default_filesystem() == FilesystemKind.AUFS
        assert "docker storage driver 'btrfs' is not supported" in caplog.text

    def test_detect_fallback(self, fake_docker):
        fake_docker.info = {"Driver": "zfs"}
        assert (
            docker.detect_default_filesystem(fallback=FilesystemKind.OVERLAY)
            == FilesystemKind.OVERLAY
        )

    def test_detect_not_running(self, mocker, caplog):
        caplog.set_level(logging.WARNING)
        mocker.patch(
            "unionmount.docker.get_storage_driver",
            side_effect=errors.DockerConnectionError("url", message="refused"),
        )
        assert docker.detect_default_filesystem() == FilesystemKind.AUFS
        assert "cannot get docker's storage driver" in caplog.text
