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

"""Union mount volume plugin daemon.

This is the main entry point for the unionmount package, invoked when
running `python -m unionmount` or the `unionmount` command. It restores
the volume registry and serves Docker volume plugin requests on a unix
socket until interrupted.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

import unionmount
import unionmount.errors
from unionmount import docker, filesystems
from unionmount.dirs import DEFAULT_ROOT_DIR, DriverDirs
from unionmount.driver import UnionMountDriver
from unionmount.filesystems import FilesystemKind
from unionmount.plugin import DEFAULT_SOCKET_PATH, PluginServer
from unionmount.state import StateWriter

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None):
    """Run the command-line interface."""
    options = _parse_arguments(argv)

    if options.version:
        print(f"unionmount {unionmount.__version__}")
        sys.exit()

    if options.trace:
        log_level = logging.DEBUG
    else:
        log_level = logging.INFO

    logging.basicConfig(level=log_level)

    try:
        _serve(options)
    except OSError as err:
        msg = err.strerror
        if err.filename:
            msg = f"{err.filename}: {msg}"
        print(f"Error: {msg}.", file=sys.stderr)
        sys.exit(1)
    except unionmount.errors.UnsupportedFilesystem as err:
        print(f"Error: invalid default filesystem: {err}", file=sys.stderr)
        sys.exit(2)
    except unionmount.errors.VolumeError as err:
        print(f"Error: {err}", file=sys.stderr)
        sys.exit(3)


def _get_default_filesystem(options: argparse.Namespace) -> FilesystemKind:
    if options.default_fs:
        return filesystems.resolve(options.default_fs)

    return docker.detect_default_filesystem()


def _serve(options: argparse.Namespace) -> None:
    default_filesystem = _get_default_filesystem(options)
    dirs = DriverDirs(options.root)
    logger.info(
        "driver root is %s, default filesystem is %s", dirs.root_dir, default_filesystem
    )

    state_writer = StateWriter(dirs.state_file)
    driver = UnionMountDriver.restore(
        dirs, default_filesystem=default_filesystem, state_writer=state_writer
    )

    server = PluginServer(options.socket, driver)
    logger.info("listening on %s", server.socket_path)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("interrupted, shutting down")
    finally:
        server.server_close()
        state_writer.close()


def _parse_arguments(argv: Optional[List[str]]) -> argparse.Namespace:
    prog = "unionmount"
    description = "A Docker volume plugin that mounts union filesystem volumes."

    parser = argparse.ArgumentParser(prog=prog, description=description, add_help=False)
    parser.add_argument(
        "-h",
        "--help",
        action="help",
        default=argparse.SUPPRESS,
        help="Show this help message and exit.",
    )
    parser.add_argument(
        "--root",
        metavar="dirname",
        default=os.environ.get("UNIONMOUNT_ROOT", str(DEFAULT_ROOT_DIR)),
        help=f"The driver's root directory. Default is '{DEFAULT_ROOT_DIR}'.",
    )
    parser.add_argument(
        "--default-fs",
        metavar="filesystem",
        default=os.environ.get("UNIONMOUNT_DEFAULT_FS", ""),
        help=(
            "The filesystem used by volumes that don't specify one. "
            "Defaults to the Docker daemon's storage driver."
        ),
    )
    parser.add_argument(
        "--socket",
        metavar="path",
        default=str(DEFAULT_SOCKET_PATH),
        help=f"The plugin socket path. Default is '{DEFAULT_SOCKET_PATH}'.",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable debug messages.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Display the unionmount version and exit.",
    )

    return parser.parse_args(argv)
