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

"""Persistent driver state."""

import logging
import os
import queue
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List

import pydantic
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import errors
from .dirs import is_valid_volume_name
from .filesystems import FilesystemKind

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class VolumeState(BaseModel):
    """The persisted information of a single volume."""

    filesystem: FilesystemKind
    layers: List[str] = Field(min_length=1)
    mount_point: str
    ref_count: int = Field(default=0, ge=0)
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=lambda s: s.replace("_", "-"),
        populate_by_name=True,
    )


class DriverState(BaseModel):
    """A snapshot of the volume registry.

    The schema version is stored with the snapshot so that files written
    with an incompatible layout are rejected instead of misread.
    """

    schema_version: int = SCHEMA_VERSION
    root_dir: str
    default_filesystem: FilesystemKind
    volumes: Dict[str, VolumeState] = Field(default_factory=dict)
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=lambda s: s.replace("_", "-"),
        populate_by_name=True,
    )

    @field_validator("schema_version")
    @classmethod
    def _validate_schema_version(cls, value: int) -> int:
        if value != SCHEMA_VERSION:
            raise ValueError(
                f"unsupported schema version {value} (expected {SCHEMA_VERSION})"
            )
        return value

    @field_validator("volumes")
    @classmethod
    def _validate_volume_names(
        cls, value: Dict[str, VolumeState]
    ) -> Dict[str, VolumeState]:
        for name in value:
            if not is_valid_volume_name(name):
                raise ValueError(f"invalid volume name {name!r}")
        return value

    @classmethod
    def unmarshal(cls, data: Dict[str, Any]) -> "DriverState":
        """Create and populate a new ``DriverState`` object from dictionary data.

        :param data: The dictionary data to unmarshal.

        :return: The newly created object.

        :raise TypeError: If data is not a dictionary.
        :raise pydantic.ValidationError: If the data is not a valid state.
        """
        if not isinstance(data, dict):
            raise TypeError("state data is not a dictionary")

        return cls.model_validate(data)

    def marshal(self) -> Dict[str, Any]:
        """Create a dictionary containing the driver state data.

        :return: The newly created dictionary.
        """
        return self.model_dump(mode="json", by_alias=True)


def load_state(filepath: Path) -> DriverState:
    """Retrieve the persisted driver state.

    :param filepath: The path to the state file.

    :return: The driver state.

    :raise StateError: If the file is missing, unreadable, or doesn't
        contain a valid driver state.
    """
    logger.debug("load state file: %s", filepath)
    try:
        with open(filepath) as yaml_file:
            state_data = yaml.safe_load(yaml_file)
    except OSError as err:
        raise errors.StateError(str(filepath), message=str(err)) from err
    except yaml.YAMLError as err:
        raise errors.StateError(str(filepath), message="invalid YAML") from err

    try:
        return DriverState.unmarshal(state_data)
    except TypeError as err:
        raise errors.StateError(str(filepath), message=str(err)) from err
    except pydantic.ValidationError as err:
        message = "; ".join(
            f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}"
            for e in err.errors()
        )
        raise errors.StateError(str(filepath), message=message) from err


def save_state(state: DriverState, filepath: Path) -> None:
    """Write the driver state to disk.

    The data is written to a temporary file that replaces the state file
    once complete, so a partially written state is never observed.

    :param state: The driver state to write.
    :param filepath: The path to the file to write.
    """
    logger.debug("save state file: %s", filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    yaml_data = yaml.safe_dump(state.marshal())
    tmp_path = filepath.with_name(f".{filepath.name}.tmp")
    tmp_path.write_text(yaml_data)
    os.replace(tmp_path, filepath)


_STOP = object()


class StateWriter:
    """Persist driver snapshots from a single background thread.

    Snapshot requests are queued and written in submission order. When
    several requests are pending, only the newest one is written. Write
    failures are logged and never reach the submitter.

    :param filepath: The path to the state file.
    """

    def __init__(self, filepath: Path) -> None:
        self._filepath = filepath
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._closed = False
        self._thread = threading.Thread(
            target=self._run, name="unionmount-state-writer", daemon=True
        )
        self._thread.start()

    @property
    def filepath(self) -> Path:
        """Return the path to the state file."""
        return self._filepath

    def submit(self, snapshot: Callable[[], DriverState]) -> None:
        """Request the state returned by ``snapshot`` to be written.

        The snapshot callable runs in the writer thread, so the state
        written is never older than the state at submission time.

        :param snapshot: A callable returning the state to persist.
        """
        if self._closed:
            logger.warning("state writer is closed, snapshot discarded")
            return

        self._queue.put(snapshot)

    def flush(self) -> None:
        """Wait until all submitted snapshots have been processed."""
        self._queue.join()

    def close(self) -> None:
        """Write pending snapshots and stop the writer thread."""
        if self._closed:
            return

        self._closed = True
        self._queue.put(_STOP)
        self._thread.join()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            pending = [item]

            # coalesce a burst of requests into the newest one
            while item is not _STOP:
                try:
                    item = self._queue.get_nowait()
                except queue.Empty:
                    break
                pending.append(item)

            snapshots = [p for p in pending if p is not _STOP]
            try:
                if snapshots:
                    self._write(snapshots[-1])
            finally:
                for _ in pending:
                    self._queue.task_done()

            if item is _STOP:
                return

    def _write(self, snapshot: Callable[[], DriverState]) -> None:
        try:
            save_state(snapshot(), self._filepath)
        except Exception as err:  # noqa: BLE001
            logger.warning("cannot save state to %s: %s", self._filepath, err)

