"""State bag — the per-run key/value store passed through every step."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, overload

from .client import (
    ComputeClient,
    InstanceInfo,
    IPReservation,
    SecurityList,
    Snapshot,
)
from .comm import Communicator, Hook
from .config import BuilderConfig
from .errors import BuildError, MissingKeyError, StateTypeError
from .ui import Ui

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class StateKey(Generic[T]):
    """A typed handle for one conventional state bag entry."""

    name: str
    type: type[T]

    def __str__(self) -> str:
        return self.name


class StateBag:
    """Mutable per-run store; not shared between concurrent runs."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    @staticmethod
    def _name(key: StateKey[Any] | str) -> str:
        return key.name if isinstance(key, StateKey) else key

    @staticmethod
    def _check(name: str, value: Any, expected: type[T] | None) -> T:
        if expected is not None and not isinstance(value, expected):
            raise StateTypeError(name, expected, value)
        return value

    def put(self, key: StateKey[Any] | str, value: Any) -> None:
        self._data[self._name(key)] = value

    @overload
    def get(self, key: StateKey[T]) -> T: ...
    @overload
    def get(self, key: str, expected: type[T]) -> T: ...
    @overload
    def get(self, key: str) -> Any: ...
    def get(self, key: Any, expected: Any = None) -> Any:
        """Return the value for a key; raise if it is absent or mistyped."""
        name = self._name(key)
        if name not in self._data:
            raise MissingKeyError(name)
        if isinstance(key, StateKey):
            expected = key.type
        return self._check(name, self._data[name], expected)

    @overload
    def get_ok(self, key: StateKey[T]) -> tuple[T | None, bool]: ...
    @overload
    def get_ok(self, key: str, expected: type[T]) -> tuple[T | None, bool]: ...
    @overload
    def get_ok(self, key: str) -> tuple[Any, bool]: ...
    def get_ok(self, key: Any, expected: Any = None) -> tuple[Any, bool]:
        """Probe for a key; absence is not an error, a wrong type still is."""
        name = self._name(key)
        if name not in self._data:
            return None, False
        if isinstance(key, StateKey):
            expected = key.type
        return self._check(name, self._data[name], expected), True

    def remove(self, key: StateKey[Any] | str) -> None:
        self._data.pop(self._name(key), None)

    def keys(self) -> list[str]:
        return list(self._data)

    def __contains__(self, key: object) -> bool:
        if isinstance(key, StateKey):
            key = key.name
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"StateBag(keys={sorted(self._data)})"


# -- Conventional keys --

CONFIG = StateKey("config", BuilderConfig)
UI = StateKey("ui", Ui)
HOOK = StateKey("hook", Hook)
CLIENT = StateKey("client", ComputeClient)
RUN_ID = StateKey("run_id", str)

ERROR = StateKey("error", BuildError)
CANCELLED = StateKey("cancelled", bool)
HALTED = StateKey("halted", bool)

SSH_PRIVATE_KEY = StateKey("ssh_private_key", str)
SSH_PUBLIC_KEY = StateKey("ssh_public_key", str)
SSH_KEY_NAME = StateKey("key_name", str)
IP_RESERVATION = StateKey("instance_ip_reservation", IPReservation)
SECURITY_LIST = StateKey("security_list", SecurityList)
INSTANCE_INFO = StateKey("instance_info", InstanceInfo)
BUILDER_INSTANCE_INFO = StateKey("builder_instance_info", InstanceInfo)
INSTANCE_IP = StateKey("instance_ip", str)
VOLUME_ATTACHMENT = StateKey("volume_attachment", str)
COMMUNICATOR = StateKey("communicator", Communicator)
SNAPSHOT = StateKey("snapshot", Snapshot)

IMAGE_LIST_VERSION = StateKey("image_list_version", int)
MACHINE_IMAGE_NAME = StateKey("machine_image_name", str)
MACHINE_IMAGE_FILE = StateKey("machine_image_file", str)
