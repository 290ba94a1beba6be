"""Compute API collaborator interface and the records it exchanges."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .cancel import CancelToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientConfig:
    """Read-only credentials and endpoint; safe to share between runs."""

    identity_domain: str
    username: str
    password: str = field(repr=False)
    api_endpoint: str
    logger: ClientLogger | None = None

    @property
    def account(self) -> str:
        return f"/Compute-{self.identity_domain}/{self.username}"


class ClientLogger:
    """Logger handed to the API client; silent unless enabled."""

    def __init__(self, enabled: bool) -> None:
        self.enabled = enabled

    def log(self, *args: object) -> None:
        if self.enabled:
            logger.debug(" ".join(str(arg) for arg in args))


# -- Resource records --


@dataclass(frozen=True)
class IPReservation:
    name: str
    ip: str


@dataclass(frozen=True)
class SecurityList:
    name: str
    rules: tuple[str, ...] = ()


@dataclass(frozen=True)
class StorageVolume:
    name: str
    size: str
    bootable: bool = False


@dataclass(frozen=True)
class InstanceInfo:
    name: str
    id: str
    ip: str = ""


@dataclass(frozen=True)
class Snapshot:
    name: str
    machine_image: str
    machine_image_file: str = ""


@dataclass(frozen=True)
class MachineImage:
    name: str
    file: str


@dataclass(frozen=True)
class ImageList:
    name: str
    latest_version: int = 0


@dataclass(frozen=True)
class StorageAttachment:
    volume: str
    index: int


# -- Client interface --


@runtime_checkable
class ComputeClient(Protocol):
    """Oracle Classic compute operations used by the build steps.

    Implementations raise ClientError on failure. Calls that wait on a
    remote resource take the run's CancelToken and raise CancelledError
    promptly once it is set.
    """

    def create_ip_reservation(self, name: str) -> IPReservation: ...

    def delete_ip_reservation(self, name: str) -> None: ...

    def create_ssh_key(self, name: str, public_key: str) -> str: ...

    def delete_ssh_key(self, name: str) -> None: ...

    def create_security_list(self, name: str) -> SecurityList: ...

    def create_security_rule(self, name: str, security_list: str, application: str) -> str: ...

    def delete_security_rule(self, name: str) -> None: ...

    def delete_security_list(self, name: str) -> None: ...

    def create_storage_volume(
        self,
        name: str,
        size: str,
        *,
        bootable: bool = False,
        image_list: str = "",
        image_list_entry: int = 0,
        cancel: CancelToken,
    ) -> StorageVolume: ...

    def delete_storage_volume(self, name: str) -> None: ...

    def create_instance(
        self,
        name: str,
        shape: str,
        *,
        image_list: str = "",
        ssh_keys: list[str],
        ip_reservation: str = "",
        security_lists: list[str],
        storage: list[StorageAttachment] | None = None,
        boot_order: list[int] | None = None,
        attributes: dict[str, object] | None = None,
        cancel: CancelToken,
    ) -> InstanceInfo: ...

    def delete_instance(self, name: str, id: str) -> None: ...

    def attach_volume(
        self, instance: InstanceInfo, volume: str, index: int, *, cancel: CancelToken
    ) -> str: ...

    def detach_volume(self, attachment: str) -> None: ...

    def create_snapshot(
        self, instance: InstanceInfo, machine_image: str, *, cancel: CancelToken
    ) -> Snapshot: ...

    def delete_snapshot(self, name: str) -> None: ...

    def create_machine_image(
        self, name: str, file: str, *, cancel: CancelToken
    ) -> MachineImage: ...

    def get_image_list(self, name: str) -> ImageList | None: ...

    def create_image_list(self, name: str, description: str) -> ImageList: ...

    def create_image_list_entry(self, name: str, machine_images: list[str], version: int) -> int: ...

    def update_image_list_default(self, name: str, version: int) -> None: ...
