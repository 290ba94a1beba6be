"""In-memory stand-ins for the compute client, communicator, hook, and UI."""

from __future__ import annotations

from typing import Any

from stepwright.cancel import CancelToken
from stepwright.client import (
    ImageList,
    InstanceInfo,
    IPReservation,
    MachineImage,
    SecurityList,
    Snapshot,
    StorageVolume,
)
from stepwright.config import CommConfig
from stepwright.errors import ClientError

BASE_CONFIG: dict[str, Any] = {
    "identity_domain": "mydomain",
    "username": "builder@example.com",
    "password": "hunter2",
    "api_endpoint": "https://api-z999.compute.em2.oraclecloud.com/",
    "source_image_list": "/oracle/public/OL_7.2_UEKR4_x86_64",
    "image_name": "img-1",
    "dest_image_list": "my-images",
}


class RecordingUi:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def say(self, message: str) -> None:
        self.messages.append(("say", message))

    def message(self, message: str) -> None:
        self.messages.append(("message", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    @property
    def errors(self) -> list[str]:
        return [m for kind, m in self.messages if kind == "error"]


class FakeComputeClient:
    """In-memory compute client; ``fail_on`` names methods that raise ClientError."""

    def __init__(self, *, fail_on: set[str] | None = None, latest_version: int | None = None) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.fail_on = fail_on or set()
        self.latest_version = latest_version

    def _call(self, method: str, arg: Any = None) -> None:
        self.calls.append((method, arg))
        if method in self.fail_on:
            raise ClientError(f"{method} failed")

    def called(self, method: str) -> list[Any]:
        return [arg for name, arg in self.calls if name == method]

    def create_ip_reservation(self, name: str) -> IPReservation:
        self._call("create_ip_reservation", name)
        return IPReservation(name=name, ip="10.0.0.5")

    def delete_ip_reservation(self, name: str) -> None:
        self._call("delete_ip_reservation", name)

    def create_ssh_key(self, name: str, public_key: str) -> str:
        self._call("create_ssh_key", name)
        return name

    def delete_ssh_key(self, name: str) -> None:
        self._call("delete_ssh_key", name)

    def create_security_list(self, name: str) -> SecurityList:
        self._call("create_security_list", name)
        return SecurityList(name=name)

    def create_security_rule(self, name: str, security_list: str, application: str) -> str:
        self._call("create_security_rule", name)
        return name

    def delete_security_rule(self, name: str) -> None:
        self._call("delete_security_rule", name)

    def delete_security_list(self, name: str) -> None:
        self._call("delete_security_list", name)

    def create_storage_volume(
        self, name, size, *, bootable=False, image_list="", image_list_entry=0, cancel: CancelToken
    ) -> StorageVolume:
        self._call("create_storage_volume", name)
        return StorageVolume(name=name, size=size, bootable=bootable)

    def delete_storage_volume(self, name: str) -> None:
        self._call("delete_storage_volume", name)

    def create_instance(self, name, shape, *, cancel: CancelToken, **kwargs) -> InstanceInfo:
        self._call("create_instance", name)
        return InstanceInfo(name=name, id=f"{name}-id")

    def delete_instance(self, name: str, id: str) -> None:
        self._call("delete_instance", name)

    def attach_volume(self, instance, volume, index, *, cancel: CancelToken) -> str:
        self._call("attach_volume", (instance.name, volume, index))
        return f"{instance.name}/{volume}"

    def detach_volume(self, attachment: str) -> None:
        self._call("detach_volume", attachment)

    def create_snapshot(self, instance, machine_image, *, cancel: CancelToken) -> Snapshot:
        self._call("create_snapshot", instance.name)
        return Snapshot(name=f"snap-{machine_image}", machine_image=machine_image, machine_image_file=f"{machine_image}.tar.gz")

    def delete_snapshot(self, name: str) -> None:
        self._call("delete_snapshot", name)

    def create_machine_image(self, name, file, *, cancel: CancelToken) -> MachineImage:
        self._call("create_machine_image", (name, file))
        return MachineImage(name=name, file=file)

    def get_image_list(self, name: str) -> ImageList | None:
        self._call("get_image_list", name)
        if self.latest_version is None:
            return None
        return ImageList(name=name, latest_version=self.latest_version)

    def create_image_list(self, name: str, description: str) -> ImageList:
        self._call("create_image_list", name)
        return ImageList(name=name)

    def create_image_list_entry(self, name: str, machine_images: list[str], version: int) -> int:
        self._call("create_image_list_entry", (name, tuple(machine_images), version))
        return version

    def update_image_list_default(self, name: str, version: int) -> None:
        self._call("update_image_list_default", (name, version))


class FakeCommunicator:
    def __init__(self, host: str, *, status: int = 0) -> None:
        self.host = host
        self.status = status
        self.commands: list[str] = []
        self.closed = False

    def run(self, command: str, *, cancel: CancelToken) -> int:
        cancel.raise_if_cancelled()
        self.commands.append(command)
        return self.status

    def close(self) -> None:
        self.closed = True


class FakeConnector:
    def __init__(self, *, fail: Exception | None = None) -> None:
        self.fail = fail
        self.connections: list[tuple[str, CommConfig]] = []
        self.communicators: list[FakeCommunicator] = []

    def connect(self, host: str, comm: CommConfig, private_key: str, *, cancel: CancelToken) -> FakeCommunicator:
        if self.fail is not None:
            raise self.fail
        cancel.raise_if_cancelled()
        self.connections.append((host, comm))
        communicator = FakeCommunicator(host)
        self.communicators.append(communicator)
        return communicator


class FakeHook:
    def __init__(self, *, fail: Exception | None = None, on_run=None) -> None:
        self.fail = fail
        self.on_run = on_run
        self.runs: list[str] = []

    def run(self, name, ui, communicator, *, cancel: CancelToken) -> None:
        self.runs.append(name)
        if self.on_run is not None:
            self.on_run()
        if self.fail is not None:
            raise self.fail
        cancel.raise_if_cancelled()


def fake_keygen() -> tuple[str, str]:
    return "PRIVATE KEY", "ssh-rsa AAAAB3Nza packer"

