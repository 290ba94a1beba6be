"""Oracle Classic compute steps.

Each step receives the compute client and its resource names when the
workflow is assembled; nothing is looked up from the environment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import jinja2

from .. import state as keys
from ..cancel import CancelToken
from ..client import ClientConfig, ComputeClient, InstanceInfo, SecurityList, StorageAttachment
from ..errors import CancelledError, ClientError
from ..state import StateBag, StateKey
from ..step import Step, StepAction

logger = logging.getLogger(__name__)

SSH_APPLICATION = "/oracle/public/ssh"
PUBLIC_INTERNET = "seciplist:/oracle/public/public-internet"


# -- Storage --


@dataclass
class StepCreatePersistentVolume(Step):
    """Create a storage volume; bootable volumes are seeded from an image list entry."""

    client: ComputeClient = field(repr=False, compare=False)
    volume_size: str
    volume_name: str
    bootable: bool = False
    image_list: str = ""
    image_list_entry: int = 0

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        ui = state.get(keys.UI)
        ui.say(f"Creating Volume {self.volume_name}...")
        try:
            volume = self.client.create_storage_volume(
                self.volume_name,
                self.volume_size,
                bootable=self.bootable,
                image_list=self.image_list,
                image_list_entry=self.image_list_entry,
                cancel=cancel,
            )
        except CancelledError:
            return self.halt_cancelled(state)
        except ClientError as exc:
            return self.fail(state, f"Error creating persistent storage volume: {exc}", exc)

        state.put(f"volume_{self.volume_name}", volume)
        ui.message(f"Created volume: {volume.name}")
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        key = f"volume_{self.volume_name}"
        if key not in state:
            return
        ui = state.get(keys.UI)
        ui.say(f"Cleaning up Volume {self.volume_name}...")
        try:
            self.client.delete_storage_volume(self.volume_name)
        except ClientError as exc:
            ui.error(f"Error cleaning up persistent volume {self.volume_name}: {exc}")
            return
        state.remove(key)
        ui.message(f"Deleted volume: {self.volume_name}")


@dataclass
class StepAttachVolume(Step):
    """Attach an existing volume to the instance stored under ``instance_info_key``."""

    client: ComputeClient = field(repr=False, compare=False)
    volume_name: str
    index: int
    instance_info_key: StateKey[InstanceInfo] = keys.BUILDER_INSTANCE_INFO

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        ui = state.get(keys.UI)
        instance = state.get(self.instance_info_key)

        ui.say(f"Attaching {self.volume_name} to {instance.name} at index {self.index}...")
        try:
            attachment = self.client.attach_volume(instance, self.volume_name, self.index, cancel=cancel)
        except CancelledError:
            return self.halt_cancelled(state)
        except ClientError as exc:
            return self.fail(state, f"Error attaching volume: {exc}", exc)

        state.put(keys.VOLUME_ATTACHMENT, attachment)
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        attachment, ok = state.get_ok(keys.VOLUME_ATTACHMENT)
        if not ok:
            return
        ui = state.get(keys.UI)
        ui.say(f"Detaching volume {self.volume_name}...")
        try:
            self.client.detach_volume(attachment)
        except ClientError as exc:
            ui.error(f"Error detaching volume: {exc}")
            return
        state.remove(keys.VOLUME_ATTACHMENT)


# -- Networking and access --


@dataclass
class StepCreateIPReservation(Step):
    """Reserve a public IP for the build instance."""

    client: ComputeClient = field(repr=False, compare=False)
    reservation_name: str

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        ui = state.get(keys.UI)
        ui.say("Creating IP reservation...")
        try:
            reservation = self.client.create_ip_reservation(self.reservation_name)
        except ClientError as exc:
            return self.fail(state, f"Error creating IP reservation: {exc}", exc)

        state.put(keys.IP_RESERVATION, reservation)
        state.put(keys.INSTANCE_IP, reservation.ip)
        ui.message(f"Created IP reservation: {reservation.name} ({reservation.ip})")
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        reservation, ok = state.get_ok(keys.IP_RESERVATION)
        if not ok:
            return
        ui = state.get(keys.UI)
        ui.say("Cleaning up IP reservation...")
        try:
            self.client.delete_ip_reservation(reservation.name)
        except ClientError as exc:
            ui.error(f"Error cleaning up IP reservation: {exc}")
            return
        state.remove(keys.IP_RESERVATION)


@dataclass
class StepAddKeysToAPI(Step):
    """Register the SSH public key with the compute API."""

    client: ComputeClient = field(repr=False, compare=False)
    key_name: str

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        ui = state.get(keys.UI)
        public_key = state.get(keys.SSH_PUBLIC_KEY)

        ui.say("Adding SSH keys to API...")
        try:
            name = self.client.create_ssh_key(self.key_name, public_key)
        except ClientError as exc:
            return self.fail(state, f"Problem adding Public SSH key through Oracle's API: {exc}", exc)

        state.put(keys.SSH_KEY_NAME, name)
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        name, ok = state.get_ok(keys.SSH_KEY_NAME)
        if not ok:
            return
        ui = state.get(keys.UI)
        ui.say("Deleting SSH keys...")
        try:
            self.client.delete_ssh_key(name)
        except ClientError as exc:
            ui.error(f"Error deleting SSH keys: {exc}")
            return
        state.remove(keys.SSH_KEY_NAME)


@dataclass
class StepSecurity(Step):
    """Create a security list that admits SSH from the public internet."""

    client: ComputeClient = field(repr=False, compare=False)
    security_list_name: str
    rule_name: str

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        ui = state.get(keys.UI)
        ui.say("Configuring security lists for this build...")
        try:
            security_list = self.client.create_security_list(self.security_list_name)
        except ClientError as exc:
            return self.fail(state, f"Error creating security list: {exc}", exc)
        state.put(keys.SECURITY_LIST, security_list)

        try:
            rule = self.client.create_security_rule(self.rule_name, security_list.name, SSH_APPLICATION)
        except ClientError as exc:
            return self.fail(state, f"Error creating security rule to allow SSH: {exc}", exc)

        state.put(keys.SECURITY_LIST, SecurityList(name=security_list.name, rules=(rule,)))
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        security_list, ok = state.get_ok(keys.SECURITY_LIST)
        if not ok:
            return
        ui = state.get(keys.UI)
        ui.say("Deleting temporary rules and lists...")
        try:
            for rule in security_list.rules:
                self.client.delete_security_rule(rule)
            self.client.delete_security_list(security_list.name)
        except ClientError as exc:
            ui.error(f"Error deleting security list {security_list.name}: {exc}")
            return
        state.remove(keys.SECURITY_LIST)


# -- Instances --


class _InstanceStep(Step):
    """Shared create/teardown handling for steps that launch an instance."""

    client: ComputeClient
    info_key: StateKey[InstanceInfo] = keys.INSTANCE_INFO

    def _launch(self, state: StateBag, cancel: CancelToken, name: str, **kwargs: Any) -> StepAction:
        ui = state.get(keys.UI)
        key_name = state.get(keys.SSH_KEY_NAME)
        reservation = state.get(keys.IP_RESERVATION)
        security_list = state.get(keys.SECURITY_LIST)

        ui.say(f"Creating instance {name}...")
        try:
            instance = self.client.create_instance(
                name,
                ssh_keys=[key_name],
                ip_reservation=reservation.name,
                security_lists=[security_list.name],
                cancel=cancel,
                **kwargs,
            )
        except CancelledError:
            return self.halt_cancelled(state)
        except ClientError as exc:
            return self.fail(state, f"Problem creating instance: {exc}", exc)

        if not instance.ip:
            instance = InstanceInfo(name=instance.name, id=instance.id, ip=reservation.ip)
        state.put(self.info_key, instance)
        state.put(keys.INSTANCE_IP, instance.ip)
        ui.message(f"Created instance: {instance.name} ({instance.id})")
        return StepAction.CONTINUE

    def _terminate(self, state: StateBag) -> bool:
        instance, ok = state.get_ok(self.info_key)
        if not ok:
            return True
        ui = state.get(keys.UI)
        ui.say(f"Terminating instance {instance.name}...")
        try:
            self.client.delete_instance(instance.name, instance.id)
        except ClientError as exc:
            ui.error(f"Error terminating instance {instance.name}: {exc}")
            return False
        state.remove(self.info_key)
        ui.message("Terminated instance.")
        return True


@dataclass
class StepCreateInstance(_InstanceStep):
    """Launch the build instance from the source image list."""

    client: ComputeClient = field(repr=False, compare=False)
    instance_name: str
    shape: str
    image_list: str
    attributes: dict[str, Any] = field(default_factory=dict)

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        return self._launch(
            state,
            cancel,
            self.instance_name,
            shape=self.shape,
            image_list=self.image_list,
            attributes=self.attributes or None,
        )

    def cleanup(self, state: StateBag) -> None:
        self._terminate(state)


@dataclass
class StepCreatePVMaster(_InstanceStep):
    """Boot the master instance from the bootable master volume."""

    client: ComputeClient = field(repr=False, compare=False)
    instance_name: str
    volume_name: str
    shape: str
    attributes: dict[str, Any] = field(default_factory=dict)

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        return self._launch(
            state,
            cancel,
            self.instance_name,
            shape=self.shape,
            storage=[StorageAttachment(volume=self.volume_name, index=1)],
            boot_order=[1],
            attributes=self.attributes or None,
        )

    def cleanup(self, state: StateBag) -> None:
        self._terminate(state)


@dataclass
class StepTerminatePVMaster(_InstanceStep):
    """Tear down the master so its volume can be attached to the builder."""

    client: ComputeClient = field(repr=False, compare=False)

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        if not self._terminate(state):
            return self.fail(state, "Error terminating master instance")
        return StepAction.CONTINUE


@dataclass
class StepCreatePVBuilder(_InstanceStep):
    """Launch the builder instance that packages the master volume."""

    client: ComputeClient = field(repr=False, compare=False)
    instance_name: str
    builder_volume_name: str
    shape: str
    image_list: str
    info_key: StateKey[InstanceInfo] = keys.BUILDER_INSTANCE_INFO

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        return self._launch(
            state,
            cancel,
            self.instance_name,
            shape=self.shape,
            image_list=self.image_list,
            storage=[StorageAttachment(volume=self.builder_volume_name, index=1)],
        )

    def cleanup(self, state: StateBag) -> None:
        self._terminate(state)


# -- Image capture --


@dataclass
class StepUploadImage(Step):
    """Package the master volume on the builder and upload it to storage."""

    upload_image_command: str
    image_file: str
    client_config: ClientConfig = field(repr=False, compare=False)
    segment_path: str = "/builder/segments"

    def render_command(self) -> str:
        env = jinja2.Environment(undefined=jinja2.StrictUndefined, autoescape=False)
        storage_endpoint = self.client_config.api_endpoint.replace("compute", "storage", 1)
        template = env.from_string(self.upload_image_command)
        return template.render(
            image_file=self.image_file,
            segment_path=self.segment_path,
            api_endpoint=self.client_config.api_endpoint,
            storage_endpoint=f"{storage_endpoint}/v1/Storage-{self.client_config.identity_domain}",
            account=self.client_config.account,
            identity_domain=self.client_config.identity_domain,
            username=self.client_config.username,
            password=self.client_config.password,
        )

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        ui = state.get(keys.UI)
        communicator = state.get(keys.COMMUNICATOR)

        try:
            command = self.render_command()
        except jinja2.TemplateError as exc:
            return self.fail(state, f"Error processing upload image command: {exc}", exc)

        ui.say("Uploading image file to object storage...")
        try:
            status = communicator.run(command, cancel=cancel)
        except CancelledError:
            return self.halt_cancelled(state)
        except ClientError as exc:
            return self.fail(state, f"Problem uploading image: {exc}", exc)
        if status != 0:
            return self.fail(state, f"Upload image command exited with status {status}")

        state.put(keys.MACHINE_IMAGE_FILE, self.image_file)
        ui.message(f"Uploaded {self.image_file}")
        return StepAction.CONTINUE


@dataclass
class StepCreateImage(Step):
    """Register the uploaded file as a machine image."""

    client: ComputeClient = field(repr=False, compare=False)
    image_name: str

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        ui = state.get(keys.UI)
        image_file = state.get(keys.MACHINE_IMAGE_FILE)

        ui.say(f"Creating machine image {self.image_name}...")
        try:
            image = self.client.create_machine_image(self.image_name, image_file, cancel=cancel)
        except CancelledError:
            return self.halt_cancelled(state)
        except ClientError as exc:
            return self.fail(state, f"Error creating machine image: {exc}", exc)

        state.put(keys.MACHINE_IMAGE_NAME, image.name)
        return StepAction.CONTINUE


@dataclass
class StepSnapshot(Step):
    """Snapshot the running instance into a machine image."""

    client: ComputeClient = field(repr=False, compare=False)
    image_name: str

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        ui = state.get(keys.UI)
        instance = state.get(keys.INSTANCE_INFO)

        ui.say(f"Creating snapshot of {instance.name}...")
        try:
            snapshot = self.client.create_snapshot(instance, self.image_name, cancel=cancel)
        except CancelledError:
            return self.halt_cancelled(state)
        except ClientError as exc:
            return self.fail(state, f"Problem creating snapshot: {exc}", exc)

        state.put(keys.SNAPSHOT, snapshot)
        state.put(keys.MACHINE_IMAGE_NAME, snapshot.machine_image)
        state.put(keys.MACHINE_IMAGE_FILE, snapshot.machine_image_file)
        ui.message(f"Created snapshot: {snapshot.name}")
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        # The machine image outlives the snapshot resource
        snapshot, ok = state.get_ok(keys.SNAPSHOT)
        if not ok:
            return
        ui = state.get(keys.UI)
        try:
            self.client.delete_snapshot(snapshot.name)
        except ClientError as exc:
            ui.error(f"Error deleting snapshot {snapshot.name}: {exc}")
            return
        state.remove(keys.SNAPSHOT)


@dataclass
class StepListImages(Step):
    """Add the machine image to the destination image list as a new version."""

    client: ComputeClient = field(repr=False, compare=False)
    image_list: str
    description: str = ""

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        ui = state.get(keys.UI)
        machine_image = state.get(keys.MACHINE_IMAGE_NAME)

        ui.say("Adding image to image list...")
        try:
            image_list = self.client.get_image_list(self.image_list)
            if image_list is None:
                ui.message(f"Creating image list {self.image_list}")
                image_list = self.client.create_image_list(self.image_list, self.description)
            version = image_list.latest_version + 1
            version = self.client.create_image_list_entry(image_list.name, [machine_image], version)
            self.client.update_image_list_default(image_list.name, version)
        except ClientError as exc:
            return self.fail(state, f"Problem adding image to image list: {exc}", exc)

        state.put(keys.IMAGE_LIST_VERSION, version)
        ui.message(f"Image list {image_list.name} now at version {version}")
        return StepAction.CONTINUE
