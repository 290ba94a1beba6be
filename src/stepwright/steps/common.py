"""Provider-neutral steps: key pairs, connecting, provisioning."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from .. import state as keys
from ..cancel import CancelToken
from ..client import InstanceInfo
from ..comm import HOOK_PROVISION, Connector, ssh_keygen
from ..config import CommConfig
from ..errors import CancelledError, ClientError
from ..state import StateBag, StateKey
from ..step import Step, StepAction

logger = logging.getLogger(__name__)


@dataclass
class StepKeyPair(Step):
    """Load the configured SSH key, or generate a temporary one."""

    comm: CommConfig
    debug: bool = False
    debug_key_path: str = ""
    keygen: Callable[[], tuple[str, str]] = field(default=ssh_keygen, repr=False, compare=False)

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        ui = state.get(keys.UI)

        if self.comm.ssh_private_key_file:
            ui.say("Using existing SSH private key")
            key_path = Path(self.comm.ssh_private_key_file).expanduser()
            try:
                private_key = key_path.read_text()
                public_key = key_path.with_name(key_path.name + ".pub").read_text().strip()
            except OSError as exc:
                return self.fail(state, f"Error loading configured private key file: {exc}", exc)
            state.put(keys.SSH_PRIVATE_KEY, private_key)
            state.put(keys.SSH_PUBLIC_KEY, public_key)
            return StepAction.CONTINUE

        ui.say("Creating temporary ssh key for instance...")
        try:
            private_key, public_key = self.keygen()
        except ClientError as exc:
            return self.fail(state, f"Error creating temporary ssh key: {exc}", exc)

        state.put(keys.SSH_PRIVATE_KEY, private_key)
        state.put(keys.SSH_PUBLIC_KEY, public_key)

        if self.debug and self.debug_key_path:
            ui.message(f"Saving key for debug purposes: {self.debug_key_path}")
            try:
                path = Path(self.debug_key_path)
                path.write_text(private_key)
                os.chmod(path, 0o600)
            except OSError as exc:
                return self.fail(state, f"Error saving debug key: {exc}", exc)

        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        if not (self.debug and self.debug_key_path) or self.comm.ssh_private_key_file:
            return
        path = Path(self.debug_key_path)
        if not path.exists():
            return
        try:
            path.unlink()
        except OSError as exc:
            logger.warning("Error removing debug key '%s': %s", path, exc)


@dataclass
class StepConnect(Step):
    """Open a communicator to the instance recorded under ``instance_key``."""

    connector: Connector = field(repr=False, compare=False)
    comm: CommConfig
    instance_key: StateKey[InstanceInfo] = keys.INSTANCE_INFO

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        ui = state.get(keys.UI)
        instance = state.get(self.instance_key)
        private_key = state.get(keys.SSH_PRIVATE_KEY)
        host = instance.ip or state.get(keys.INSTANCE_IP)

        # A previous connection points at an instance that is gone by now
        self.cleanup(state)

        ui.say(f"Waiting for SSH to become available on {instance.name} ({host})...")
        try:
            communicator = self.connector.connect(host, self.comm, private_key, cancel=cancel)
        except CancelledError:
            return self.halt_cancelled(state)
        except ClientError as exc:
            return self.fail(state, f"Error waiting for SSH: {exc}", exc)

        ui.say("Connected to SSH!")
        state.put(keys.COMMUNICATOR, communicator)
        return StepAction.CONTINUE

    def cleanup(self, state: StateBag) -> None:
        communicator, ok = state.get_ok(keys.COMMUNICATOR)
        if not ok:
            return
        try:
            communicator.close()
        except ClientError as exc:
            logger.warning("Error closing communicator: %s", exc)
        state.remove(keys.COMMUNICATOR)


@dataclass
class StepProvision(Step):
    """Run the provisioning hook over the open communicator."""

    hook_name: str = HOOK_PROVISION

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        ui = state.get(keys.UI)
        hook = state.get(keys.HOOK)
        communicator = state.get(keys.COMMUNICATOR)

        logger.info("Running the provision hook")
        try:
            hook.run(self.hook_name, ui, communicator, cancel=cancel)
        except CancelledError:
            return self.halt_cancelled(state)
        except ClientError as exc:
            return self.fail(state, f"Error provisioning: {exc}", exc)
        return StepAction.CONTINUE


@dataclass
class StepCleanupTempKeys(Step):
    """Strip the temporary public key from the instance before capture."""

    comm: CommConfig

    def execute(self, state: StateBag, cancel: CancelToken) -> StepAction:
        # Nothing to clean when the user supplied their own key
        if not self.comm.ssh_clear_authorized_keys or self.comm.ssh_private_key_file:
            return StepAction.CONTINUE

        ui = state.get(keys.UI)
        communicator = state.get(keys.COMMUNICATOR)
        public_key = state.get(keys.SSH_PUBLIC_KEY)
        key_body = public_key.split()[1] if len(public_key.split()) > 1 else public_key

        ui.say("Trying to remove ephemeral keys from authorized_keys files")
        command = f"sed -i.bak '\\|{key_body}|d' ~/.ssh/authorized_keys; rm -f ~/.ssh/authorized_keys.bak"
        try:
            status = communicator.run(command, cancel=cancel)
        except CancelledError:
            return self.halt_cancelled(state)
        except ClientError as exc:
            return self.fail(state, f"Error removing temporary ssh key: {exc}", exc)
        if status != 0:
            logger.warning("Removing temporary key exited with status %d", status)
        return StepAction.CONTINUE
