"""Builder — prepares a config, runs its workflow, and returns the artifact."""

from __future__ import annotations

import logging
import os
import threading
import uuid
from collections.abc import Callable
from typing import Any

from . import state as keys
from .artifact import Artifact, assemble
from .cancel import CancelToken
from .client import ClientConfig, ClientLogger, ComputeClient
from .comm import Connector, Hook, ssh_keygen
from .config import BuilderConfig, parse_config
from .errors import BuildError, ClientError
from .runner import DebugLocation, PauseFn, Runner
from .state import StateBag
from .ui import Ui
from .workflow import KeyGen, build_workflow

logger = logging.getLogger(__name__)

LOGGING_ENV = "PACKER_OCI_CLASSIC_LOGGING"
RUN_ID_ENV = "PACKER_RUN_UUID"

ClientFactory = Callable[[ClientConfig], ComputeClient]


def _debug_pause(ui: Ui) -> PauseFn:
    """Report every step boundary through the UI when debugging."""

    def pause(location: DebugLocation, name: str, state: StateBag) -> None:
        if location is DebugLocation.AFTER_RUN:
            ui.say(f"Pausing after run of step '{name}'.")
        else:
            ui.say(f"Pausing before cleanup of step '{name}'.")

    return pause


class Builder:
    """Oracle Classic image builder.

    The client factory and connector are the only ways the builder reaches
    the outside world; both are fixed at construction.
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        connector: Connector,
        *,
        keygen: KeyGen = ssh_keygen,
        pause: PauseFn | None = None,
    ) -> None:
        self.client_factory = client_factory
        self.connector = connector
        self.keygen = keygen
        self.pause = pause
        self.config: BuilderConfig | None = None
        self.runner: Runner | None = None
        self._token = CancelToken()
        self._lock = threading.Lock()

    def prepare(self, *raw_configs: dict[str, Any]) -> list[str]:
        """Validate the raw config; returns warnings, raises ConfigError."""
        self.config = parse_config(*raw_configs)
        warnings: list[str] = []
        if self.config.is_pv() and self.config.comm.ssh_private_key_file:
            warnings.append("ssh_private_key_file is used for both the master and the builder instance")
        if self.config.packer_debug:
            warnings.append("debug mode writes the temporary private key to the working directory")
        return warnings

    def run(self, ui: Ui, hook: Hook) -> Artifact | None:
        """Run the build; returns the artifact, or None if no image was made."""
        if self.config is None:
            raise RuntimeError("prepare() must be called before run()")
        config = self.config

        with self._lock:
            self.runner = None
            token = self._token
        try:
            if token.cancelled:
                logger.info("Build was cancelled before it started")
                return None
            return self._run(config, token, ui, hook)
        finally:
            # A cancel only ever applies to the run it was issued against
            with self._lock:
                self._token = CancelToken()

    def _run(self, config: BuilderConfig, token: CancelToken, ui: Ui, hook: Hook) -> Artifact | None:
        client_logger = ClientLogger(os.environ.get(LOGGING_ENV, "") != "")
        try:
            client = self.client_factory(config.client_config(client_logger))
        except ClientError as exc:
            raise BuildError(f"Error creating OPC Compute Client: {exc}") from exc

        run_id = os.environ.get(RUN_ID_ENV) or uuid.uuid4().hex
        logger.info("Starting %s build (run %s)", config.variant.value, run_id)

        state = StateBag()
        state.put(keys.CONFIG, config)
        state.put(keys.HOOK, hook)
        state.put(keys.UI, ui)
        state.put(keys.CLIENT, client)
        state.put(keys.RUN_ID, run_id)

        wf = build_workflow(
            config.variant,
            config,
            run_id=run_id,
            client=client,
            connector=self.connector,
            keygen=self.keygen,
        )

        pause = self.pause
        if pause is None and config.packer_debug:
            pause = _debug_pause(ui)

        with self._lock:
            self.runner = Runner(wf, cancel=token, pause=pause)
        self.runner.run(state)

        return assemble(state)

    def cancel(self) -> None:
        """Terminate the current or next build; safe from any thread."""
        with self._lock:
            runner = self.runner
            if runner is None:
                logger.info("Cancelling build before it started")
                self._token.cancel()
                return
        runner.cancel()
