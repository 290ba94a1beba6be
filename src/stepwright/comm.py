"""Communicator, connector, and provisioning hook interfaces."""

from __future__ import annotations

import logging
import subprocess
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .errors import ClientError

if TYPE_CHECKING:
    from .cancel import CancelToken
    from .config import CommConfig
    from .ui import Ui

logger = logging.getLogger(__name__)

HOOK_PROVISION = "packer_provision"


@runtime_checkable
class Communicator(Protocol):
    """An established connection to a remote instance."""

    def run(self, command: str, *, cancel: CancelToken) -> int:
        """Run a remote command and return its exit status."""
        ...

    def close(self) -> None: ...


@runtime_checkable
class Connector(Protocol):
    """Opens communicators; raises ClientError or CancelledError."""

    def connect(
        self,
        host: str,
        comm: CommConfig,
        private_key: str,
        *,
        cancel: CancelToken,
    ) -> Communicator: ...


@runtime_checkable
class Hook(Protocol):
    """Provisioning hook run against a connected instance."""

    def run(
        self,
        name: str,
        ui: Ui,
        communicator: Communicator,
        *,
        cancel: CancelToken,
    ) -> None: ...


def ssh_keygen(comment: str = "packer") -> tuple[str, str]:
    """Generate a throwaway RSA key pair with ssh-keygen.

    Returns (private_key, public_key) as OpenSSH text.
    """
    with tempfile.TemporaryDirectory() as tmp:
        key_path = Path(tmp) / "id_rsa"
        args = ["ssh-keygen", "-q", "-t", "rsa", "-b", "2048", "-N", "", "-C", comment, "-f", str(key_path)]
        logger.debug("Generating temporary key pair: %s", " ".join(args))
        try:
            r = subprocess.run(args, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise ClientError(f"unable to run ssh-keygen: {exc}") from exc
        if r.returncode != 0:
            raise ClientError(f"ssh-keygen failed (rc={r.returncode}): {r.stderr[:500]}")
        private_key = key_path.read_text()
        public_key = key_path.with_suffix(".pub").read_text().strip()
    return private_key, public_key
