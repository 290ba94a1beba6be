"""Builder configuration models."""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator, model_validator

from .client import ClientConfig, ClientLogger
from .errors import ConfigError

logger = logging.getLogger(__name__)

_IMAGE_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]+$")

DEFAULT_UPLOAD_IMAGE_COMMAND = """\
set -e
# /dev/xvdb is the blank builder volume, /dev/xvdc the master volume
sudo mkfs -t ext4 -F /dev/xvdb
sudo mkdir -p /builder
sudo mount /dev/xvdb /builder
sudo chown "$(id -u):$(id -g)" /builder
mkdir -p {{ segment_path }}
cd /builder
echo "Creating {{ image_file }} from the master volume"
sudo dd if=/dev/xvdc of=/builder/System.img bs=8M
tar -czSf {{ image_file }} System.img
sudo rm -f System.img
split -b 1G -d {{ image_file }} {{ segment_path }}/{{ image_file }}.
echo "Uploading segments to {{ api_endpoint }}"
for segment in {{ segment_path }}/{{ image_file }}.*; do
  curl --fail -s -u '{{ username }}:{{ password }}' -T "$segment" \\
    "{{ storage_endpoint }}/compute_images_segments/{{ image_file }}/$(basename "$segment")"
done
curl --fail -s -u '{{ username }}:{{ password }}' -X PUT \\
  -H "X-Object-Manifest: compute_images_segments/{{ image_file }}/" \\
  "{{ storage_endpoint }}/compute_images/{{ image_file }}"
"""


class BuildVariant(Enum):
    """Which step sequence a build runs."""

    EPHEMERAL = "ephemeral"
    PERSISTENT_VOLUME = "persistent_volume"


class CommConfig(BaseModel):
    """SSH settings for connecting to build instances."""

    model_config = {"frozen": True, "extra": "forbid"}

    ssh_username: str = "opc"
    ssh_port: int = Field(default=22, gt=0, lt=65536)
    ssh_timeout: float = Field(default=300.0, gt=0)
    ssh_pty: bool = False
    ssh_private_key_file: str = ""
    ssh_clear_authorized_keys: bool = False


class BuilderConfig(BaseModel):
    """Validated settings for one oracle-classic build."""

    model_config = {"frozen": True, "extra": "forbid"}

    identity_domain: str
    username: str
    password: SecretStr
    api_endpoint: str

    source_image_list: str
    source_image_list_entry: int = Field(default=0, ge=0)
    shape: str = "oc3"
    image_name: str
    dest_image_list: str
    dest_image_list_description: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)

    persistent_volume_size: int | None = Field(default=None, gt=0)
    builder_shape: str = "oc3"
    builder_image_list: str = "/oracle/public/OL_6.8_UEKR4_x86_64"
    builder_upload_image_command: str = DEFAULT_UPLOAD_IMAGE_COMMAND

    packer_debug: bool = False
    packer_build_name: str = "oracle-classic"

    comm: CommConfig = Field(default_factory=CommConfig)

    @model_validator(mode="before")
    @classmethod
    def _collect_ssh_settings(cls, data: Any) -> Any:
        """Accept communicator settings flat as ssh_* keys."""
        if not isinstance(data, dict):
            return data
        flat = {k: v for k, v in data.items() if k.startswith("ssh_")}
        if not flat:
            return data
        data = {k: v for k, v in data.items() if k not in flat}
        comm = dict(data.get("comm") or {})
        comm.update(flat)
        data["comm"] = comm
        return data

    @field_validator("api_endpoint")
    @classmethod
    def _check_endpoint(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("api_endpoint must be an http or https URL")
        return value.rstrip("/")

    @field_validator("image_name")
    @classmethod
    def _check_image_name(cls, value: str) -> str:
        if not _IMAGE_NAME_PATTERN.match(value):
            raise ValueError("image_name can only contain letters, digits, hyphens, underscores and periods")
        return value

    @field_validator("identity_domain", "username", "source_image_list", "dest_image_list")
    @classmethod
    def _check_required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    def is_pv(self) -> bool:
        """True when the build uses persistent volumes."""
        return self.persistent_volume_size is not None

    @property
    def variant(self) -> BuildVariant:
        return BuildVariant.PERSISTENT_VOLUME if self.is_pv() else BuildVariant.EPHEMERAL

    @property
    def builder_comm(self) -> CommConfig:
        """Connection settings for the builder instance; always requests a pty."""
        return self.comm.model_copy(update={"ssh_pty": True})

    def client_config(self, client_logger: ClientLogger | None = None) -> ClientConfig:
        """Read-only API settings for the compute client."""
        return ClientConfig(
            identity_domain=self.identity_domain,
            username=self.username,
            password=self.password.get_secret_value(),
            api_endpoint=self.api_endpoint,
            logger=client_logger,
        )


def parse_config(*raws: dict[str, Any]) -> BuilderConfig:
    """Merge raw config dicts (later wins) and validate them.

    Raises ConfigError listing every problem found.
    """
    merged: dict[str, Any] = {}
    for raw in raws:
        merged.update(raw)
    try:
        config = BuilderConfig.model_validate(merged)
    except ValidationError as exc:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in exc.errors()
        ]
        raise ConfigError(problems) from exc
    logger.debug("Parsed config for build '%s' (variant=%s)", config.packer_build_name, config.variant.value)
    return config
