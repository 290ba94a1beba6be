"""Artifact — the image produced by a successful build."""

from __future__ import annotations

import logging

from pydantic import BaseModel

from . import state as keys
from .errors import ArtifactError, StateTypeError
from .state import StateBag

logger = logging.getLogger(__name__)

BUILDER_ID = "packer.oracle.classic"

_RESULT_KEYS = (keys.IMAGE_LIST_VERSION, keys.MACHINE_IMAGE_NAME, keys.MACHINE_IMAGE_FILE)


class Artifact(BaseModel):
    """An image list entry created by the build."""

    model_config = {"frozen": True}

    image_list_version: int
    machine_image_name: str
    machine_image_file: str

    @property
    def builder_id(self) -> str:
        return BUILDER_ID

    @property
    def id(self) -> str:
        return self.machine_image_name

    @property
    def files(self) -> list[str]:
        return []

    def __str__(self) -> str:
        return (
            "An image list entry was created: \n"
            f"Name: {self.machine_image_name}\n"
            f"File: {self.machine_image_file}\n"
            f"Version: {self.image_list_version}"
        )


def assemble(state: StateBag) -> Artifact | None:
    """Build the artifact from a finished run's state.

    Raises the recorded failure marker if there is one. Returns None when
    the run produced no image.
    """
    error, failed = state.get_ok(keys.ERROR)
    if failed:
        raise error

    if any(key not in state for key in _RESULT_KEYS):
        logger.debug("No image was produced; skipping artifact")
        return None

    try:
        artifact = Artifact(
            image_list_version=state.get(keys.IMAGE_LIST_VERSION),
            machine_image_name=state.get(keys.MACHINE_IMAGE_NAME),
            machine_image_file=state.get(keys.MACHINE_IMAGE_FILE),
        )
    except StateTypeError as exc:
        raise ArtifactError(f"malformed result marker: {exc}") from exc

    logger.info("Created artifact for image '%s' (version %d)", artifact.machine_image_name, artifact.image_list_version)
    return artifact
