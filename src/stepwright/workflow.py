"""Workflow assembly — the ordered step list for each build variant."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from pydantic import BaseModel

from . import state as keys
from .client import ClientConfig, ComputeClient
from .comm import Connector, ssh_keygen
from .config import BuilderConfig, BuildVariant
from .errors import WorkflowError
from .step import Step
from .steps import (
    StepAddKeysToAPI,
    StepAttachVolume,
    StepCleanupTempKeys,
    StepConnect,
    StepCreateImage,
    StepCreateInstance,
    StepCreateIPReservation,
    StepCreatePersistentVolume,
    StepCreatePVBuilder,
    StepCreatePVMaster,
    StepKeyPair,
    StepListImages,
    StepProvision,
    StepSecurity,
    StepSnapshot,
    StepTerminatePVMaster,
    StepUploadImage,
)

logger = logging.getLogger(__name__)

KeyGen = Callable[[], tuple[str, str]]


@dataclass(frozen=True)
class ResourceNames:
    """Cloud resource names for one run, all derived from the run id."""

    master_volume: str
    builder_volume: str
    master_instance: str
    builder_instance: str
    instance: str
    ip_reservation: str
    ssh_key: str
    security_list: str
    security_rule: str

    @classmethod
    def from_run_id(cls, run_id: str) -> ResourceNames:
        return cls(
            master_volume=f"master-storage_{run_id}",
            builder_volume=f"builder-storage_{run_id}",
            master_instance=f"master-instance_{run_id}",
            builder_instance=f"builder-instance_{run_id}",
            instance=f"packer-instance_{run_id}",
            ip_reservation=f"ipres_{run_id}",
            ssh_key=f"packer-key_{run_id}",
            security_list=f"packer-seclist_{run_id}",
            security_rule=f"packer-secrule_{run_id}",
        )


@dataclass(frozen=True)
class WorkflowParams:
    """Everything a variant factory needs to construct its steps."""

    config: BuilderConfig
    names: ResourceNames
    client: ComputeClient
    client_config: ClientConfig
    connector: Connector
    keygen: KeyGen


class Workflow(BaseModel):
    """An immutable, ordered sequence of steps."""

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    variant: BuildVariant
    steps: tuple[Step, ...] = ()

    def __iter__(self) -> Iterator[Step]:  # type: ignore[override]
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)


# -- Variant Registry --

_workflow_registry: dict[BuildVariant, Callable[[WorkflowParams], list[Step]]] = {}


def workflow(variant: BuildVariant):
    """Register a step-list factory for a build variant."""

    def decorator(fn):
        _workflow_registry[variant] = fn
        return fn

    return decorator


def build_workflow(
    variant: BuildVariant,
    config: BuilderConfig,
    *,
    run_id: str,
    client: ComputeClient,
    connector: Connector,
    keygen: KeyGen = ssh_keygen,
) -> Workflow:
    """Assemble the workflow for a variant; no step is executed here."""
    if not run_id:
        raise WorkflowError("run id must not be empty")
    if variant not in _workflow_registry:
        raise WorkflowError(f"Unknown build variant: '{variant}'")

    params = WorkflowParams(
        config=config,
        names=ResourceNames.from_run_id(run_id),
        client=client,
        client_config=config.client_config(),
        connector=connector,
        keygen=keygen,
    )
    steps = _workflow_registry[variant](params)
    logger.debug("Assembled %s workflow with %d step(s)", variant.value, len(steps))
    return Workflow(variant=variant, steps=tuple(steps))


def _access_steps(params: WorkflowParams) -> list[Step]:
    """Key pair, IP reservation, API key and security list, shared by both variants."""
    config, names, client = params.config, params.names, params.client
    return [
        StepKeyPair(
            comm=config.comm,
            debug=config.packer_debug,
            debug_key_path=f"oci_classic_{config.packer_build_name}.pem",
            keygen=params.keygen,
        ),
        StepCreateIPReservation(client=client, reservation_name=names.ip_reservation),
        StepAddKeysToAPI(client=client, key_name=names.ssh_key),
        StepSecurity(client=client, security_list_name=names.security_list, rule_name=names.security_rule),
    ]


@workflow(BuildVariant.PERSISTENT_VOLUME)
def _persistent_volume_steps(params: WorkflowParams) -> list[Step]:
    config, names, client = params.config, params.names, params.client
    if not config.persistent_volume_size:
        raise WorkflowError("persistent_volume_size is required for a persistent volume build")

    return [
        StepCreatePersistentVolume(
            client=client,
            volume_size=str(config.persistent_volume_size),
            volume_name=names.master_volume,
            bootable=True,
            image_list=config.source_image_list,
            image_list_entry=config.source_image_list_entry,
        ),
        # Twice the master size: room for the disk image and its tarball
        StepCreatePersistentVolume(
            client=client,
            volume_size=str(config.persistent_volume_size * 2),
            volume_name=names.builder_volume,
        ),
        *_access_steps(params),
        StepCreatePVMaster(
            client=client,
            instance_name=names.master_instance,
            volume_name=names.master_volume,
            shape=config.shape,
            attributes=config.attributes,
        ),
        StepConnect(connector=params.connector, comm=config.comm, instance_key=keys.INSTANCE_INFO),
        StepProvision(),
        StepTerminatePVMaster(client=client),
        StepCreatePVBuilder(
            client=client,
            instance_name=names.builder_instance,
            builder_volume_name=names.builder_volume,
            shape=config.builder_shape,
            image_list=config.builder_image_list,
        ),
        StepAttachVolume(
            client=client,
            volume_name=names.master_volume,
            index=2,
            instance_info_key=keys.BUILDER_INSTANCE_INFO,
        ),
        StepConnect(connector=params.connector, comm=config.builder_comm, instance_key=keys.BUILDER_INSTANCE_INFO),
        StepUploadImage(
            upload_image_command=config.builder_upload_image_command,
            image_file=f"{config.image_name}.tar.gz",
            client_config=params.client_config,
        ),
        StepCreateImage(client=client, image_name=config.image_name),
        StepListImages(client=client, image_list=config.dest_image_list, description=config.dest_image_list_description),
        StepCleanupTempKeys(comm=config.comm),
    ]


@workflow(BuildVariant.EPHEMERAL)
def _ephemeral_steps(params: WorkflowParams) -> list[Step]:
    config, names, client = params.config, params.names, params.client
    return [
        *_access_steps(params),
        StepCreateInstance(
            client=client,
            instance_name=names.instance,
            shape=config.shape,
            image_list=config.source_image_list,
            attributes=config.attributes,
        ),
        StepConnect(connector=params.connector, comm=config.comm, instance_key=keys.INSTANCE_INFO),
        StepProvision(),
        StepCleanupTempKeys(comm=config.comm),
        StepSnapshot(client=client, image_name=config.image_name),
        StepListImages(client=client, image_list=config.dest_image_list, description=config.dest_image_list_description),
    ]
