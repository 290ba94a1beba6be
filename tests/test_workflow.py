"""Tests for stepwright.workflow."""

from __future__ import annotations

import pytest

from stepwright import state as keys
from stepwright.config import BuildVariant
from stepwright.errors import WorkflowError
from stepwright.steps import (
    StepAttachVolume,
    StepConnect,
    StepCreateImage,
    StepCreateInstance,
    StepCreatePersistentVolume,
    StepCreatePVBuilder,
    StepCreatePVMaster,
    StepListImages,
    StepSnapshot,
    StepTerminatePVMaster,
    StepUploadImage,
)
from stepwright.workflow import ResourceNames, Workflow, _workflow_registry, build_workflow, workflow

from fakes import fake_keygen


def _build(variant, config, client, connector, run_id="abc") -> Workflow:
    return build_workflow(variant, config, run_id=run_id, client=client, connector=connector, keygen=fake_keygen)


def _of_type(wf: Workflow, cls) -> list:
    return [s for s in wf if isinstance(s, cls)]


def _index(wf: Workflow, cls) -> int:
    return next(i for i, s in enumerate(wf) if isinstance(s, cls))


class TestResourceNames:
    def test_derived_from_run_id(self):
        names = ResourceNames.from_run_id("abc")
        assert names.master_volume == "master-storage_abc"
        assert names.builder_volume == "builder-storage_abc"
        assert names.master_instance == "master-instance_abc"
        assert names.builder_instance == "builder-instance_abc"

    def test_deterministic(self):
        assert ResourceNames.from_run_id("abc") == ResourceNames.from_run_id("abc")

    def test_distinct_runs_never_collide(self):
        a = vars(ResourceNames.from_run_id("abc"))
        b = vars(ResourceNames.from_run_id("xyz"))
        assert set(a.values()).isdisjoint(b.values())


class TestPersistentVolumeWorkflow:
    def test_two_storage_units_and_teardown_before_capture(self, pv_config, client, connector):
        wf = _build(BuildVariant.PERSISTENT_VOLUME, pv_config, client, connector)
        volumes = _of_type(wf, StepCreatePersistentVolume)
        assert len(volumes) == 2
        teardown = _index(wf, StepTerminatePVMaster)
        assert teardown < _index(wf, StepUploadImage)
        assert teardown < _index(wf, StepCreateImage)
        assert teardown < _index(wf, StepListImages)

    def test_volume_parameters(self, pv_config, client, connector):
        master, builder = _of_type(_build(BuildVariant.PERSISTENT_VOLUME, pv_config, client, connector), StepCreatePersistentVolume)
        assert master.volume_name == "master-storage_abc"
        assert master.volume_size == "25"
        assert master.bootable is True
        assert master.image_list == pv_config.source_image_list
        assert builder.volume_name == "builder-storage_abc"
        assert builder.volume_size == "50"
        assert builder.bootable is False

    def test_master_then_builder_instances(self, pv_config, client, connector):
        wf = _build(BuildVariant.PERSISTENT_VOLUME, pv_config, client, connector)
        assert _index(wf, StepCreatePVMaster) < _index(wf, StepTerminatePVMaster) < _index(wf, StepCreatePVBuilder)
        attach = _of_type(wf, StepAttachVolume)[0]
        assert attach.volume_name == "master-storage_abc"
        assert attach.index == 2
        assert attach.instance_info_key == keys.BUILDER_INSTANCE_INFO

    def test_connects_to_master_then_builder(self, pv_config, client, connector):
        first, second = _of_type(_build(BuildVariant.PERSISTENT_VOLUME, pv_config, client, connector), StepConnect)
        assert first.instance_key == keys.INSTANCE_INFO
        assert first.comm.ssh_pty is False
        assert second.instance_key == keys.BUILDER_INSTANCE_INFO
        assert second.comm.ssh_pty is True

    def test_upload_file_named_after_image(self, pv_config, client, connector):
        upload = _of_type(_build(BuildVariant.PERSISTENT_VOLUME, pv_config, client, connector), StepUploadImage)[0]
        assert upload.image_file == "img-1.tar.gz"

    def test_requires_volume_size(self, config, client, connector):
        with pytest.raises(WorkflowError, match="persistent_volume_size"):
            _build(BuildVariant.PERSISTENT_VOLUME, config, client, connector)


class TestEphemeralWorkflow:
    def test_shorter_and_without_storage_units(self, config, pv_config, client, connector):
        ephemeral = _build(BuildVariant.EPHEMERAL, config, client, connector)
        pv = _build(BuildVariant.PERSISTENT_VOLUME, pv_config, client, connector)
        assert len(ephemeral) < len(pv)
        assert _of_type(ephemeral, StepCreatePersistentVolume) == []
        assert _of_type(ephemeral, StepTerminatePVMaster) == []

    def test_single_instance_and_snapshot(self, config, client, connector):
        wf = _build(BuildVariant.EPHEMERAL, config, client, connector)
        assert len(_of_type(wf, StepCreateInstance)) == 1
        assert len(_of_type(wf, StepConnect)) == 1
        assert _index(wf, StepSnapshot) < _index(wf, StepListImages)
        assert _of_type(wf, StepCreateInstance)[0].instance_name == "packer-instance_abc"


class TestBuildWorkflow:
    def test_same_seed_same_workflow(self, pv_config, client, connector):
        a = _build(BuildVariant.PERSISTENT_VOLUME, pv_config, client, connector)
        b = _build(BuildVariant.PERSISTENT_VOLUME, pv_config, client, connector)
        assert a == b
        assert a.steps is not b.steps

    def test_different_seed_different_names(self, pv_config, client, connector):
        a = _build(BuildVariant.PERSISTENT_VOLUME, pv_config, client, connector, run_id="abc")
        b = _build(BuildVariant.PERSISTENT_VOLUME, pv_config, client, connector, run_id="xyz")
        names_a = [s.volume_name for s in _of_type(a, StepCreatePersistentVolume)]
        names_b = [s.volume_name for s in _of_type(b, StepCreatePersistentVolume)]
        assert names_a == ["master-storage_abc", "builder-storage_abc"]
        assert names_b == ["master-storage_xyz", "builder-storage_xyz"]
        assert a != b

    def test_workflow_is_immutable(self, config, client, connector):
        wf = _build(BuildVariant.EPHEMERAL, config, client, connector)
        assert isinstance(wf.steps, tuple)
        with pytest.raises(Exception):
            wf.steps = ()

    def test_no_side_effects(self, pv_config, client, connector):
        _build(BuildVariant.PERSISTENT_VOLUME, pv_config, client, connector)
        assert client.calls == []
        assert connector.connections == []

    def test_empty_run_id_rejected(self, config, client, connector):
        with pytest.raises(WorkflowError, match="run id"):
            _build(BuildVariant.EPHEMERAL, config, client, connector, run_id="")

    def test_unregistered_variant_rejected(self, config, client, connector):
        saved = _workflow_registry.copy()
        _workflow_registry.clear()
        try:
            with pytest.raises(WorkflowError, match="Unknown build variant"):
                _build(BuildVariant.EPHEMERAL, config, client, connector)
        finally:
            _workflow_registry.update(saved)

    def test_register_custom_factory(self, config, client, connector):
        saved = _workflow_registry.copy()
        try:

            @workflow(BuildVariant.EPHEMERAL)
            def _only_snapshot(params):
                return [StepSnapshot(client=params.client, image_name=params.config.image_name)]

            wf = _build(BuildVariant.EPHEMERAL, config, client, connector)
            assert len(wf) == 1
            assert wf.variant is BuildVariant.EPHEMERAL
        finally:
            _workflow_registry.clear()
            _workflow_registry.update(saved)
