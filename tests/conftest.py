"""Shared fixtures."""

from __future__ import annotations

import pytest

from stepwright import state as keys
from stepwright.config import BuilderConfig, parse_config
from stepwright.state import StateBag

from fakes import BASE_CONFIG, FakeComputeClient, FakeConnector, RecordingUi


@pytest.fixture
def ui() -> RecordingUi:
    return RecordingUi()


@pytest.fixture
def client() -> FakeComputeClient:
    return FakeComputeClient()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def config() -> BuilderConfig:
    return parse_config(BASE_CONFIG)


@pytest.fixture
def pv_config() -> BuilderConfig:
    return parse_config(BASE_CONFIG, {"persistent_volume_size": 25})


@pytest.fixture
def state(ui: RecordingUi) -> StateBag:
    bag = StateBag()
    bag.put(keys.UI, ui)
    return bag


