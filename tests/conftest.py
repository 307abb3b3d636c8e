from __future__ import annotations

import os
from collections.abc import Callable, Generator
from datetime import datetime

import pytest

from app.config import AppSettings, CacheSettings, LayoutSettings
from tests.helpers.event_fixtures import DAY


def _clear_tcal_env() -> None:
    for key in list(os.environ):
        if key.startswith("TCAL_"):
            os.environ.pop(key, None)


_clear_tcal_env()


@pytest.fixture(autouse=True)
def clear_tcal_env() -> Generator[None, None, None]:
    _clear_tcal_env()
    yield
    _clear_tcal_env()


@pytest.fixture
def period_start() -> datetime:
    return DAY


@pytest.fixture
def layout_settings() -> LayoutSettings:
    return LayoutSettings(cache=CacheSettings(ttl_seconds=60.0, max_entries=16))


@pytest.fixture
def layout_settings_factory(layout_settings: LayoutSettings) -> Callable[..., LayoutSettings]:
    def _factory(**overrides: object) -> LayoutSettings:
        return layout_settings.model_copy(update=overrides)

    return _factory


@pytest.fixture
def app_settings(layout_settings: LayoutSettings) -> AppSettings:
    return AppSettings(title="Test Calendar", layout=layout_settings)


@pytest.fixture
def app_settings_factory(
    layout_settings_factory: Callable[..., LayoutSettings],
) -> Callable[..., AppSettings]:
    def _factory(**overrides: object) -> AppSettings:
        return AppSettings(title="Test Calendar", layout=layout_settings_factory(**overrides))

    return _factory
