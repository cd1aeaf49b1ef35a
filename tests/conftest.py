# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import chatcapture  # noqa: F401
except ImportError:
    raise ImportError("chatcapture is not installed. Run: pip install -e '.[dev]'") from None

import pytest

from chatcapture import coordinator as _coordinator_module
from chatcapture import telemetry
from chatcapture.coordinator import Coordinator
from tests._host_helpers import FakeHost


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Forget the process-wide coordinator and telemetry collector around each test."""
    _coordinator_module._reset_for_testing()
    telemetry._reset_for_testing()
    yield
    _coordinator_module._reset_for_testing()
    telemetry._reset_for_testing()


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def coordinator(host: FakeHost) -> Coordinator:
    return Coordinator(host)
