"""Test fixtures for x32ctl tests."""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

# Qt tests run without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from x32ctl.api.simulator import SimulatedDevice, SimulatorServer  # noqa: E402
from x32ctl.models.connection import ConnectionConfig  # noqa: E402


@pytest.fixture
def device() -> SimulatedDevice:
    """Return a simulated console with the seed scenes."""
    return SimulatedDevice()


@pytest_asyncio.fixture
async def simulator(device: SimulatedDevice) -> AsyncGenerator[SimulatorServer, None]:
    """Serve the simulated console on an ephemeral loopback port."""
    server = SimulatorServer(device, host="127.0.0.1", port=0)
    await server.start()
    yield server
    server.stop()


@pytest.fixture
def network_config(simulator: SimulatorServer) -> ConnectionConfig:
    """Return a network (non-mock) config pointing at the simulator."""
    host, port = simulator.address
    return ConnectionConfig(host=host, port=port, local_port=0, mock_mode=False)
