"""Fixtures for integration tests."""
import tempfile
from pathlib import Path

import pytest


CONFIG_TEMPLATE = """
agent:
  address: "0xabc0000000000000000000000000000000000001"
  config:
    yellowSession:
      depositAmount: "500000000"
      settlementThreshold: "250000000"
loop:
  interval_seconds: 0.01
session:
  confirmation_delay_seconds: 0
data_store:
  path: "{data_path}"
portfolio:
  - {{chain_id: 8453, symbol: USDC, balance: 500000000, value_usd: 500.0}}
  - {{chain_id: 8453, symbol: WETH, balance: 100000000000000000, value_usd: 250.0}}
  - {{chain_id: 42161, symbol: USDC, balance: 200000000, value_usd: 200.0}}
  - {{chain_id: 42161, symbol: WETH, balance: 20000000000000000, value_usd: 50.0}}
"""


@pytest.fixture
def workdir():
    """Temporary directory holding a config file and the data store."""
    with tempfile.TemporaryDirectory() as tmpdir:
        data_path = Path(tmpdir) / "data"
        config_path = Path(tmpdir) / "agent.yaml"
        config_path.write_text(CONFIG_TEMPLATE.format(data_path=data_path))
        yield config_path, data_path
