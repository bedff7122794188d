"""
Pytest configuration and fixtures for NFT Freeze tests.
"""

import tempfile

import pytest

from chain.address import ZERO_ADDRESS
from chain.network import LocalNetwork
from chain.proxy import deploy_proxy
from contracts import NFTFreezeContract
from nft import MockNFT


@pytest.fixture
def temp_data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def network():
    """In-memory local network with deterministic accounts."""
    return LocalNetwork(name="testnet", account_count=6, seed="tests")


@pytest.fixture
def accounts(network):
    """Named test accounts."""
    owner, addr1, new_owner, another, nft_owner = network.accounts[:5]
    return {
        "owner": owner,
        "addr1": addr1,
        "new_owner": new_owner,
        "another": another,
        "nft_owner": nft_owner,
    }


@pytest.fixture
def zero_address():
    return ZERO_ADDRESS


@pytest.fixture
def mock_nft(network, accounts):
    """MockNFT owned (and mintable) by nft_owner."""
    nft_owner = accounts["nft_owner"]
    return network.deploy(nft_owner, MockNFT, nft_owner)


@pytest.fixture
def freeze_contract(network, accounts, mock_nft):
    """Freeze contract proxy managing mock_nft, administered by owner."""
    return deploy_proxy(
        network, accounts["owner"], NFTFreezeContract,
        args=(mock_nft.address, accounts["owner"])
    )


@pytest.fixture
def frozen_setup(network, accounts, mock_nft, freeze_contract):
    """Tokens 1 and 2 minted to nft_owner, freeze contract approved as operator."""
    nft_owner = accounts["nft_owner"]
    mock_nft.safe_mint(nft_owner, nft_owner, 1)
    mock_nft.safe_mint(nft_owner, nft_owner, 2)
    mock_nft.set_approval_for_all(nft_owner, freeze_contract.address, True)
    return mock_nft, freeze_contract


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "concurrency: mark test as a concurrency test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on test location and name."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)

        if "concurrent" in item.name or "thread" in item.name:
            item.add_marker(pytest.mark.concurrency)
