"""
Unit tests for the upgradeable proxy.
"""

import pytest
from pydantic import BaseModel

from chain.contract import Contract
from chain.exceptions import ProxyDeniedAdminAccessError, UpgradeValidationError
from chain.network import LocalNetwork
from chain.proxy import TransparentUpgradeableProxy, deploy_proxy, upgrade_proxy, validate_implementation
from contracts import NFTFreezeContract, UpgradeNFTFreezeContract
from nft import MockNFT


class OtherStorage(BaseModel):
    value: int = 0


class UnregisteredLogic(Contract):
    contract_name = "UnregisteredLogic"
    storage_model = OtherStorage


class TestDeployProxy:
    """Test proxy deployment."""

    def test_proxy_records_admin_and_implementation(self, network, freeze_contract, accounts):
        assert isinstance(freeze_contract, TransparentUpgradeableProxy)
        assert freeze_contract.admin == accounts["owner"]
        assert freeze_contract.implementation is NFTFreezeContract
        assert freeze_contract.implementation_history == ["NFTFreezeContract"]

    def test_deploy_emits_proxy_events(self, network, freeze_contract, accounts):
        receipt = network.last_receipt

        assert receipt.has_event("Upgraded", "NFTFreezeContract", address=freeze_contract.address)
        assert receipt.has_event("AdminChanged", address=freeze_contract.address)
        assert receipt.contract_address == freeze_contract.address

    def test_deploy_without_initializer(self, network, accounts):
        proxy = deploy_proxy(network, accounts["owner"], NFTFreezeContract, initializer=None)

        assert proxy.state.initialized == 0
        proxy.initialize(accounts["addr1"], accounts["addr1"], accounts["addr1"])
        assert proxy.owner() == accounts["addr1"]

    def test_private_attributes_are_not_delegated(self, freeze_contract):
        with pytest.raises(AttributeError):
            freeze_contract._token

    def test_unregistered_logic_rejected(self, network, accounts):
        with pytest.raises(UpgradeValidationError):
            deploy_proxy(network, accounts["owner"], UnregisteredLogic, initializer=None)

    def test_non_contract_rejected(self):
        with pytest.raises(UpgradeValidationError):
            validate_implementation(dict)


class TestUpgradeProxy:
    """Test logic upgrades."""

    def test_upgrade_keeps_address_and_storage(self, network, frozen_setup, accounts):
        mock_nft, contract = frozen_setup
        contract.bulk_nft_freeze(accounts["nft_owner"], [1, 2])

        upgraded = upgrade_proxy(network, accounts["owner"], contract.address, UpgradeNFTFreezeContract)

        assert upgraded is contract
        assert upgraded.version() == "2.0.0"
        assert upgraded.frozen_tokens_of(accounts["nft_owner"]) == [1, 2]
        assert upgraded.frozen_token_count() == 2
        assert upgraded.implementation_history == ["NFTFreezeContract", "UpgradeNFTFreezeContract"]
        assert network.last_receipt.has_event("Upgraded", "UpgradeNFTFreezeContract")

    def test_upgraded_logic_can_release(self, network, frozen_setup, accounts):
        mock_nft, contract = frozen_setup
        contract.bulk_nft_freeze(accounts["nft_owner"], [1])
        upgrade_proxy(network, accounts["owner"], contract.address, UpgradeNFTFreezeContract)

        contract.transfer_nfts_to_recipient(accounts["owner"], accounts["addr1"], [1])

        assert mock_nft.owner_of(1) == accounts["addr1"]
        assert contract.frozen_token_count() == 0

    def test_upgrade_by_non_admin_fails(self, network, freeze_contract, accounts):
        with pytest.raises(ProxyDeniedAdminAccessError):
            upgrade_proxy(network, accounts["another"], freeze_contract.address, UpgradeNFTFreezeContract)

        assert freeze_contract.implementation is NFTFreezeContract

    def test_ownable_owner_is_not_proxy_admin(self, network, freeze_contract, accounts):
        freeze_contract.transfer_ownership(accounts["owner"], accounts["new_owner"])

        with pytest.raises(ProxyDeniedAdminAccessError):
            upgrade_proxy(network, accounts["new_owner"], freeze_contract.address, UpgradeNFTFreezeContract)

    def test_incompatible_storage_rejected(self, network, freeze_contract, accounts):
        with pytest.raises(UpgradeValidationError):
            upgrade_proxy(network, accounts["owner"], freeze_contract.address, MockNFT)

    def test_upgrade_of_plain_contract_rejected(self, network, mock_nft, accounts):
        with pytest.raises(UpgradeValidationError):
            upgrade_proxy(network, accounts["owner"], mock_nft.address, UpgradeNFTFreezeContract)

    def test_change_admin(self, network, freeze_contract, accounts):
        freeze_contract.change_admin(accounts["owner"], accounts["addr1"])

        assert freeze_contract.admin == accounts["addr1"]
        assert network.last_receipt.has_event("AdminChanged", accounts["owner"], accounts["addr1"])
        upgrade_proxy(network, accounts["addr1"], freeze_contract.address, UpgradeNFTFreezeContract)

    def test_failed_call_after_upgrade_keeps_implementation(self, network, freeze_contract, accounts):
        with pytest.raises(RuntimeError):
            with network.transaction(accounts["owner"]):
                freeze_contract.upgrade_to(accounts["owner"], UpgradeNFTFreezeContract)
                raise RuntimeError("abort")

        assert freeze_contract.implementation is NFTFreezeContract
        assert freeze_contract.implementation_history == ["NFTFreezeContract"]


def test_upgraded_proxy_survives_reload(temp_data_dir):
    network = LocalNetwork.open(temp_data_dir)
    admin, holder = network.accounts[:2]
    token = network.deploy(holder, MockNFT, holder)
    proxy = deploy_proxy(network, admin, NFTFreezeContract, args=(token.address, admin))
    token.safe_mint(holder, holder, 1)
    token.set_approval_for_all(holder, proxy.address, True)
    proxy.bulk_nft_freeze(holder, [1])
    upgrade_proxy(network, admin, proxy.address, UpgradeNFTFreezeContract)

    reopened = LocalNetwork.open(temp_data_dir)
    restored = reopened.get_contract(proxy.address)

    assert isinstance(restored, TransparentUpgradeableProxy)
    assert restored.implementation is UpgradeNFTFreezeContract
    assert restored.admin == admin
    assert restored.owner() == admin
    assert restored.frozen_tokens_of(holder) == [1]
    assert restored.custody_record(1).frozen_at_block > 0
    assert reopened.get_contract(token.address).owner_of(1) == proxy.address
