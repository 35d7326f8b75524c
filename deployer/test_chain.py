#!/usr/bin/env python3
"""
Tests for the web3 chain collaborator
Web3 is replaced by MagicMock; no node is needed
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from deployer.chain import ArtifactNotFound, TransactionFailed, Web3Chain, connect
from deployer.config import Settings
from deployer.errors import ConfigError


def write_artifact(root, contract, abi=None, bytecode="0x6080"):
    directory = root / "contracts" / "core" / f"{contract}.sol"
    directory.mkdir(parents=True)
    (directory / f"{contract}.json").write_text(json.dumps({"abi": abi or [], "bytecode": bytecode}))


def make_settings(**overrides):
    values = dict(rpc_url="http://localhost:8545", private_key="0x" + "11" * 32, network="localhost",
                  artifacts_dir="artifacts", networks_dir="networks")
    values.update(overrides)
    return Settings(**values)


class TestWeb3Chain:
    """Test class for Web3Chain"""

    def setup_method(self):
        self.w3 = MagicMock()
        self.w3.eth.get_transaction_count.return_value = 7
        self.w3.eth.gas_price = 100
        self.w3.eth.send_raw_transaction.return_value.hex.return_value = "0xhash"
        self.w3.eth.wait_for_transaction_receipt.return_value = {
            'status': 1,
            'contractAddress': "0xC0",
            'blockNumber': 42,
        }
        self.account = MagicMock()
        self.account.address = "0xDe"

    def make_chain(self, tmp_path, **kwargs):
        return Web3Chain(self.w3, self.account, str(tmp_path), **kwargs)

    def test_deploy_new(self, tmp_path):
        write_artifact(tmp_path, "Config")
        chain = self.make_chain(tmp_path)

        address = chain.deploy_new("Config", ["0xA", 5])

        assert address == "0xC0"
        self.w3.eth.contract.assert_called_once_with(abi=[], bytecode="0x6080")
        factory = self.w3.eth.contract.return_value
        factory.constructor.assert_called_once_with("0xA", 5)
        tx_params = factory.constructor.return_value.build_transaction.call_args.args[0]
        assert tx_params == {'from': "0xDe", 'nonce': 7, 'gasPrice': 100}
        self.w3.eth.wait_for_transaction_receipt.assert_called_once_with(
            self.w3.eth.send_raw_transaction.return_value, timeout=300
        )

    def test_gas_limit_applied(self, tmp_path):
        write_artifact(tmp_path, "Config")
        chain = self.make_chain(tmp_path, gas=8000000)

        chain.deploy_new("Config", [])

        factory = self.w3.eth.contract.return_value
        assert factory.constructor.return_value.build_transaction.call_args.args[0]['gas'] == 8000000

    def test_reverted_transaction(self, tmp_path):
        write_artifact(tmp_path, "Config")
        self.w3.eth.wait_for_transaction_receipt.return_value = {'status': 0}
        chain = self.make_chain(tmp_path)

        with pytest.raises(TransactionFailed, match="0xhash"):
            chain.deploy_new("Config", [])

    def test_missing_artifact(self, tmp_path):
        with pytest.raises(ArtifactNotFound, match="Router"):
            self.make_chain(tmp_path).deploy_new("Router", [])

    def test_attach_uses_checksum_address(self, tmp_path):
        write_artifact(tmp_path, "Router", abi=[{"type": "function"}])
        self.w3.to_checksum_address.return_value = "0xAbC"

        handle = self.make_chain(tmp_path).attach("Router", "0xabc")

        self.w3.eth.contract.assert_called_once_with(address="0xAbC", abi=[{"type": "function"}])
        assert handle is self.w3.eth.contract.return_value

    def test_invoke_sends_signed_transaction(self, tmp_path):
        handle = MagicMock()
        chain = self.make_chain(tmp_path)

        receipt = chain.invoke(handle, "registerRouter", ["0xR0"])

        handle.functions.__getitem__.assert_called_once_with("registerRouter")
        handle.functions.__getitem__.return_value.assert_called_once_with("0xR0")
        self.account.sign_transaction.assert_called_once()
        self.w3.eth.send_raw_transaction.assert_called_once_with(
            self.account.sign_transaction.return_value.raw_transaction
        )
        assert receipt['status'] == 1

    def test_query_calls_without_transaction(self, tmp_path):
        handle = MagicMock()
        handle.functions.__getitem__.return_value.return_value.call.return_value = "0xA1"

        assert self.make_chain(tmp_path).query(handle, "getAmm", ["0xEE", "0xDC"]) == "0xA1"
        self.w3.eth.send_raw_transaction.assert_not_called()

    def test_artifact_cached(self, tmp_path):
        write_artifact(tmp_path, "Config")
        chain = self.make_chain(tmp_path)

        first = chain.load_artifact("Config")
        assert chain.load_artifact("Config") is first


class TestConnect:

    @patch('deployer.chain.Web3')
    def test_not_connected(self, mock_web3):
        mock_web3.return_value.is_connected.return_value = False
        with pytest.raises(ConfigError, match="Could not connect"):
            connect(make_settings())

    @patch('deployer.chain.Web3')
    def test_missing_private_key(self, mock_web3):
        mock_web3.return_value.is_connected.return_value = True
        with pytest.raises(ConfigError, match="DEPLOYER_PRIVATE_KEY"):
            connect(make_settings(private_key=None))

    @patch('deployer.chain.Web3')
    def test_builds_chain(self, mock_web3):
        w3 = mock_web3.return_value
        w3.is_connected.return_value = True
        w3.eth.account.from_key.return_value.address = "0xDe"

        chain = connect(make_settings(gas_limit=5000000, receipt_timeout=60))

        w3.middleware_onion.inject.assert_called_once()
        assert chain.address == "0xDe"
        assert chain.gas == 5000000
        assert chain.receipt_timeout == 60
