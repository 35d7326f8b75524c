#!/usr/bin/env python3
"""
Tests for the command line entry point and its exit codes
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from deployer.cli import describe, main
from deployer.config import Settings
from deployer.conftest import FakeChain
from deployer.reporting import AlertingReportingSink, CompositeReportingSink
from deployer.specs import ChildQuery, LinkCall, Literal, Ref, ResourceSpec

NETWORK = {
    "network": "arbitrumTestnet",
    "chainId": 421611,
    "seeds": {"UniswapV3Factory": "0xF3", "SushiV2Factory": "0xF2", "WETH": "0xEE"},
    "pins": {},
    "params": {
        "apeXAmountForBonding": 1000000000,
        "maxPayout": 100000000,
        "discount": 500,
        "vestingTerm": 129600,
        "apeXPerBlock": 100,
        "blocksPerUpdate": 2,
        "initBlock": 6690016,
        "endBlock": 7090016,
    },
    "pair": {"base": "WETH", "quote": "USDC"},
}


class TestMain:

    @pytest.fixture(autouse=True)
    def environment(self, tmp_path):
        self.tmp_path = tmp_path
        self.network_file = tmp_path / "network.json"
        self.network_file.write_text(json.dumps(NETWORK))
        self.record = tmp_path / "record.json"

        settings = Settings(rpc_url="http://localhost:8545", private_key="0x" + "11" * 32,
                            network="arbitrumTestnet", artifacts_dir="artifacts",
                            networks_dir=str(tmp_path), log_file=str(tmp_path / "deployer.log"))
        self.settings = settings
        self.chain = FakeChain()
        self.chain.address = "0xDe"
        self.chain.w3 = MagicMock()
        self.chain.w3.eth.chain_id = 421611

        with patch('deployer.cli.Settings.from_env', return_value=settings), \
                patch('deployer.cli.configure_logging'), \
                patch('deployer.cli.connect', return_value=self.chain) as self.mock_connect:
            yield

    def argv(self, *extra):
        return ["deploy-all", "--network-file", str(self.network_file), "--record", str(self.record)] + list(extra)

    def test_completed_run_exits_zero(self):
        assert main(self.argv()) == 0

        assert len(self.chain.deployed) == 10
        record = json.loads(self.record.read_text())
        assert record['status'] == "completed"
        assert record['roles']['deployer'] == "0xDe"
        assert set(record['contracts']) >= {"Config", "PairFactory", "Router"}

    def test_deployer_account_is_seeded(self):
        main(self.argv())
        amm_factory = next(args for contract, args in self.chain.deployed if contract == "AmmFactory")
        assert amm_factory[-1] == "0xDe"

    def test_failed_run_exits_non_zero(self):
        self.chain.fail_deploy.add("Router")

        assert main(self.argv()) == 1

        record = json.loads(self.record.read_text())
        assert record['status'] == "aborted"
        assert "Router" not in record['contracts']
        assert "PCVTreasury" in record['contracts']
        assert "BondPoolFactory" not in self.chain.deployed_contracts()

    def test_invalid_selection_exits_non_zero_without_deploying(self):
        assert main(self.argv("--only", "Router")) == 1
        assert self.chain.deployed == []

    def test_dry_run_does_not_connect(self):
        assert main(self.argv("--dry-run")) == 0
        self.mock_connect.assert_not_called()
        assert not self.record.exists()

    def test_chain_id_mismatch(self):
        self.chain.w3.eth.chain_id = 1
        assert main(self.argv()) == 1
        assert self.chain.deployed == []

    def test_pins_from_record(self):
        previous = self.tmp_path / "previous.json"
        previous.write_text(json.dumps({
            "network": "arbitrumTestnet",
            "contracts": {"ApeXToken": "0xA0", "PriceOracle": "0xP0", "Config": "0xC0"},
        }))

        assert main(self.argv("--pins-from", str(previous))) == 0

        assert "Config" not in self.chain.deployed_contracts()
        assert ("Config", "0xC0") in self.chain.attached
        assert len(self.chain.deployed) == 7

    def test_failed_link_runs_again_from_record(self):
        self.chain.fail_invoke.add("registerRouter")
        assert main(self.argv()) == 1
        record = json.loads(self.record.read_text())
        assert record['pendingLinks'] == {"Router": ["Config.registerRouter"]}

        self.chain.fail_invoke.clear()
        self.chain.invoked = []
        self.chain.deployed = []
        retry = self.tmp_path / "retry.json"
        argv = ["deploy-all", "--network-file", str(self.network_file), "--record", str(retry),
                "--pins-from", str(self.record)]

        assert main(argv) == 0

        assert [method for _, method, _ in self.chain.invoked] == ["registerRouter", "initialize"]
        assert self.chain.deployed_contracts() == ["BondPoolFactory", "StakingPoolFactory"]
        assert 'pendingLinks' not in json.loads(retry.read_text())

    def test_alerting_only_with_a_channel(self):
        with patch('deployer.cli.CompositeReportingSink', wraps=CompositeReportingSink) as composite:
            main(self.argv())
        assert not any(isinstance(sink, AlertingReportingSink) for sink in composite.call_args.args)

        self.settings.slack_webhook = "https://hooks.slack.test/x"
        with patch('deployer.cli.CompositeReportingSink', wraps=CompositeReportingSink) as composite:
            main(self.argv())
        assert any(isinstance(sink, AlertingReportingSink) for sink in composite.call_args.args)

    def test_missing_network_file(self):
        assert main(["deploy-all", "--network-file", str(self.tmp_path / "missing.json")]) == 1


class TestDescribe:

    def test_deploy_and_links(self):
        spec = ResourceSpec("PairFactory", args=(Ref("Config"), Literal(5)), links=(
            LinkCall("PairFactory", "createPair", (Ref("WETH"),), children=(ChildQuery("Amm:WETH:USDC", "getAmm"),)),
        ))

        assert describe(spec) == [
            "PairFactory: deploy PairFactory(&Config, 5)",
            "  -> PairFactory.createPair(&WETH)",
            "     => Amm:WETH:USDC = PairFactory.getAmm(...)",
        ]

    def test_attach(self):
        assert describe(ResourceSpec("PCVTreasury", fixed_address="0xTR")) == [
            "PCVTreasury: attach PCVTreasury at 0xTR"
        ]
