"""
Web3 chain collaborator.

Deploys hardhat artifacts, binds contract handles and sends signed linking
transactions. Every transaction waits for its receipt before returning.
"""

import glob
import json
import logging
import os
from typing import Any, Dict, List, Optional

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from deployer.errors import ConfigError

logger = logging.getLogger(__name__)


class ArtifactNotFound(Exception):
    def __init__(self, contract: str, artifacts_dir: str):
        self.contract = contract
        super().__init__(f"No artifact for {contract} under {artifacts_dir}")


class TransactionFailed(Exception):
    def __init__(self, tx_hash: str, receipt: Any):
        self.tx_hash = tx_hash
        self.receipt = receipt
        super().__init__(f"Transaction {tx_hash} reverted")


def connect(settings) -> "Web3Chain":
    """Build a Web3Chain from settings, failing early on connection or key problems"""
    w3 = Web3(Web3.HTTPProvider(settings.rpc_url))
    w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    if not w3.is_connected():
        raise ConfigError(f"Could not connect to RPC URL: {settings.rpc_url}")
    logger.info(f"Connected to blockchain at {settings.rpc_url}")

    if not settings.private_key:
        raise ConfigError("DEPLOYER_PRIVATE_KEY not found in environment")
    account = w3.eth.account.from_key(settings.private_key)
    logger.info(f"Using deployer account: {account.address}")

    return Web3Chain(
        w3,
        account,
        settings.artifacts_dir,
        gas=settings.gas_limit,
        receipt_timeout=settings.receipt_timeout,
    )


class Web3Chain:
    """Deployment and linking collaborator backed by web3.py"""

    def __init__(self, w3: Web3, account, artifacts_dir: str, gas: Optional[int] = None,
                 receipt_timeout: int = 300):
        self.w3 = w3
        self.account = account
        self.artifacts_dir = artifacts_dir
        self.gas = gas
        self.receipt_timeout = receipt_timeout
        self._artifacts: Dict[str, Dict[str, Any]] = {}

    @property
    def address(self) -> str:
        return self.account.address

    def load_artifact(self, contract: str) -> Dict[str, Any]:
        """Load abi and bytecode from artifacts/contracts/**/<contract>.sol/<contract>.json"""
        if contract in self._artifacts:
            return self._artifacts[contract]

        pattern = os.path.join(self.artifacts_dir, '**', f'{contract}.sol', f'{contract}.json')
        matches = sorted(glob.glob(pattern, recursive=True))
        if not matches:
            raise ArtifactNotFound(contract, self.artifacts_dir)

        with open(matches[0], 'r') as f:
            self._artifacts[contract] = json.load(f)
        return self._artifacts[contract]

    def deploy_new(self, contract: str, args: List[Any]) -> str:
        artifact = self.load_artifact(contract)
        factory = self.w3.eth.contract(abi=artifact['abi'], bytecode=artifact['bytecode'])
        tx = factory.constructor(*args).build_transaction(self._tx_params())
        receipt = self._send(tx)
        address = receipt['contractAddress']
        logger.info(f"{contract} deployed at {address} in block {receipt['blockNumber']}")
        return address

    def attach(self, contract: str, address: str):
        artifact = self.load_artifact(contract)
        return self.w3.eth.contract(address=self.w3.to_checksum_address(address), abi=artifact['abi'])

    def invoke(self, handle, method: str, args: List[Any]):
        tx = handle.functions[method](*args).build_transaction(self._tx_params())
        return self._send(tx)

    def query(self, handle, method: str, args: List[Any]):
        return handle.functions[method](*args).call()

    def _tx_params(self) -> Dict[str, Any]:
        params = {
            'from': self.account.address,
            'nonce': self.w3.eth.get_transaction_count(self.account.address),
            'gasPrice': self.w3.eth.gas_price,
        }
        if self.gas:
            params['gas'] = self.gas
        return params

    def _send(self, tx: Dict[str, Any]):
        signed_tx = self.account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        logger.info(f"Transaction sent: {tx_hash.hex()}")

        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        if receipt['status'] != 1:
            raise TransactionFailed(tx_hash.hex(), receipt)
        return receipt
