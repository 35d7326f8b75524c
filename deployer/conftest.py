"""Shared fixtures: an in-memory chain collaborator standing in for web3"""

from dataclasses import dataclass

import pytest


def address_of(n: int) -> str:
    return f"0x{n:040x}"


@dataclass(frozen=True)
class FakeHandle:
    contract: str
    address: str


class FakeChain:
    """Hands out sequential addresses and records every call it receives"""

    def __init__(self):
        self.deployed = []
        self.attached = []
        self.invoked = []
        self.queried = []
        self.fail_deploy = set()
        self.fail_attach = set()
        self.fail_invoke = set()
        self.query_results = {}
        self._counter = 0

    def deploy_new(self, contract, args):
        if contract in self.fail_deploy:
            raise RuntimeError(f"{contract} deployment reverted")
        self._counter += 1
        self.deployed.append((contract, list(args)))
        return address_of(self._counter)

    def attach(self, contract, address):
        if contract in self.fail_attach:
            raise RuntimeError(f"no code at {address}")
        self.attached.append((contract, address))
        return FakeHandle(contract, address)

    def invoke(self, handle, method, args):
        if method in self.fail_invoke:
            raise RuntimeError("execution reverted")
        self.invoked.append((handle.contract, method, list(args)))
        return {"status": 1}

    def query(self, handle, method, args):
        self.queried.append((handle.contract, method, list(args)))
        value = self.query_results[method]
        return value(*args) if callable(value) else value

    def deployed_contracts(self):
        return [contract for contract, _ in self.deployed]


@pytest.fixture
def fake_chain():
    return FakeChain()
