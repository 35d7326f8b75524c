"""
Deploy-or-attach resolution of a single component.

A spec carrying a fixed address is bound to the existing instance; any other
spec is deployed with its arguments resolved from the registry.
"""

import logging
from typing import Any, Dict, Iterable, List

from deployer.errors import DeploymentFailed
from deployer.registry import AddressRegistry
from deployer.specs import Component, Mode, Ref, ResourceSpec

logger = logging.getLogger(__name__)


def resolve_args(args: Iterable, registry: AddressRegistry) -> List[Any]:
    """Turn argument descriptors into concrete values; references are looked up in the registry"""
    values = []
    for arg in args:
        if isinstance(arg, Ref):
            values.append(registry.get(arg.component))
        else:
            values.append(arg.value)
    return values


class DeployOrAttachResolver:
    """Resolves one ResourceSpec into a Component through the chain collaborator"""

    def __init__(self, chain, network: str):
        self.chain = chain
        self.network = network
        self._handles: Dict[str, Any] = {}

    def resolve(self, spec: ResourceSpec, registry: AddressRegistry) -> Component:
        contract = spec.contract_name

        if spec.fixed_address:
            logger.info(f"Attaching {spec.name} ({contract}) at {spec.fixed_address}")
            try:
                self._handles[spec.name] = self.chain.attach(contract, spec.fixed_address)
            except Exception as e:
                raise DeploymentFailed(spec.name, [], e) from e
            registry.set(spec.name, spec.fixed_address)
            return Component(spec.name, self.network, contract, spec.fixed_address, Mode.ATTACHED)

        args = resolve_args(spec.args, registry)
        logger.info(f"Deploying {spec.name} ({contract}) with args {args}")
        try:
            address = self.chain.deploy_new(contract, args)
        except Exception as e:
            logger.error(f"Deployment of {spec.name} failed: {e}")
            raise DeploymentFailed(spec.name, args, e) from e

        # Recorded before binding so a deployed contract is never lost
        registry.set(spec.name, address)
        try:
            self._handles[spec.name] = self.chain.attach(contract, address)
        except Exception as e:
            logger.error(f"{spec.name} deployed at {address} but could not be attached: {e}")
            raise DeploymentFailed(spec.name, args, e, address=address) from e

        return Component(spec.name, self.network, contract, address, Mode.DEPLOYED, args)

    def handle(self, name: str):
        return self._handles.get(name)

    def bind(self, name: str, contract: str, address: str):
        """Attach to a component that was not resolved through this resolver (seeded or derived)"""
        if name not in self._handles:
            self._handles[name] = self.chain.attach(contract, address)
        return self._handles[name]
