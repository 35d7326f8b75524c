"""
Address registry for one deployment run.

Maps component names to addresses. Pinned or external addresses are seeded
before the run starts; every component resolved during the run is written
exactly once.
"""

import logging
from typing import Dict, Optional

from deployer.errors import DuplicateComponent, UnresolvedDependency

logger = logging.getLogger(__name__)


class AddressRegistry:
    """Write-once mapping from component name to on-chain address"""

    def __init__(self, seeds: Optional[Dict[str, str]] = None):
        self._resolved: Dict[str, str] = {}
        self._seeded: Dict[str, str] = {}
        for name, address in (seeds or {}).items():
            self.seed(name, address)

    def seed(self, name: str, address: str):
        """
        Pre-populate a known address.

        Args:
            name: Component name used by references
            address: Address already live on the target network

        Raises:
            DuplicateComponent: if the name was already resolved in this run
        """
        if name in self._resolved:
            raise DuplicateComponent(name)
        if name in self._seeded and self._seeded[name] != address:
            logger.warning(f"Replacing seeded address for {name}: {self._seeded[name]} -> {address}")
        self._seeded[name] = address

    def set(self, name: str, address: str):
        """Record the address a component resolved to during this run"""
        if name in self._resolved:
            raise DuplicateComponent(name)
        self._resolved[name] = address

    def get(self, name: str) -> str:
        if name in self._resolved:
            return self._resolved[name]
        if name in self._seeded:
            return self._seeded[name]
        raise UnresolvedDependency(name)

    def is_resolved(self, name: str) -> bool:
        return name in self._resolved

    def __contains__(self, name: str) -> bool:
        return name in self._resolved or name in self._seeded

    def resolved(self) -> Dict[str, str]:
        return dict(self._resolved)

    def seeded(self) -> Dict[str, str]:
        return dict(self._seeded)

    def snapshot(self) -> Dict[str, str]:
        merged = dict(self._seeded)
        merged.update(self._resolved)
        return merged
