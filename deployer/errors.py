"""
Deployment Errors
=================

Exceptions raised while resolving and linking protocol components.
"""

from typing import Any, List, Optional


class DeployerError(Exception):
    """Base class for every orchestration error"""


class ConfigError(DeployerError):
    """Raised when environment or per-network configuration is unusable"""


class UnresolvedDependency(DeployerError):
    """A referenced component has no address in the registry"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Component '{name}' has not been resolved")


class DuplicateComponent(DeployerError):
    """A component name was declared or resolved twice"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Component '{name}' is already resolved")


class InvalidOrdering(DeployerError):
    """A reference points forward in the deployment order or to an unknown name"""

    def __init__(self, component: str, reference: str, reason: str):
        self.component = component
        self.reference = reference
        self.reason = reason
        super().__init__(f"{component} -> {reference}: {reason}")


class DeploymentFailed(DeployerError):
    """The chain rejected or never confirmed a deployment"""

    def __init__(self, component: str, args: List[Any], cause: BaseException, address: Optional[str] = None):
        self.component = component
        self.args_used = list(args)
        self.cause = cause
        # Set when the contract exists on chain but could not be bound afterwards
        self.address = address
        self.pending_links: List[str] = []
        where = f" (deployed at {address})" if address else ""
        super().__init__(f"Deployment of {component} failed with args {self.args_used}{where}: {cause}")


class LinkingFailed(DeployerError):
    """A post-deployment call (or the query that follows it) failed"""

    def __init__(self, component: str, call: str, args: Optional[List[Any]], cause: BaseException):
        self.component = component
        self.call = call
        self.args_used = list(args or [])
        self.cause = cause
        # Labels of the owner's linking calls that did not complete, failed call first
        self.pending_links: List[str] = []
        super().__init__(f"Linking call {call} for {component} failed with args {self.args_used}: {cause}")


class RunAborted(DeployerError):
    """The run was cancelled between two steps"""

    def __init__(self, component: Optional[str]):
        self.component = component
        where = f"after {component}" if component else "before the first component"
        super().__init__(f"Deployment run aborted {where}")
