"""Declarative descriptions of deployable components and their linking calls."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple, Union


class Mode(str, Enum):
    """How a component's address was obtained"""
    DEPLOYED = "deployed"
    ATTACHED = "attached"


class ComponentState(str, Enum):
    PENDING = "pending"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    FAILED = "failed"


class RunState(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class Literal:
    """Argument passed through unchanged"""
    value: Any


@dataclass(frozen=True)
class Ref:
    """Argument resolved from another component's address"""
    component: str
    field: str = "address"

    def __post_init__(self):
        if self.field != "address":
            raise ValueError(f"Unsupported reference field '{self.field}' for {self.component}")


Arg = Union[Literal, Ref]


def references(args) -> List[str]:
    """Names referenced by a list of argument descriptors, in order"""
    return [arg.component for arg in args if isinstance(arg, Ref)]


@dataclass(frozen=True)
class ChildQuery:
    """
    Read-only query that recovers the address of a sub-component created by a
    factory call, e.g. ``getAmm(base, quote)`` after ``createPair(base, quote)``.

    With ``index_method`` set, the length getter is called first and the item
    getter receives ``length - 1`` as its final argument.
    """
    name: str
    method: str
    args: Tuple[Arg, ...] = ()
    index_method: Optional[str] = None
    contract: Optional[str] = None

    @property
    def contract_name(self) -> str:
        return self.contract or self.name.split(":")[0]

    def references(self) -> List[str]:
        return references(self.args)


@dataclass(frozen=True)
class StateCheck:
    """
    Read-only getters on ``component`` that must return the same values before
    and after a linking call, e.g. a proxy's ``baseToken()`` across an upgrade.
    """
    component: str
    methods: Tuple[str, ...]
    contract: Optional[str] = None


@dataclass(frozen=True)
class LinkCall:
    """Post-deployment mutation executed against ``target`` once its owner is resolved"""
    target: str
    method: str
    args: Tuple[Arg, ...] = ()
    children: Tuple[ChildQuery, ...] = ()
    target_contract: Optional[str] = None
    checks: Tuple[StateCheck, ...] = ()

    @property
    def label(self) -> str:
        return f"{self.target}.{self.method}"

    def references(self) -> List[str]:
        return [self.target] + references(self.args) + [check.component for check in self.checks]


@dataclass(frozen=True)
class ResourceSpec:
    """One deployable component: what to build, with which arguments, and what to link afterwards"""
    name: str
    contract: Optional[str] = None
    args: Tuple[Arg, ...] = ()
    fixed_address: Optional[str] = None
    links: Tuple[LinkCall, ...] = ()

    @property
    def contract_name(self) -> str:
        return self.contract or self.name

    def references(self) -> List[str]:
        return references(self.args)

    def child_names(self) -> List[str]:
        return [child.name for link in self.links for child in link.children]


@dataclass(frozen=True)
class Component:
    """A resolved component as recorded by one orchestration run"""
    name: str
    network: str
    contract: str
    address: str
    mode: Mode
    args: List[Any] = field(default_factory=list)
    parent: Optional[str] = None
