"""
Dependency Orchestrator
=======================

Runs an ordered list of ResourceSpecs against one chain:

1. validate the order (no duplicates, no forward or unknown references)
2. resolve each component (deploy or attach)
3. execute its linking calls and recover any sub-components they create

Every step blocks until the chain confirms it. Nothing is retried or rolled
back: a failure aborts the run and leaves already resolved components in the
registry.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from deployer.errors import (
    DeployerError,
    DeploymentFailed,
    DuplicateComponent,
    InvalidOrdering,
    LinkingFailed,
    RunAborted,
)
from deployer.registry import AddressRegistry
from deployer.reporting import ReportingSink
from deployer.resolver import DeployOrAttachResolver, resolve_args
from deployer.specs import (
    ChildQuery,
    Component,
    ComponentState,
    LinkCall,
    Mode,
    ResourceSpec,
    RunState,
    StateCheck,
)

logger = logging.getLogger(__name__)


def _is_zero_address(value: Any) -> bool:
    if not value:
        return True
    try:
        return int(str(value), 16) == 0
    except ValueError:
        return False


def _compare_checks(before, after):
    for key, value in before.items():
        if after[key] != value:
            component, method = key
            raise ValueError(f"{component}.{method}() changed from {value} to {after[key]}")


class DependencyOrchestrator:
    """Sequential deploy-and-link driver for one orchestration run"""

    def __init__(
        self,
        chain,
        registry: AddressRegistry,
        network: str,
        sink: Optional[ReportingSink] = None,
        resolver: Optional[DeployOrAttachResolver] = None,
    ):
        self.chain = chain
        self.registry = registry
        self.network = network
        self.sink = sink or ReportingSink()
        self.resolver = resolver or DeployOrAttachResolver(chain, network)

        self.state: Optional[RunState] = None
        self.states: Dict[str, ComponentState] = {}
        self.components: List[Component] = []
        self._contracts: Dict[str, str] = {}
        self._cancelled = False

    def cancel(self):
        """Request an abort once the step in flight has completed"""
        if not self._cancelled:
            logger.warning("Cancellation requested; the run stops after the current step")
        self._cancelled = True

    def validate(self, specs: List[ResourceSpec]):
        """
        Check the caller's order before anything touches the chain.

        Raises:
            DuplicateComponent: a spec or derived child name is declared twice
            InvalidOrdering: a reference is forward, circular or unknown
        """
        declared = set()
        for spec in specs:
            for name in [spec.name] + spec.child_names():
                if name in declared:
                    raise DuplicateComponent(name)
                declared.add(name)

        available = set(self.registry.seeded())
        pending = [spec.name for spec in specs]

        for spec in specs:
            pending.remove(spec.name)
            for ref in spec.references():
                self._check_reference(spec.name, ref, available, pending, owner=None)
            available.add(spec.name)

            for link in spec.links:
                for ref in link.references():
                    self._check_reference(spec.name, ref, available, pending, owner=spec.name)
                for child in link.children:
                    for ref in child.references():
                        self._check_reference(spec.name, ref, available, pending, owner=spec.name)
                    available.add(child.name)

    def _check_reference(self, component, ref, available, pending, owner):
        if ref == component and owner is None:
            raise InvalidOrdering(component, ref, "component references itself")
        if ref in pending:
            raise InvalidOrdering(component, ref, "referenced component is resolved later in the order")
        if ref not in available:
            raise InvalidOrdering(component, ref, "referenced component is neither earlier in the order nor seeded")

    def run(self, specs: List[ResourceSpec]) -> List[Component]:
        """Resolve and link every spec in order, returning the resolved components"""
        specs = list(specs)
        self.state = RunState.RUNNING
        self.states = {spec.name: ComponentState.PENDING for spec in specs}
        self.components = []
        self._contracts = {spec.name: spec.contract_name for spec in specs}

        last: Optional[str] = None
        try:
            self.validate(specs)
            logger.info(f"Starting run on {self.network} with {len(specs)} components")

            for spec in specs:
                if self._cancelled:
                    raise RunAborted(last)
                self._resolve(spec)
                last = spec.name
        except DeployerError as e:
            self.state = RunState.ABORTED
            logger.error(f"Run aborted: {e}")
            self._notify("on_run_failed", e)
            raise

        self.state = RunState.COMPLETED
        logger.info(f"Run completed: {len(self.components)} components resolved")
        self._notify("on_run_completed", list(self.components))
        return list(self.components)

    def _resolve(self, spec: ResourceSpec):
        self.states[spec.name] = ComponentState.RESOLVING
        try:
            component = self.resolver.resolve(spec, self.registry)
        except DeploymentFailed as e:
            self.states[spec.name] = ComponentState.FAILED
            if e.address:
                e.pending_links = [link.label for link in spec.links]
            raise
        except DeployerError:
            self.states[spec.name] = ComponentState.FAILED
            raise

        self.states[spec.name] = ComponentState.RESOLVED
        self.components.append(component)
        logger.info(f"{component.name}: {component.address} ({component.mode.value})")
        self._notify("on_component_resolved", component)

        for index, link in enumerate(spec.links):
            try:
                self._link(spec, component, link)
            except LinkingFailed as e:
                e.pending_links = [pending.label for pending in spec.links[index:]]
                raise

    def _link(self, spec: ResourceSpec, component: Component, link: LinkCall):
        args = resolve_args(link.args, self.registry)
        logger.info(f"Linking {link.label}({', '.join(str(a) for a in args)})")
        try:
            handle = self._handle_for(link.target, link.target_contract)
            before = self._read_checks(link.checks)
            self.chain.invoke(handle, link.method, args)
            after = self._read_checks(link.checks)
            _compare_checks(before, after)
        except Exception as e:
            logger.error(f"Linking call {link.label} failed: {e}")
            raise LinkingFailed(spec.name, link.label, args, e) from e

        self._notify("on_link_executed", component, link)

        for child in link.children:
            self._query_child(spec, link, handle, child)

    def _handle_for(self, name: str, contract: Optional[str] = None):
        handle = self.resolver.handle(name)
        if handle is not None:
            return handle
        contract = contract or self._contracts.get(name, name)
        return self.resolver.bind(name, contract, self.registry.get(name))

    def _read_checks(self, checks: Tuple[StateCheck, ...]) -> Dict[Tuple[str, str], Any]:
        values = {}
        for check in checks:
            handle = self._handle_for(check.component, check.contract)
            for method in check.methods:
                values[(check.component, method)] = self.chain.query(handle, method, [])
                logger.info(f"{check.component}.{method}() = {values[(check.component, method)]}")
        return values

    def _query_child(self, spec: ResourceSpec, link: LinkCall, handle, child: ChildQuery):
        label = f"{link.target}.{child.method}"
        args = resolve_args(child.args, self.registry)
        try:
            if child.index_method:
                length = int(self.chain.query(handle, child.index_method, []))
                if length == 0:
                    raise ValueError(f"{child.index_method} returned 0 after {link.method}")
                args = args + [length - 1]
            address = self.chain.query(handle, child.method, args)
            if _is_zero_address(address):
                raise ValueError(f"{child.method} returned the zero address")
        except Exception as e:
            logger.error(f"Query {label} for {child.name} failed: {e}")
            raise LinkingFailed(spec.name, label, args, e) from e

        self.registry.set(child.name, address)
        self._contracts[child.name] = child.contract_name
        self.states[child.name] = ComponentState.RESOLVED

        derived = Component(
            child.name, self.network, child.contract_name, address, Mode.DEPLOYED, [], parent=spec.name
        )
        self.components.append(derived)
        logger.info(f"{derived.name}: {derived.address} (created by {link.label})")
        self._notify("on_component_resolved", derived)

    def _notify(self, hook: str, *args):
        try:
            getattr(self.sink, hook)(*args)
        except Exception as e:
            logger.error(f"Reporting sink {hook} failed: {e}")
