"""
Command line entry point.

Usage:
    apex-deploy deploy-all --network arbitrumTestnet
    apex-deploy core-upgrade --network-file networks/arbitrumTestnetUpgrade.json
    apex-deploy deploy-all --only Config,PairFactory,Router --dry-run
"""

import argparse
import logging
import os
import signal
import sys
from typing import List, Optional

from deployer.chain import connect
from deployer.config import NetworkConfig, Settings
from deployer.errors import ConfigError, DeployerError
from deployer.orchestrator import DependencyOrchestrator
from deployer.plans import DEPLOYER, PLANS, build_plan, external_seeds
from deployer.registry import AddressRegistry
from deployer.reporting import (
    AlertingReportingSink,
    CompositeReportingSink,
    DeploymentRecordSink,
    LoggingReportingSink,
)
from deployer.specs import ResourceSpec

logger = logging.getLogger(__name__)

DRY_RUN_DEPLOYER = "0x0000000000000000000000000000000000000001"


def configure_logging(log_file: str):
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Deploy or attach protocol components in dependency order")
    parser.add_argument("plan", choices=sorted(PLANS), help="Deployment plan to run")
    parser.add_argument("--network", help="Network config name under the networks directory (default: DEPLOYER_NETWORK)")
    parser.add_argument("--network-file", help="Explicit path to a network config JSON file")
    parser.add_argument("--only", help="Comma separated components to run; the others must be pinned or seeded")
    parser.add_argument("--pins-from", help="Deployment record whose components are attached instead of redeployed")
    parser.add_argument("--keep-links", action="store_true", help="Run linking calls of pinned components too")
    parser.add_argument("--record", help="Where to write the deployment record (default: deployments/<network>-<plan>.json)")
    parser.add_argument("--dry-run", action="store_true", help="Validate and print the plan without touching the chain")
    return parser


def describe(spec: ResourceSpec) -> List[str]:
    """Human readable plan lines for one spec"""
    if spec.fixed_address:
        lines = [f"{spec.name}: attach {spec.contract_name} at {spec.fixed_address}"]
    else:
        lines = [f"{spec.name}: deploy {spec.contract_name}({', '.join(_describe_arg(a) for a in spec.args)})"]
    for link in spec.links:
        lines.append(f"  -> {link.label}({', '.join(_describe_arg(a) for a in link.args)})")
        for child in link.children:
            lines.append(f"     => {child.name} = {link.target}.{child.method}(...)")
        for check in link.checks:
            lines.append(f"     == {check.component}: {', '.join(m + '()' for m in check.methods)} unchanged")
    return lines


def _describe_arg(arg) -> str:
    return f"&{arg.component}" if hasattr(arg, "component") else repr(arg.value)


def load_network(args, settings: Settings) -> NetworkConfig:
    if args.network_file:
        return NetworkConfig.load(args.network_file)
    return NetworkConfig.for_network(args.network or settings.network, settings.networks_dir)


def _install_signal_handlers(orchestrator: DependencyOrchestrator):
    def handler(signum, frame):
        logger.warning(f"Received signal {signum}")
        orchestrator.cancel()

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    return previous


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings.from_env()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    configure_logging(settings.log_file)

    try:
        net = load_network(args, settings)
        if args.pins_from:
            net.pin_from_record(args.pins_from)
        only = [name.strip() for name in args.only.split(",")] if args.only else None
        specs = build_plan(args.plan, net, only=only, keep_links=args.keep_links)
        registry = AddressRegistry(external_seeds(net, specs))

        if args.dry_run:
            if DEPLOYER not in registry:
                registry.seed(DEPLOYER, DRY_RUN_DEPLOYER)
            DependencyOrchestrator(None, registry, net.network).validate(specs)
            logger.info(f"Plan {args.plan} on {net.network} is valid:")
            for spec in specs:
                for line in describe(spec):
                    logger.info(line)
            return 0

        chain = connect(settings)
        if net.chain_id is not None and chain.w3.eth.chain_id != net.chain_id:
            raise ConfigError(f"RPC chain id {chain.w3.eth.chain_id} does not match {net.network} ({net.chain_id})")
        registry.seed(DEPLOYER, chain.address)
    except DeployerError as e:
        logger.error(f"Fatal error: {e}")
        return 1

    record_path = args.record or os.path.join("deployments", f"{net.network}-{args.plan}.json")
    sinks = [
        LoggingReportingSink(net.network),
        DeploymentRecordSink(record_path, net.network, chain.address, pending_links=net.pending_links),
    ]
    alerting = AlertingReportingSink.from_settings(settings)
    if alerting.enabled:
        sinks.append(alerting)
    sink = CompositeReportingSink(*sinks)
    orchestrator = DependencyOrchestrator(chain, registry, net.network, sink)

    previous = _install_signal_handlers(orchestrator)
    try:
        orchestrator.run(specs)
    except DeployerError as e:
        logger.error(f"Deployment failed: {e}")
        return 1
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    return 0
