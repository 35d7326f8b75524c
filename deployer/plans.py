"""
Deployment Plans
================

Ordered component lists for the protocol:

- deploy-all: fresh deployment of the core contracts
- testnet-fixtures: mock tokens, an initial pair, a bond pool and staking pools
- core-upgrade: redeploy the core behind a ProxyAdmin and upgrade the pair's Margin

Addresses already live on the network enter through the network config:
``seeds`` for contracts this repo never deploys and ``pins`` for components
deployed by an earlier run.
"""

from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from deployer.config import NetworkConfig
from deployer.errors import ConfigError
from deployer.specs import ChildQuery, LinkCall, Literal, Ref, ResourceSpec, StateCheck

# Seeded with the signing account at run start
DEPLOYER = "Deployer"


def pair_names(base: str, quote: str) -> Tuple[str, str]:
    """Registry names of the Amm and Margin created for a pair"""
    return f"Amm:{base}:{quote}", f"Margin:{base}:{quote}"


def _pair_tokens(net: NetworkConfig) -> Tuple[str, str]:
    try:
        return net.pair['base'], net.pair['quote']
    except KeyError as e:
        raise ConfigError(f"Network config for {net.network} is missing pair.{e.args[0]}") from e


def create_pair(net: NetworkConfig) -> LinkCall:
    """PairFactory.createPair followed by getAmm/getMargin to recover the new addresses"""
    base, quote = _pair_tokens(net)
    amm, margin = pair_names(base, quote)
    tokens = (Ref(base), Ref(quote))
    return LinkCall(
        "PairFactory", "createPair", tokens,
        children=(
            ChildQuery(amm, "getAmm", tokens, contract="Amm"),
            ChildQuery(margin, "getMargin", tokens, contract="Margin"),
        ),
    )


def full_deployment(net: NetworkConfig) -> List[ResourceSpec]:
    p = net.param
    return [
        ResourceSpec("ApeXToken"),
        ResourceSpec("PriceOracle", args=(Ref("UniswapV3Factory"), Ref("SushiV2Factory"), Ref("WETH"))),
        ResourceSpec("Config", links=(
            LinkCall("Config", "setPriceOracle", (Ref("PriceOracle"),)),
        )),
        ResourceSpec("PairFactory"),
        ResourceSpec("AmmFactory", args=(Ref("PairFactory"), Ref("Config"), Ref(DEPLOYER))),
        ResourceSpec("MarginFactory", args=(Ref("PairFactory"), Ref("Config")), links=(
            LinkCall("PairFactory", "init", (Ref("AmmFactory"), Ref("MarginFactory"))),
        )),
        ResourceSpec("PCVTreasury", args=(Ref("ApeXToken"),), links=(
            LinkCall("ApeXToken", "transfer", (Ref("PCVTreasury"), Literal(p("apeXAmountForBonding")))),
        )),
        ResourceSpec("Router", args=(Ref("PairFactory"), Ref("PCVTreasury"), Ref("WETH")), links=(
            LinkCall("Config", "registerRouter", (Ref("Router"),)),
        )),
        ResourceSpec("BondPoolFactory", args=(
            Ref("ApeXToken"),
            Ref("PCVTreasury"),
            Ref("PriceOracle"),
            Literal(p("maxPayout")),
            Literal(p("discount")),
            Literal(p("vestingTerm")),
        )),
        ResourceSpec("StakingPoolFactory", links=(
            LinkCall("StakingPoolFactory", "initialize", (
                Ref("ApeXToken"),
                Literal(p("apeXPerBlock")),
                Literal(p("blocksPerUpdate")),
                Literal(p("initBlock")),
                Literal(p("endBlock")),
            )),
        )),
    ]


def _pinned(net: NetworkConfig, name: str) -> str:
    if name not in net.pins:
        raise ConfigError(f"testnet fixtures need a pinned address for {name} on {net.network}")
    return net.pins[name]


def testnet_fixtures(net: NetworkConfig) -> List[ResourceSpec]:
    """Mock tokens and pools on top of an existing deployment; the factories must be pinned"""
    p = net.param
    base, quote = _pair_tokens(net)
    amm, _ = pair_names(base, quote)

    staking_pools = [
        LinkCall("StakingPoolFactory", "createPool",
                 (Ref("ApeXToken"), Literal(p("initBlock")), Literal(p("apeXPoolWeight")))),
    ]
    if "ApeXSLPToken" in net.seeds:
        staking_pools.append(
            LinkCall("StakingPoolFactory", "createPool",
                     (Ref("ApeXSLPToken"), Literal(p("initBlock")), Literal(p("slpPoolWeight")))),
        )

    return [
        ResourceSpec("MockWETH"),
        ResourceSpec("MockWBTC", contract="MyToken", args=(
            Literal("Mock WBTC"), Literal("mWBTC"), Literal(8), Literal(21000000))),
        ResourceSpec("MockUSDC", contract="MyToken", args=(
            Literal("Mock USDC"), Literal("mUSDC"), Literal(6), Literal(10000000000))),
        ResourceSpec("MockSHIB", contract="MyToken", args=(
            Literal("Mock SHIB"), Literal("mSHIB"), Literal(18), Literal(999992012570472))),
        ResourceSpec("PairFactory", fixed_address=_pinned(net, "PairFactory"), links=(create_pair(net),)),
        ResourceSpec("BondPoolFactory", fixed_address=_pinned(net, "BondPoolFactory"), links=(
            LinkCall("BondPoolFactory", "createPool", (Ref(amm),), children=(
                ChildQuery("BondPool", "allPools", index_method="allPoolsLength"),
            )),
        )),
        ResourceSpec("StakingPoolFactory", fixed_address=_pinned(net, "StakingPoolFactory"),
                     links=tuple(staking_pools)),
    ]


def core_upgrade(net: NetworkConfig) -> List[ResourceSpec]:
    """
    Core redeployment behind a ProxyAdmin, ending with an upgrade of the pair's
    Margin. The Margin's baseToken and netPosition must survive the upgrade.
    """
    base, quote = _pair_tokens(net)
    _, margin = pair_names(base, quote)
    return [
        ResourceSpec("ProxyAdmin"),
        ResourceSpec("PriceOracle", links=(
            LinkCall("PriceOracle", "initialize", (Ref(DEPLOYER), Ref("WETH"), Ref("UniswapV3Factory"))),
        )),
        ResourceSpec("Config", links=(
            LinkCall("Config", "setPriceOracle", (Ref("PriceOracle"),)),
        )),
        ResourceSpec("PairFactory", links=(
            LinkCall("PairFactory", "setProxyAdmin", (Ref("ProxyAdmin"),)),
        )),
        ResourceSpec("AmmFactory", args=(Ref("PairFactory"), Ref("Config"), Ref(DEPLOYER))),
        ResourceSpec("MarginFactory", args=(Ref("PairFactory"), Ref("Config")), links=(
            LinkCall("PairFactory", "init", (Ref("AmmFactory"), Ref("MarginFactory"))),
            create_pair(net),
        )),
        ResourceSpec("Router", links=(
            LinkCall("Router", "initialize", (Ref("Config"), Ref("PairFactory"), Ref("PCVTreasury"), Ref("WETH"))),
            LinkCall("Config", "registerRouter", (Ref("Router"),)),
        )),
        ResourceSpec("MarginNew", links=(
            LinkCall("ProxyAdmin", "upgrade", (Ref(margin), Ref("MarginNew")), checks=(
                StateCheck(margin, ("baseToken", "netPosition"), contract="Margin"),
            )),
        )),
    ]


PLANS: Dict[str, Callable[[NetworkConfig], List[ResourceSpec]]] = {
    "deploy-all": full_deployment,
    "testnet-fixtures": testnet_fixtures,
    "core-upgrade": core_upgrade,
}


def apply_pins(specs: Iterable[ResourceSpec], pins: Dict[str, str], keep_links: bool = False,
               pending_links: Optional[Dict[str, List[str]]] = None) -> List[ResourceSpec]:
    """
    Attach pinned components instead of deploying them.

    A pinned component is taken to be fully set up already, so its linking
    calls are dropped unless ``keep_links`` is set. Calls listed in
    ``pending_links`` (left undone by a failed run) are always kept.
    """
    pending_links = pending_links or {}
    pinned = []
    for spec in specs:
        if spec.name in pins and not spec.fixed_address:
            links = spec.links if keep_links else _pending(spec, pending_links.get(spec.name, []))
            spec = replace(spec, fixed_address=pins[spec.name], links=links)
        pinned.append(spec)
    return pinned


def _pending(spec: ResourceSpec, labels: List[str]) -> Tuple[LinkCall, ...]:
    if not labels:
        return ()
    remaining = spec.links[-len(labels):]
    if [link.label for link in remaining] != list(labels):
        raise ConfigError(f"Pending linking calls for {spec.name} ({', '.join(labels)}) do not match the plan")
    return remaining


def select(specs: Iterable[ResourceSpec], names: Optional[Iterable[str]]) -> List[ResourceSpec]:
    """Keep only the named components, in plan order"""
    specs = list(specs)
    if not names:
        return specs
    wanted = set(names)
    unknown = wanted - {spec.name for spec in specs}
    if unknown:
        raise ConfigError(f"Unknown components: {', '.join(sorted(unknown))}")
    return [spec for spec in specs if spec.name in wanted]


def build_plan(name: str, net: NetworkConfig, only: Optional[Iterable[str]] = None,
               keep_links: bool = False) -> List[ResourceSpec]:
    if name not in PLANS:
        raise ConfigError(f"Unknown plan '{name}', expected one of: {', '.join(PLANS)}")
    specs = apply_pins(PLANS[name](net), net.pins, keep_links=keep_links, pending_links=net.pending_links)
    return select(specs, only)


def external_seeds(net: NetworkConfig, specs: Iterable[ResourceSpec]) -> Dict[str, str]:
    """Seeds plus pins of components the plan does not resolve itself"""
    in_plan = {spec.name for spec in specs}
    seeds = dict(net.seeds)
    seeds.update({name: address for name, address in net.pins.items() if name not in in_plan})
    return seeds
