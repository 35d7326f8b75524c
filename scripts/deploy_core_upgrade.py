#!/usr/bin/env python3
"""
Core redeployment behind a ProxyAdmin, then upgrade of the pair's Margin.

Usage:
    python -m scripts.deploy_core_upgrade --network-file networks/arbitrumTestnetUpgrade.json
"""

import sys

from deployer.cli import main

if __name__ == "__main__":
    sys.exit(main(["core-upgrade"] + sys.argv[1:]))
