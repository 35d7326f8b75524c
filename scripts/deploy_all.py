#!/usr/bin/env python3
"""
Fresh deployment of the core contracts.

Usage:
    python -m scripts.deploy_all [--network arbitrumTestnet] [--only Config,PairFactory,Router]
"""

import sys

from deployer.cli import main

if __name__ == "__main__":
    sys.exit(main(["deploy-all"] + sys.argv[1:]))
