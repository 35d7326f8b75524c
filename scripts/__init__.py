"""
Deployment Scripts
==================

Entry points mirroring the protocol's two deployment flows.

Structure:
- deploy_all: fresh deployment of the core contracts
- deploy_core_upgrade: core redeployment behind a ProxyAdmin plus Margin upgrade
"""
