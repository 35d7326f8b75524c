"""
ApeX Deployer
=============

Deploys or attaches the protocol's on-chain components in dependency order:

- registry: write-once name -> address map for one run
- specs: declarative component, argument and linking-call descriptions
- resolver: deploy-or-attach policy for a single component
- orchestrator: validation, sequential resolution and linking
- reporting: logging, alerting and deployment record sinks
- chain: web3.py deployment and linking collaborator
- plans: the protocol's deployment plans
"""

__version__ = "1.0.0"
