"""
kubedeploy - Kubernetes resource reconciliation for application deployments.

Builds desired-state documents for an application's Kubernetes resources
and reconciles them against a cluster (create or patch), tears them down
by name and label, and verifies deployment rollouts.
"""

__version__ = "1.0.0"
