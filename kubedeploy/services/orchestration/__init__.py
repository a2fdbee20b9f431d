"""
Orchestration Module - Kubernetes Application Reconciliation

Architecture:
- DeploymentMode enum and verify_application_deploy: decide whether this
  process fulfils a given application
- kubernetes: templates, cluster adapters, reconciler and rollout checks

Usage:
    from kubedeploy.services.orchestration import verify_application_deploy
    from kubedeploy.services.orchestration.kubernetes import get_kubernetes_reconciler

    app = verify_application_deploy(app, deploy_options_from_settings(), settings.pod_namespace)
    if app:
        await get_kubernetes_reconciler().upsert_application(app)
"""

from .deployment_mode import (
    DeploymentMode,
    deploy_options_from_settings,
    verify_application_deploy,
)

__all__ = [
    # Enums
    "DeploymentMode",
    # Deploy mode checks
    "deploy_options_from_settings",
    "verify_application_deploy",
]
