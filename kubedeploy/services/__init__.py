"""
Services Module

Key Submodules:
- orchestration: Kubernetes reconciliation and deploy-mode checks
- retry_config: Retry with exponential backoff for cluster calls
- secret_encryption: Encryption of Secret values stored outside the cluster

Usage:
    from kubedeploy.services.orchestration.kubernetes import KubernetesReconciler
    from kubedeploy.services.secret_encryption import get_secret_encryption_service
"""
