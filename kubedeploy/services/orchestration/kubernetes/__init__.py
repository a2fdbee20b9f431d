"""
Kubernetes Orchestration Module

- errors: Tagged error hierarchy (not found, transient, permanent, configuration)
- labels: Recommended label sets and label value sanitization
- merge: Deep merge of override documents onto templates
- helpers: Resource templates (the desired-state documents)
- client: Per-kind cluster capability adapters over the kubernetes client
- manager: KubernetesReconciler, create-or-patch and delete engine
- rollout: Deployment rollout verification
"""

from .errors import (
    ErrorKind,
    KubernetesDeployError,
    ResourceNotFoundError,
    TransientClusterError,
    PermanentClusterError,
    ConfigurationError,
    ApplicationDeleteError,
)
from .labels import LabelConfig, application_labels, match_labels, sanitize_label_value
from .merge import deep_merge, merge_override
from .helpers import (
    namespace_template,
    deployment_template,
    service_template,
    ingress_template,
    service_account_template,
    role_template,
    cluster_role_template,
    role_binding_template,
    cluster_role_binding_template,
    secret_template,
    endpoint_base_url,
)
from .client import ResourceAdapter, ApiResourceAdapter, KubernetesClient, get_k8s_client
from .manager import KubernetesReconciler, get_kubernetes_reconciler
from .rollout import deployment_rolled_out, verify_rollout

__all__ = [
    # Errors
    "ErrorKind",
    "KubernetesDeployError",
    "ResourceNotFoundError",
    "TransientClusterError",
    "PermanentClusterError",
    "ConfigurationError",
    "ApplicationDeleteError",
    # Labels
    "LabelConfig",
    "application_labels",
    "match_labels",
    "sanitize_label_value",
    # Merge
    "deep_merge",
    "merge_override",
    # Templates
    "namespace_template",
    "deployment_template",
    "service_template",
    "ingress_template",
    "service_account_template",
    "role_template",
    "cluster_role_template",
    "role_binding_template",
    "cluster_role_binding_template",
    "secret_template",
    "endpoint_base_url",
    # Client
    "ResourceAdapter",
    "ApiResourceAdapter",
    "KubernetesClient",
    "get_k8s_client",
    # Reconciler
    "KubernetesReconciler",
    "get_kubernetes_reconciler",
    # Rollout
    "deployment_rolled_out",
    "verify_rollout",
]
