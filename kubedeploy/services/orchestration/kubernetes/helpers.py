"""
Kubernetes Resource Templates

Desired-state documents for the resources of an application:
- Namespace
- Deployment
- Service and Ingress
- ServiceAccount, Role/ClusterRole, RoleBinding/ClusterRoleBinding
- Secret

Each template builds a default document from the application descriptor
and then deep-merges the descriptor's override document for that kind on
top (see merge.py). Documents are plain dicts in the Kubernetes wire
format so overrides can address any field of the upstream schema.
"""

import copy
from typing import Any, Dict, Optional

from ....schemas import ApplicationDescriptor
from .labels import LabelConfig, application_labels, match_labels
from .merge import merge_override

RBAC_API_GROUP = "rbac.authorization.k8s.io"
RBAC_API_VERSION = "rbac.authorization.k8s.io/v1"

# Whether the template's apiVersion/kind survive an override that sets
# them. Deployment and RBAC overrides may change them, the rest may not.
PIN_IDENTITY: Dict[str, bool] = {
    "Namespace": True,
    "Secret": True,
    "Service": True,
    "Ingress": True,
    "ServiceAccount": True,
    "Deployment": False,
    "Role": False,
    "ClusterRole": False,
    "RoleBinding": False,
    "ClusterRoleBinding": False,
}

# Probe used for both readiness and liveness when a port is exposed
HTTP_PROBE: Dict[str, Any] = {
    "httpGet": {
        "path": "/",
        "port": "http",
        "scheme": "HTTP",
    },
    "initialDelaySeconds": 30,
    "timeoutSeconds": 3,
    "periodSeconds": 10,
    "successThreshold": 1,
    "failureThreshold": 3,
}

CONTAINER_RESOURCES: Dict[str, Any] = {
    "limits": {
        "cpu": "1000m",
        "memory": "384Mi",
    },
    "requests": {
        "cpu": "100m",
        "memory": "320Mi",
    },
}


def _metadata(
    name: Optional[str] = None,
    labels: Optional[Dict[str, str]] = None,
    namespace: Optional[str] = None,
    annotations: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    """Build an ObjectMeta document, leaving out unset fields."""
    metadata: Dict[str, Any] = {}
    if name:
        metadata["name"] = name
    if namespace:
        metadata["namespace"] = namespace
    if labels:
        metadata["labels"] = dict(labels)
    if annotations:
        metadata["annotations"] = dict(annotations)
    return metadata


def _finish(document: Dict[str, Any], override: Optional[dict]) -> Dict[str, Any]:
    return merge_override(document, override, pin_identity=PIN_IDENTITY[document["kind"]])


def service_account_name(app: ApplicationDescriptor) -> str:
    """Name of the application's service account, override first."""
    spec = app.service_account_spec or {}
    return (spec.get("metadata") or {}).get("name") or app.name


def role_kind(app: ApplicationDescriptor) -> Optional[str]:
    """Kind requested by the descriptor's role spec, None without RBAC."""
    if not app.role_spec:
        return None
    return app.role_spec.get("kind")


# =============================================================================
# Namespace
# =============================================================================

def namespace_template(app: ApplicationDescriptor, config: LabelConfig) -> Dict[str, Any]:
    """
    Create the Namespace document for an application.

    Only the workspace ID and managed-by labels are kept since the
    namespace may be shared by several applications.
    """
    all_labels = application_labels(app, config)
    retain = (config.workspace_label, "app.kubernetes.io/managed-by")
    labels = {key: value for key, value in all_labels.items() if key in retain}

    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": _metadata(name=app.namespace, labels=labels),
    }


# =============================================================================
# Deployment
# =============================================================================

def deployment_template(app: ApplicationDescriptor, config: LabelConfig) -> Dict[str, Any]:
    """
    Create the Deployment document for an application.

    Defaults:
    - One container named after the application with fixed resource
      requests/limits
    - RollingUpdate strategy with maxUnavailable=0, maxSurge=1
    - Replicas from the descriptor, 1 if unset (0 is honoured)

    Conditional parts:
    - port: named container port "http" plus readiness/liveness probes
    - image_pull_secret: pod image pull secret reference
    - role_spec: pod runs as the application's service account

    Args:
        app: Application descriptor (deployment_spec is merged last)
        config: Label configuration

    Returns:
        Deployment document
    """
    labels = application_labels(app, config)

    container: Dict[str, Any] = {
        "name": app.name,
        "image": app.image,
        "resources": copy.deepcopy(CONTAINER_RESOURCES),
    }

    if app.port:
        container["ports"] = [
            {
                "name": "http",
                "containerPort": app.port,
                "protocol": "TCP",
            }
        ]
        container["readinessProbe"] = copy.deepcopy(HTTP_PROBE)
        container["livenessProbe"] = copy.deepcopy(HTTP_PROBE)

    pod_spec: Dict[str, Any] = {"containers": [container]}

    if app.image_pull_secret:
        pod_spec["imagePullSecrets"] = [{"name": app.image_pull_secret}]

    if app.role_spec:
        pod_spec["serviceAccountName"] = service_account_name(app)

    deployment = {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": _metadata(name=app.name, namespace=app.namespace, labels=labels),
        "spec": {
            "replicas": app.replicas if app.replicas is not None else 1,
            "selector": {
                "matchLabels": match_labels(app, config),
            },
            "template": {
                "metadata": _metadata(name=app.name, labels=labels),
                "spec": pod_spec,
            },
            "strategy": {
                "type": "RollingUpdate",
                "rollingUpdate": {
                    "maxUnavailable": 0,
                    "maxSurge": 1,
                },
            },
        },
    }

    return _finish(deployment, app.deployment_spec)


# =============================================================================
# Service and Ingress
# =============================================================================

def service_template(app: ApplicationDescriptor, config: LabelConfig) -> Dict[str, Any]:
    """
    Create the Service document fronting an application.

    The single service port targets the container port named "http".
    """
    service = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(name=app.name, namespace=app.namespace, labels=application_labels(app, config)),
        "spec": {
            "ports": [
                {
                    "name": "http",
                    "protocol": "TCP",
                    "port": app.port,
                    "targetPort": "http",
                }
            ],
            "selector": match_labels(app, config),
            "sessionAffinity": "None",
            "type": "NodePort",
        },
    }

    return _finish(service, app.service_spec)


def ingress_template(
    app: ApplicationDescriptor,
    config: LabelConfig,
    ingress_class: str = "nginx"
) -> Dict[str, Any]:
    """
    Create the Ingress document for an application.

    One rule routes ``app.path`` (on ``app.host`` if set) to the
    application's service port "http". A TLS entry is added when the
    descriptor names a TLS secret.

    Args:
        app: Application descriptor (ingress_spec is merged last)
        config: Label configuration
        ingress_class: Ingress controller class name

    Returns:
        Ingress document
    """
    annotations = {
        "nginx.ingress.kubernetes.io/rewrite-target": "/",
        "nginx.ingress.kubernetes.io/client-body-buffer-size": "1m",
    }

    rule: Dict[str, Any] = {
        "http": {
            "paths": [
                {
                    "path": app.path,
                    "pathType": "ImplementationSpecific",
                    "backend": {
                        "service": {
                            "name": app.name,
                            "port": {"name": "http"},
                        },
                    },
                }
            ],
        },
    }
    if app.host:
        rule["host"] = app.host

    spec: Dict[str, Any] = {
        "ingressClassName": ingress_class,
        "rules": [rule],
    }

    # Add TLS if secret provided
    if app.tls_secret:
        tls: Dict[str, Any] = {"secretName": app.tls_secret}
        if app.host:
            tls["hosts"] = [app.host]
        spec["tls"] = [tls]

    ingress = {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": _metadata(
            name=app.name,
            namespace=app.namespace,
            labels=application_labels(app, config),
            annotations=annotations
        ),
        "spec": spec,
    }

    return _finish(ingress, app.ingress_spec)


def endpoint_base_url(app: ApplicationDescriptor) -> str:
    """
    Get the base URL an application is reachable at through its ingress.

    Protocol defaults to https with a TLS secret and http otherwise,
    host defaults to localhost.

    Examples:
        >>> endpoint_base_url(ApplicationDescriptor(..., host="example.com", path="/api"))
        "http://example.com/api/"
    """
    protocol = app.protocol or ("https" if app.tls_secret else "http")
    host = app.host or "localhost"
    tail = f"{app.path}/" if app.path and app.path != "/" else "/"
    return f"{protocol}://{host}{tail}"


# =============================================================================
# RBAC and Service Account
# =============================================================================

def service_account_template(app: ApplicationDescriptor, config: LabelConfig) -> Dict[str, Any]:
    """Create the ServiceAccount document the deployment's pods run as."""
    service_account = {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": _metadata(name=app.name, namespace=app.namespace, labels=application_labels(app, config)),
    }

    return _finish(service_account, app.service_account_spec)


def role_template(app: ApplicationDescriptor, config: LabelConfig) -> Dict[str, Any]:
    """Create the namespaced Role document, role_spec merged on top."""
    role = {
        "apiVersion": RBAC_API_VERSION,
        "kind": "Role",
        "metadata": _metadata(name=app.name, namespace=app.namespace, labels=application_labels(app, config)),
        "rules": [],
    }

    return _finish(role, app.role_spec)


def cluster_role_template(app: ApplicationDescriptor, config: LabelConfig) -> Dict[str, Any]:
    """Create the cluster-scoped ClusterRole document, role_spec merged on top."""
    role = {
        "apiVersion": RBAC_API_VERSION,
        "kind": "ClusterRole",
        "metadata": _metadata(name=app.name, labels=application_labels(app, config)),
        "rules": [],
    }

    return _finish(role, app.role_spec)


def role_binding_template(app: ApplicationDescriptor, config: LabelConfig) -> Dict[str, Any]:
    """Bind the application's Role to its service account."""
    binding = {
        "apiVersion": RBAC_API_VERSION,
        "kind": "RoleBinding",
        "metadata": _metadata(name=app.name, namespace=app.namespace, labels=application_labels(app, config)),
        "roleRef": {
            "apiGroup": RBAC_API_GROUP,
            "kind": "Role",
            "name": app.name,
        },
        "subjects": [
            {
                "kind": "ServiceAccount",
                "name": service_account_name(app),
            }
        ],
    }

    return _finish(binding, app.role_binding_spec)


def cluster_role_binding_template(app: ApplicationDescriptor, config: LabelConfig) -> Dict[str, Any]:
    """Bind the application's ClusterRole to its (namespaced) service account."""
    binding = {
        "apiVersion": RBAC_API_VERSION,
        "kind": "ClusterRoleBinding",
        "metadata": _metadata(name=app.name, labels=application_labels(app, config)),
        "roleRef": {
            "apiGroup": RBAC_API_GROUP,
            "kind": "ClusterRole",
            "name": app.name,
        },
        "subjects": [
            {
                "kind": "ServiceAccount",
                "name": service_account_name(app),
                "namespace": app.namespace,
            }
        ],
    }

    return _finish(binding, app.role_binding_spec)


# =============================================================================
# Secret
# =============================================================================

def secret_template(
    app: ApplicationDescriptor,
    config: LabelConfig,
    secret: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Label a caller supplied Secret so it can be found and deleted later.

    The secret keeps its own name; namespace and labels come from the
    application with component "secret".
    """
    document = {
        "apiVersion": "v1",
        "kind": "Secret",
        "type": "Opaque",
        "metadata": _metadata(
            namespace=app.namespace,
            labels=application_labels(app, config, component="secret")
        ),
    }

    return _finish(document, secret)
