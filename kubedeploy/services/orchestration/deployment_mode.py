"""
Deploy Mode Verification

A fulfilling process can run in one of two modes:

- cluster: manages applications in many namespaces, optionally limited
  to an allow-list of namespaces
- namespace: manages only applications in the namespace it runs in
  (POD_NAMESPACE)

With no mode set every application is fulfilled.
"""

import logging
from enum import Enum
from typing import Optional

from ...config import get_settings
from ...schemas import ApplicationDescriptor, DeployOptions
from .kubernetes.errors import ConfigurationError

logger = logging.getLogger(__name__)


class DeploymentMode(str, Enum):
    """
    Supported deploy modes.

    Attributes:
        CLUSTER: Cluster-wide fulfilment, optionally namespace-limited
        NAMESPACE: Fulfilment restricted to the pod's own namespace
    """

    CLUSTER = "cluster"
    NAMESPACE = "namespace"

    @classmethod
    def from_string(cls, value: str) -> "DeploymentMode":
        """
        Convert a string to DeploymentMode enum.

        Raises:
            ValueError: If value is not a valid deploy mode
        """
        value_lower = value.lower().strip()
        for mode in cls:
            if mode.value == value_lower:
                return mode
        valid_modes = ", ".join([m.value for m in cls])
        raise ValueError(
            f"Invalid deploy mode: '{value}'. Valid modes: {valid_modes}"
        )

    def __str__(self) -> str:
        return self.value


def deploy_options_from_settings(settings=None) -> DeployOptions:
    """Build DeployOptions from K8S_DEPLOY_* settings."""
    settings = settings or get_settings()
    mode = settings.k8s_deploy_mode.strip()
    return DeployOptions(
        mode=DeploymentMode.from_string(mode).value if mode else None,
        environment=settings.k8s_deploy_environment or None,
        namespaces=settings.deploy_namespaces,
    )


def verify_application_deploy(
    app: ApplicationDescriptor,
    options: Optional[DeployOptions],
    pod_namespace: Optional[str] = None,
    default_namespace: str = "default"
) -> Optional[ApplicationDescriptor]:
    """
    Decide whether this process should fulfil the deployment of ``app``.

    If the deploy environment is not set any application environment
    matches. In namespace mode the application namespace must equal
    ``pod_namespace``, which must be set. In cluster mode with a
    non-empty namespace list the application namespace must be in it.

    Args:
        app: Application descriptor
        options: Deploy options, None or no mode fulfils everything
        pod_namespace: Namespace this process runs in
        default_namespace: Namespace used when the descriptor has none

    Returns:
        The descriptor (namespace defaulted) if the deploy should proceed,
        None otherwise

    Raises:
        ConfigurationError: If namespace mode is used without a pod namespace
    """
    if not app.namespace:
        app = app.model_copy(update={"namespace": default_namespace})

    if not options or not options.mode:
        return app

    if options.environment and options.environment != app.environment:
        logger.debug(
            f"[K8S] Application environment '{app.environment}' is not this "
            f"environment '{options.environment}'"
        )
        return None

    if DeploymentMode.from_string(options.mode) == DeploymentMode.NAMESPACE:
        if not pod_namespace:
            raise ConfigurationError(
                "Kubernetes deploy requested but running in namespace-scoped mode "
                "and POD_NAMESPACE is not set",
                slug=app.slug
            )
        if app.namespace != pod_namespace:
            logger.info(
                f"[K8S] Application namespace '{app.namespace}' is not the namespace "
                f"this process manages '{pod_namespace}'"
            )
            return None
    elif options.namespaces and app.namespace not in options.namespaces:
        logger.debug(
            f"[K8S] Application namespace '{app.namespace}' is not in managed "
            f"namespaces '{','.join(options.namespaces)}'"
        )
        return None

    return app
