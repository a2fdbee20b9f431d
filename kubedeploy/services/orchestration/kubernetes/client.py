"""
Kubernetes Client for Reconciling Application Resources

Exposes one capability adapter per resource kind with the same five
operations (read, create, patch, delete, list) so the reconciler can
treat every kind the same way. Adapters wrap the official ``kubernetes``
client: calls run in a worker thread, results come back as plain dicts
in wire format, and API failures are translated into tagged errors (see
errors.py) carrying the resource slug.
"""

from abc import ABC, abstractmethod
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from ....utils.resource_naming import resource_slug
from .errors import TransientClusterError, error_for_status, error_message, stringify

logger = logging.getLogger(__name__)


class ResourceAdapter(ABC):
    """
    Cluster operations for one resource kind.

    Cluster-scoped kinds ignore the ``namespace`` arguments.
    """

    kind: str
    namespaced: bool = True

    @abstractmethod
    async def read(self, name: str, namespace: Optional[str] = None) -> Dict[str, Any]:
        """Read a resource, raising ResourceNotFoundError if it does not exist."""
        pass

    @abstractmethod
    async def create(self, document: Dict[str, Any], namespace: Optional[str] = None) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def patch(self, name: str, document: Dict[str, Any], namespace: Optional[str] = None) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def delete(
        self,
        name: str,
        namespace: Optional[str] = None,
        propagation_policy: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def list(self, namespace: Optional[str] = None, label_selector: Optional[str] = None) -> List[Dict[str, Any]]:
        pass

    async def read_status(self, name: str, namespace: Optional[str] = None) -> Dict[str, Any]:
        """Read a resource including its status, by default the same as read()."""
        return await self.read(name, namespace)

    def slug(self, name: str, namespace: Optional[str] = None) -> str:
        return resource_slug(self.kind, name, namespace if self.namespaced else None)


class ApiResourceAdapter(ResourceAdapter):
    """
    ResourceAdapter backed by a generated ``kubernetes`` API class.

    Method names follow the generated client's convention, e.g. for
    suffix "deployment": ``read_namespaced_deployment``,
    ``create_namespaced_deployment``; cluster-scoped kinds drop the
    ``namespaced_`` part (``read_cluster_role``).
    """

    def __init__(
        self,
        kind: str,
        api: Any,
        suffix: str,
        namespaced: bool = True,
        serializer: Optional[Callable[[Any], Any]] = None
    ):
        self.kind = kind
        self.api = api
        self.suffix = suffix
        self.namespaced = namespaced
        self._serialize = serializer or api.api_client.sanitize_for_serialization

    def _method(self, verb: str, subresource: str = ""):
        scope = "namespaced_" if self.namespaced else ""
        return getattr(self.api, f"{verb}_{scope}{self.suffix}{subresource}")

    async def _call(self, verb: str, slug: str, method, *args, **kwargs) -> Any:
        try:
            result = await asyncio.to_thread(method, *args, **kwargs)
        except ApiException as e:
            raise error_for_status(
                e.status,
                f"Failed to {verb} {slug}: {error_message(e)}",
                slug=slug,
                reason=e.reason,
                body=e.body,
                headers=e.headers
            ) from e
        except (HTTPError, OSError) as e:
            raise TransientClusterError(
                f"Failed to {verb} {slug}: {error_message(e)}",
                slug=slug
            ) from e
        return self._serialize(result)

    def _scope_args(self, namespace: Optional[str]) -> Dict[str, Any]:
        return {"namespace": namespace} if self.namespaced else {}

    async def read(self, name: str, namespace: Optional[str] = None) -> Dict[str, Any]:
        slug = self.slug(name, namespace)
        return await self._call("read", slug, self._method("read"), name=name, **self._scope_args(namespace))

    async def read_status(self, name: str, namespace: Optional[str] = None) -> Dict[str, Any]:
        slug = self.slug(name, namespace)
        return await self._call(
            "read status of", slug, self._method("read", "_status"), name=name, **self._scope_args(namespace)
        )

    async def create(self, document: Dict[str, Any], namespace: Optional[str] = None) -> Dict[str, Any]:
        slug = self.slug(document.get("metadata", {}).get("name", ""), namespace)
        logger.debug(f"[K8S] Creating {slug}: {stringify(document)}")
        return await self._call("create", slug, self._method("create"), body=document, **self._scope_args(namespace))

    async def patch(self, name: str, document: Dict[str, Any], namespace: Optional[str] = None) -> Dict[str, Any]:
        slug = self.slug(name, namespace)
        logger.debug(f"[K8S] Patching {slug}: {stringify(document)}")
        # Dict bodies are sent as strategic merge patches
        return await self._call(
            "patch", slug, self._method("patch"), name=name, body=document, **self._scope_args(namespace)
        )

    async def delete(
        self,
        name: str,
        namespace: Optional[str] = None,
        propagation_policy: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        slug = self.slug(name, namespace)
        kwargs = self._scope_args(namespace)
        if propagation_policy:
            kwargs["propagation_policy"] = propagation_policy
        return await self._call("delete", slug, self._method("delete"), name=name, **kwargs)

    async def list(self, namespace: Optional[str] = None, label_selector: Optional[str] = None) -> List[Dict[str, Any]]:
        slug = resource_slug(self.kind, label_selector or "*", namespace if self.namespaced else None)
        kwargs = self._scope_args(namespace)
        if label_selector:
            kwargs["label_selector"] = label_selector
        result = await self._call("list", slug, self._method("list"), **kwargs)
        return (result or {}).get("items") or []


class KubernetesClient:
    """
    Capability adapters for every resource kind an application uses.

    Attributes:
        namespaces, deployments, services, ingresses, service_accounts,
        secrets, roles, cluster_roles, role_bindings, cluster_role_bindings
    """

    def __init__(self, api_client: Optional[client.ApiClient] = None):
        """
        Initialize the API clients.

        Args:
            api_client: Preconfigured API client, if None the in-cluster
                config is loaded with a fallback to kubeconfig
        """
        if api_client is None:
            load_kubernetes_config()

        self.apps_v1 = client.AppsV1Api(api_client)
        self.core_v1 = client.CoreV1Api(api_client)
        self.networking_v1 = client.NetworkingV1Api(api_client)
        self.rbac_v1 = client.RbacAuthorizationV1Api(api_client)

        self.namespaces = ApiResourceAdapter("Namespace", self.core_v1, "namespace", namespaced=False)
        self.deployments = ApiResourceAdapter("Deployment", self.apps_v1, "deployment")
        self.services = ApiResourceAdapter("Service", self.core_v1, "service")
        self.ingresses = ApiResourceAdapter("Ingress", self.networking_v1, "ingress")
        self.service_accounts = ApiResourceAdapter("ServiceAccount", self.core_v1, "service_account")
        self.secrets = ApiResourceAdapter("Secret", self.core_v1, "secret")
        self.roles = ApiResourceAdapter("Role", self.rbac_v1, "role")
        self.cluster_roles = ApiResourceAdapter("ClusterRole", self.rbac_v1, "cluster_role", namespaced=False)
        self.role_bindings = ApiResourceAdapter("RoleBinding", self.rbac_v1, "role_binding")
        self.cluster_role_bindings = ApiResourceAdapter(
            "ClusterRoleBinding", self.rbac_v1, "cluster_role_binding", namespaced=False
        )

        logger.info("[K8S] Kubernetes client initialized")


def load_kubernetes_config() -> None:
    """
    Load in-cluster config, falling back to kubeconfig for development.

    Raises:
        RuntimeError: If neither configuration can be loaded
    """
    try:
        # Try in-cluster config first (for production)
        config.load_incluster_config()
        logger.info("[K8S] Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        try:
            # Fall back to kubeconfig (for development)
            config.load_kube_config()
            logger.info("[K8S] Loaded kubeconfig for development")
        except config.ConfigException as e:
            logger.error(f"[K8S] Failed to load Kubernetes config: {e}")
            raise RuntimeError("Cannot load Kubernetes configuration") from e


# Singleton instance
_k8s_client: Optional[KubernetesClient] = None


def get_k8s_client() -> KubernetesClient:
    """Get the singleton Kubernetes client instance."""
    global _k8s_client

    if _k8s_client is None:
        _k8s_client = KubernetesClient()

    return _k8s_client
