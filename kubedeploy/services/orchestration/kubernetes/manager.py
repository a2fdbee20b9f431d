"""
Kubernetes Reconciler

Brings the cluster in line with an application descriptor and tears it
down again.

Upsert protocol, per resource:
1. Read the resource by name
2. Not found -> create the full default+override document (with retry)
3. Found -> patch it with the freshly built full document (with retry)

Any read failure other than not-found propagates. Deletes read first and
treat absence as success.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ....schemas import ApplicationDescriptor
from ....utils.resource_naming import label_selector
from ...retry_config import RetryPolicy, log_retry
from .client import ResourceAdapter
from .errors import ApplicationDeleteError, ConfigurationError, ResourceNotFoundError, error_message
from .helpers import (
    cluster_role_binding_template,
    cluster_role_template,
    deployment_template,
    ingress_template,
    namespace_template,
    role_binding_template,
    role_kind,
    role_template,
    secret_template,
    service_account_name,
    service_account_template,
    service_template,
)
from .labels import LabelConfig, match_labels
from .rollout import verify_rollout

logger = logging.getLogger(__name__)

ROLE_KINDS = ("Role", "ClusterRole")


class KubernetesReconciler:
    """
    Create-or-patch and delete engine for application resources.

    Dependency order for upserts: namespace, service account, role, role
    binding, secrets, service, deployment, ingress. The deployment's pod
    template references the service account and the "http" port, so
    everything it depends on is applied first.
    """

    def __init__(
        self,
        k8s_client=None,
        settings=None,
        label_config: Optional[LabelConfig] = None,
        retry_policy: Optional[RetryPolicy] = None
    ):
        """
        Args:
            k8s_client: Object exposing one ResourceAdapter per kind, the
                shared KubernetesClient if None
            settings: Settings, process settings if None
            label_config: Label inputs, derived from settings if None
            retry_policy: Retry policy for mutating calls, derived from
                settings if None
        """
        self._k8s_client = k8s_client
        self.settings = settings or self._get_settings()
        self.label_config = label_config or LabelConfig.from_settings(self.settings)
        self.retry_policy = retry_policy or RetryPolicy.from_settings(self.settings)

        logger.info(f"[K8S] Kubernetes reconciler initialized (managed-by: {self.label_config.creator})")

    @property
    def k8s(self):
        if self._k8s_client is None:
            self._k8s_client = self._get_k8s_client()
        return self._k8s_client

    def _get_k8s_client(self):
        """Lazy import to avoid loading cluster config at import time."""
        from .client import get_k8s_client
        return get_k8s_client()

    def _get_settings(self):
        """Lazy import settings."""
        from ....config import get_settings
        return get_settings()

    def _retry(self, operation: Callable[[], Awaitable[Any]], description: str) -> Awaitable[Any]:
        return log_retry(operation, description, self.retry_policy)

    def validate(self, app: ApplicationDescriptor) -> None:
        """
        Reject descriptors that cannot be reconciled before any cluster call.

        Raises:
            ConfigurationError: If a role spec has no kind or an unknown kind,
                or a secret has no metadata.name
        """
        for index, secret in enumerate(app.secrets or []):
            if not (secret.get("metadata") or {}).get("name"):
                raise ConfigurationError(f"Secret #{index} of {app.slug} has no metadata.name", slug=app.slug)

        if app.role_spec:
            kind = role_kind(app)
            if not kind:
                raise ConfigurationError(f"Role spec of {app.slug} has no kind", slug=app.slug)
            if kind not in ROLE_KINDS:
                raise ConfigurationError(
                    f"Unsupported role kind '{kind}' for {app.slug}, must be one of: {', '.join(ROLE_KINDS)}",
                    slug=app.slug
                )

    # =========================================================================
    # UPSERT
    # =========================================================================

    async def _upsert(
        self,
        adapter: ResourceAdapter,
        document: Dict[str, Any],
        namespace: Optional[str] = None
    ) -> Dict[str, Any]:
        metadata = document.get("metadata") or {}
        name = metadata.get("name")
        if not name:
            raise ConfigurationError(f"{adapter.kind} document has no metadata.name")
        if adapter.namespaced:
            namespace = metadata.get("namespace") or namespace
        else:
            namespace = None
        slug = adapter.slug(name, namespace)

        try:
            await adapter.read(name, namespace)
        except ResourceNotFoundError:
            logger.debug(f"[K8S] {slug} does not exist, creating")
            result = await self._retry(lambda: adapter.create(document, namespace), f"create {slug}")
            logger.info(f"[K8S] ✅ Created {slug}")
            return result

        logger.debug(f"[K8S] {slug} exists, patching")
        result = await self._retry(lambda: adapter.patch(name, document, namespace), f"patch {slug}")
        logger.info(f"[K8S] ✅ Patched {slug}")
        return result

    async def upsert_namespace(self, app: ApplicationDescriptor) -> Dict[str, Any]:
        """Create or patch the application's namespace."""
        return await self._upsert(self.k8s.namespaces, namespace_template(app, self.label_config))

    async def upsert_service_account(self, app: ApplicationDescriptor) -> Dict[str, Any]:
        """Create or patch the service account the application's pods run as."""
        document = service_account_template(app, self.label_config)
        return await self._upsert(self.k8s.service_accounts, document, app.namespace)

    async def upsert_role(self, app: ApplicationDescriptor) -> Dict[str, Any]:
        """Create or patch the Role or ClusterRole named by the role spec."""
        self.validate(app)
        if role_kind(app) == "ClusterRole":
            return await self._upsert(self.k8s.cluster_roles, cluster_role_template(app, self.label_config))
        return await self._upsert(self.k8s.roles, role_template(app, self.label_config), app.namespace)

    async def upsert_role_binding(self, app: ApplicationDescriptor) -> Dict[str, Any]:
        """Create or patch the RoleBinding or ClusterRoleBinding matching the role kind."""
        self.validate(app)
        if role_kind(app) == "ClusterRole":
            document = cluster_role_binding_template(app, self.label_config)
            return await self._upsert(self.k8s.cluster_role_bindings, document)
        document = role_binding_template(app, self.label_config)
        return await self._upsert(self.k8s.role_bindings, document, app.namespace)

    async def upsert_rbac(self, app: ApplicationDescriptor) -> List[Dict[str, Any]]:
        """
        Reconcile service account, role and role binding.

        Returns:
            The three documents, or an empty list if the descriptor has no role spec
        """
        if not app.role_spec:
            logger.debug(f"[K8S] No role spec for {app.slug}, skipping RBAC")
            return []

        self.validate(app)
        service_account = await self.upsert_service_account(app)
        role = await self.upsert_role(app)
        role_binding = await self.upsert_role_binding(app)
        return [service_account, role, role_binding]

    async def upsert_secrets(self, app: ApplicationDescriptor) -> List[Dict[str, Any]]:
        """
        Reconcile every secret of the application concurrently.

        All secrets are attempted even if some fail; the first failure is
        raised once every operation has finished.
        """
        if not app.secrets:
            return []

        documents = [secret_template(app, self.label_config, secret) for secret in app.secrets]
        results = await asyncio.gather(
            *[self._upsert(self.k8s.secrets, document, app.namespace) for document in documents],
            return_exceptions=True
        )

        errors = [r for r in results if isinstance(r, BaseException)]
        for error in errors:
            logger.error(f"[K8S] ❌ Failed to upsert secret of {app.slug}: {error_message(error)}")
        if errors:
            raise errors[0]
        return list(results)

    async def upsert_service(self, app: ApplicationDescriptor) -> Optional[Dict[str, Any]]:
        """Create or patch the service, None if the descriptor has no port."""
        if not app.port:
            logger.debug(f"[K8S] No port for {app.slug}, skipping service")
            return None
        return await self._upsert(self.k8s.services, service_template(app, self.label_config), app.namespace)

    async def upsert_deployment(self, app: ApplicationDescriptor) -> Dict[str, Any]:
        """Create or patch the deployment."""
        return await self._upsert(self.k8s.deployments, deployment_template(app, self.label_config), app.namespace)

    async def upsert_ingress(self, app: ApplicationDescriptor) -> Optional[Dict[str, Any]]:
        """Create or patch the ingress, None if the descriptor has no path."""
        if not app.path:
            logger.debug(f"[K8S] No path for {app.slug}, skipping ingress")
            return None
        document = ingress_template(app, self.label_config, self.settings.k8s_ingress_class)
        return await self._upsert(self.k8s.ingresses, document, app.namespace)

    async def upsert_application(self, app: ApplicationDescriptor) -> List[Dict[str, Any]]:
        """
        Reconcile every resource of an application in dependency order.

        There is no rollback: resources applied before a failure stay applied.

        Args:
            app: Application descriptor

        Returns:
            Documents of every resource that was created or patched

        Raises:
            ConfigurationError: Invalid descriptor, nothing is applied
            KubernetesDeployError: A cluster call failed
        """
        self.validate(app)
        logger.info(f"[K8S] Upserting application {app.slug}")

        documents: List[Optional[Dict[str, Any]]] = [await self.upsert_namespace(app)]
        documents.extend(await self.upsert_rbac(app))
        documents.extend(await self.upsert_secrets(app))
        documents.append(await self.upsert_service(app))
        documents.append(await self.upsert_deployment(app))
        documents.append(await self.upsert_ingress(app))

        logger.info(f"[K8S] ✅ Application {app.slug} upserted")
        return [document for document in documents if document is not None]

    # =========================================================================
    # DELETE
    # =========================================================================

    async def _delete(
        self,
        adapter: ResourceAdapter,
        name: str,
        namespace: Optional[str] = None,
        propagation_policy: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        if not adapter.namespaced:
            namespace = None
        slug = adapter.slug(name, namespace)

        try:
            current = await adapter.read(name, namespace)
        except ResourceNotFoundError:
            logger.debug(f"[K8S] {slug} does not exist, nothing to delete")
            return None

        await self._retry(lambda: adapter.delete(name, namespace, propagation_policy), f"delete {slug}")
        logger.info(f"[K8S] ✅ Deleted {slug}")
        return current

    async def delete_deployment(self, app: ApplicationDescriptor) -> Optional[Dict[str, Any]]:
        """Delete the deployment, its pods are removed in the background."""
        return await self._delete(self.k8s.deployments, app.name, app.namespace, propagation_policy="Background")

    async def delete_service(self, app: ApplicationDescriptor) -> Optional[Dict[str, Any]]:
        return await self._delete(self.k8s.services, app.name, app.namespace)

    async def delete_ingress(self, app: ApplicationDescriptor) -> Optional[Dict[str, Any]]:
        return await self._delete(self.k8s.ingresses, app.name, app.namespace)

    async def delete_service_account(self, app: ApplicationDescriptor) -> Optional[Dict[str, Any]]:
        return await self._delete(self.k8s.service_accounts, service_account_name(app), app.namespace)

    async def delete_role(self, app: ApplicationDescriptor) -> Optional[Dict[str, Any]]:
        """Delete the application's Role, or its ClusterRole if there is no Role."""
        deleted = await self._delete(self.k8s.roles, app.name, app.namespace)
        if deleted is None:
            deleted = await self._delete(self.k8s.cluster_roles, app.name)
        return deleted

    async def delete_role_binding(self, app: ApplicationDescriptor) -> Optional[Dict[str, Any]]:
        """Delete the application's RoleBinding, or its ClusterRoleBinding if there is none."""
        deleted = await self._delete(self.k8s.role_bindings, app.name, app.namespace)
        if deleted is None:
            deleted = await self._delete(self.k8s.cluster_role_bindings, app.name)
        return deleted

    async def delete_secrets(self, app: ApplicationDescriptor) -> List[Dict[str, Any]]:
        """
        Delete every secret carrying the application's match labels.

        The deletes run concurrently and all of them finish before the
        first failure is raised.

        Returns:
            The deleted secrets, possibly empty
        """
        adapter = self.k8s.secrets
        selector = label_selector(match_labels(app, self.label_config))
        secrets = await adapter.list(app.namespace, selector)

        async def delete_one(name: str) -> None:
            slug = adapter.slug(name, app.namespace)
            await self._retry(lambda: adapter.delete(name, app.namespace), f"delete {slug}")
            logger.info(f"[K8S] ✅ Deleted {slug}")

        results = await asyncio.gather(
            *[delete_one(secret["metadata"]["name"]) for secret in secrets],
            return_exceptions=True
        )

        errors = [r for r in results if isinstance(r, BaseException)]
        for error in errors:
            logger.error(f"[K8S] ❌ Failed to delete secret of {app.slug}: {error_message(error)}")
        if errors:
            raise errors[0]
        return secrets

    async def delete_application(self, app: ApplicationDescriptor) -> List[Dict[str, Any]]:
        """
        Delete every resource of an application.

        Every step runs even if an earlier one failed; failures are
        collected and raised together afterwards. The namespace is left in
        place since other applications may use it.

        Returns:
            Documents of the resources that existed and were deleted

        Raises:
            ApplicationDeleteError: If any resource could not be deleted
        """
        logger.info(f"[K8S] Deleting application {app.slug}")

        steps: List[Tuple[str, Callable[[ApplicationDescriptor], Awaitable[Any]]]] = [
            ("ingress", self.delete_ingress),
            ("deployment", self.delete_deployment),
            ("secrets", self.delete_secrets),
            ("service", self.delete_service),
            ("role binding", self.delete_role_binding),
            ("service account", self.delete_service_account),
            ("role", self.delete_role),
        ]

        deleted: List[Dict[str, Any]] = []
        errors: List[Exception] = []
        for description, step in steps:
            try:
                result = await step(app)
            except Exception as e:
                logger.error(f"[K8S] ❌ Failed to delete {description} of {app.slug}: {error_message(e)}")
                errors.append(e)
                continue
            if isinstance(result, list):
                deleted.extend(result)
            elif result is not None:
                deleted.append(result)

        if errors:
            messages = "; ".join(error_message(e) for e in errors)
            raise ApplicationDeleteError(
                f"Failed to delete {len(errors)} resource(s) of {app.slug}: {messages}",
                errors=errors,
                slug=app.slug
            )

        logger.info(f"[K8S] ✅ Application {app.slug} deleted")
        return deleted

    # =========================================================================
    # ROLLOUT
    # =========================================================================

    async def verify_rollout(self, app: ApplicationDescriptor, timeout: Optional[float] = None) -> bool:
        """
        Wait for the application's deployment to roll out.

        Args:
            app: Application descriptor
            timeout: Seconds to wait, K8S_ROLLOUT_TIMEOUT if None

        Returns:
            True if the deployment rolled out in time
        """
        if timeout is None:
            timeout = self.settings.k8s_rollout_timeout
        return await verify_rollout(
            self.k8s.deployments,
            app.name,
            app.namespace,
            timeout,
            interval=self.settings.k8s_rollout_poll_interval
        )


# Singleton instance
_reconciler: Optional[KubernetesReconciler] = None


def get_kubernetes_reconciler() -> KubernetesReconciler:
    """Get the singleton Kubernetes reconciler instance."""
    global _reconciler

    if _reconciler is None:
        _reconciler = KubernetesReconciler()

    return _reconciler
