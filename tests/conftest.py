"""
Test configuration and fixtures for pytest.

Fixtures include: settings, label configuration, application descriptors,
an in-memory fake cluster exposing the same per-kind adapters as
KubernetesClient, and a reconciler wired to it with a zero-delay retry
policy.
"""

import sys
import os
import copy
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

# Add the repository root to sys.path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))


def pytest_configure(config):
    """
    Pytest hook called before test collection.
    Sets up test environment variables and registers custom markers.
    """
    # Set test environment variables BEFORE any kubedeploy imports
    os.environ["K8S_FULFILLER"] = "@kubedeploy/test"
    os.environ["K8S_LABEL_VENDOR"] = "kubedeploy.io"
    os.environ["K8S_DEPLOY_MODE"] = ""
    os.environ["SECRET_ENCRYPTION_KEY"] = "thereisalightthatnevergoesout"

    # Import and clear settings cache after env vars are set
    from kubedeploy.config import get_settings
    get_settings.cache_clear()

    # Register custom markers
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "kubernetes: mark test as exercising Kubernetes resources")


# =============================================================================
# Fake cluster
# =============================================================================

from kubedeploy.services.orchestration.kubernetes.client import ResourceAdapter  # noqa: E402
from kubedeploy.services.orchestration.kubernetes.errors import (  # noqa: E402
    PermanentClusterError,
    ResourceNotFoundError,
)
from kubedeploy.services.orchestration.kubernetes.merge import deep_merge  # noqa: E402


class FakeResourceAdapter(ResourceAdapter):
    """
    In-memory ResourceAdapter.

    Records every call in ``calls`` and raises queued errors registered
    with ``fail(verb, *errors)`` one per call before doing the real work.
    """

    def __init__(self, kind: str, namespaced: bool = True):
        self.kind = kind
        self.namespaced = namespaced
        self.store: Dict[Tuple[Optional[str], str], Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.failures: Dict[str, List[Exception]] = {}

    def _key(self, name: str, namespace: Optional[str]) -> Tuple[Optional[str], str]:
        return (namespace if self.namespaced else None, name)

    def fail(self, verb: str, *errors: Exception) -> None:
        self.failures.setdefault(verb, []).extend(errors)

    def _maybe_fail(self, verb: str) -> None:
        pending = self.failures.get(verb)
        if pending:
            raise pending.pop(0)

    def _not_found(self, name: str, namespace: Optional[str]) -> ResourceNotFoundError:
        slug = self.slug(name, namespace)
        return ResourceNotFoundError(f"{slug} not found", slug=slug, status=404)

    def seed(self, document: Dict[str, Any], namespace: Optional[str] = None) -> None:
        metadata = document["metadata"]
        namespace = metadata.get("namespace", namespace)
        self.store[self._key(metadata["name"], namespace)] = copy.deepcopy(document)

    def get(self, name: str, namespace: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return self.store.get(self._key(name, namespace))

    def verbs(self) -> List[str]:
        return [c[0] for c in self.calls]

    async def read(self, name, namespace=None):
        self.calls.append(("read", name, namespace))
        self._maybe_fail("read")
        key = self._key(name, namespace)
        if key not in self.store:
            raise self._not_found(name, namespace)
        return copy.deepcopy(self.store[key])

    async def create(self, document, namespace=None):
        name = document["metadata"]["name"]
        self.calls.append(("create", name, namespace))
        self._maybe_fail("create")
        key = self._key(name, namespace)
        if key in self.store:
            raise PermanentClusterError(f"{self.slug(name, namespace)} already exists", status=409)
        self.store[key] = copy.deepcopy(document)
        return copy.deepcopy(document)

    async def patch(self, name, document, namespace=None):
        self.calls.append(("patch", name, namespace))
        self._maybe_fail("patch")
        key = self._key(name, namespace)
        if key not in self.store:
            raise self._not_found(name, namespace)
        self.store[key] = deep_merge(self.store[key], document)
        return copy.deepcopy(self.store[key])

    async def delete(self, name, namespace=None, propagation_policy=None):
        self.calls.append(("delete", name, namespace, propagation_policy))
        self._maybe_fail("delete")
        key = self._key(name, namespace)
        if key not in self.store:
            raise self._not_found(name, namespace)
        del self.store[key]
        return {"kind": "Status", "status": "Success"}

    async def list(self, namespace=None, label_selector=None):
        self.calls.append(("list", namespace, label_selector))
        self._maybe_fail("list")
        wanted = dict(pair.split("=", 1) for pair in label_selector.split(",")) if label_selector else {}
        items = []
        for (ns, _), document in self.store.items():
            if self.namespaced and ns != namespace:
                continue
            labels = document.get("metadata", {}).get("labels") or {}
            if all(labels.get(k) == v for k, v in wanted.items()):
                items.append(copy.deepcopy(document))
        return items


class FakeCluster:
    """Same adapter attributes as KubernetesClient, backed by memory."""

    def __init__(self):
        self.namespaces = FakeResourceAdapter("Namespace", namespaced=False)
        self.deployments = FakeResourceAdapter("Deployment")
        self.services = FakeResourceAdapter("Service")
        self.ingresses = FakeResourceAdapter("Ingress")
        self.service_accounts = FakeResourceAdapter("ServiceAccount")
        self.secrets = FakeResourceAdapter("Secret")
        self.roles = FakeResourceAdapter("Role")
        self.cluster_roles = FakeResourceAdapter("ClusterRole", namespaced=False)
        self.role_bindings = FakeResourceAdapter("RoleBinding")
        self.cluster_role_bindings = FakeResourceAdapter("ClusterRoleBinding", namespaced=False)

    def adapters(self) -> List[FakeResourceAdapter]:
        return [
            self.namespaces, self.deployments, self.services, self.ingresses,
            self.service_accounts, self.secrets, self.roles, self.cluster_roles,
            self.role_bindings, self.cluster_role_bindings,
        ]

    def all_calls(self) -> List[tuple]:
        return [(adapter.kind,) + call for adapter in self.adapters() for call in adapter.calls]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def settings():
    """Process settings as configured for the test session."""
    from kubedeploy.config import get_settings
    return get_settings()


@pytest.fixture
def label_config():
    from kubedeploy.services.orchestration.kubernetes.labels import LabelConfig
    return LabelConfig(creator="@kubedeploy/test", vendor="kubedeploy.io")


@pytest.fixture
def app():
    """A minimal application with a port and an ingress path."""
    from kubedeploy.schemas import ApplicationDescriptor
    return ApplicationDescriptor(
        name="app1",
        namespace="ns1",
        workspace_id="W123",
        environment="testing",
        image="img:1",
        port=8080,
        path="/app1",
    )


@pytest.fixture
def fast_retry_policy():
    """Five attempts without any delay between them."""
    from kubedeploy.services.retry_config import RetryPolicy
    return RetryPolicy(max_attempts=5, min_delay=0.0, max_delay=0.0, jitter=False)


@pytest.fixture
def fake_cluster():
    return FakeCluster()


@pytest.fixture
def reconciler(fake_cluster, settings, label_config, fast_retry_policy):
    from kubedeploy.services.orchestration.kubernetes.manager import KubernetesReconciler
    return KubernetesReconciler(
        k8s_client=fake_cluster,
        settings=settings,
        label_config=label_config,
        retry_policy=fast_retry_policy
    )
