from pydantic import BaseModel, field_validator
from typing import Optional, List, Dict, Any, Literal


class ApplicationDescriptor(BaseModel):
    """
    Desired Kubernetes footprint of one application.

    Built by the caller for each deployment event and not modified while
    it is being reconciled. Override documents (``*_spec``) use the
    upstream Kubernetes wire format (camelCase keys) and are deep-merged
    on top of the default resource documents.
    """
    name: str
    namespace: str = "default"
    workspace_id: str
    environment: str
    image: str

    # Service port, if not provided no service is created
    port: Optional[int] = None
    # Ingress rule path, if not provided no ingress is created
    path: Optional[str] = None
    # Ingress rule host, if not provided the rule matches any host
    host: Optional[str] = None
    protocol: Optional[Literal["http", "https"]] = None
    tls_secret: Optional[str] = None

    replicas: Optional[int] = None
    image_pull_secret: Optional[str] = None

    # Recommended-label extras
    component: Optional[str] = None
    instance: Optional[str] = None
    version: Optional[str] = None

    # RBAC, no service account or RBAC resources are managed without role_spec
    role_spec: Optional[Dict[str, Any]] = None
    service_account_spec: Optional[Dict[str, Any]] = None
    role_binding_spec: Optional[Dict[str, Any]] = None

    # Per-kind override documents
    deployment_spec: Optional[Dict[str, Any]] = None
    service_spec: Optional[Dict[str, Any]] = None
    ingress_spec: Optional[Dict[str, Any]] = None

    # Secret documents to upsert before the deployment
    secrets: Optional[List[Dict[str, Any]]] = None

    @field_validator('name', 'workspace_id')
    @classmethod
    def validate_not_empty(cls, v):
        if not v:
            raise ValueError('must not be empty')
        return v

    @field_validator('replicas')
    @classmethod
    def validate_replicas(cls, v):
        if v is not None and v < 0:
            raise ValueError('replicas cannot be negative')
        return v

    @property
    def slug(self) -> str:
        """Qualified application name, "namespace/name"."""
        return f"{self.namespace}/{self.name}"

    class Config:
        frozen = True


class DeployOptions(BaseModel):
    """Which applications this process should fulfil."""
    mode: Optional[Literal["cluster", "namespace"]] = None
    environment: Optional[str] = None
    namespaces: List[str] = []
