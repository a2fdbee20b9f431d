from pydantic_settings import BaseSettings
from functools import lru_cache
import logging


class Settings(BaseSettings):
    # Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = "INFO"

    # ==========================================================================
    # Resource Labels
    # ==========================================================================
    # Identity of the process creating resources, used for the
    # app.kubernetes.io/managed-by label (sanitized before use)
    k8s_fulfiller: str = "kubedeploy"

    # Vendor prefix for the workspace ID and environment labels
    # Format: "<vendor>/workspaceId", "<vendor>/environment"
    k8s_label_vendor: str = "kubedeploy.io"

    # ==========================================================================
    # Kubernetes General Settings
    # ==========================================================================
    k8s_default_namespace: str = "default"
    k8s_ingress_class: str = "nginx"  # Ingress controller class name

    # ==========================================================================
    # Deploy Mode (which applications this process fulfils)
    # ==========================================================================
    # "" (fulfil everything), "cluster" or "namespace"
    k8s_deploy_mode: str = ""
    # Only fulfil applications for this environment, empty matches all
    k8s_deploy_environment: str = ""
    # Comma-separated namespace allow-list for "cluster" mode
    k8s_deploy_namespaces: str = ""
    # Namespace this process runs in, required for "namespace" mode
    # Populated from POD_NAMESPACE via the downward API
    pod_namespace: str = ""

    @property
    def deploy_namespaces(self) -> list:
        """Parse the namespace allow-list into a list."""
        return [ns.strip() for ns in self.k8s_deploy_namespaces.split(",") if ns.strip()]

    # ==========================================================================
    # Cluster API Retry Policy
    # ==========================================================================
    k8s_retry_max_attempts: int = 5
    k8s_retry_backoff_factor: float = 2.0
    k8s_retry_min_delay: float = 0.1  # Seconds before the 2nd attempt
    k8s_retry_max_delay: float = 3.0  # Upper bound for any single delay
    k8s_retry_jitter: bool = True

    # ==========================================================================
    # Rollout Verification
    # ==========================================================================
    k8s_rollout_poll_interval: float = 5.0  # Seconds between status reads
    k8s_rollout_timeout: float = 600.0  # Give up after this many seconds

    # ==========================================================================
    # Secret Encryption
    # ==========================================================================
    # Passphrase used to encrypt secret values stored outside the cluster
    secret_encryption_key: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields from .env file
        case_sensitive = False  # Allow lowercase env vars to match uppercase field names


@lru_cache()
def get_settings():
    return Settings()


def configure_logging(settings: Settings = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
