"""
Unit tests for deploy mode verification.
"""

import pytest

from kubedeploy.config import Settings
from kubedeploy.schemas import ApplicationDescriptor, DeployOptions
from kubedeploy.services.orchestration.deployment_mode import (
    DeploymentMode,
    deploy_options_from_settings,
    verify_application_deploy,
)
from kubedeploy.services.orchestration.kubernetes.errors import ConfigurationError


def make_app(namespace="ns1", environment="production") -> ApplicationDescriptor:
    return ApplicationDescriptor(
        name="app1",
        namespace=namespace,
        workspace_id="W123",
        environment=environment,
        image="img:1",
    )


@pytest.mark.unit
class TestDeploymentMode:
    """Test DeploymentMode parsing."""

    @pytest.mark.parametrize("value, expected", [
        ("cluster", DeploymentMode.CLUSTER),
        ("Namespace", DeploymentMode.NAMESPACE),
        ("  cluster ", DeploymentMode.CLUSTER),
    ])
    def test_from_string(self, value, expected):
        assert DeploymentMode.from_string(value) == expected

    def test_invalid(self):
        with pytest.raises(ValueError, match="Valid modes: cluster, namespace"):
            DeploymentMode.from_string("docker")

    def test_str(self):
        assert str(DeploymentMode.NAMESPACE) == "namespace"


@pytest.mark.unit
class TestVerifyApplicationDeploy:
    """Test whether this process fulfils an application."""

    def test_no_options_accepts_everything(self):
        app = make_app()
        assert verify_application_deploy(app, None) is app
        assert verify_application_deploy(app, DeployOptions()) is app

    def test_no_mode_ignores_environment(self):
        app = make_app(environment="staging")
        assert verify_application_deploy(app, DeployOptions(environment="production")) is app

    def test_environment_mismatch_skips(self):
        options = DeployOptions(mode="cluster", environment="production")
        assert verify_application_deploy(make_app(environment="staging"), options) is None

    def test_environment_match(self):
        options = DeployOptions(mode="cluster", environment="production")
        assert verify_application_deploy(make_app(), options) is not None

    def test_namespace_mode_requires_pod_namespace(self):
        with pytest.raises(ConfigurationError, match="POD_NAMESPACE"):
            verify_application_deploy(make_app(), DeployOptions(mode="namespace"), pod_namespace="")

    def test_namespace_mode_same_namespace(self):
        app = make_app(namespace="ns1")
        assert verify_application_deploy(app, DeployOptions(mode="namespace"), pod_namespace="ns1") is app

    def test_namespace_mode_other_namespace(self):
        options = DeployOptions(mode="namespace", namespaces=["ns1"])
        assert verify_application_deploy(make_app(namespace="ns1"), options, pod_namespace="ns2") is None

    def test_cluster_mode_allow_list(self):
        options = DeployOptions(mode="cluster", namespaces=["ns1", "ns2"])

        assert verify_application_deploy(make_app(namespace="ns2"), options) is not None
        assert verify_application_deploy(make_app(namespace="ns3"), options) is None

    def test_cluster_mode_empty_allow_list(self):
        assert verify_application_deploy(make_app(namespace="any"), DeployOptions(mode="cluster")) is not None

    def test_missing_namespace_defaults(self):
        verified = verify_application_deploy(make_app(namespace=""), DeployOptions(mode="cluster", namespaces=["default"]))

        assert verified is not None
        assert verified.namespace == "default"


@pytest.mark.unit
class TestDeployOptionsFromSettings:
    """Test building options from settings."""

    def test_from_settings(self):
        settings = Settings(
            k8s_deploy_mode="Cluster",
            k8s_deploy_environment="production",
            k8s_deploy_namespaces="ns1, ns2,,",
        )

        options = deploy_options_from_settings(settings)

        assert options.mode == "cluster"
        assert options.environment == "production"
        assert options.namespaces == ["ns1", "ns2"]

    def test_unset_mode(self):
        options = deploy_options_from_settings(Settings(k8s_deploy_mode="", k8s_deploy_namespaces=""))

        assert options.mode is None
        assert options.namespaces == []

    def test_invalid_mode(self):
        with pytest.raises(ValueError):
            deploy_options_from_settings(Settings(k8s_deploy_mode="everywhere"))
