"""
Unit tests for resource naming utilities.
"""

import re

import pytest

from kubedeploy.utils.resource_naming import app_slug, label_selector, resource_slug, valid_name

DNS_LABEL = re.compile(r"^[a-z]([-a-z0-9]*[a-z0-9])?$")


@pytest.mark.unit
class TestValidName:
    """Test Kubernetes resource name generation."""

    @pytest.mark.parametrize("name, expected", [
        ("app1", "app1"),
        ("My_App.v2", "my-app-v2"),
        ("123-app", "app"),
        ("app--", "app"),
        ("a b  c", "a-b-c"),
        ("", "valid-name"),
        ("1234", "valid-name"),
        ("@#$%", "valid-name"),
    ])
    def test_valid_name(self, name, expected):
        assert valid_name(name) == expected

    def test_truncated_to_63_characters(self):
        name = valid_name("a" * 100)
        assert len(name) == 63

    @pytest.mark.parametrize("name", ["x" * 62 + "-yz", "Ünïcode-Näme", "-leading", "trailing_", "a.b.c"])
    def test_output_is_dns_label(self, name):
        result = valid_name(name)
        assert DNS_LABEL.match(result)
        assert len(result) <= 63


@pytest.mark.unit
class TestSlugs:
    """Test log slugs and label selectors."""

    def test_app_slug(self):
        assert app_slug("production", "api") == "production/api"
        assert app_slug(None, "api-reader") == "api-reader"

    def test_resource_slug(self):
        assert resource_slug("Deployment", "api", "production") == "Deployment production/api"
        assert resource_slug("ClusterRole", "api-reader") == "ClusterRole api-reader"

    def test_label_selector(self):
        labels = {"app.kubernetes.io/name": "api", "tier": "web"}
        assert label_selector(labels) == "app.kubernetes.io/name=api,tier=web"
