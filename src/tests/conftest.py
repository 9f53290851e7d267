"""Pytest configuration and shared fixtures."""

import os
from typing import Any

import pytest

# Set test environment before importing settings
os.environ["ENV"] = "development"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["LOG_FORMAT"] = "text"


@pytest.fixture
def sample_mirror_peer() -> dict[str, Any]:
    """MirrorPeer custom resource as returned by the hub API."""
    return {
        "apiVersion": "multicluster.odf.openshift.io/v1alpha1",
        "kind": "MirrorPeer",
        "metadata": {"name": "mirrorpeer-east-west", "resourceVersion": "4711"},
        "spec": {
            "type": "async",
            "schedulingIntervals": ["5m"],
            "items": [
                {
                    "clusterName": "east",
                    "storageClusterRef": {
                        "name": "ocs-storagecluster",
                        "namespace": "openshift-storage",
                    },
                },
                {
                    "clusterName": "west",
                    "storageClusterRef": {
                        "name": "ocs-storagecluster",
                        "namespace": "openshift-storage",
                    },
                },
            ],
        },
    }


# =============================================================================
# Markers
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line(
        "markers", "integration: Integration tests (require external services)"
    )
    config.addinivalue_line("markers", "slow: Slow tests")
