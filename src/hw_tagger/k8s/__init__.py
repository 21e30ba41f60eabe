"""Kubernetes 모듈."""

from .kube_config import KubeConfig, load_config
from .node_client import KubeAPIError, NodeLabelClient, NodeLabels

__all__ = ["KubeConfig", "load_config", "KubeAPIError", "NodeLabelClient", "NodeLabels"]
