from __future__ import annotations

from kubernetes import client, config
from kubernetes.client import ApiException, AppsV1Api
from kubernetes.config import ConfigException

from .watchset import MonitoredIdentifier


def load_kube_config(kubeconfig: str | None = None) -> str:
    """Configure the kubernetes client; returns which source was used.

    An explicit kubeconfig wins. Otherwise in-cluster service account
    credentials are tried first, then the default ~/.kube/config.
    """
    if kubeconfig:
        config.load_kube_config(config_file=kubeconfig)
        return f"kubeconfig:{kubeconfig}"
    try:
        config.load_incluster_config()
        return "in-cluster"
    except ConfigException:
        config.load_kube_config()
        return "kubeconfig"


def apps_api() -> AppsV1Api:
    return client.AppsV1Api()


class DeploymentLookup:
    """Point reads of ``spec.replicas`` for one Deployment at a time.

    Returns (desired_replicas, ok). A Deployment that no longer exists is a
    successful observation with no desired count, so deleting a watched
    Deployment counts toward quiescence; any other API failure is ok=False.
    """

    def __init__(self, api: AppsV1Api):
        self.api = api

    def __call__(self, ident: MonitoredIdentifier) -> tuple[int | None, bool]:
        try:
            dep = self.api.read_namespaced_deployment(name=ident.name, namespace=ident.namespace)
        except ApiException as e:
            if e.status == 404:
                return None, True
            return None, False
        spec = getattr(dep, "spec", None)
        replicas = getattr(spec, "replicas", None)
        return (int(replicas) if replicas is not None else None), True
