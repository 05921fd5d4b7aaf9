"""kubesnooze (KSZ).

Small controller that puts the host to sleep once a fixed set of Kubernetes
Deployments has been scaled to zero for a grace period:
 - tracks the desired replica count of every watched Deployment
 - debounces the "all zero" condition with a cancellable one-shot timer
 - fires a power-management action once per quiescence episode

The implementation is intentionally small so it can be audited and explained.
"""
