"""haproxy-state: desired state for an HAProxy installation.

Core design goals:
- Config files assembled from ordered fragments, deterministically
- Atomic writes; a failed write leaves the previous file in place
- Dependents (service reload) notified only when a file changed
- Failures isolated per target file
- Centralized logging
"""

__all__ = []
