"""Access control module.

Provides the internal-header middleware guarding the authoring surface.
Roles and sessions are enforced by the caller in front of this service.
"""

from folio.auth.middleware import AuthMiddleware, is_public_path

__all__ = ["AuthMiddleware", "is_public_path"]
