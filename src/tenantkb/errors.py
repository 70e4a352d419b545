"""Exception hierarchy for tenantkb.

Only configuration-level failures propagate out of the ingestion pipeline.
Transient generation, embedding, and persistence failures are handled inside
the pipeline and reported as degraded counts instead.
"""

from __future__ import annotations


class TenantKBError(Exception):
    """Base class for all tenantkb errors."""


class ConfigError(TenantKBError, ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


class TenantNotFoundError(TenantKBError, LookupError):
    """Raised when an operation targets a tenant that is not registered."""

    def __init__(self, tenant_id: str) -> None:
        super().__init__(f"Tenant '{tenant_id}' is not registered.")
        self.tenant_id = tenant_id


class ExtractionError(TenantKBError):
    """Raised when an uploaded file cannot be turned into plain text."""
