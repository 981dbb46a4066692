"""Core infrastructure: config, logging, middleware, exceptions."""

from storefront_analytics.core.config import Settings, get_settings
from storefront_analytics.core.exceptions import (
    AssemblyError,
    BadRequestError,
    DataIntegrityError,
    StorefrontAnalyticsError,
)
from storefront_analytics.core.logging import get_logger, request_id_ctx, tenant_id_ctx

__all__ = [
    "AssemblyError",
    "BadRequestError",
    "DataIntegrityError",
    "Settings",
    "StorefrontAnalyticsError",
    "get_logger",
    "get_settings",
    "request_id_ctx",
    "tenant_id_ctx",
]
