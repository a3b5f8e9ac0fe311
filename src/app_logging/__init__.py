"""Logging setup shared by the API process and the simulation worker."""

from .context import ContextFilter, current_fields, log_context, log_waybill_context
from .filters import DefaultCorrelationFilter, PIIFilter, mask_contacts
from .formatters import DevFormatter, JSONFormatter
from .setup import setup_logging

__all__ = [
    "ContextFilter",
    "DefaultCorrelationFilter",
    "DevFormatter",
    "JSONFormatter",
    "PIIFilter",
    "current_fields",
    "log_context",
    "log_waybill_context",
    "mask_contacts",
    "setup_logging",
]
