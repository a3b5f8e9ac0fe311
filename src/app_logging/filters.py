"""Record filters applied on every handler."""

import logging
import re

EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
# Tanzanian mobile numbers: +255 754 000 222, 255754000222, 0754000222
PHONE_PATTERN = re.compile(r"(?:\+?255|\b0)[-\s]?\d{3}[-\s]?\d{3}[-\s]?\d{3}\b")


def mask_contacts(text: str) -> str:
    if "@" in text:
        text = EMAIL_PATTERN.sub("[EMAIL]", text)
    return PHONE_PATTERN.sub("[PHONE]", text)


class PIIFilter(logging.Filter):
    """Masks receiver phone numbers and email addresses.

    The message is rendered with its %-args first so values passed as
    arguments are masked too.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Mismatched args; the handler reports it when formatting
            return True
        masked = mask_contacts(message)
        if masked != message or record.args:
            record.msg = masked
            record.args = None
        return True


class DefaultCorrelationFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True
