from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys (clickLimit, campaignId, ...) while
    keeping snake_case attributes in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecordModel(CamelModel):
    """Read-only snapshot built straight from an ORM row."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def check_target_url(value: str) -> str:
    """Strip whitespace and require an absolute http(s) URL.

    The string itself is kept as typed (no normalisation) because the
    blacklist compares targets verbatim.
    """
    value = value.strip()
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("target URL must be an absolute http(s) URL")
    return value
