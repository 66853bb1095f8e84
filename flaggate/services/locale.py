import re
from typing import Optional, Tuple

import structlog

from flaggate.providers import LocaleSource

logger = structlog.get_logger(__name__)

DEFAULT_LANGUAGE = "en"
DEFAULT_COUNTRY = "US"

_SEPARATOR = re.compile(r"[-_]")


def language_and_country(tag: Optional[str]) -> Tuple[str, str]:
    # "es-VE" / "en_US" -> ("es", "VE"); "zh-Hans-CN" -> ("zh", "CN"); "es" -> ("es", "US")
    if not tag:
        return DEFAULT_LANGUAGE, DEFAULT_COUNTRY
    parts = _SEPARATOR.split(tag.strip())
    language = parts[0].lower() or DEFAULT_LANGUAGE
    country = parts[-1].upper() if len(parts) > 1 and parts[-1] else DEFAULT_COUNTRY
    return language, country


def resolve_locale(source: LocaleSource) -> Tuple[str, str]:
    try:
        tag = source()
    except Exception:
        logger.warning("locale_source_failed", exc_info=True)
        tag = None
    return language_and_country(tag)
