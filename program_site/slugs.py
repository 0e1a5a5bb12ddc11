import re
from typing import Optional
from urllib.parse import unquote

_NON_ALNUM = re.compile(r"[^0-9a-z]+")

def slugify(value: Optional[str]) -> str:
    """Lower-case `value` and collapse every run of non-alphanumerics into one hyphen."""
    if not value:
        return ""
    return _NON_ALNUM.sub("-", value.strip().lower()).strip("-")

def normalize_slug(value: str) -> str:
    return unquote(value or "").strip().lower()

def city_slug(city) -> str:
    """Stored slug when the city has one, otherwise derived from its name."""
    stored = (city.slug or "").strip()
    if stored:
        return stored
    return slugify(city.name)
