# Overview: Slug and SKU generation for categories, products and variants.

"""
Identifier generation.

SLUGS: lower-case ASCII words joined by '-'. Uniqueness is resolved by
appending -1, -2, ... (up to 99 attempts) and finally a millisecond timestamp.

SKUS: PFX-<base36 time>-<4 random base36 chars>, where PFX is the first three
letters of the category name. Variant SKUs extend the parent SKU with the
first two characters of each attribute value.
"""

from __future__ import annotations

import re
import secrets
import time
import unicodedata
from typing import Callable

BASE36_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
MAX_SLUG_ATTEMPTS = 100


def normalize_identifier(value: str) -> str:
    """Normalize to uppercase, no spaces."""
    return value.upper().strip().replace(" ", "")


def slugify(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    normalized = normalized.replace("&", " and ")
    slug = re.sub(r"[^a-zA-Z0-9]+", "-", normalized).strip("-").lower()
    return slug or "item"


def unique_slug(text: str, exists: Callable[[str], bool]) -> str:
    base = slugify(text)
    if not exists(base):
        return base

    for counter in range(1, MAX_SLUG_ATTEMPTS):
        candidate = f"{base}-{counter}"
        if not exists(candidate):
            return candidate

    return f"{base}-{int(time.time() * 1000)}"


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(BASE36_ALPHABET[rem])
    return "".join(reversed(digits))


def category_prefix(category_name: str | None) -> str:
    letters = re.sub(r"[^A-Za-z]", "", category_name or "")
    return (letters[:3] or "PRD").upper()


def generate_sku(prefix: str = "PRD") -> str:
    stamp = to_base36(int(time.time() * 1000))
    rand = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(4))
    return f"{prefix.upper()[:3]}-{stamp}-{rand}"


def generate_variant_sku(parent_sku: str, attributes: dict | None, taken: set[str] | None = None) -> str:
    """
    Parent SKU plus an attribute code (e.g. {"size": "M", "color": "Red"} -> "-MRE").

    `taken` holds SKUs already used for sibling variants; clashes get a numeric suffix.
    """
    code = "".join(normalize_identifier(str(v))[:2] for v in (attributes or {}).values())
    base = f"{parent_sku}-{code or 'V'}"
    taken = taken or set()
    candidate = base
    counter = 2
    while candidate in taken:
        candidate = f"{base}{counter}"
        counter += 1
    return candidate
