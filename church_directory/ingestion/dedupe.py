"""
Dedupe and Slug Helpers
=======================

Pure functions used by ingestion to collapse near-duplicate records within a
fetched batch and to derive URL slugs for new listings.
"""

from __future__ import annotations

import math
import re
import unicodedata
from collections.abc import Callable, Iterable

from church_directory.core.schema import RawChurch

_NON_WORD = re.compile(r"[^\w]", re.ASCII)
_SLUG_STRIP = re.compile(r"[^\w\s-]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")
_DASHES = re.compile(r"-+")

FALLBACK_SLUG = "church"


def round_half_up(value: float, places: int = 3) -> float:
    """Round to `places` decimals with ties going toward +infinity."""
    factor = 10**places
    return math.floor(value * factor + 0.5) / factor


def dedupe_key(church: RawChurch) -> str:
    """
    Build the in-batch dedupe key for a record.

    Name is lower-cased with every non-word character removed; coordinates
    are rounded to three decimals (about 111m).
    """
    name = _NON_WORD.sub("", church.name.lower())
    lat = round_half_up(church.lat)
    lng = round_half_up(church.lng)
    return f"{name}_{lat:.3f}_{lng:.3f}"


def dedupe_batch(churches: Iterable[RawChurch]) -> list[RawChurch]:
    """Drop records whose dedupe key was already seen; the first occurrence wins."""
    seen: dict[str, RawChurch] = {}
    for church in churches:
        seen.setdefault(dedupe_key(church), church)
    return list(seen.values())


def slugify(text: str) -> str:
    """
    Convert text to a URL slug.

    Accents are folded to ASCII, then the text is lower-cased, stripped of
    anything but word characters, spaces and dashes, and whitespace runs
    become single dashes.
    """
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = _SLUG_STRIP.sub("", text.lower())
    text = _WHITESPACE.sub("-", text.strip())
    return _DASHES.sub("-", text).strip("-")


def unique_slug(
    name: str,
    city: str,
    is_taken: Callable[[str], bool],
) -> str:
    """
    Pick a slug for a new listing that `is_taken` does not reject.

    Tries the name alone, then name plus city, then numbered variants
    (`-2`, `-3`, ...) of the first candidate.
    """
    base = slugify(name) or FALLBACK_SLUG
    candidates = [base]
    city_slug = slugify(city)
    if city_slug and not base.endswith(city_slug):
        candidates.append(f"{base}-{city_slug}")

    for candidate in candidates:
        if not is_taken(candidate):
            return candidate

    stem = candidates[-1]
    n = 2
    while is_taken(f"{stem}-{n}"):
        n += 1
    return f"{stem}-{n}"
