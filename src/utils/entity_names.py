"""Helpers for cleaning the free-text entity/person field of the violations feed."""

from __future__ import annotations

import re
from typing import Optional

import pandas as pd


# The portal export pads the entity field with separator residue, e.g. "ACME LLC, " or "JOHN DOE ;".
TRAILING_ARTIFACTS = re.compile(r'[\s,;:|/]+$')
UNKNOWN_ENTITY = "Unknown"


def clean_entity_name(raw: Optional[str]) -> Optional[str]:
    """Strip trailing separator artifacts; blank values become None."""
    if raw is None or (isinstance(raw, float) and pd.isna(raw)):
        return None
    cleaned = TRAILING_ARTIFACTS.sub("", str(raw)).strip()
    return cleaned or None


def normalize_entity(raw: Optional[str]) -> str:
    """Grouping key for the top-fines chart: cleaned and title-cased."""
    cleaned = clean_entity_name(raw)
    if cleaned is None:
        return UNKNOWN_ENTITY
    return cleaned.title()


__all__ = ["clean_entity_name", "normalize_entity", "TRAILING_ARTIFACTS", "UNKNOWN_ENTITY"]
