"""
Repairs for malformed version and core fields in dependency declarations.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

import pandas as pd
from packaging import version as pkg_version


logger = logging.getLogger(__name__)

# Comparator (">", ">=", "<", "==", "!=", "~", "^") or "v"/"V" prefix
PREFIX_PATTERN = re.compile(r"^\s*(?:[<>=!~^]|[vV])")
STRIP_PATTERN = re.compile(r"[^\d._]")
ZERO_VERSION = "0"


def needs_cleaning(value: Any) -> bool:
    """Return True if ``value`` carries a comparator or ``v`` prefix."""
    return isinstance(value, str) and PREFIX_PATTERN.match(value) is not None


def clean_version(value: Any) -> Optional[str]:
    """Strip a prefixed version down to digits, periods and underscores.

    Null stays null; values without a prefix are returned unchanged.
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    text = str(value)
    if not needs_cleaning(text):
        return text
    return STRIP_PATTERN.sub("", text)


def numify(text: str) -> Optional[float]:
    """Turn a bare version token into a number.

    Dotted versions with more than one period are numified per component
    (``5.6.1`` -> ``5.006001``); underscores are dropped.
    """
    text = text.replace("_", "")
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        pass
    parts = [part for part in text.split(".") if part != ""]
    if not parts or not all(part.isdigit() for part in parts):
        return None
    number = float(parts[0])
    for position, part in enumerate(parts[1:], start=1):
        number += int(part) / (1000 ** position)
    return round(number, 9)


def clean_core(value: Any) -> Optional[float]:
    """Clean a core-since indicator into a float.

    Null stays null; text that cannot be read as a number becomes 0.
    """
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return None if pd.isna(value) else float(value)
    if pd.isna(value):
        return None
    text = clean_version(str(value).strip())
    number = numify(text) if text else None
    if number is None:
        logger.debug("Defaulting unreadable core value %r to 0", value)
        return 0.0
    return number


def version_key(value: Any) -> pkg_version.Version:
    """Sort key for distribution versions; unreadable versions sort as 0."""
    text = clean_version(value)
    if text:
        text = text.strip().lstrip("vV").replace("_", "")
        try:
            return pkg_version.Version(text)
        except pkg_version.InvalidVersion:
            pass
    return pkg_version.Version(ZERO_VERSION)


def default_nulls(frame: pd.DataFrame) -> pd.DataFrame:
    """Replace null or empty versions with ``0``.

    When the version is empty and the core is null too, the core becomes 0.
    """
    frame = frame.copy()
    versions = frame["version"].astype(object)
    empty = versions.map(lambda value: isinstance(value, str) and value.strip() == "")
    missing = versions.isna()
    both_empty = empty & frame["core"].isna()

    frame["version"] = versions.where(~(empty | missing), ZERO_VERSION)
    frame["core"] = frame["core"].astype(object).where(~both_empty, 0.0)
    frame["core"] = pd.to_numeric(frame["core"], errors="coerce")

    logger.info(
        "Defaulted %d null and %d empty versions to %s",
        int(missing.sum()), int(empty.sum()), ZERO_VERSION,
    )
    return frame


def clean_requires(frame: pd.DataFrame) -> pd.DataFrame:
    """Clean the version and core columns of a module-level requires frame."""
    frame = frame.copy()
    prefixed = frame["version"].map(needs_cleaning)
    logger.info("Cleaning %d prefixed versions", int(prefixed.sum()))

    frame["version"] = frame["version"].map(clean_version).astype(object)
    frame["core"] = frame["core"].map(clean_core).astype(object)
    frame["core"] = pd.to_numeric(frame["core"], errors="coerce")
    return default_nulls(frame)
