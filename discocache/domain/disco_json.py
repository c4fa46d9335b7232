"""
Decoding of disco service responses into typed records.

Every decoder fails closed: an empty body, invalid JSON or a root of the
wrong shape gives an empty collection (or None for single records), and
individual malformed elements are skipped.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from discocache.domain.models import (
    Distribution,
    MajorVersion,
    Pkg,
    PkgInfo,
    VersionNumber,
)

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def _load(body: Optional[str]) -> Any:
    if not body:
        return None
    try:
        return json.loads(body)
    except (TypeError, ValueError) as e:
        logger.warning(f"Discarding response that is not valid JSON: {e}")
        return None


def _decode_record(model: Type[RecordT], raw: Any) -> Optional[RecordT]:
    if not isinstance(raw, dict):
        logger.debug(f"Skipping {model.__name__} element that is not an object: {raw!r}")
        return None
    try:
        return model.model_validate(raw)
    except (ValidationError, ValueError) as e:
        logger.debug(f"Skipping malformed {model.__name__} element: {e}")
        return None


def _decode_array(model: Type[RecordT], body: Optional[str]) -> List[RecordT]:
    root = _load(body)
    if not isinstance(root, list):
        if root is not None:
            logger.warning(f"Expected a JSON array of {model.__name__} records, got {type(root).__name__}")
        return []
    records: List[RecordT] = []
    for raw in root:
        record = _decode_record(model, raw)
        if record is not None:
            records.append(record)
    return records


# ---------------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------------


def decode_pkgs(body: Optional[str]) -> List[Pkg]:
    """Decode a `/packages` response (JSON array of package objects)."""
    return _decode_array(Pkg, body)


def decode_pkg(body: Optional[str]) -> Optional[Pkg]:
    """Decode a `/packages/{id}` response (single JSON object)."""
    return _decode_record(Pkg, _load(body))


def encode_pkgs(pkgs: List[Pkg]) -> str:
    """Serialize packages back to the service's JSON array shape."""
    return json.dumps([pkg.model_dump(mode="json") for pkg in pkgs], indent=2)


# ---------------------------------------------------------------------------
# Major versions
# ---------------------------------------------------------------------------


def decode_major_versions(body: Optional[str]) -> List[MajorVersion]:
    return _decode_array(MajorVersion, body)


def decode_major_version(body: Optional[str]) -> Optional[MajorVersion]:
    return _decode_record(MajorVersion, _load(body))


# ---------------------------------------------------------------------------
# Ephemeral ids
# ---------------------------------------------------------------------------


def decode_pkg_info(body: Optional[str], java_version: Optional[VersionNumber] = None) -> Optional[PkgInfo]:
    """
    Decode an `/ephemeral_ids/{id}` response.

    The service does not echo the java version, so the caller's value is
    attached to the result.
    """
    root = _load(body)
    if not isinstance(root, dict):
        return None
    raw: Dict[str, Any] = dict(root)
    if java_version is not None:
        raw["java_version"] = java_version
    return _decode_record(PkgInfo, raw)


# ---------------------------------------------------------------------------
# Distributions
# ---------------------------------------------------------------------------


def decode_distributions(body: Optional[str]) -> List[Distribution]:
    """Decode a `/distributions` response into the distributions' enum values."""
    root = _load(body)
    if not isinstance(root, list):
        return []
    distributions: List[Distribution] = []
    for raw in root:
        if not isinstance(raw, dict) or not isinstance(raw.get("api_parameter"), str):
            logger.debug(f"Skipping distribution element without api_parameter: {raw!r}")
            continue
        distributions.append(Distribution.from_text(raw["api_parameter"]))
    return distributions


def decode_versions_per_distribution(body: Optional[str]) -> Dict[Distribution, List[VersionNumber]]:
    root = _load(body)
    if not isinstance(root, list):
        return {}
    found: Dict[Distribution, List[VersionNumber]] = {}
    for raw in root:
        if not isinstance(raw, dict) or not isinstance(raw.get("api_parameter"), str):
            continue
        versions_raw = raw.get("versions")
        if not isinstance(versions_raw, list):
            continue
        versions: List[VersionNumber] = []
        for text in versions_raw:
            try:
                versions.append(VersionNumber.from_text(text))
            except ValueError:
                logger.debug(f"Skipping unparsable version {text!r}")
        found[Distribution.from_text(raw["api_parameter"])] = versions
    return found
