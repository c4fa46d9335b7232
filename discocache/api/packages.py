from __future__ import annotations

from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from discocache.core.dependencies import get_disco_client
from discocache.services.disco_client import DiscoClient

logger = logging.getLogger(__name__)
router = APIRouter()

# ---------------------------------------------------------------------------
# 1. GET /cache/status
# ---------------------------------------------------------------------------

@router.get("/cache/status")
async def get_cache_status(client: DiscoClient = Depends(get_disco_client)) -> dict:
    """
    State of the in-memory catalog.
    """
    snapshot = client.snapshot()
    return {
        "state": client.state.value,
        "ready": client.is_ready(),
        "pkg_count": len(snapshot),
        "major_version_count": len(snapshot.major_versions),
        "built_at": snapshot.built_at.isoformat() if snapshot.built_at else None,
    }


# ---------------------------------------------------------------------------
# 2. GET /packages
# ---------------------------------------------------------------------------

@router.get("/packages")
async def get_packages(
    distribution: Optional[str] = None,
    version: Optional[str] = None,
    latest: Optional[str] = None,
    operating_system: Optional[str] = None,
    libc_type: Optional[str] = None,
    architecture: Optional[str] = None,
    bitness: Optional[str] = None,
    archive_type: Optional[str] = None,
    package_type: Optional[str] = None,
    javafx_bundled: Optional[bool] = None,
    directly_downloadable: Optional[bool] = None,
    release_status: Optional[str] = None,
    term_of_support: Optional[str] = None,
    discovery_scope_id: Optional[str] = Query(default=None),
    client: DiscoClient = Depends(get_disco_client),
) -> list:
    """
    Packages matching the given criteria; parameter names follow the disco API.
    """
    try:
        pkgs = await client.get_pkgs_async(
            distribution=distribution,
            version_number=version,
            latest=latest,
            operating_system=operating_system,
            lib_c_type=libc_type,
            architecture=architecture,
            bitness=bitness,
            archive_type=archive_type,
            package_type=package_type,
            javafx_bundled=javafx_bundled,
            directly_downloadable=directly_downloadable,
            release_status=release_status,
            term_of_support=term_of_support,
            scope=discovery_scope_id,
        )
    except ValueError as e:
        logger.debug(f"Rejected package query: {e}")
        raise HTTPException(status_code=400, detail="Invalid query parameters")

    return [pkg.model_dump(mode="json") for pkg in pkgs]


# ---------------------------------------------------------------------------
# 3. GET /packages/{pkg_id}
# ---------------------------------------------------------------------------

@router.get("/packages/{pkg_id}")
async def get_package(pkg_id: str, client: DiscoClient = Depends(get_disco_client)) -> dict:
    pkg = await client.get_pkg_async(pkg_id)
    if pkg is None:
        raise HTTPException(status_code=404, detail="Package not found")
    return pkg.model_dump(mode="json")


# ---------------------------------------------------------------------------
# 4. GET /major_versions
# ---------------------------------------------------------------------------

@router.get("/major_versions")
async def get_major_versions(client: DiscoClient = Depends(get_disco_client)) -> list:
    """
    Major versions known to the cache, newest first.
    """
    return [mv.model_dump(mode="json") for mv in client.snapshot().major_versions]
