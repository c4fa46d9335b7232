"""
DiscoClient: the public entry point of the package.

Package queries are answered from the cached catalog once it is ready and
from a one-shot request to the disco service before that. Major version,
distribution and download lookups always go to the service.

Every lookup has a synchronous form and an `_async` form. The synchronous
forms block on the network on the cold path and must not be called from
inside the event loop that runs the cache.
"""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

from discocache.data.catalog import CacheManager, CacheState, CatalogSnapshot
from discocache.data.config import load_client_config
from discocache.data.models import ClientConfig
from discocache.domain.disco_json import (
    decode_distributions,
    decode_major_version,
    decode_major_versions,
    decode_pkg,
    decode_pkg_info,
    decode_pkgs,
    decode_versions_per_distribution,
    encode_pkgs,
)
from discocache.domain.disco_utils import (
    archive_types_for,
    detect_operating_system,
    distributions_with_scope,
)
from discocache.domain.models import (
    ArchiveType,
    Comparison,
    Distribution,
    MajorVersion,
    OperatingSystem,
    Pkg,
    PkgInfo,
    ReleaseStatus,
    Scope,
    TermOfSupport,
    VersionNumber,
)
from discocache.domain.query import PkgQuery, select_pkgs, sort_pkgs
from discocache.services.disco_api import (
    DiscoApi,
    major_versions_query_params,
    pkgs_query_params,
)
from discocache.services.downloader import DownloadManager
from discocache.services.events import Evt, EventBus, EvtType, Observer

logger = logging.getLogger(__name__)


VersionLike = Union[VersionNumber, str, int, None]

MAJOR_VERSION_PARAMETERS = (
    "1 - next early access, current, last, latest, next, prev, last_lts, latest_lts, "
    "last_mts, latest_mts, last_sts, latest_sts, next_lts, next_mts, next_sts"
)


def _release_status_of(version_number: VersionLike) -> Any:
    # "17-ea" style text asks for early access builds only.
    if isinstance(version_number, str) and "-ea" in version_number.lower():
        return "ea"
    return None


def _parse_version(version_number: VersionLike) -> Optional[VersionNumber]:
    if version_number is None or version_number == "":
        return None
    try:
        return VersionNumber.from_text(version_number)
    except ValueError as e:
        logger.warning(f"Ignoring lookup with invalid version number: {e}")
        return None


def single_axis_query(
    distribution: Optional[Distribution] = None,
    version_number: VersionLike = None,
    latest: Any = None,
    operating_system: Optional[OperatingSystem] = None,
    lib_c_type: Any = None,
    architecture: Any = None,
    bitness: Any = None,
    archive_type: Optional[ArchiveType] = None,
    package_type: Any = None,
    javafx_bundled: Optional[bool] = None,
    directly_downloadable: Optional[bool] = None,
    release_status: Any = None,
    term_of_support: Optional[TermOfSupport] = None,
    scope: Optional[Scope] = Scope.PUBLIC,
) -> PkgQuery:
    """
    Build an EQUAL query from one value per axis.

    None or a NONE / NOT_FOUND value leaves an axis unconstrained; a missing
    scope falls back to PUBLIC. An early access version ("17-ea") without an
    explicit release status restricts the result to early access builds.
    """
    scope = Scope.from_text(scope) if scope is not None else Scope.PUBLIC
    if scope.is_sentinel:
        scope = Scope.PUBLIC
    if release_status is None or ReleaseStatus.from_text(release_status).is_sentinel:
        release_status = _release_status_of(version_number)
    return PkgQuery(
        version_number=version_number,
        comparison=Comparison.EQUAL,
        latest=latest,
        distributions=distribution,
        operating_systems=operating_system,
        lib_c_types=lib_c_type,
        architectures=architecture,
        bitness=bitness,
        archive_types=archive_type,
        package_type=package_type,
        javafx_bundled=javafx_bundled,
        directly_downloadable=directly_downloadable,
        release_statuses=release_status,
        terms_of_support=term_of_support,
        scopes=[scope],
    )


def _latest_of_term(
    major_versions: List[MajorVersion],
    include_ea: bool,
    matches_term: Callable[[TermOfSupport], bool],
) -> Optional[MajorVersion]:
    # A GA line needs at least one released build besides its EA builds.
    min_versions = 1 if include_ea else 2
    for major_version in major_versions:
        if matches_term(major_version.term_of_support) and len(major_version.versions) >= min_versions:
            return major_version
    return None


def _is_lts(term: TermOfSupport) -> bool:
    return term is TermOfSupport.LTS


def _is_mts(term: TermOfSupport) -> bool:
    return term is TermOfSupport.MTS


def _is_not_lts(term: TermOfSupport) -> bool:
    return term is not TermOfSupport.LTS


def _distinct_distributions(pkgs: List[Pkg]) -> List[Distribution]:
    return list(dict.fromkeys(pkg.distribution for pkg in pkgs))


def _major_version_not_found_json(parameter: str) -> str:
    return json.dumps(
        {
            "value": parameter,
            "detail": "Requested release has wrong format or is null.",
            "supported": MAJOR_VERSION_PARAMETERS,
        },
        indent=2,
    )


class DiscoClient:
    """
    Cached client for the foojay disco API.

    Call start() from a running event loop (or use `async with`) to warm the
    cache and keep it refreshed; without it every query goes to the service.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        events: Optional[EventBus] = None,
    ):
        self.config = config or load_client_config()
        self.events = events or EventBus()
        self.api = DiscoApi(self.config, transport=transport)
        self.cache = CacheManager(self.api, self.events, self.config)
        download_transport = transport if isinstance(transport, httpx.AsyncBaseTransport) else None
        self.downloads = DownloadManager(self.events, self.config, transport=download_transport)

    # ==================================================================
    # Lifecycle
    # ==================================================================

    def start(self) -> None:
        self.cache.start()

    async def stop(self) -> None:
        await self.cache.stop()

    async def __aenter__(self) -> "DiscoClient":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def is_ready(self) -> bool:
        return self.cache.is_ready()

    @property
    def state(self) -> CacheState:
        return self.cache.state

    def snapshot(self) -> CatalogSnapshot:
        return self.cache.snapshot()

    # ==================================================================
    # Events
    # ==================================================================

    def set_on_evt(self, evt_type: EvtType, observer: Observer) -> None:
        self.events.set_on_evt(evt_type, observer)

    def remove_on_evt(self, evt_type: EvtType, observer: Observer) -> None:
        self.events.remove_on_evt(evt_type, observer)

    def remove_all_observers(self) -> None:
        self.events.remove_all_observers()

    def fire_evt(self, evt: Evt) -> None:
        self.events.fire_evt(evt)

    # ==================================================================
    # Packages
    # ==================================================================

    def get_all_pkgs(self) -> List[Pkg]:
        if self.cache.is_ready():
            return sort_pkgs(self.cache.snapshot().pkgs.values())
        return sort_pkgs(CatalogSnapshot.build(decode_pkgs(self.api.fetch_all_pkgs())).pkgs.values())

    async def get_all_pkgs_async(self) -> List[Pkg]:
        if self.cache.is_ready():
            return sort_pkgs(self.cache.snapshot().pkgs.values())
        body = await self.api.fetch_all_pkgs_async()
        return sort_pkgs(CatalogSnapshot.build(decode_pkgs(body)).pkgs.values())

    def _pkgs_url(self, query: PkgQuery) -> str:
        return self.api.packages_url(pkgs_query_params(query))

    @staticmethod
    def _one_shot_result(body: str) -> List[Pkg]:
        # The service already applied the criteria; only de-duplicate and order.
        return sort_pkgs(CatalogSnapshot.build(decode_pkgs(body)).pkgs.values())

    def get_pkgs(
        self,
        distribution: Optional[Distribution] = None,
        version_number: VersionLike = None,
        latest: Any = None,
        operating_system: Optional[OperatingSystem] = None,
        lib_c_type: Any = None,
        architecture: Any = None,
        bitness: Any = None,
        archive_type: Optional[ArchiveType] = None,
        package_type: Any = None,
        javafx_bundled: Optional[bool] = None,
        directly_downloadable: Optional[bool] = None,
        release_status: Any = None,
        term_of_support: Optional[TermOfSupport] = None,
        scope: Optional[Scope] = Scope.PUBLIC,
    ) -> List[Pkg]:
        """
        Packages matching one value per axis (EQUAL comparison).

        Served from the cached catalog when it is ready, otherwise fetched
        from the service with the same criteria.
        """
        query = single_axis_query(
            distribution, version_number, latest, operating_system, lib_c_type, architecture, bitness,
            archive_type, package_type, javafx_bundled, directly_downloadable, release_status,
            term_of_support, scope,
        )
        if self.cache.is_ready():
            return select_pkgs(self.cache.snapshot(), query)
        return self._one_shot_result(self.api.fetch(self._pkgs_url(query)))

    async def get_pkgs_async(
        self,
        distribution: Optional[Distribution] = None,
        version_number: VersionLike = None,
        latest: Any = None,
        operating_system: Optional[OperatingSystem] = None,
        lib_c_type: Any = None,
        architecture: Any = None,
        bitness: Any = None,
        archive_type: Optional[ArchiveType] = None,
        package_type: Any = None,
        javafx_bundled: Optional[bool] = None,
        directly_downloadable: Optional[bool] = None,
        release_status: Any = None,
        term_of_support: Optional[TermOfSupport] = None,
        scope: Optional[Scope] = Scope.PUBLIC,
    ) -> List[Pkg]:
        query = single_axis_query(
            distribution, version_number, latest, operating_system, lib_c_type, architecture, bitness,
            archive_type, package_type, javafx_bundled, directly_downloadable, release_status,
            term_of_support, scope,
        )
        if self.cache.is_ready():
            return select_pkgs(self.cache.snapshot(), query)
        return self._one_shot_result(await self.api.fetch_async(self._pkgs_url(query)))

    def get_pkgs_as_json(self, **criteria: Any) -> str:
        """get_pkgs() serialized as the service's JSON array; takes the same keyword arguments."""
        return encode_pkgs(self.get_pkgs(**criteria))

    async def get_pkgs_as_json_async(self, **criteria: Any) -> str:
        return encode_pkgs(await self.get_pkgs_async(**criteria))

    def get_pkgs_from_cache(self, query: Optional[PkgQuery] = None, **criteria: Any) -> List[Pkg]:
        """
        Run a full query (multi-valued axes, any comparison mode) against the
        cached catalog. Returns nothing while the cache is cold.
        """
        query = query if query is not None else PkgQuery(**criteria)
        snapshot = self.cache.snapshot()
        if query.comparison is not Comparison.EQUAL and not snapshot.major_versions:
            snapshot = snapshot.with_major_versions(
                decode_major_versions(self.api.fetch_major_versions(include_ea=True))
            )
        return select_pkgs(snapshot, query)

    async def get_pkgs_from_cache_async(self, query: Optional[PkgQuery] = None, **criteria: Any) -> List[Pkg]:
        query = query if query is not None else PkgQuery(**criteria)
        snapshot = self.cache.snapshot()
        if query.comparison is not Comparison.EQUAL and not snapshot.major_versions:
            body = await self.api.fetch_major_versions_async(include_ea=True)
            snapshot = snapshot.with_major_versions(decode_major_versions(body))
        return select_pkgs(snapshot, query)

    def get_pkg(self, pkg_id: str) -> Optional[Pkg]:
        if self.cache.is_ready():
            return self.cache.snapshot().get(pkg_id)
        return decode_pkg(self.api.fetch(self.api.pkg_url(pkg_id)))

    async def get_pkg_async(self, pkg_id: str) -> Optional[Pkg]:
        if self.cache.is_ready():
            return self.cache.snapshot().get(pkg_id)
        return decode_pkg(await self.api.fetch_async(self.api.pkg_url(pkg_id)))

    # ==================================================================
    # Major versions
    # ==================================================================

    def get_major_version(self, parameter: str) -> Optional[MajorVersion]:
        """
        Resolve a major version by number or keyword ("latest", "latest_lts", ...).
        """
        if not parameter:
            logger.debug("No major version parameter given")
            return None
        return decode_major_version(self.api.fetch(self.api.major_versions_url(str(parameter))))

    async def get_major_version_async(self, parameter: str) -> Optional[MajorVersion]:
        if not parameter:
            return None
        return decode_major_version(await self.api.fetch_async(self.api.major_versions_url(str(parameter))))

    def get_major_version_as_json(self, parameter: str) -> str:
        major_version = self.get_major_version(parameter)
        if major_version is None:
            return _major_version_not_found_json(parameter)
        return major_version.model_dump_json(indent=2)

    async def get_major_version_as_json_async(self, parameter: str) -> str:
        major_version = await self.get_major_version_async(parameter)
        if major_version is None:
            return _major_version_not_found_json(parameter)
        return major_version.model_dump_json(indent=2)

    def get_major_version_for_feature(self, feature: int, include_ea: bool = False) -> Optional[MajorVersion]:
        for major_version in self.get_all_major_versions(include_ea):
            if major_version.major_version == feature:
                return major_version
        return None

    async def get_major_version_for_feature_async(self, feature: int, include_ea: bool = False) -> Optional[MajorVersion]:
        for major_version in await self.get_all_major_versions_async(include_ea):
            if major_version.major_version == feature:
                return major_version
        return None

    def _major_versions_url(
        self,
        include_ea: Optional[bool],
        maintained: Optional[bool],
        include_ga: Optional[bool],
    ) -> str:
        return self.api.major_versions_url(
            params=major_versions_query_params(include_ea=include_ea, maintained=maintained, include_ga=include_ga)
        )

    def get_all_major_versions(
        self,
        include_ea: Optional[bool] = False,
        maintained: Optional[bool] = None,
        include_ga: Optional[bool] = None,
    ) -> List[MajorVersion]:
        """Major versions, newest first. None leaves a flag out of the request."""
        return decode_major_versions(self.api.fetch(self._major_versions_url(include_ea, maintained, include_ga)))

    async def get_all_major_versions_async(
        self,
        include_ea: Optional[bool] = False,
        maintained: Optional[bool] = None,
        include_ga: Optional[bool] = None,
    ) -> List[MajorVersion]:
        body = await self.api.fetch_async(self._major_versions_url(include_ea, maintained, include_ga))
        return decode_major_versions(body)

    def get_maintained_major_versions(self, include_ea: bool = False) -> List[MajorVersion]:
        return self.get_all_major_versions(include_ea=True if include_ea else None, maintained=True, include_ga=True)

    async def get_maintained_major_versions_async(self, include_ea: bool = False) -> List[MajorVersion]:
        return await self.get_all_major_versions_async(
            include_ea=True if include_ea else None, maintained=True, include_ga=True
        )

    def get_useful_major_versions(self) -> List[MajorVersion]:
        return decode_major_versions(self.api.fetch(self.api.major_versions_url("useful")))

    async def get_useful_major_versions_async(self) -> List[MajorVersion]:
        return decode_major_versions(await self.api.fetch_async(self.api.major_versions_url("useful")))

    def get_latest_lts(self, include_ea: bool = False) -> Optional[MajorVersion]:
        return _latest_of_term(self.get_all_major_versions(include_ea), include_ea, _is_lts)

    async def get_latest_lts_async(self, include_ea: bool = False) -> Optional[MajorVersion]:
        return _latest_of_term(await self.get_all_major_versions_async(include_ea), include_ea, _is_lts)

    def get_latest_mts(self, include_ea: bool = False) -> Optional[MajorVersion]:
        return _latest_of_term(self.get_all_major_versions(include_ea), include_ea, _is_mts)

    async def get_latest_mts_async(self, include_ea: bool = False) -> Optional[MajorVersion]:
        return _latest_of_term(await self.get_all_major_versions_async(include_ea), include_ea, _is_mts)

    def get_latest_sts(self, include_ea: bool = False) -> Optional[MajorVersion]:
        """Newest line that is not LTS (MTS lines count as short term here)."""
        return _latest_of_term(self.get_all_major_versions(include_ea), include_ea, _is_not_lts)

    async def get_latest_sts_async(self, include_ea: bool = False) -> Optional[MajorVersion]:
        return _latest_of_term(await self.get_all_major_versions_async(include_ea), include_ea, _is_not_lts)

    # ==================================================================
    # Distributions
    # ==================================================================

    def get_distributions(self) -> List[Distribution]:
        return decode_distributions(self.api.fetch(self.api.distributions_url()))

    async def get_distributions_async(self) -> List[Distribution]:
        return decode_distributions(await self.api.fetch_async(self.api.distributions_url()))

    def get_distributions_for_version(self, version_number: VersionLike) -> List[Distribution]:
        version = _parse_version(version_number)
        if version is None:
            return []
        return decode_distributions(self.api.fetch(self.api.distributions_url(f"versions/{version}")))

    async def get_distributions_for_version_async(self, version_number: VersionLike) -> List[Distribution]:
        version = _parse_version(version_number)
        if version is None:
            return []
        return decode_distributions(await self.api.fetch_async(self.api.distributions_url(f"versions/{version}")))

    def get_versions_per_distribution(self) -> Dict[Distribution, List[VersionNumber]]:
        return decode_versions_per_distribution(self.api.fetch(self.api.distributions_url()))

    async def get_versions_per_distribution_async(self) -> Dict[Distribution, List[VersionNumber]]:
        return decode_versions_per_distribution(await self.api.fetch_async(self.api.distributions_url()))

    def get_distributions_that_support(
        self,
        version_number: VersionLike,
        operating_system: Optional[OperatingSystem] = None,
        architecture: Any = None,
        lib_c_type: Any = None,
        archive_type: Optional[ArchiveType] = None,
        package_type: Any = None,
        javafx_bundled: Optional[bool] = None,
        directly_downloadable: Optional[bool] = None,
    ) -> List[Distribution]:
        """Distributions with at least one public package matching the criteria."""
        pkgs = self.get_pkgs(
            version_number=version_number,
            operating_system=operating_system,
            architecture=architecture,
            lib_c_type=lib_c_type,
            archive_type=archive_type,
            package_type=package_type,
            javafx_bundled=javafx_bundled,
            directly_downloadable=directly_downloadable,
        )
        return _distinct_distributions(pkgs)

    async def get_distributions_that_support_async(
        self,
        version_number: VersionLike,
        operating_system: Optional[OperatingSystem] = None,
        architecture: Any = None,
        lib_c_type: Any = None,
        archive_type: Optional[ArchiveType] = None,
        package_type: Any = None,
        javafx_bundled: Optional[bool] = None,
        directly_downloadable: Optional[bool] = None,
    ) -> List[Distribution]:
        pkgs = await self.get_pkgs_async(
            version_number=version_number,
            operating_system=operating_system,
            architecture=architecture,
            lib_c_type=lib_c_type,
            archive_type=archive_type,
            package_type=package_type,
            javafx_bundled=javafx_bundled,
            directly_downloadable=directly_downloadable,
        )
        return _distinct_distributions(pkgs)

    @staticmethod
    def get_distributions_based_on_openjdk() -> List[Distribution]:
        return distributions_with_scope(Scope.BUILD_OF_OPEN_JDK)

    @staticmethod
    def get_distributions_based_on_graalvm() -> List[Distribution]:
        return distributions_with_scope(Scope.BUILD_OF_GRAALVM)

    # ==================================================================
    # Package info & downloads
    # ==================================================================

    def get_pkg_info(self, ephemeral_id: str, java_version: VersionLike = None) -> Optional[PkgInfo]:
        """
        Download details for an ephemeral id. `java_version`, when given, is
        attached to the result; an unparseable one gives None.
        """
        version = _parse_version(java_version)
        if version is None and java_version not in (None, ""):
            return None
        return decode_pkg_info(self.api.fetch(self.api.ephemeral_id_url(ephemeral_id)), version)

    async def get_pkg_info_async(self, ephemeral_id: str, java_version: VersionLike = None) -> Optional[PkgInfo]:
        version = _parse_version(java_version)
        if version is None and java_version not in (None, ""):
            return None
        body = await self.api.fetch_async(self.api.ephemeral_id_url(ephemeral_id))
        return decode_pkg_info(body, version)

    def get_pkg_direct_download_uri(self, ephemeral_id: str, java_version: VersionLike = None) -> Optional[str]:
        pkg_info = self.get_pkg_info(ephemeral_id, java_version)
        return pkg_info.direct_download_uri if pkg_info is not None else None

    async def get_pkg_direct_download_uri_async(
        self, ephemeral_id: str, java_version: VersionLike = None
    ) -> Optional[str]:
        pkg_info = await self.get_pkg_info_async(ephemeral_id, java_version)
        return pkg_info.direct_download_uri if pkg_info is not None else None

    async def download_pkg(self, pkg_id: str, target: Union[str, Path]) -> Optional["asyncio.Task[bool]"]:
        """
        Resolve a package's download URI and start downloading it to target.

        Returns the download task, or None when the package or its download
        URI cannot be resolved.
        """
        pkg = await self.get_pkg_async(pkg_id)
        if pkg is None:
            logger.warning(f"Cannot download unknown package {pkg_id}")
            return None
        pkg_info = await self.get_pkg_info_async(pkg.ephemeral_id, pkg.java_version)
        if pkg_info is None or not pkg_info.direct_download_uri:
            logger.warning(f"No direct download URI for package {pkg_id}")
            return None
        return self.download_pkg_info(pkg_info, target)

    def download_pkg_info(self, pkg_info: PkgInfo, target: Union[str, Path]) -> "asyncio.Task[bool]":
        return self.downloads.submit(pkg_info.direct_download_uri, target)

    # ==================================================================
    # Platform helpers
    # ==================================================================

    @staticmethod
    def get_operating_system() -> OperatingSystem:
        return detect_operating_system()

    @staticmethod
    def get_archive_types(operating_system: OperatingSystem) -> List[ArchiveType]:
        return archive_types_for(operating_system)
