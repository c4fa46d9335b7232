"""
HTTP transport and URL building for the disco service.

All requests go through fetch() / fetch_async(). A transport failure
(connection error, timeout, non-2xx status) is logged and reported as an
empty body, which every decoder turns into an empty result.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import httpx

from discocache.data.models import ClientConfig
from discocache.domain.models import ReleaseStatus
from discocache.domain.query import PkgQuery

logger = logging.getLogger(__name__)


PACKAGES_PATH = "/packages"
MAJOR_VERSIONS_PATH = "/major_versions"
DISTRIBUTIONS_PATH = "/distributions"
EPHEMERAL_IDS_PATH = "/ephemeral_ids"

QueryParams = List[Tuple[str, str]]


def _bool_param(value: bool) -> str:
    return "true" if value else "false"


def pkgs_query_params(query: PkgQuery) -> QueryParams:
    """
    Translate query criteria into `/packages` query parameters.

    Unconstrained axes are left out; repeated keys carry multi-valued axes.
    """
    params: QueryParams = []
    params += [("distribution", d.api_string) for d in query.distributions]
    if query.version_number is not None:
        params.append(("version", str(query.version_number)))
    if not query.latest.is_sentinel:
        params.append(("latest", query.latest.api_string))
    params += [("operating_system", o.api_string) for o in query.operating_systems]
    params += [("libc_type", c.api_string) for c in query.lib_c_types]
    params += [("architecture", a.api_string) for a in query.architectures]
    if not query.bitness.is_sentinel:
        params.append(("bitness", query.bitness.api_string))
    params += [("archive_type", a.api_string) for a in query.archive_types]
    if not query.package_type.is_sentinel:
        params.append(("package_type", query.package_type.api_string))
    params += [("discovery_scope_id", s.api_string) for s in query.scopes]
    if query.javafx_bundled is not None:
        params.append(("javafx_bundled", _bool_param(query.javafx_bundled)))
    if query.directly_downloadable is not None:
        params.append(("directly_downloadable", _bool_param(query.directly_downloadable)))
    params += [("release_status", r.api_string) for r in query.release_statuses]
    params += [("term_of_support", t.api_string) for t in query.terms_of_support]
    return params


def major_versions_query_params(
    include_ea: Optional[bool] = None,
    maintained: Optional[bool] = None,
    include_ga: Optional[bool] = None,
) -> QueryParams:
    params: QueryParams = []
    if maintained is not None:
        params.append(("maintained", _bool_param(maintained)))
    if include_ea is not None:
        params.append(("ea", _bool_param(include_ea)))
    if include_ga is not None:
        params.append(("ga", _bool_param(include_ga)))
    return params


ALL_PKGS_PARAMS: QueryParams = [
    ("release_status", ReleaseStatus.EA.api_string),
    ("release_status", ReleaseStatus.GA.api_string),
]


class DiscoApi:
    """Thin httpx wrapper around the disco REST endpoints."""

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[httpx.BaseTransport] = None,
        async_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport
        # httpx.MockTransport serves both client flavours.
        if async_transport is None and isinstance(transport, httpx.AsyncBaseTransport):
            async_transport = transport
        self._async_transport = async_transport

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    def url(self, path: str, params: Sequence[Tuple[str, str]] = ()) -> str:
        full = f"{self.config.base_url}{path}"
        if not params:
            return full
        return str(httpx.URL(full, params=list(params)))

    def packages_url(self, params: Sequence[Tuple[str, str]] = ()) -> str:
        return self.url(PACKAGES_PATH, params)

    def pkg_url(self, pkg_id: str) -> str:
        return self.url(f"{PACKAGES_PATH}/{pkg_id}")

    def major_versions_url(self, suffix: str = "", params: Sequence[Tuple[str, str]] = ()) -> str:
        path = f"{MAJOR_VERSIONS_PATH}/{suffix}" if suffix else MAJOR_VERSIONS_PATH
        return self.url(path, params)

    def distributions_url(self, suffix: str = "") -> str:
        path = f"{DISTRIBUTIONS_PATH}/{suffix}" if suffix else DISTRIBUTIONS_PATH
        return self.url(path)

    def ephemeral_id_url(self, ephemeral_id: str) -> str:
        return self.url(f"{EPHEMERAL_IDS_PATH}/{ephemeral_id}")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def fetch(self, url: str) -> str:
        """GET the url and return the body, or "" on any transport failure."""
        try:
            with httpx.Client(
                follow_redirects=True,
                timeout=self.config.request_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = client.get(url)
                response.raise_for_status()
                return response.text
        except httpx.HTTPError as e:
            logger.error(f"Request to {url} failed: {e}")
            return ""

    async def fetch_async(self, url: str) -> str:
        try:
            async with httpx.AsyncClient(
                follow_redirects=True,
                timeout=self.config.request_timeout_seconds,
                transport=self._async_transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.text
        except httpx.HTTPError as e:
            logger.error(f"Request to {url} failed: {e}")
            return ""

    # ------------------------------------------------------------------
    # Convenience fetches used by the cache
    # ------------------------------------------------------------------

    def fetch_all_pkgs(self) -> str:
        return self.fetch(self.packages_url(ALL_PKGS_PARAMS))

    async def fetch_all_pkgs_async(self) -> str:
        return await self.fetch_async(self.packages_url(ALL_PKGS_PARAMS))

    def fetch_major_versions(self, include_ea: bool = False) -> str:
        return self.fetch(self.major_versions_url(params=major_versions_query_params(include_ea=include_ea)))

    async def fetch_major_versions_async(self, include_ea: bool = False) -> str:
        return await self.fetch_async(
            self.major_versions_url(params=major_versions_query_params(include_ea=include_ea))
        )
