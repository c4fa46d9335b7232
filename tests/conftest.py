from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from discocache.data.models import ClientConfig
from discocache.domain.models import MajorVersion, Pkg
from discocache.services.disco_client import DiscoClient

API_PREFIX = "/disco/v2.0"


def pkg_payload(pkg_id: str, distribution: str = "zulu", java_version: str = "17.0.1", **fields: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": pkg_id,
        "distribution": distribution,
        "java_version": java_version,
        "distribution_version": java_version,
        "release_status": "ga",
        "term_of_support": "lts",
        "operating_system": "linux",
        "lib_c_type": "glibc",
        "architecture": "x64",
        "archive_type": "tar.gz",
        "package_type": "jdk",
        "javafx_bundled": False,
        "directly_downloadable": True,
        "latest_build_available": False,
        "filename": f"{pkg_id}.tar.gz",
        "ephemeral_id": f"eph-{pkg_id}",
        "size": 100,
    }
    payload.update(fields)
    return payload


def make_pkg(pkg_id: str, distribution: str = "zulu", java_version: str = "17.0.1", **fields: Any) -> Pkg:
    return Pkg.model_validate(pkg_payload(pkg_id, distribution, java_version, **fields))


def major_version_payload(major: int, versions: List[str], **fields: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "major_version": major,
        "maintained": True,
        "early_access_only": False,
        "release_status": "ga",
        "versions": versions,
    }
    payload.update(fields)
    return payload


def make_major_version(major: int, versions: Optional[List[str]] = None, **fields: Any) -> MajorVersion:
    return MajorVersion.model_validate(major_version_payload(major, versions or [f"{major}"], **fields))


class FakeDisco:
    """In-process stand-in for the disco service, served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.pkgs: List[Dict[str, Any]] = []
        self.major_versions: List[Dict[str, Any]] = []
        self.distributions: List[Dict[str, Any]] = []
        self.pkg_infos: Dict[str, Dict[str, Any]] = {}
        self.files: Dict[str, bytes] = {}
        # path -> (status, body) replacing the normal response
        self.overrides: Dict[str, Tuple[int, str]] = {}
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path in self.overrides:
            status, body = self.overrides[path]
            return httpx.Response(status, text=body)

        if request.url.host == "download.test":
            content = self.files.get(path)
            if content is None:
                return httpx.Response(404)
            return httpx.Response(200, content=content)

        sub = path[len(API_PREFIX):] if path.startswith(API_PREFIX) else path
        if sub == "/packages":
            return httpx.Response(200, json=self.pkgs)
        if sub.startswith("/packages/"):
            pkg_id = sub[len("/packages/"):]
            for pkg in self.pkgs:
                if pkg["id"] == pkg_id:
                    return httpx.Response(200, json=pkg)
            return httpx.Response(404, json={"detail": "not found"})
        if sub in ("/major_versions", "/major_versions/useful"):
            return httpx.Response(200, json=self.major_versions)
        if sub.startswith("/major_versions/"):
            parameter = sub[len("/major_versions/"):]
            for mv in self.major_versions:
                if parameter == "latest" or str(mv["major_version"]) == parameter:
                    return httpx.Response(200, json=mv)
            return httpx.Response(404, json={"detail": "not found"})
        if sub == "/distributions" or sub.startswith("/distributions/versions/"):
            return httpx.Response(200, json=self.distributions)
        if sub.startswith("/ephemeral_ids/"):
            info = self.pkg_infos.get(sub[len("/ephemeral_ids/"):])
            if info is None:
                return httpx.Response(404)
            return httpx.Response(200, json=info)
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]

    def break_everything(self, body: str) -> None:
        """Answer every catalog endpoint with the given body."""
        for sub in (
            "/packages",
            "/major_versions",
            "/major_versions/useful",
            "/major_versions/latest",
            "/distributions",
        ):
            self.overrides[API_PREFIX + sub] = (200, body)


@pytest.fixture
def fake_disco() -> FakeDisco:
    return FakeDisco()


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(
        disco_api_url="https://disco.test",
        initial_delay_seconds=0,
        refresh_interval_seconds=3600,
        download_chunk_size=1024,
    )


@pytest.fixture
def client(fake_disco: FakeDisco, config: ClientConfig) -> DiscoClient:
    return DiscoClient(config, transport=fake_disco.transport())
