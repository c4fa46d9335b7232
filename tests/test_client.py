from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List

import pytest

from discocache.domain.disco_utils import detect_operating_system
from discocache.domain.models import (
    ArchiveType,
    Comparison,
    Distribution,
    OperatingSystem,
    Scope,
    VersionNumber,
)
from discocache.services.disco_client import DiscoClient
from discocache.services.events import DownloadEvt, Evt, EvtType
from tests.conftest import API_PREFIX, FakeDisco, major_version_payload, pkg_payload


def _ids(pkgs) -> List[str]:
    return [p.id for p in pkgs]


def _package_requests(fake_disco: FakeDisco):
    return [r for r in fake_disco.requests if r.url.path == f"{API_PREFIX}/packages"]


# ---------------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------------


def test_cold_get_pkgs_asks_the_service_with_the_criteria(fake_disco: FakeDisco, client: DiscoClient) -> None:
    fake_disco.pkgs = [
        pkg_payload("t-17", "temurin", "17.0.1"),
        pkg_payload("z-11", "zulu", "11.0.13"),
        pkg_payload("z-17", "zulu", "17.0.1"),
        pkg_payload("z-17", "zulu", "17.0.1"),
    ]

    pkgs = client.get_pkgs(distribution=Distribution.ZULU, version_number="17", latest="overall")

    assert _ids(pkgs) == ["z-17", "z-11", "t-17"]
    (request,) = _package_requests(fake_disco)
    params = request.url.params
    assert params["distribution"] == "zulu"
    assert params["version"] == "17"
    assert params["latest"] == "overall"
    assert params["discovery_scope_id"] == "public"


def test_ready_get_pkgs_is_served_from_the_snapshot(fake_disco: FakeDisco, client: DiscoClient) -> None:
    fake_disco.pkgs = [
        pkg_payload("z-11", "zulu", "11.0.13"),
        pkg_payload("z-17", "zulu", "17.0.1"),
        pkg_payload("t-17", "temurin", "17.0.1"),
    ]
    asyncio.run(client.cache.refresh())
    before = len(_package_requests(fake_disco))

    pkgs = client.get_pkgs(distribution="zulu", latest="overall")

    assert _ids(pkgs) == ["z-17"]
    assert len(_package_requests(fake_disco)) == before
    assert client.get_pkg("t-17").distribution is Distribution.TEMURIN
    assert client.get_pkg("missing") is None


def test_get_all_pkgs_deduplicates(fake_disco: FakeDisco, client: DiscoClient) -> None:
    fake_disco.pkgs = [pkg_payload("a"), pkg_payload("a"), pkg_payload("b", "temurin")]

    assert _ids(client.get_all_pkgs()) == ["a", "b"]
    assert _ids(asyncio.run(client.get_all_pkgs_async())) == ["a", "b"]


def test_get_pkgs_as_json_returns_service_shaped_array(fake_disco: FakeDisco, client: DiscoClient) -> None:
    fake_disco.pkgs = [pkg_payload("a", "zulu", "17.0.1")]

    encoded = json.loads(client.get_pkgs_as_json(distribution="zulu"))

    assert [p["id"] for p in encoded] == ["a"]
    assert encoded[0]["java_version"] == "17.0.1"


def test_cold_get_pkg_fetches_single_record(fake_disco: FakeDisco, client: DiscoClient) -> None:
    fake_disco.pkgs = [pkg_payload("a")]

    assert client.get_pkg("a").id == "a"
    assert client.get_pkg("nope") is None
    assert f"{API_PREFIX}/packages/a" in fake_disco.paths()


def test_sentinel_scope_falls_back_to_public(fake_disco: FakeDisco, client: DiscoClient) -> None:
    client.get_pkgs(scope=Scope.NONE)
    client.get_pkgs(scope=None)

    scopes = [r.url.params.get_list("discovery_scope_id") for r in _package_requests(fake_disco)]
    assert scopes == [["public"], ["public"]]


def test_range_query_loads_major_versions_when_missing(fake_disco: FakeDisco, client: DiscoClient) -> None:
    fake_disco.pkgs = [
        pkg_payload("11", "zulu", "11.0.13"),
        pkg_payload("17.0.1", "zulu", "17.0.1"),
        pkg_payload("21", "zulu", "21.0.1"),
    ]
    fake_disco.major_versions = [
        major_version_payload(21, ["21.0.1"]),
        major_version_payload(17, ["17.0.1"]),
        major_version_payload(11, ["11.0.13"]),
    ]
    asyncio.run(client.cache.refresh())

    found = client.get_pkgs_from_cache(version_number="17", comparison=Comparison.GREATER_THAN)

    assert _ids(found) == ["21", "17.0.1"]
    (mv_request,) = [r for r in fake_disco.requests if r.url.path == f"{API_PREFIX}/major_versions"]
    assert mv_request.url.params["ea"] == "true"


def test_early_access_version_restricts_release_status(fake_disco: FakeDisco, client: DiscoClient) -> None:
    fake_disco.pkgs = [
        pkg_payload("17-ga", "zulu", "17.0.1"),
        pkg_payload("17-ea", "zulu", "17-ea+3", release_status="ea"),
    ]

    client.get_pkgs(version_number="17-ea")
    (request,) = _package_requests(fake_disco)
    assert request.url.params.get_list("release_status") == ["ea"]

    asyncio.run(client.cache.refresh())

    assert _ids(client.get_pkgs(version_number="17-ea")) == ["17-ea"]
    assert _ids(client.get_pkgs(version_number="17")) == ["17-ga", "17-ea"]
    assert _ids(client.get_pkgs(version_number="17-ea", release_status="ga")) == ["17-ga"]


def test_get_pkgs_from_cache_is_empty_while_cold(fake_disco: FakeDisco, client: DiscoClient) -> None:
    fake_disco.pkgs = [pkg_payload("a")]

    assert client.get_pkgs_from_cache(distributions=["zulu"]) == []
    assert _package_requests(fake_disco) == []


# ---------------------------------------------------------------------------
# Malformed responses
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("body", ["{}", "", "<html>oops</html>", '{"result": []}'])
def test_malformed_responses_give_empty_results(fake_disco: FakeDisco, client: DiscoClient, body: str) -> None:
    fake_disco.break_everything(body)

    assert client.get_all_pkgs() == []
    assert client.get_pkgs(distribution="zulu") == []
    assert asyncio.run(client.get_pkgs_async(distribution="zulu")) == []
    assert client.get_pkgs_from_cache() == []
    assert client.get_pkg("a") is None
    assert client.get_all_major_versions() == []
    assert client.get_useful_major_versions() == []
    assert client.get_major_version("latest") is None
    assert client.get_distributions() == []
    assert client.get_versions_per_distribution() == {}
    assert client.get_latest_lts() is None


def test_server_errors_give_empty_results(fake_disco: FakeDisco, client: DiscoClient) -> None:
    fake_disco.overrides[f"{API_PREFIX}/packages"] = (503, "unavailable")
    fake_disco.overrides[f"{API_PREFIX}/major_versions"] = (500, "boom")

    assert client.get_all_pkgs() == []
    assert asyncio.run(client.get_all_major_versions_async()) == []


# ---------------------------------------------------------------------------
# Major versions
# ---------------------------------------------------------------------------


@pytest.fixture
def major_versions(fake_disco: FakeDisco) -> FakeDisco:
    fake_disco.major_versions = [
        major_version_payload(22, ["22-ea+3"], early_access_only=True, release_status="ea"),
        major_version_payload(21, ["21.0.1", "21"]),
        major_version_payload(20, ["20.0.2", "20"]),
        major_version_payload(17, ["17.0.9", "17"]),
        major_version_payload(13, ["13.0.9", "13"]),
    ]
    return fake_disco


def test_latest_per_term_of_support(major_versions: FakeDisco, client: DiscoClient) -> None:
    assert client.get_latest_lts().major_version == 21
    assert client.get_latest_mts().major_version == 13
    assert client.get_latest_sts().major_version == 20
    assert client.get_latest_sts(include_ea=True).major_version == 22
    assert asyncio.run(client.get_latest_lts_async()).major_version == 21


def test_get_major_version_by_keyword_and_feature(major_versions: FakeDisco, client: DiscoClient) -> None:
    assert client.get_major_version("latest").major_version == 22
    assert client.get_major_version("17").versions[0] == VersionNumber(17, 0, 9)
    assert client.get_major_version("") is None
    assert client.get_major_version_for_feature(20).major_version == 20
    assert client.get_major_version_for_feature(99) is None


def test_major_version_as_json_reports_missing_version(major_versions: FakeDisco, client: DiscoClient) -> None:
    found = json.loads(client.get_major_version_as_json("21"))
    missing = json.loads(client.get_major_version_as_json("99"))

    assert found["major_version"] == 21
    assert found["versions"] == ["21.0.1", "21"]
    assert missing["value"] == "99"
    assert "latest_lts" in missing["supported"]


def test_maintained_major_versions_request(major_versions: FakeDisco, client: DiscoClient) -> None:
    client.get_maintained_major_versions()
    client.get_maintained_major_versions(include_ea=True)

    plain, with_ea = [r for r in major_versions.requests if r.url.path == f"{API_PREFIX}/major_versions"]
    assert list(plain.url.params.multi_items()) == [("maintained", "true"), ("ga", "true")]
    assert list(with_ea.url.params.multi_items()) == [("maintained", "true"), ("ea", "true"), ("ga", "true")]


# ---------------------------------------------------------------------------
# Distributions
# ---------------------------------------------------------------------------


def test_distribution_lookups(fake_disco: FakeDisco, client: DiscoClient) -> None:
    fake_disco.distributions = [
        {"api_parameter": "zulu", "versions": ["17.0.1", "11.0.13"]},
        {"api_parameter": "temurin", "versions": ["17.0.1"]},
    ]

    assert client.get_distributions() == [Distribution.ZULU, Distribution.TEMURIN]
    assert client.get_distributions_for_version("17.0.1") == [Distribution.ZULU, Distribution.TEMURIN]
    assert f"{API_PREFIX}/distributions/versions/17.0.1" in fake_disco.paths()
    assert client.get_versions_per_distribution()[Distribution.TEMURIN] == [VersionNumber(17, 0, 1)]


def test_lookups_with_invalid_version_return_nothing(fake_disco: FakeDisco, client: DiscoClient) -> None:
    fake_disco.distributions = [{"api_parameter": "zulu", "versions": ["17.0.1"]}]
    fake_disco.pkg_infos["eph-a"] = {
        "filename": "a.tar.gz",
        "direct_download_uri": "https://download.test/files/a.tar.gz",
    }

    assert client.get_distributions_for_version(None) == []
    assert client.get_distributions_for_version("abc") == []
    assert asyncio.run(client.get_distributions_for_version_async("abc")) == []
    assert client.get_pkg_info("eph-a", "abc") is None
    assert asyncio.run(client.get_pkg_info_async("eph-a", "abc")) is None
    assert client.get_pkg_direct_download_uri("eph-a", "abc") is None
    assert fake_disco.requests == []
    assert client.get_pkg_info("eph-a").java_version is None


def test_distributions_that_support_are_distinct(fake_disco: FakeDisco, client: DiscoClient) -> None:
    fake_disco.pkgs = [
        pkg_payload("z1", "zulu", "17.0.1"),
        pkg_payload("z2", "zulu", "17.0.2"),
        pkg_payload("t1", "temurin", "17.0.1"),
    ]

    found = client.get_distributions_that_support("17", operating_system=OperatingSystem.LINUX)
    client.get_distributions_that_support("17-ea+3")

    assert found == [Distribution.ZULU, Distribution.TEMURIN]
    plain, early_access = _package_requests(fake_disco)
    assert plain.url.params["operating_system"] == "linux"
    assert "release_status" not in plain.url.params
    assert early_access.url.params["release_status"] == "ea"


def test_distributions_based_on_openjdk_and_graalvm() -> None:
    openjdk = DiscoClient.get_distributions_based_on_openjdk()
    graalvm = DiscoClient.get_distributions_based_on_graalvm()

    assert Distribution.ZULU in openjdk
    assert Distribution.ORACLE in openjdk
    assert Distribution.MANDREL in graalvm
    assert Distribution.MANDREL not in openjdk


# ---------------------------------------------------------------------------
# Package info and downloads
# ---------------------------------------------------------------------------


def test_pkg_info_and_direct_download_uri(fake_disco: FakeDisco, client: DiscoClient) -> None:
    fake_disco.pkg_infos["eph-a"] = {
        "filename": "a.tar.gz",
        "direct_download_uri": "https://download.test/files/a.tar.gz",
        "download_site_uri": "https://vendor.test",
    }

    info = client.get_pkg_info("eph-a", "17.0.1")

    assert info.filename == "a.tar.gz"
    assert info.java_version == VersionNumber(17, 0, 1)
    assert client.get_pkg_direct_download_uri("eph-a") == "https://download.test/files/a.tar.gz"
    assert client.get_pkg_direct_download_uri("eph-missing") is None


def test_download_pkg_writes_file_and_reports_progress(
    fake_disco: FakeDisco, client: DiscoClient, tmp_path: Path
) -> None:
    content = b"x" * 3000
    fake_disco.pkgs = [pkg_payload("a")]
    fake_disco.pkg_infos["eph-a"] = {
        "filename": "a.tar.gz",
        "direct_download_uri": "https://download.test/files/a.tar.gz",
    }
    fake_disco.files["/files/a.tar.gz"] = content
    seen: List[Evt] = []
    client.set_on_evt(EvtType.ANY, seen.append)
    target = tmp_path / "jdk" / "a.tar.gz"

    async def scenario() -> bool:
        task = await client.download_pkg("a", target)
        return await task

    assert asyncio.run(scenario()) is True
    assert target.read_bytes() == content
    assert not (tmp_path / "jdk" / "a.tar.gz.tmp").exists()

    types = [evt.type for evt in seen]
    assert types[0] is EvtType.DOWNLOAD_STARTED
    assert types[-1] is EvtType.DOWNLOAD_FINISHED
    assert EvtType.DOWNLOAD_PROGRESS in types
    finished = seen[-1]
    assert isinstance(finished, DownloadEvt)
    assert finished.bytes_downloaded == 3000
    assert finished.fraction == 1.0


def test_download_failure_is_reported(fake_disco: FakeDisco, client: DiscoClient, tmp_path: Path) -> None:
    fake_disco.pkgs = [pkg_payload("a")]
    fake_disco.pkg_infos["eph-a"] = {
        "filename": "a.tar.gz",
        "direct_download_uri": "https://download.test/files/gone.tar.gz",
    }
    failures: List[Evt] = []
    client.set_on_evt(EvtType.DOWNLOAD_FAILED, failures.append)
    target = tmp_path / "a.tar.gz"

    async def scenario():
        missing = await client.download_pkg("unknown", target)
        task = await client.download_pkg("a", target)
        return missing, await task

    missing, ok = asyncio.run(scenario())

    assert missing is None
    assert ok is False
    assert not target.exists()
    assert len(failures) == 1


# ---------------------------------------------------------------------------
# Platform helpers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "system_name, expected",
    [
        ("Darwin", OperatingSystem.MACOS),
        ("Windows", OperatingSystem.WINDOWS),
        ("Linux", OperatingSystem.LINUX),
        ("SunOS", OperatingSystem.SOLARIS),
        ("Plan9", OperatingSystem.NONE),
    ],
)
def test_detect_operating_system(system_name: str, expected: OperatingSystem) -> None:
    assert detect_operating_system(system_name) is expected


def test_archive_types_per_operating_system() -> None:
    assert ArchiveType.MSI in DiscoClient.get_archive_types(OperatingSystem.WINDOWS)
    assert ArchiveType.DMG in DiscoClient.get_archive_types(OperatingSystem.MACOS)
    assert DiscoClient.get_archive_types(OperatingSystem.LINUX) == [ArchiveType.DEB, ArchiveType.RPM, ArchiveType.TAR, ArchiveType.ZIP]
    fallback = DiscoClient.get_archive_types(OperatingSystem.NONE)
    assert ArchiveType.NONE not in fallback and ArchiveType.ZIP in fallback
    assert isinstance(DiscoClient.get_operating_system(), OperatingSystem)
