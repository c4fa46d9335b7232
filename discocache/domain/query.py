"""
Filter and ranking engine over a catalog snapshot.

A query is a PkgQuery; select_pkgs() turns it into one ordered list of named
predicates and then applies the selection policy chosen by the comparison
mode and the `latest` parameter. Everything here is pure: no I/O, no shared
state.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from discocache.domain.disco_utils import NON_JDK_VERSIONED_DISTRIBUTIONS, in_any_scope
from discocache.domain.models import (
    ApiEnum,
    Architecture,
    ArchiveType,
    Bitness,
    Comparison,
    Distribution,
    LibCType,
    Latest,
    MajorVersion,
    OperatingSystem,
    PackageType,
    Pkg,
    ReleaseStatus,
    Scope,
    TermOfSupport,
    VersionNumber,
)

if TYPE_CHECKING:
    from discocache.data.catalog import CatalogSnapshot


Predicate = Callable[[Pkg], bool]


# ---------------------------------------------------------------------------
# Query criteria
# ---------------------------------------------------------------------------

_LIST_AXES: Dict[str, type] = {
    "distributions": Distribution,
    "architectures": Architecture,
    "archive_types": ArchiveType,
    "operating_systems": OperatingSystem,
    "lib_c_types": LibCType,
    "terms_of_support": TermOfSupport,
    "release_statuses": ReleaseStatus,
    "scopes": Scope,
}


class PkgQuery(BaseModel):
    """
    Criteria for selecting packages.

    List axes are unconstrained when empty. NONE / NOT_FOUND entries are
    dropped on construction, so a list holding only sentinels is unconstrained
    too.
    """

    version_number: Optional[VersionNumber] = Field(
        default=None,
        description="Requested version; None means no version constraint.",
    )
    comparison: Comparison = Field(
        default=Comparison.EQUAL,
        description="How version_number bounds the result.",
    )
    latest: Latest = Field(
        default=Latest.NONE,
        description="Latest-selection policy, only used with EQUAL comparison.",
    )
    distributions: List[Distribution] = Field(default_factory=list)
    architectures: List[Architecture] = Field(default_factory=list)
    archive_types: List[ArchiveType] = Field(default_factory=list)
    operating_systems: List[OperatingSystem] = Field(default_factory=list)
    lib_c_types: List[LibCType] = Field(default_factory=list)
    terms_of_support: List[TermOfSupport] = Field(default_factory=list)
    release_statuses: List[ReleaseStatus] = Field(default_factory=list)
    package_type: PackageType = Field(
        default=PackageType.NONE,
        description="NONE excludes packages whose own package type is NONE.",
    )
    bitness: Bitness = Bitness.NONE
    javafx_bundled: Optional[bool] = None
    directly_downloadable: Optional[bool] = None
    scopes: List[Scope] = Field(
        default_factory=lambda: [Scope.PUBLIC],
        description="A package's distribution must belong to at least one of these scopes.",
    )

    @field_validator(*_LIST_AXES, mode="before")
    @classmethod
    def _drop_sentinels(cls, value: Any, info: ValidationInfo) -> List[ApiEnum]:
        if value is None:
            return []
        if isinstance(value, (str, ApiEnum)):
            value = [value]
        enum_type = _LIST_AXES[info.field_name]
        parsed = (enum_type.from_text(v) for v in value)
        return [v for v in parsed if not v.is_sentinel]

    @field_validator("latest", "bitness", "package_type", mode="before")
    @classmethod
    def _parse_single(cls, value: Any, info: ValidationInfo) -> ApiEnum:
        enum_type = {"latest": Latest, "bitness": Bitness, "package_type": PackageType}[info.field_name]
        parsed = enum_type.from_text(value)
        # Unknown text behaves like "not given".
        return enum_type.NONE if parsed.is_sentinel else parsed

    @field_validator("version_number", mode="before")
    @classmethod
    def _parse_version(cls, value: Any) -> Optional[VersionNumber]:
        if value is None or value == "":
            return None
        return VersionNumber.from_text(value)

    @field_validator("comparison", mode="before")
    @classmethod
    def _parse_comparison(cls, value: Any) -> Comparison:
        if value is None:
            return Comparison.EQUAL
        if isinstance(value, str) and value.upper() in Comparison.__members__:
            return Comparison[value.upper()]
        return Comparison(value)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def _member_of(attribute: str, wanted: Iterable[Any]) -> Predicate:
    allowed = frozenset(wanted)
    return lambda pkg: getattr(pkg, attribute) in allowed


def _equal_to(attribute: str, wanted: Any) -> Predicate:
    return lambda pkg: getattr(pkg, attribute) == wanted


def build_predicates(query: PkgQuery, include_distribution: bool = True) -> List[Tuple[str, Predicate]]:
    """
    Build the ordered list of named predicates for the constrained axes.

    Unconstrained axes contribute nothing. Package type is always checked
    because its NONE value excludes packages without a package type.
    """
    predicates: List[Tuple[str, Predicate]] = []

    if include_distribution and query.distributions:
        predicates.append(("distribution", _member_of("distribution", query.distributions)))
    if query.scopes:
        scopes = frozenset(query.scopes)
        predicates.append(("scope", lambda pkg: in_any_scope(pkg.distribution, scopes)))

    for name, attribute, wanted in (
        ("architecture", "architecture", query.architectures),
        ("archive_type", "archive_type", query.archive_types),
        ("operating_system", "operating_system", query.operating_systems),
        ("lib_c_type", "lib_c_type", query.lib_c_types),
        ("term_of_support", "term_of_support", query.terms_of_support),
        ("release_status", "release_status", query.release_statuses),
    ):
        if wanted:
            predicates.append((name, _member_of(attribute, wanted)))

    if query.package_type is PackageType.NONE:
        predicates.append(("package_type", lambda pkg: pkg.package_type is not PackageType.NONE))
    else:
        predicates.append(("package_type", _equal_to("package_type", query.package_type)))

    if query.bitness is not Bitness.NONE:
        predicates.append(("bitness", _equal_to("bitness", query.bitness)))
    if query.javafx_bundled is not None:
        predicates.append(("javafx_bundled", _equal_to("javafx_bundled", query.javafx_bundled)))
    if query.directly_downloadable is not None:
        predicates.append(("directly_downloadable", _equal_to("directly_downloadable", query.directly_downloadable)))

    return predicates


def apply_predicates(pkgs: Iterable[Pkg], predicates: Sequence[Tuple[str, Predicate]]) -> List[Pkg]:
    checks = [check for _, check in predicates]
    return [pkg for pkg in pkgs if all(check(pkg) for check in checks)]


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def sort_pkgs(pkgs: Iterable[Pkg]) -> List[Pkg]:
    """
    Order by distribution name descending, then version descending.

    Packages equal on both keys keep ascending id order.
    """
    ordered = sorted(pkgs, key=lambda pkg: pkg.id)
    ordered.sort(key=lambda pkg: (pkg.distribution_name, pkg.java_version), reverse=True)
    return ordered


# ---------------------------------------------------------------------------
# Selection policies
# ---------------------------------------------------------------------------


def _select_overall(candidates: List[Pkg], query: PkgQuery) -> List[Pkg]:
    requested = query.version_number
    feature = requested.feature if requested is not None else None

    if feature is None:
        pool = candidates
        if not query.distributions:
            pool = [p for p in pool if p.distribution not in NON_JDK_VERSIONED_DISTRIBUTIONS]
    else:
        pool = [p for p in candidates if p.feature_version == feature]

    target = max((p.java_version for p in pool), default=requested)
    if target is None:
        return []
    return [p for p in candidates if p.java_version == target]


def _select_per_distribution(candidates: List[Pkg], query: PkgQuery) -> List[Pkg]:
    if query.distributions:
        wanted = list(query.distributions)
    else:
        wanted = [d for d in Distribution.known() if not query.scopes or in_any_scope(d, query.scopes)]

    by_distribution: Dict[Distribution, List[Pkg]] = defaultdict(list)
    for pkg in candidates:
        by_distribution[pkg.distribution].append(pkg)

    found: List[Pkg] = []
    for distribution in wanted:
        pkgs = by_distribution.get(distribution)
        if not pkgs:
            continue
        top = max(p.java_version for p in pkgs)
        found.extend(p for p in pkgs if p.java_version == top)
    return found


def _select_per_version(candidates: List[Pkg], query: PkgQuery) -> List[Pkg]:
    feature = query.version_number.feature if query.version_number is not None else None
    return [
        p for p in candidates
        if p.latest_build_available and (feature is None or p.feature_version == feature)
    ]


def _select_matching(candidates: List[Pkg], query: PkgQuery) -> List[Pkg]:
    requested = query.version_number
    if requested is None:
        return list(candidates)
    return [p for p in candidates if p.java_version.matches(requested)]


_EQUAL_POLICIES: Dict[Latest, Callable[[List[Pkg], PkgQuery], List[Pkg]]] = {
    Latest.OVERALL: _select_overall,
    Latest.PER_DISTRIBUTION: _select_per_distribution,
    Latest.PER_VERSION: _select_per_version,
}


def known_feature_bounds(major_versions: Sequence[MajorVersion]) -> Tuple[Optional[int], Optional[int]]:
    """Lowest and highest feature version in the major version catalog."""
    features = [mv.major_version for mv in major_versions]
    if not features:
        return None, None
    return min(features), max(features)


def _range_predicate(query: PkgQuery, major_versions: Sequence[MajorVersion]) -> Predicate:
    lowest, highest = known_feature_bounds(major_versions)
    requested = query.comparison
    version = query.version_number

    def above_lowest(pkg: Pkg) -> bool:
        return lowest is None or pkg.feature_version >= lowest

    def below_highest(pkg: Pkg) -> bool:
        return highest is None or pkg.feature_version <= highest

    if version is None:
        return lambda pkg: above_lowest(pkg) and below_highest(pkg)
    if requested is Comparison.LESS_THAN:
        return lambda pkg: above_lowest(pkg) and pkg.java_version < version
    if requested is Comparison.LESS_THAN_OR_EQUAL:
        return lambda pkg: above_lowest(pkg) and pkg.java_version <= version
    if requested is Comparison.GREATER_THAN:
        return lambda pkg: pkg.java_version > version and below_highest(pkg)
    return lambda pkg: pkg.java_version >= version and below_highest(pkg)


def select_pkgs(snapshot: "CatalogSnapshot", query: PkgQuery) -> List[Pkg]:
    """
    Return the packages of the snapshot selected by the query, in the
    canonical order.
    """
    predicates = build_predicates(query)
    candidates = apply_predicates(snapshot.pkgs.values(), predicates)

    if query.comparison is Comparison.EQUAL:
        policy = _EQUAL_POLICIES.get(query.latest, _select_matching)
        found = policy(candidates, query)
    else:
        in_range = _range_predicate(query, snapshot.major_versions)
        found = [p for p in candidates if in_range(p)]

    return sort_pkgs(found)
