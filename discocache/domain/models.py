"""
Value types for the disco catalog cache.

This module defines the immutable records the cache stores and the engine
filters on:
- VersionNumber, the four-level JDK version value with a total order
- API enumerations (distribution, architecture, archive type, ...)
- Package records (Pkg), major version records and package download info

Records are frozen pydantic models so they are hashable and compare by
content; two packages with identical content are the same package.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import total_ordering
from typing import Any, Dict, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_serializer,
    field_validator,
    model_validator,
)


# ---------------------------------------------------------------------------
# Version numbers
# ---------------------------------------------------------------------------

_VERSION_PATTERN = re.compile(r"^\s*(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:\.(\d+))?")
_LEGACY_VERSION_PATTERN = re.compile(r"^\s*1\.(\d+)\.(\d+)(?:_(\d+))?")


@total_ordering
@dataclass(frozen=True, eq=False)
class VersionNumber:
    """
    Hierarchical JDK version: feature.interim.update.patch.

    Absent components mean "unspecified". For ordering and equality an absent
    component counts as 0, which gives a total order where 17 < 17.0.1.
    """

    feature: Optional[int] = None
    interim: Optional[int] = None
    update: Optional[int] = None
    patch: Optional[int] = None

    @classmethod
    def from_text(cls, text: Any) -> "VersionNumber":
        """
        Parse a version as published by the disco API.

        Accepts "17", "17.0.2+8", "17-ea+3", "11.0.13.1" and the legacy
        "1.8.0_312" notation. Build and pre-release suffixes are dropped.
        """
        if isinstance(text, VersionNumber):
            return text
        if isinstance(text, int) and not isinstance(text, bool):
            return cls(text)
        if not isinstance(text, str):
            raise ValueError(f"Cannot parse version number from {text!r}")

        legacy = _LEGACY_VERSION_PATTERN.match(text)
        if legacy:
            update = int(legacy.group(3)) if legacy.group(3) else None
            return cls(int(legacy.group(1)), int(legacy.group(2)), update)

        match = _VERSION_PATTERN.match(text)
        if not match:
            raise ValueError(f"Cannot parse version number from {text!r}")
        parts = [int(g) if g is not None else None for g in match.groups()]
        return cls(*parts)

    def components(self) -> Tuple[int, int, int, int]:
        return (
            self.feature or 0,
            self.interim or 0,
            self.update or 0,
            self.patch or 0,
        )

    def compare_to(self, other: "VersionNumber") -> int:
        """Return -1, 0 or 1 comparing component by component."""
        mine, theirs = self.components(), other.components()
        if mine < theirs:
            return -1
        if mine > theirs:
            return 1
        return 0

    def matches(self, requested: "VersionNumber") -> bool:
        """
        Partial match against a requested version.

        The deepest non-zero component of the request decides how many levels
        must be equal; trailing zero or absent components are wildcards, so
        11.0.2 and 11.0.2.0 both match 11.0.2.7.
        """
        wanted = requested.components()
        depth = 1
        for index in (3, 2, 1):
            if wanted[index] != 0:
                depth = index + 1
                break
        return self.components()[:depth] == wanted[:depth]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VersionNumber):
            return NotImplemented
        return self.components() == other.components()

    def __lt__(self, other: "VersionNumber") -> bool:
        if not isinstance(other, VersionNumber):
            return NotImplemented
        return self.components() < other.components()

    def __hash__(self) -> int:
        return hash(self.components())

    def __str__(self) -> str:
        parts = [self.feature, self.interim, self.update, self.patch]
        return ".".join(str(p) for p in parts if p is not None)


# ---------------------------------------------------------------------------
# API enumerations
# ---------------------------------------------------------------------------


class ApiEnum(str, Enum):
    """
    Enumeration whose value is the parameter string used by the disco API.

    Every subclass carries the NONE ("unconstrained") and NOT_FOUND
    ("unknown text") sentinels.
    """

    @classmethod
    def from_text(cls, text: Any) -> "ApiEnum":
        if isinstance(text, cls):
            return text
        if text is None:
            return cls.NONE
        key = str(text).strip().lower().replace("-", "_")
        for member in cls:
            if key == member.value.lower() or key == member.name.lower():
                return member
        return cls.NOT_FOUND

    @property
    def api_string(self) -> str:
        return self.value

    @property
    def is_sentinel(self) -> bool:
        return self.name in ("NONE", "NOT_FOUND")


class Distribution(ApiEnum):
    AOJ = "aoj"
    AOJ_OPENJ9 = "aoj_openj9"
    BISHENG = "bisheng"
    CORRETTO = "corretto"
    DRAGONWELL = "dragonwell"
    GRAALVM_CE8 = "graalvm_ce8"
    GRAALVM_CE11 = "graalvm_ce11"
    GRAALVM_CE16 = "graalvm_ce16"
    GRAALVM_CE17 = "graalvm_ce17"
    JETBRAINS = "jetbrains"
    KONA = "kona"
    LIBERICA = "liberica"
    LIBERICA_NATIVE = "liberica_native"
    MANDREL = "mandrel"
    MICROSOFT = "microsoft"
    OJDK_BUILD = "ojdk_build"
    OPEN_LOGIC = "openlogic"
    ORACLE = "oracle"
    ORACLE_OPEN_JDK = "oracle_open_jdk"
    RED_HAT = "redhat"
    SAP_MACHINE = "sap_machine"
    SEMERU = "semeru"
    TEMURIN = "temurin"
    TRAVA = "trava"
    ZULU = "zulu"
    ZULU_PRIME = "zulu_prime"
    NONE = ""
    NOT_FOUND = "not_found"

    @property
    def ui_name(self) -> str:
        """Human readable name; results are ordered by it."""
        return _DISTRIBUTION_UI_NAMES.get(self, self.name)

    @classmethod
    def known(cls) -> Tuple["Distribution", ...]:
        return tuple(d for d in cls if not d.is_sentinel)


_DISTRIBUTION_UI_NAMES: Dict[Distribution, str] = {
    Distribution.AOJ: "AOJ",
    Distribution.AOJ_OPENJ9: "AOJ OpenJ9",
    Distribution.BISHENG: "Bi Sheng",
    Distribution.CORRETTO: "Corretto",
    Distribution.DRAGONWELL: "Dragonwell",
    Distribution.GRAALVM_CE8: "GraalVM CE 8",
    Distribution.GRAALVM_CE11: "GraalVM CE 11",
    Distribution.GRAALVM_CE16: "GraalVM CE 16",
    Distribution.GRAALVM_CE17: "GraalVM CE 17",
    Distribution.JETBRAINS: "JetBrains",
    Distribution.KONA: "Kona",
    Distribution.LIBERICA: "Liberica",
    Distribution.LIBERICA_NATIVE: "Liberica Native",
    Distribution.MANDREL: "Mandrel",
    Distribution.MICROSOFT: "Microsoft",
    Distribution.OJDK_BUILD: "OJDK Build",
    Distribution.OPEN_LOGIC: "OpenLogic",
    Distribution.ORACLE: "Oracle",
    Distribution.ORACLE_OPEN_JDK: "Oracle OpenJDK",
    Distribution.RED_HAT: "Red Hat",
    Distribution.SAP_MACHINE: "SAP Machine",
    Distribution.SEMERU: "Semeru",
    Distribution.TEMURIN: "Temurin",
    Distribution.TRAVA: "Trava",
    Distribution.ZULU: "Zulu",
    Distribution.ZULU_PRIME: "Zulu Prime",
}


class Bitness(ApiEnum):
    BIT_32 = "32"
    BIT_64 = "64"
    NONE = ""
    NOT_FOUND = "not_found"


class Architecture(ApiEnum):
    AARCH32 = "aarch32"
    AARCH64 = "aarch64"
    AMD64 = "amd64"
    ARM = "arm"
    ARM64 = "arm64"
    MIPS = "mips"
    PPC = "ppc"
    PPC64 = "ppc64"
    PPC64LE = "ppc64le"
    RISCV64 = "riscv64"
    S390X = "s390x"
    SPARC = "sparc"
    SPARCV9 = "sparcv9"
    X64 = "x64"
    X86 = "x86"
    I386 = "i386"
    I586 = "i586"
    I686 = "i686"
    NONE = ""
    NOT_FOUND = "not_found"

    @property
    def bitness(self) -> Bitness:
        return _ARCHITECTURE_BITNESS.get(self, Bitness.NONE)


_ARCHITECTURE_BITNESS: Dict[Architecture, Bitness] = {
    Architecture.AARCH32: Bitness.BIT_32,
    Architecture.AARCH64: Bitness.BIT_64,
    Architecture.AMD64: Bitness.BIT_64,
    Architecture.ARM: Bitness.BIT_32,
    Architecture.ARM64: Bitness.BIT_64,
    Architecture.MIPS: Bitness.BIT_32,
    Architecture.PPC: Bitness.BIT_32,
    Architecture.PPC64: Bitness.BIT_64,
    Architecture.PPC64LE: Bitness.BIT_64,
    Architecture.RISCV64: Bitness.BIT_64,
    Architecture.S390X: Bitness.BIT_64,
    Architecture.SPARC: Bitness.BIT_32,
    Architecture.SPARCV9: Bitness.BIT_64,
    Architecture.X64: Bitness.BIT_64,
    Architecture.X86: Bitness.BIT_32,
    Architecture.I386: Bitness.BIT_32,
    Architecture.I586: Bitness.BIT_32,
    Architecture.I686: Bitness.BIT_32,
}


class ArchiveType(ApiEnum):
    APK = "apk"
    CAB = "cab"
    DEB = "deb"
    DMG = "dmg"
    EXE = "exe"
    MSI = "msi"
    PKG = "pkg"
    RPM = "rpm"
    SRC_TAR = "src.tar.gz"
    TAR = "tar"
    TAR_GZ = "tar.gz"
    TAR_Z = "tar.z"
    TGZ = "tgz"
    ZIP = "zip"
    NONE = ""
    NOT_FOUND = "not_found"


class OperatingSystem(ApiEnum):
    AIX = "aix"
    ALPINE_LINUX = "alpine_linux"
    LINUX = "linux"
    LINUX_MUSL = "linux_musl"
    MACOS = "macos"
    QNX = "qnx"
    SOLARIS = "solaris"
    WINDOWS = "windows"
    NONE = ""
    NOT_FOUND = "not_found"


class LibCType(ApiEnum):
    GLIBC = "glibc"
    MUSL = "musl"
    LIBC = "libc"
    C_STD_LIB = "c_std_lib"
    NONE = ""
    NOT_FOUND = "not_found"


class PackageType(ApiEnum):
    JDK = "jdk"
    JRE = "jre"
    NONE = ""
    NOT_FOUND = "not_found"


class ReleaseStatus(ApiEnum):
    EA = "ea"
    GA = "ga"
    NONE = ""
    NOT_FOUND = "not_found"

    @classmethod
    def from_version_text(cls, text: str) -> "ReleaseStatus":
        return cls.EA if "-ea" in text.lower() else cls.GA


class TermOfSupport(ApiEnum):
    LTS = "lts"
    MTS = "mts"
    STS = "sts"
    NONE = ""
    NOT_FOUND = "not_found"

    @classmethod
    def for_feature(cls, feature: int) -> "TermOfSupport":
        """Support term of a feature line when the service does not say."""
        if feature in (6, 7, 8, 11) or (feature >= 17 and (feature - 17) % 4 == 0):
            return cls.LTS
        if feature in (13, 15):
            return cls.MTS
        return cls.STS


class Scope(ApiEnum):
    PUBLIC = "public"
    DIRECTLY_DOWNLOADABLE = "directly_downloadable"
    NOT_DIRECTLY_DOWNLOADABLE = "not_directly_downloadable"
    BUILD_OF_OPEN_JDK = "build_of_openjdk"
    BUILD_OF_GRAALVM = "build_of_graalvm"
    NONE = ""
    NOT_FOUND = "not_found"


class Latest(ApiEnum):
    OVERALL = "overall"
    PER_DISTRIBUTION = "per_distro"
    PER_VERSION = "per_version"
    NONE = ""
    NOT_FOUND = "not_found"


class Comparison(str, Enum):
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL = "<="
    EQUAL = "="
    GREATER_THAN_OR_EQUAL = ">="
    GREATER_THAN = ">"


# ---------------------------------------------------------------------------
# Catalog records
# ---------------------------------------------------------------------------


_PKG_ENUM_FIELDS: Dict[str, type] = {
    "distribution": Distribution,
    "release_status": ReleaseStatus,
    "term_of_support": TermOfSupport,
    "operating_system": OperatingSystem,
    "lib_c_type": LibCType,
    "architecture": Architecture,
    "bitness": Bitness,
    "archive_type": ArchiveType,
    "package_type": PackageType,
}


class Pkg(BaseModel):
    """
    One downloadable artifact of the remote catalog.

    Created only by decoding a service response and never mutated afterwards.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    distribution: Distribution = Distribution.NOT_FOUND
    java_version: VersionNumber
    distribution_version: str = ""
    release_status: ReleaseStatus = ReleaseStatus.NOT_FOUND
    term_of_support: TermOfSupport = TermOfSupport.NOT_FOUND
    operating_system: OperatingSystem = OperatingSystem.NOT_FOUND
    lib_c_type: LibCType = LibCType.NOT_FOUND
    architecture: Architecture = Architecture.NOT_FOUND
    bitness: Bitness = Bitness.NOT_FOUND
    archive_type: ArchiveType = ArchiveType.NOT_FOUND
    package_type: PackageType = PackageType.NOT_FOUND
    javafx_bundled: bool = False
    directly_downloadable: bool = False
    latest_build_available: bool = False
    filename: str = ""
    ephemeral_id: str = ""
    size: int = 0

    @model_validator(mode="before")
    @classmethod
    def _fill_derived_fields(cls, data: Any) -> Any:
        # Older payloads omit bitness and release status; both follow from other fields.
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("bitness"):
            data["bitness"] = Architecture.from_text(data.get("architecture")).bitness
        version_text = data.get("java_version")
        if not data.get("release_status") and isinstance(version_text, str):
            data["release_status"] = ReleaseStatus.from_version_text(version_text)
        return data

    @field_validator(*_PKG_ENUM_FIELDS, mode="before")
    @classmethod
    def _parse_enum(cls, value: Any, info: ValidationInfo) -> Any:
        return _PKG_ENUM_FIELDS[info.field_name].from_text(value)

    @field_validator("java_version", mode="before")
    @classmethod
    def _parse_java_version(cls, value: Any) -> VersionNumber:
        return VersionNumber.from_text(value)

    @field_serializer("java_version")
    def _serialize_java_version(self, value: VersionNumber) -> str:
        return str(value)

    @property
    def distribution_name(self) -> str:
        return self.distribution.ui_name

    @property
    def feature_version(self) -> int:
        return self.java_version.feature or 0


class MajorVersion(BaseModel):
    """
    One feature-version line (e.g. 17) and the versions published for it.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    major_version: int
    term_of_support: TermOfSupport = TermOfSupport.NONE
    maintained: bool = False
    early_access_only: bool = False
    release_status: ReleaseStatus = ReleaseStatus.GA
    versions: Tuple[VersionNumber, ...] = Field(
        default_factory=tuple,
        description="Versions published for this line, newest first as returned by the service.",
    )

    @model_validator(mode="before")
    @classmethod
    def _fill_term_of_support(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        term = TermOfSupport.from_text(data.get("term_of_support"))
        if term.is_sentinel and isinstance(data.get("major_version"), int):
            term = TermOfSupport.for_feature(data["major_version"])
        data["term_of_support"] = term
        return data

    @field_validator("release_status", mode="before")
    @classmethod
    def _parse_release_status(cls, value: Any) -> ReleaseStatus:
        return ReleaseStatus.from_text(value)

    @field_validator("versions", mode="before")
    @classmethod
    def _parse_versions(cls, value: Any) -> Tuple[VersionNumber, ...]:
        if value is None:
            return ()
        if not isinstance(value, (list, tuple)):
            raise ValueError("versions must be a list")
        return tuple(VersionNumber.from_text(v) for v in value)

    @field_serializer("versions")
    def _serialize_versions(self, value: Tuple[VersionNumber, ...]) -> list:
        return [str(v) for v in value]

    @property
    def feature(self) -> int:
        return self.major_version


class PkgInfo(BaseModel):
    """
    Download details resolved from a package's ephemeral id.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    filename: str
    java_version: Optional[VersionNumber] = None
    direct_download_uri: str
    download_site_uri: str = ""

    @field_validator("java_version", mode="before")
    @classmethod
    def _parse_java_version(cls, value: Any) -> Optional[VersionNumber]:
        if value is None:
            return None
        return VersionNumber.from_text(value)

    @field_serializer("java_version")
    def _serialize_java_version(self, value: Optional[VersionNumber]) -> Optional[str]:
        return str(value) if value is not None else None
