"""
Static lookup tables and small helpers shared by the query engine and client.
"""

from __future__ import annotations

import platform
from typing import Dict, FrozenSet, List

from discocache.domain.models import ArchiveType, Distribution, OperatingSystem, Scope


_OPENJDK_DIRECT = frozenset({Scope.PUBLIC, Scope.BUILD_OF_OPEN_JDK, Scope.DIRECTLY_DOWNLOADABLE})
_OPENJDK_INDIRECT = frozenset({Scope.PUBLIC, Scope.BUILD_OF_OPEN_JDK, Scope.NOT_DIRECTLY_DOWNLOADABLE})
_GRAALVM_DIRECT = frozenset({Scope.PUBLIC, Scope.BUILD_OF_GRAALVM, Scope.DIRECTLY_DOWNLOADABLE})

SCOPE_LOOKUP: Dict[Distribution, FrozenSet[Scope]] = {
    Distribution.AOJ: _OPENJDK_DIRECT,
    Distribution.AOJ_OPENJ9: _OPENJDK_DIRECT,
    Distribution.BISHENG: _OPENJDK_DIRECT,
    Distribution.CORRETTO: _OPENJDK_DIRECT,
    Distribution.DRAGONWELL: _OPENJDK_DIRECT,
    Distribution.GRAALVM_CE8: _GRAALVM_DIRECT,
    Distribution.GRAALVM_CE11: _GRAALVM_DIRECT,
    Distribution.GRAALVM_CE16: _GRAALVM_DIRECT,
    Distribution.GRAALVM_CE17: _GRAALVM_DIRECT,
    Distribution.JETBRAINS: _OPENJDK_DIRECT,
    Distribution.KONA: _OPENJDK_DIRECT,
    Distribution.LIBERICA: _OPENJDK_DIRECT,
    Distribution.LIBERICA_NATIVE: _GRAALVM_DIRECT,
    Distribution.MANDREL: _GRAALVM_DIRECT,
    Distribution.MICROSOFT: _OPENJDK_DIRECT,
    Distribution.OJDK_BUILD: _OPENJDK_DIRECT,
    Distribution.OPEN_LOGIC: _OPENJDK_DIRECT,
    Distribution.ORACLE: _OPENJDK_INDIRECT,
    Distribution.ORACLE_OPEN_JDK: _OPENJDK_DIRECT,
    Distribution.RED_HAT: _OPENJDK_INDIRECT,
    Distribution.SAP_MACHINE: _OPENJDK_DIRECT,
    Distribution.SEMERU: _OPENJDK_DIRECT,
    Distribution.TEMURIN: _OPENJDK_DIRECT,
    Distribution.TRAVA: _OPENJDK_DIRECT,
    Distribution.ZULU: _OPENJDK_DIRECT,
    Distribution.ZULU_PRIME: _OPENJDK_DIRECT,
}

# Their version numbers follow the GraalVM / native-image release line, not the
# JDK one, so they never take part in picking an overall maximum.
NON_JDK_VERSIONED_DISTRIBUTIONS: FrozenSet[Distribution] = frozenset({
    Distribution.GRAALVM_CE8,
    Distribution.GRAALVM_CE11,
    Distribution.LIBERICA_NATIVE,
    Distribution.MANDREL,
})

_UNIX_ARCHIVE_TYPES = [ArchiveType.DEB, ArchiveType.RPM, ArchiveType.TAR, ArchiveType.ZIP]

_ARCHIVE_TYPES_PER_OS: Dict[OperatingSystem, List[ArchiveType]] = {
    OperatingSystem.WINDOWS: [ArchiveType.CAB, ArchiveType.MSI, ArchiveType.TAR, ArchiveType.ZIP],
    OperatingSystem.MACOS: [ArchiveType.DMG, ArchiveType.PKG, ArchiveType.TAR, ArchiveType.ZIP],
    OperatingSystem.LINUX: _UNIX_ARCHIVE_TYPES,
    OperatingSystem.LINUX_MUSL: _UNIX_ARCHIVE_TYPES,
    OperatingSystem.ALPINE_LINUX: _UNIX_ARCHIVE_TYPES,
    OperatingSystem.SOLARIS: _UNIX_ARCHIVE_TYPES,
    OperatingSystem.AIX: _UNIX_ARCHIVE_TYPES,
    OperatingSystem.QNX: _UNIX_ARCHIVE_TYPES,
}


def scopes_of(distribution: Distribution) -> FrozenSet[Scope]:
    return SCOPE_LOOKUP.get(distribution, frozenset())


def in_any_scope(distribution: Distribution, scopes) -> bool:
    """True if the distribution is published under at least one of the scopes."""
    return not scopes_of(distribution).isdisjoint(scopes)


def distributions_with_scope(scope: Scope) -> List[Distribution]:
    return [d for d in Distribution.known() if scope in scopes_of(d)]


def archive_types_for(operating_system: OperatingSystem) -> List[ArchiveType]:
    """Archive types a package for the given OS may come in."""
    types = _ARCHIVE_TYPES_PER_OS.get(operating_system)
    if types is not None:
        return list(types)
    return [a for a in ArchiveType if not a.is_sentinel]


def detect_operating_system(system_name: str | None = None) -> OperatingSystem:
    """
    Map the running platform (or the given platform name) to an OperatingSystem.
    """
    name = (system_name if system_name is not None else platform.system()).lower()
    if "win" in name and "darwin" not in name:
        return OperatingSystem.WINDOWS
    if "mac" in name or "darwin" in name:
        return OperatingSystem.MACOS
    if "nix" in name or "nux" in name:
        return OperatingSystem.LINUX
    if "sunos" in name:
        return OperatingSystem.SOLARIS
    if "aix" in name:
        return OperatingSystem.AIX
    return OperatingSystem.NONE
