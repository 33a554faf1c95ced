from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, List


def _normalize_license(value: str) -> str:
    # collapse inner whitespace so "CC  BY 4.0" and "CC BY 4.0" compare equal
    return " ".join((value or "").split())


@dataclass(frozen=True)
class LicensePolicy:
    allowed: FrozenSet[str]

    @staticmethod
    def from_config(allowed: Iterable[str]) -> "LicensePolicy":
        return LicensePolicy(allowed=frozenset(_normalize_license(x) for x in allowed if x and x.strip()))

    def sorted_allowed(self) -> List[str]:
        return sorted(self.allowed)


def is_license_allowed(license: str, policy: LicensePolicy) -> bool:
    """
    Exact membership after whitespace normalization. Case is significant:
    "CC0" is allowed, "cc0" is not, so the source record has to be fixed.
    """
    lic = _normalize_license(license)
    if not lic:
        return False
    return lic in policy.allowed

