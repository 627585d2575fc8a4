"""Closed categorical vocabularies for protected-area records.

Every categorical attribute is a fixed enum: the category sets are known at
design time and every stage handles each member explicitly. Provider text is
parsed with ``from_text`` (case- and whitespace-insensitive); unrecognised
text returns ``None`` so the normalizer can decide what to do with it.
"""

from __future__ import annotations

import enum


def _key(value: object) -> str:
    return " ".join(str(value).split()).casefold()


class Status(enum.Enum):
    """Lifecycle stage of a protected area."""

    DESIGNATED = "Designated"
    INSCRIBED = "Inscribed"
    ESTABLISHED = "Established"
    ADOPTED = "Adopted"
    PROPOSED = "Proposed"
    NOT_REPORTED = "Not Reported"

    @classmethod
    def from_text(cls, value: object) -> Status | None:
        """Parse provider text into a ``Status``."""
        return _STATUS_LOOKUP.get(_key(value))


class DesignationKind(enum.Enum):
    """Kind of conservation designation.

    ``BIOSPHERE_RESERVE`` covers UNESCO-MAB biosphere reserves, whose zoning
    has no persistent protected footprint of its own.
    """

    NATIONAL = "National"
    REGIONAL = "Regional"
    INTERNATIONAL = "International"
    BIOSPHERE_RESERVE = "UNESCO-MAB Biosphere Reserve"
    NOT_APPLICABLE = "Not Applicable"

    @classmethod
    def from_text(cls, designation_type: object, designation: object = "") -> DesignationKind | None:
        """Parse the provider's designation type and designation name.

        The designation name wins when it identifies a biosphere reserve,
        because providers file those under ``International``.
        """
        if _key(designation) == _key(cls.BIOSPHERE_RESERVE.value):
            return cls.BIOSPHERE_RESERVE
        return _DESIGNATION_LOOKUP.get(_key(designation_type))


class ManagementCategory(enum.Enum):
    """IUCN management category, strongest protection first.

    ``rank`` orders categories for overlap precedence: lower ranks win.
    """

    IA = "Ia"
    IB = "Ib"
    II = "II"
    III = "III"
    IV = "IV"
    V = "V"
    VI = "VI"
    NOT_REPORTED = "Not Reported"
    NOT_APPLICABLE = "Not Applicable"
    NOT_ASSIGNED = "Not Assigned"

    @property
    def rank(self) -> int:
        return _MANAGEMENT_ORDER.index(self)

    @classmethod
    def from_text(cls, value: object) -> ManagementCategory | None:
        """Parse provider text into a ``ManagementCategory``."""
        return _MANAGEMENT_LOOKUP.get(_key(value))


class Realm(enum.Enum):
    """Physical context of a protected area.

    Provider codes: ``0`` terrestrial, ``1`` partly marine (mixed),
    ``2`` marine. Records in different realms are never erased against
    each other.
    """

    TERRESTRIAL = "terrestrial"
    MIXED = "mixed"
    MARINE = "marine"

    @classmethod
    def from_text(cls, value: object) -> Realm | None:
        """Parse a provider code or name into a ``Realm``."""
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return _REALM_LOOKUP.get(_key(value))


_STATUS_LOOKUP = {_key(s.value): s for s in Status}
_DESIGNATION_LOOKUP = {_key(d.value): d for d in DesignationKind}
_MANAGEMENT_LOOKUP = {_key(m.value): m for m in ManagementCategory}
_MANAGEMENT_ORDER = list(ManagementCategory)
_REALM_LOOKUP = {
    **{_key(r.value): r for r in Realm},
    "0": Realm.TERRESTRIAL,
    "1": Realm.MIXED,
    "2": Realm.MARINE,
    "partial": Realm.MIXED,
}

DEFAULT_RETAIN_STATUSES: frozenset[Status] = frozenset(
    {Status.DESIGNATED, Status.INSCRIBED, Status.ESTABLISHED}
)
DEFAULT_EXCLUDED_DESIGNATIONS: frozenset[DesignationKind] = frozenset(
    {DesignationKind.BIOSPHERE_RESERVE}
)
