"""
Voter data models.

Represents rows read from the electoral roll. Records are never created or
mutated by this application; they are only read and presented.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Optional, Any, Mapping


# Columns selected for every voter listing, in display order
VOTER_COLUMNS = (
    "epic_number",
    "full_name",
    "relation_name",
    "age",
    "part_no",
    "sr_no",
    "address",
    "house_number",
    "gender",
    "pincode",
)


@dataclass(frozen=True)
class VoterRecord:
    """
    Voter row from the roll.

    `part_no` is the booth/part the voter is enrolled in; wards are groups
    of parts, resolved through the PartNo table.
    """

    epic_number: Optional[str] = None
    full_name: str = ""
    relation_name: Optional[str] = None
    age: Optional[Any] = None
    gender: Optional[str] = None
    part_no: Optional[Any] = None
    sr_no: Optional[Any] = None
    address: Optional[str] = None
    house_number: Optional[str] = None
    pincode: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "VoterRecord":
        """Build from a database row, ignoring ranking and unknown columns."""
        return cls(**{
            k: v for k, v in row.items()
            if k in cls.__dataclass_fields__
        })

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass(frozen=True)
class VoterDetails:
    """
    Full voter record with polling-station information.

    Used to render the voter slip.
    """

    record: VoterRecord
    ward: int
    ac_no: Optional[Any] = None
    relation_type: Optional[str] = None
    booth_name: Optional[str] = None
    booth_address: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any], ward: int) -> "VoterDetails":
        return cls(
            record=VoterRecord.from_row(row),
            ward=ward,
            ac_no=row.get("ac_no"),
            relation_type=row.get("relation_type"),
            booth_name=row.get("booth_name"),
            booth_address=row.get("english_booth_address"),
        )

    @property
    def polling_station(self) -> str:
        """Booth name, or the part number when the booth is unnamed."""
        return self.booth_name or f"Part {self.record.part_no}"

    @property
    def polling_address(self) -> str:
        return (
            self.booth_address
            or self.booth_name
            or self.record.address
            or "Address not available"
        )
