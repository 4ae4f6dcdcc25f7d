"""
Rigid Disk Block partition descriptors.

Parses the text report of ``rdbtool <image> show`` (amitools) into typed
PartitionDescriptor records so the byte offset of a partition inside an HDF
image can be computed from its geometry. A partition whose geometry fields
are missing is reported as an error instead of yielding a guessed offset.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

PARTITION_MARKER = "PartitionBlock"
REQUIRED_FIELDS = ("low_cyl", "surfaces", "blk_per_trk", "block_size")

_FIELD_RE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*[:=]\s*(.*?)\s*$")

# DosEnvec sizes at or below this are longword counts, not bytes
_MAX_LONGWORD_BLOCK_SIZE = 128


class RdbParseError(ValueError):
    """Raised when a partition entry lacks the fields needed for its offset."""


@dataclass(frozen=True)
class PartitionDescriptor:
    """
    Geometry of one RDB partition.

    Attributes:
        index: Position of the partition in the report (0-based)
        drive_name: DOS device name (e.g. 'DH0')
        low_cyl: First cylinder of the partition
        high_cyl: Last cylinder, if reported
        surfaces: Heads per cylinder
        blocks_per_track: Blocks per track
        block_size: Block size in bytes
        dos_type: Filesystem DOS type as reported (e.g. 'DOS3', 'SFS0')
    """
    index: int
    drive_name: str
    low_cyl: int
    surfaces: int
    blocks_per_track: int
    block_size: int
    high_cyl: Optional[int] = None
    dos_type: Optional[str] = None

    @property
    def cylinder_size(self) -> int:
        """Bytes per cylinder."""
        return self.surfaces * self.blocks_per_track * self.block_size

    @property
    def byte_offset(self) -> int:
        """Byte offset of the partition's first cylinder within the image."""
        return self.low_cyl * self.cylinder_size

    @property
    def is_swap(self) -> bool:
        dos_type = (self.dos_type or "").upper()
        return "SWAP" in dos_type or "SWP" in dos_type

    @property
    def is_sfs(self) -> bool:
        return "SFS" in (self.dos_type or "").upper()


def _parse_int(value: str) -> Optional[int]:
    token = value.split()[0] if value.split() else ""
    for base in (0, 10):
        try:
            return int(token, base)
        except ValueError:
            continue
    return None


def _split_sections(report: str) -> List[Dict[str, str]]:
    sections: List[Dict[str, str]] = []
    current: Optional[Dict[str, str]] = None

    for line in report.splitlines():
        if PARTITION_MARKER in line:
            current = {}
            sections.append(current)
            continue
        if current is None:
            continue
        match = _FIELD_RE.match(line)
        if match:
            key, value = match.groups()
            current.setdefault(key, value.strip("'\""))

    return sections


def _descriptor(index: int, fields: Dict[str, str]) -> PartitionDescriptor:
    numbers = {name: _parse_int(fields.get(name, "")) for name in REQUIRED_FIELDS}
    missing = [name for name, value in numbers.items() if value is None]
    drive_name = fields.get("drv_name", f"partition {index}")
    if missing:
        raise RdbParseError(f"{drive_name}: missing or invalid {', '.join(missing)}")

    block_size = numbers["block_size"]
    if block_size <= _MAX_LONGWORD_BLOCK_SIZE:
        block_size *= 4

    return PartitionDescriptor(
        index=index,
        drive_name=drive_name,
        low_cyl=numbers["low_cyl"],
        surfaces=numbers["surfaces"],
        blocks_per_track=numbers["blk_per_trk"],
        block_size=block_size,
        high_cyl=_parse_int(fields.get("high_cyl", "")),
        dos_type=fields.get("dos_type") or None,
    )


def parse_partitions(report: str) -> List[PartitionDescriptor]:
    """
    Parse every partition in an rdbtool report.

    Raises:
        RdbParseError: If a partition lacks geometry fields
    """
    return [_descriptor(i, fields) for i, fields in enumerate(_split_sections(report))]


def first_data_partition(report: str) -> PartitionDescriptor:
    """
    Find the first non-swap partition in an rdbtool report.

    Raises:
        RdbParseError: If there are no partitions, or the first data
            partition lacks geometry fields

    Example:
        >>> part = first_data_partition(rdbtool_output)
        >>> part.drive_name, part.byte_offset
        ('DH0', 65536)
    """
    sections = _split_sections(report)
    if not sections:
        raise RdbParseError("no PartitionBlock found in RDB report")

    for index, fields in enumerate(sections):
        dos_type = fields.get("dos_type", "").upper()
        if "SWAP" in dos_type or "SWP" in dos_type:
            logger.debug("Skipping swap partition %s", fields.get("drv_name", index))
            continue
        return _descriptor(index, fields)

    raise RdbParseError("RDB report lists only swap partitions")
