"""
Generic filesystem container chains.

Each container is loop-mounted with its explicit kernel type first and with
auto-detection as the fallback. The generic chain is used for unknown images
and for a user-forced kernel filesystem type.
"""

from multimount.mounting.techniques import loop_mount

SQUASHFS_CHAIN = (
    loop_mount("squashfs-loop", 1, "squashfs"),
    loop_mount("auto-loop", 2),
)

ISO9660_CHAIN = (
    loop_mount("iso9660-loop", 1, "iso9660", ("loop", "ro")),
    loop_mount("auto-loop-ro", 2, options=("loop", "ro")),
)

EXT_CHAIN = (
    loop_mount("ext4-loop", 1, "ext4"),
    loop_mount("auto-loop", 2),
)

XFS_CHAIN = (
    loop_mount("xfs-loop", 1, "xfs"),
    loop_mount("auto-loop", 2),
)

BTRFS_CHAIN = (
    loop_mount("btrfs-loop", 1, "btrfs"),
    loop_mount("auto-loop", 2),
)

# Uses the forced kernel filesystem type when one was given
GENERIC_CHAIN = (
    loop_mount("loop", 1, description="loop mount (forced or auto-detected type)"),
)
