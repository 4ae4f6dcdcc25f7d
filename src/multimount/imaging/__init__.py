"""
Image format identification.

Provides the image handle and classification types, the declarative format
catalog, the format classifier and the Amiga Rigid Disk Block parser.
"""

from multimount.imaging.image_formats import (
    PREFIX_SIZE,
    Family,
    Variant,
    DetectionMethod,
    ImageFile,
    FormatClassification,
)

from multimount.imaging.format_registry import (
    FORMATS,
    ImageFormatSpec,
    get_format,
    family_of,
    lookup_variant,
    variant_for_extension,
    extensions_by_family,
)

from multimount.imaging.classifier import (
    classify,
    describe_file,
    hex_prefix,
)

from multimount.imaging.rdb import (
    PartitionDescriptor,
    RdbParseError,
    parse_partitions,
    first_data_partition,
)

__all__ = [
    # Types
    "PREFIX_SIZE",
    "Family",
    "Variant",
    "DetectionMethod",
    "ImageFile",
    "FormatClassification",

    # Format catalog
    "FORMATS",
    "ImageFormatSpec",
    "get_format",
    "family_of",
    "lookup_variant",
    "variant_for_extension",
    "extensions_by_family",

    # Classifier
    "classify",
    "describe_file",
    "hex_prefix",

    # RDB
    "PartitionDescriptor",
    "RdbParseError",
    "parse_partitions",
    "first_data_partition",
]
