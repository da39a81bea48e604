"""Canonical allele depths from caller-specific FORMAT fields.

Supported encodings, in detection order:

- ``AD``: one depth per allele (GATK and most short-variant callers)
- ``NR,NV``: covering reads and variant reads (Platypus)
- ``DR,DV,RR,RV``: reference/variant pairs and junction reads (Delly)
- ``PR``: spanning paired-read support per allele (Manta)

Detection is per FORMAT declaration, since merged files may mix callers.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

logger = logging.getLogger(__name__)

_MISSING = {"", "."}

# FORMAT declarations already reported for lacking part of the DR,DV,RR,RV set.
_warned_formats: Set[Tuple[str, ...]] = set()


class MissingDepthField(ValueError):
    """Raised when a FORMAT declaration carries none of the supported depth encodings."""

    def __init__(self, message: str, *, locus: str = "", format_string: str = "") -> None:
        super().__init__(message)
        self.locus = locus
        self.format_string = format_string


class GenotypeFixError(ValueError):
    """Raised when a short allele-depth vector cannot be reconciled with the genotype."""


class DepthEncoding(Enum):
    ALLELE_DEPTH = ("AD",)
    READ_COUNT = ("NR", "NV")
    PAIRED_JUNCTION = ("DR", "DV", "RR", "RV")
    PAIRED_READ = ("PR",)

    @property
    def tags(self) -> Tuple[str, ...]:
        return self.value


# (encoding, tag whose presence selects it)
_DETECTION_ORDER: Tuple[Tuple[DepthEncoding, str], ...] = (
    (DepthEncoding.ALLELE_DEPTH, "AD"),
    (DepthEncoding.READ_COUNT, "NV"),
    (DepthEncoding.PAIRED_JUNCTION, "DV"),
    (DepthEncoding.PAIRED_READ, "PR"),
)


def detect_depth_encoding(tag_index: Mapping[str, int], *, locus: str = "") -> DepthEncoding:
    """Pick the depth encoding for a FORMAT declaration, or raise MissingDepthField."""
    for encoding, selector in _DETECTION_ORDER:
        if selector in tag_index:
            return encoding
    fmt = ":".join(sorted(tag_index, key=lambda t: tag_index[t]))
    raise MissingDepthField(
        "This tool requires allele read depths, but none of the supported FORMAT "
        "fields (AD; NR,NV; DR,DV,RR,RV; PR) was found"
        + (f" at {locus}" if locus else "")
        + f" (FORMAT={fmt or '.'})",
        locus=locus,
        format_string=fmt,
    )


def field_value(values: Sequence[str], tag_index: Mapping[str, int], tag: str) -> Optional[str]:
    """Return a sample's value for ``tag``, or None when absent or '.'."""
    idx = tag_index.get(tag)
    if idx is None or idx >= len(values):
        return None
    value = values[idx]
    if value in _MISSING:
        return None
    return value


def parse_int_list(value: Optional[str]) -> Optional[List[int]]:
    """Parse a comma-separated list of read counts; None when absent or malformed.

    Negative counts are malformed.
    """
    if value is None:
        return None
    try:
        counts = [int(x) for x in value.split(",")]
    except ValueError:
        return None
    if any(c < 0 for c in counts):
        return None
    return counts


def _called_alleles(gt: Optional[str]) -> List[int]:
    if gt is None:
        return []
    called = set()
    for token in gt.replace("|", "/").split("/"):
        if token in _MISSING:
            continue
        try:
            called.add(int(token))
        except ValueError:
            continue
    return sorted(called)


def fix_allele_depths(ad: Sequence[int], gt: Optional[str], n_alleles: int) -> Tuple[int, ...]:
    """Expand a short allele-depth vector to ``n_alleles`` entries using the genotype.

    Merged files often keep the per-sample AD of the original call while the
    ALT column lists more alleles. The depths are then assumed to belong to
    the called alleles (plus the reference when the call is homozygous), in
    ascending allele order; every other allele gets depth 0.

    Raises GenotypeFixError when the genotype cannot account for the depths.
    """
    called = _called_alleles(gt)
    if not called:
        raise GenotypeFixError(f"No called genotype to reconcile AD={list(ad)}")
    if len(called) < len(ad) and 0 not in called:
        called = [0] + called
    if len(called) != len(ad) or called[-1] >= n_alleles:
        raise GenotypeFixError(
            f"Cannot reconcile AD={list(ad)} with GT={gt} for {n_alleles} alleles"
        )
    fixed = [0] * n_alleles
    for allele, depth in zip(called, ad):
        fixed[allele] = depth
    return tuple(fixed)


def _warn_undeclared_once(tag_index: Mapping[str, int], undeclared: Sequence[str]) -> None:
    key = tuple(sorted(tag_index, key=lambda t: tag_index[t]))
    if key in _warned_formats:
        return
    _warned_formats.add(key)
    logger.warning(
        "FORMAT %s declares DV without %s; counting the undeclared fields as 0 reads",
        ":".join(key),
        ",".join(undeclared),
    )


def _raw_depths(
    values: Sequence[str], tag_index: Mapping[str, int], encoding: DepthEncoding
) -> Optional[List[int]]:
    if encoding is DepthEncoding.ALLELE_DEPTH:
        return parse_int_list(field_value(values, tag_index, "AD"))

    if encoding is DepthEncoding.READ_COUNT:
        nr = parse_int_list(field_value(values, tag_index, "NR"))
        nv = parse_int_list(field_value(values, tag_index, "NV"))
        if nr is None or nv is None:
            return None
        return [max(0, nr[0] - sum(nv))] + nv

    if encoding is DepthEncoding.PAIRED_JUNCTION:
        undeclared = [tag for tag in encoding.tags if tag not in tag_index]
        if undeclared:
            _warn_undeclared_once(tag_index, undeclared)
        counts: Dict[str, int] = dict.fromkeys(undeclared, 0)
        for tag in encoding.tags:
            if tag in counts:
                continue
            parsed = parse_int_list(field_value(values, tag_index, tag))
            if parsed is None:
                return None
            counts[tag] = parsed[0]
        return [counts["DR"] + counts["RR"], counts["DV"] + counts["RV"]]

    return parse_int_list(field_value(values, tag_index, "PR"))


def normalize_sample_depths(
    sample_field: str,
    tag_index: Mapping[str, int],
    n_alleles: int,
    *,
    encoding: Optional[DepthEncoding] = None,
) -> Optional[Tuple[int, ...]]:
    """Convert one sample's genotype field into a depth vector of length ``n_alleles``.

    Returns None when the sample has no usable depth data; such samples are
    treated as missing by the caller. Raises MissingDepthField when the FORMAT
    declaration has no supported encoding at all.
    """
    if encoding is None:
        encoding = detect_depth_encoding(tag_index)

    values = sample_field.split(":")
    depths = _raw_depths(values, tag_index, encoding)
    if depths is None:
        return None

    if len(depths) < n_alleles:
        gt = field_value(values, tag_index, "GT")
        try:
            return fix_allele_depths(depths, gt, n_alleles)
        except GenotypeFixError as e:
            logger.debug("Treating sample as missing: %s", e)
            return None

    return tuple(depths[:n_alleles])
