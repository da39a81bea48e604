from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple

from .depths import detect_depth_encoding, normalize_sample_depths
from .models import Locus, LocusDepths, SamplePartition, ScreenConfig

logger = logging.getLogger(__name__)


def collect_depths(locus: Locus, sample_ids: Sequence[str]) -> LocusDepths:
    """Normalize every sample's depths at a locus and set aside the missing ones.

    A sample is missing when its depth data is absent or unusable, or when its
    total depth over all alleles is zero.
    """
    tag_index = locus.tag_index
    encoding = detect_depth_encoding(tag_index, locus=locus.describe())
    n_alleles = len(locus.alleles)

    depths: Dict[str, Tuple[int, ...]] = {}
    fields: Dict[str, str] = {}
    missing: List[str] = []

    for i, sample in enumerate(sample_ids):
        sample_field = locus.samples[i] if i < len(locus.samples) else "."
        dv = normalize_sample_depths(sample_field, tag_index, n_alleles, encoding=encoding)
        if dv is None or sum(dv) == 0:
            missing.append(sample)
            continue
        depths[sample] = dv
        fields[sample] = sample_field

    return LocusDepths(
        n_alleles=n_alleles,
        depths=depths,
        missing=tuple(missing),
        fields=fields,
    )


def is_candidate(depth: int, total: int, config: ScreenConfig) -> bool:
    """Whether a sample's depth at an allele exceeds the background-noise ceiling.

    The percentage ceiling, when configured, replaces the raw depth ceiling.
    """
    if config.max_cmp_perc is not None:
        return 100.0 * depth / total > config.max_cmp_perc
    return depth > config.max_cmp_depth


def classify_allele(locus_depths: LocusDepths, allele: int, config: ScreenConfig) -> SamplePartition:
    candidates: List[str] = []
    background: List[str] = []
    depth_at: Dict[str, int] = {}

    for sample, dv in locus_depths.depths.items():
        depth = dv[allele]
        if depth > 0:
            depth_at[sample] = depth
        if is_candidate(depth, sum(dv), config):
            candidates.append(sample)
        elif depth > 0:
            background.append(sample)

    return SamplePartition(
        allele=allele,
        candidates=tuple(sorted(candidates)),
        background=tuple(sorted(background)),
        missing=locus_depths.missing,
        depth_at=depth_at,
    )


def classify_locus(
    locus: Locus, sample_ids: Sequence[str], config: ScreenConfig
) -> Tuple[LocusDepths, List[SamplePartition]]:
    """Partition the samples for every allele at a locus."""
    locus_depths = collect_depths(locus, sample_ids)
    partitions = [
        classify_allele(locus_depths, allele, config) for allele in range(locus_depths.n_alleles)
    ]
    return locus_depths, partitions
