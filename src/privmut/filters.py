"""Per-allele decision engine.

For every allele with candidate samples the checks run in a fixed order:

1. group specificity (drop only)
2. per-candidate filters (LowDepth, StrandBias, LibraryBias, LowSplitSupport)
3. missing control samples (NoControl)
4. shared mutations (Shared)
5. firing of the per-candidate filters
6. background noise in compare samples (NonSpecific)
7. missing compare samples (HighMissing)

A fired check either masks the record (its tag is added to FILTER, when the
kind is listed in ``mask_only``) or drops the allele. Checks that are not
configured never fire.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Set

from .annotations import build_info, candidate_groups, depth_histogram, split_background
from .classifier import classify_locus
from .depths import field_value, parse_int_list
from .models import (
    HIGH_MISSING,
    LIBRARY_BIAS,
    LOW_DEPTH,
    LOW_SPLIT_SUPPORT,
    NO_CONTROL,
    NON_SPECIFIC,
    NOT_GROUP_SPECIFIC,
    SHARED,
    SHARED_TOO_FREQUENT,
    SHARED_WITH_CONTROL,
    STRAND_BIAS,
    Decision,
    Locus,
    LocusDepths,
    SamplePartition,
    ScreenConfig,
)

logger = logging.getLogger(__name__)

FilterFailures = Mapping[str, FrozenSet[str]]


def _tag_present(tag_index: Mapping[str, int], tag: str) -> bool:
    # Index 0 counts as absent, matching the historical presence test for RC/LN/LAD.
    return bool(tag_index.get(tag))


def _at(values: Sequence[int], i: int) -> int:
    return values[i] if 0 <= i < len(values) else 0


def candidate_filter_failures(
    sample: str,
    allele: int,
    locus: Locus,
    locus_depths: LocusDepths,
    config: ScreenConfig,
) -> FrozenSet[str]:
    """Return the filter kinds a single candidate sample fails."""
    tag_index = locus.tag_index
    values = locus_depths.fields[sample].split(":")
    failed: Set[str] = set()

    if locus_depths.depths[sample][allele] < config.min_supp_depth:
        failed.add(LOW_DEPTH)

    if _tag_present(tag_index, "RC"):
        rc = parse_int_list(field_value(values, tag_index, "RC"))
        if rc is not None and len(rc) > 1:
            plus, minus = _at(rc, 2 * allele), _at(rc, 2 * allele + 1)
            if plus < config.min_supp_plus or minus < config.min_supp_minus:
                failed.add(STRAND_BIAS)

    if (
        (config.min_lib_cnt or config.min_lib_depth)
        and _tag_present(tag_index, "LN")
        and _tag_present(tag_index, "LAD")
    ):
        ln = parse_int_list(field_value(values, tag_index, "LN"))
        lad = parse_int_list(field_value(values, tag_index, "LAD")) or []
        n_libs = ln[0] if ln else 0
        if n_libs < config.min_lib_cnt:
            failed.add(LIBRARY_BIAS)
        else:
            passing = sum(
                1 for i in range(n_libs) if _at(lad, allele * n_libs + i) >= config.min_lib_depth
            )
            if passing < config.min_lib_cnt:
                failed.add(LIBRARY_BIAS)

    if config.min_split_reads:
        split_reads = parse_int_list(field_value(values, tag_index, "SR"))
        if split_reads is None or _at(split_reads, allele) < config.min_split_reads:
            failed.add(LOW_SPLIT_SUPPORT)

    return frozenset(failed)


def collect_filter_failures(
    partition: SamplePartition,
    locus: Locus,
    locus_depths: LocusDepths,
    config: ScreenConfig,
) -> Dict[str, FrozenSet[str]]:
    """Map each filter kind to the candidate samples that failed it."""
    by_kind: Dict[str, Set[str]] = {}
    for sample in partition.candidates:
        for kind in candidate_filter_failures(sample, partition.allele, locus, locus_depths, config):
            by_kind.setdefault(kind, set()).add(sample)
    return {kind: frozenset(samples) for kind, samples in by_kind.items()}


def fired_filter_kinds(failures: FilterFailures, n_candidates: int) -> List[str]:
    """Kinds failed by every candidate; a single passing candidate clears a kind."""
    return sorted(kind for kind, samples in failures.items() if len(samples) >= n_candidates)


def background_limits_exceeded(
    depth_at: Mapping[str, int], compare: Sequence[str], config: ScreenConfig
) -> bool:
    """Whether compare-sample noise exceeds --max-cmp-total or --max-cmp-freq."""
    hist = depth_histogram(depth_at, compare)
    if config.max_cmp_total is not None and hist.total_depth > config.max_cmp_total:
        return True
    for depth, freq in zip(hist.depths, hist.freqs):
        if 1 <= depth <= len(config.max_cmp_freq) and freq > config.max_cmp_freq[depth - 1]:
            return True
    return False


def indel_length_ok(locus: Locus, allele: int, config: ScreenConfig) -> bool:
    if allele == 0:
        return True
    length = abs(len(locus.alleles[allele]) - len(locus.ref))
    if length == 0:
        return True
    if config.min_indel_len is not None and length < config.min_indel_len:
        return False
    if config.max_indel_len is not None and length > config.max_indel_len:
        return False
    return True


def decide_allele(
    locus: Locus,
    locus_depths: LocusDepths,
    partition: SamplePartition,
    config: ScreenConfig,
) -> Decision:
    allele = partition.allele
    candidates = partition.candidates
    n_candidates = len(candidates)

    def drop(reason: str) -> Decision:
        logger.debug("%s allele %d dropped: %s", locus.describe(), allele, reason)
        return Decision.drop(allele, reason, candidates)

    if config.grouping and len(candidate_groups(partition, config)) > 1:
        return drop(NOT_GROUP_SPECIFIC)

    failures = collect_filter_failures(partition, locus, locus_depths, config)

    out_filters: Set[str] = set(locus.filter_tags)
    masked: List[str] = []

    def mask_or_drop(kind: str) -> Optional[Decision]:
        if config.is_masked(kind):
            out_filters.add(kind)
            masked.append(kind)
            return None
        return drop(kind)

    if any(s in config.controls for s in partition.missing):
        dropped = mask_or_drop(NO_CONTROL)
        if dropped is not None:
            return dropped

    if config.max_shared_freq and n_candidates > 1:
        if n_candidates > config.max_shared_freq:
            return drop(SHARED_TOO_FREQUENT)
        if any(s in config.controls for s in candidates):
            return drop(SHARED_WITH_CONTROL)
        if config.is_masked(SHARED):
            out_filters.add(SHARED)
            masked.append(SHARED)

    for kind in fired_filter_kinds(failures, n_candidates):
        dropped = mask_or_drop(kind)
        if dropped is not None:
            return dropped

    compare, _ = split_background(partition, config)
    if compare and background_limits_exceeded(partition.depth_at, compare, config):
        dropped = mask_or_drop(NON_SPECIFIC)
        if dropped is not None:
            return dropped

    if config.max_cmp_missing is not None and len(partition.missing) > config.max_cmp_missing:
        dropped = mask_or_drop(HIGH_MISSING)
        if dropped is not None:
            return dropped

    background = depth_histogram(partition.depth_at, compare)
    return Decision(
        allele=allele,
        action="emit",
        filters=tuple(sorted(out_filters)),
        masked=tuple(masked),
        info=build_info(locus, partition, locus_depths, config, background=background),
        candidates=candidates,
        sample_field=locus_depths.fields[candidates[0]],
    )


def select_alleles(
    locus: Locus, partitions: Sequence[SamplePartition], config: ScreenConfig
) -> List[SamplePartition]:
    """Alleles worth evaluating: with candidates, not excluded, within indel bounds."""
    return [
        p
        for p in partitions
        if p.candidates
        and not (config.exclude_ref and p.allele == 0)
        and indel_length_ok(locus, p.allele, config)
    ]


def screen_locus(locus: Locus, sample_ids: Sequence[str], config: ScreenConfig) -> List[Decision]:
    """Screen every allele of a locus; returns one Decision per evaluated allele."""
    locus_depths, partitions = classify_locus(locus, sample_ids, config)
    return [
        decide_allele(locus, locus_depths, p, config)
        for p in select_alleles(locus, partitions, config)
    ]
