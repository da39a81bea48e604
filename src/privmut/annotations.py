from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .models import Locus, LocusDepths, SamplePartition, ScreenConfig

NA = "NA"
UNKNOWN_GROUP = "."
SHARED_DETAIL_SEP = "|"


@dataclass(frozen=True)
class DepthHistogram:
    """Samples grouped by identical depth, in ascending depth order."""

    depths: Tuple[int, ...] = ()
    freqs: Tuple[int, ...] = ()
    samples: Tuple[Tuple[str, ...], ...] = ()

    @property
    def total_depth(self) -> int:
        return sum(d * f for d, f in zip(self.depths, self.freqs))

    def __bool__(self) -> bool:
        return bool(self.depths)

    def format(self) -> Tuple[str, str, str]:
        """Render as (depths, frequencies, sample groups) INFO values."""
        return (
            ",".join(str(d) for d in self.depths),
            ",".join(str(f) for f in self.freqs),
            ",".join("(" + ",".join(group) + ")" for group in self.samples),
        )


def depth_histogram(depth_at: Mapping[str, int], samples: Iterable[str]) -> DepthHistogram:
    by_depth: Dict[int, List[str]] = {}
    for sample in samples:
        by_depth.setdefault(depth_at[sample], []).append(sample)
    depths = sorted(by_depth)
    return DepthHistogram(
        depths=tuple(depths),
        freqs=tuple(len(by_depth[d]) for d in depths),
        samples=tuple(tuple(sorted(by_depth[d])) for d in depths),
    )


def candidate_groups(partition: SamplePartition, config: ScreenConfig) -> Set[Optional[str]]:
    return {config.group_of(s) for s in partition.candidates}


def split_background(
    partition: SamplePartition, config: ScreenConfig
) -> Tuple[List[str], List[str]]:
    """Split background samples into (compare, same-group).

    Without grouping every background sample is a compare sample. With
    grouping, background samples from the candidates' group are reported
    separately and do not count as compare samples.
    """
    if not config.grouping:
        return list(partition.background), []
    groups = candidate_groups(partition, config)
    compare = [s for s in partition.background if config.group_of(s) not in groups]
    same_group = [s for s in partition.background if config.group_of(s) in groups]
    return compare, same_group


def format_ratio(ratio: float) -> str:
    return f"{ratio:.4f}".rstrip("0").rstrip(".")


def build_info(
    locus: Locus,
    partition: SamplePartition,
    locus_depths: LocusDepths,
    config: ScreenConfig,
    *,
    background: Optional[DepthHistogram] = None,
) -> str:
    """Assemble the INFO string of an emitted mutation record."""
    allele = partition.allele
    candidates = partition.candidates

    if background is None:
        compare, _ = split_background(partition, config)
        background = depth_histogram(partition.depth_at, compare)

    missing = sorted(partition.missing)
    fields: List[str] = []
    if missing:
        fields.append(f"NMISS={len(missing)}")
        fields.append("SMISS=" + ",".join(missing))
    else:
        fields.extend(["NMISS=0", f"SMISS={NA}"])

    if background:
        fpd, fpfq, fps = background.format()
        fields.extend([f"FPD={fpd}", f"FPFQ={fpfq}", f"FPS={fps}"])
    else:
        fields.extend(["FPD=0", "FPFQ=0", f"FPS={NA}"])

    fields.append(f"MA={locus.alleles[allele]}")

    if len(candidates) == 1:
        ratio = locus_depths.ratio(candidates[0], allele)
        if ratio >= 0:
            fields.append(f"MAR={format_ratio(ratio)}")

    if len(candidates) > 1:
        fields.append(f"Shared={shared_descriptor(candidates, locus_depths)}")

    if config.grouping:
        fields.extend(group_fields(partition, config))

    info = ";".join(fields)
    if config.append_info and locus.info not in ("", "."):
        info = locus.info + ";" + info
    return info


def shared_descriptor(candidates: Sequence[str], locus_depths: LocusDepths) -> str:
    details = SHARED_DETAIL_SEP.join(locus_depths.fields[s] for s in candidates)
    return f"{len(candidates)}({details})"


def group_fields(partition: SamplePartition, config: ScreenConfig) -> List[str]:
    group_id = config.group_of(partition.candidates[0])
    fields = [f"GRPID={group_id if group_id is not None else UNKNOWN_GROUP}"]
    _, same_group = split_background(partition, config)
    hist = depth_histogram(partition.depth_at, same_group)
    if hist:
        grpd, grpfq, grps = hist.format()
        fields.extend([f"GRPD={grpd}", f"GRPFQ={grpfq}", f"GRPS={grps}"])
    return fields
