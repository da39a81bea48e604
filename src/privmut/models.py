from __future__ import annotations

from dataclasses import dataclass, field, fields
from functools import partial
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

# Filter kinds. The string value is the tag written to the FILTER column.
LOW_DEPTH = "LowDepth"
STRAND_BIAS = "StrandBias"
LIBRARY_BIAS = "LibraryBias"
LOW_SPLIT_SUPPORT = "LowSplitSupport"
NO_CONTROL = "NoControl"
SHARED = "Shared"
HIGH_MISSING = "HighMissing"
NON_SPECIFIC = "NonSpecific"

FILTER_DESCRIPTIONS: Dict[str, str] = {
    LOW_DEPTH: "Low depth of mutation allele",
    STRAND_BIAS: "Strand bias of reads covering mutation allele",
    LIBRARY_BIAS: "Mutation allele not supported by enough libraries",
    LOW_SPLIT_SUPPORT: "Too few split reads supporting mutation allele",
    NO_CONTROL: "No information in control samples",
    SHARED: "Shared mutations among different samples except control samples",
    HIGH_MISSING: "Too many missing calls in compare samples",
    NON_SPECIFIC: "Compare samples have too much reads containing mutation-like base",
}

# Kinds evaluated per candidate sample; a kind fires only when every candidate fails it.
CANDIDATE_FILTER_KINDS: Tuple[str, ...] = (
    LOW_DEPTH,
    STRAND_BIAS,
    LIBRARY_BIAS,
    LOW_SPLIT_SUPPORT,
)

# Drop reasons that are not filter kinds.
NOT_GROUP_SPECIFIC = "NotGroupSpecific"
SHARED_TOO_FREQUENT = "SharedTooFrequent"
SHARED_WITH_CONTROL = "SharedWithControl"


@dataclass(frozen=True)
class Locus:
    """One parsed VCF data line.

    Fields are kept as the raw strings from the input so that the emitted
    record reproduces them byte for byte.
    """

    chrom: str
    pos: str
    id: str
    ref: str
    alts: Tuple[str, ...]
    qual: str
    filter: str
    info: str
    format: str
    samples: Tuple[str, ...]
    line_number: int = 0

    @property
    def alleles(self) -> Tuple[str, ...]:
        return (self.ref,) + self.alts

    @property
    def format_tags(self) -> Tuple[str, ...]:
        if not self.format:
            return ()
        return tuple(self.format.split(":"))

    @property
    def tag_index(self) -> Dict[str, int]:
        return {tag: i for i, tag in enumerate(self.format_tags)}

    @property
    def qual_value(self) -> Optional[float]:
        if self.qual in ("", "."):
            return None
        try:
            return float(self.qual)
        except ValueError:
            return None

    @property
    def filter_tags(self) -> Tuple[str, ...]:
        if self.filter in ("", ".", "PASS"):
            return ()
        return tuple(t for t in self.filter.split(";") if t)

    def describe(self) -> str:
        return f"{self.chrom}:{self.pos}"


@dataclass(frozen=True)
class LocusDepths:
    """Canonical allele depths of every sample at one locus.

    depths:
        Sample id -> depth vector (one entry per allele), only for samples with
        non-zero total depth, in header order.
    missing:
        Samples with absent depth data or zero total depth, in header order.
    fields:
        Sample id -> raw genotype-field string for samples with data.
    """

    n_alleles: int
    depths: Mapping[str, Tuple[int, ...]]
    missing: Tuple[str, ...]
    fields: Mapping[str, str]

    def total(self, sample: str) -> int:
        return sum(self.depths.get(sample, ()))

    def ratio(self, sample: str, allele: int) -> float:
        """Fraction of the sample's reads at ``allele``; -1 when the sample has no depth."""
        total = self.total(sample)
        if total <= 0:
            return -1.0
        return self.depths[sample][allele] / total


@dataclass(frozen=True)
class SamplePartition:
    """Missing / background / candidate split of the samples for one allele."""

    allele: int
    candidates: Tuple[str, ...]  # sorted
    background: Tuple[str, ...]  # sorted
    missing: Tuple[str, ...]  # header order
    depth_at: Mapping[str, int]  # samples with depth > 0 at this allele


@dataclass(frozen=True)
class Decision:
    """Outcome of screening one (locus, allele) pair."""

    allele: int
    action: str  # 'drop' or 'emit'
    reason: Optional[str] = None
    filters: Tuple[str, ...] = ()
    masked: Tuple[str, ...] = ()
    info: str = ""
    candidates: Tuple[str, ...] = ()
    sample_field: str = ""

    @property
    def emitted(self) -> bool:
        return self.action == "emit"

    @classmethod
    def drop(cls, allele: int, reason: str, candidates: Tuple[str, ...] = ()) -> "Decision":
        return cls(allele=allele, action="drop", reason=reason, candidates=candidates)


@dataclass(frozen=True)
class ScreenConfig:
    """Run-wide screening thresholds.

    Built once from the command line and passed explicitly to every
    component. ``None`` means the corresponding check is not configured.
    """

    min_qual: Optional[float] = None

    min_supp_depth: int = 0
    min_supp_plus: int = 0
    min_supp_minus: int = 0

    min_lib_cnt: int = 0
    min_lib_depth: int = 0
    min_split_reads: Optional[int] = None

    max_cmp_missing: Optional[int] = None
    max_cmp_depth: int = 1
    max_cmp_perc: Optional[float] = None
    max_cmp_total: Optional[int] = None
    max_cmp_freq: Tuple[int, ...] = ()

    max_shared_freq: Optional[int] = None
    group_map: Optional[Mapping[str, str]] = field(default=None, compare=False, hash=False)

    exclude_ref: bool = False
    controls: FrozenSet[str] = frozenset()
    mask_only: FrozenSet[str] = frozenset()

    min_indel_len: Optional[int] = None
    max_indel_len: Optional[int] = None

    append_info: bool = False
    skip_filters: FrozenSet[str] = frozenset()
    match_filters: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        if self.group_map is not None:
            # Read-only copy; later changes to the caller's dict do not leak in.
            object.__setattr__(self, "group_map", MappingProxyType(dict(self.group_map)))
        unknown = sorted(set(self.mask_only) - set(FILTER_DESCRIPTIONS))
        if unknown:
            raise ValueError(
                f"Unknown --mask-only filter type(s): {', '.join(unknown)}. "
                f"Supported: {', '.join(FILTER_DESCRIPTIONS)}"
            )
        for name in (
            "min_supp_depth",
            "min_supp_plus",
            "min_supp_minus",
            "min_lib_cnt",
            "min_lib_depth",
            "max_cmp_depth",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        for name in (
            "min_split_reads",
            "max_cmp_missing",
            "max_cmp_perc",
            "max_cmp_total",
            "max_shared_freq",
            "min_indel_len",
            "max_indel_len",
        ):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must be >= 0")
        if any(v < 0 for v in self.max_cmp_freq):
            raise ValueError("max_cmp_freq values must be >= 0")

    def __reduce__(self) -> Any:
        # mappingproxy cannot be pickled; worker processes rebuild the config.
        kwargs = {f.name: getattr(self, f.name) for f in fields(self)}
        if self.group_map is not None:
            kwargs["group_map"] = dict(self.group_map)
        return (partial(ScreenConfig, **kwargs), ())

    @property
    def grouping(self) -> bool:
        return self.group_map is not None

    def group_of(self, sample: str) -> Optional[str]:
        if self.group_map is None:
            return None
        return self.group_map.get(sample)

    def is_masked(self, kind: str) -> bool:
        return kind in self.mask_only

    def check_enabled(self, kind: str) -> bool:
        """Whether the check behind a filter kind can ever fire with this configuration."""
        if kind == LOW_DEPTH:
            return self.min_supp_depth > 0
        if kind == STRAND_BIAS:
            return self.min_supp_plus > 0 or self.min_supp_minus > 0
        if kind == LIBRARY_BIAS:
            return self.min_lib_cnt > 0 or self.min_lib_depth > 0
        if kind == LOW_SPLIT_SUPPORT:
            return bool(self.min_split_reads)
        if kind == NO_CONTROL:
            return bool(self.controls)
        if kind == SHARED:
            return bool(self.max_shared_freq) and self.max_shared_freq > 1
        if kind == HIGH_MISSING:
            return self.max_cmp_missing is not None
        if kind == NON_SPECIFIC:
            return self.max_cmp_total is not None or bool(self.max_cmp_freq)
        return False
