from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .utils import open_textmaybe_gzip

logger = logging.getLogger(__name__)


def load_group_map(path: str | Path) -> Dict[str, str]:
    """Read ``sample_id group_id`` pairs, one per line.

    Blank lines and lines starting with '#' are ignored; extra columns are
    ignored. A later line for the same sample overrides an earlier one.
    """
    groups: Dict[str, str] = {}
    with open_textmaybe_gzip(path, "rt") as fh:
        for n, line in enumerate(fh, start=1):
            text = line.strip()
            if not text or text.startswith("#"):
                continue
            cols = text.split()
            if len(cols) < 2:
                raise ValueError(
                    f"Group file {path}, line {n}: expected 'sample_id group_id', got {text!r}"
                )
            sample, group = cols[0], cols[1]
            if sample in groups and groups[sample] != group:
                logger.warning(
                    "Sample %s listed twice in %s (%s, %s); using %s",
                    sample,
                    path,
                    groups[sample],
                    group,
                    group,
                )
            groups[sample] = group
    if not groups:
        raise ValueError(f"Group file {path} contains no sample/group pairs.")
    return groups


def unknown_samples(sample_ids: Sequence[str], requested: Iterable[str]) -> List[str]:
    known = set(sample_ids)
    return sorted(s for s in set(requested) if s not in known)


def check_cohort(
    sample_ids: Sequence[str],
    *,
    controls: Iterable[str] = (),
    group_map: Optional[Mapping[str, str]] = None,
) -> List[str]:
    """Cross-check controls and groups against the VCF samples; returns warning messages."""
    warnings: List[str] = []

    missing_controls = unknown_samples(sample_ids, controls)
    if missing_controls:
        warnings.append(
            "Control sample(s) not present in the VCF: " + ", ".join(missing_controls)
        )

    if group_map is not None:
        ungrouped = sorted(s for s in sample_ids if s not in group_map)
        if ungrouped:
            warnings.append(
                "Sample(s) without a group in the group file (treated as one unnamed group): "
                + ", ".join(ungrouped)
            )
        extra = unknown_samples(sample_ids, group_map)
        if extra:
            warnings.append("Group file lists sample(s) not in the VCF: " + ", ".join(extra))

    for msg in warnings:
        logger.warning(msg)
    return warnings
