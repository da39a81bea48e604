from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Mapping

import matplotlib.pyplot as plt
import numpy as np

logger = logging.getLogger(__name__)


def plot_decision_counts(
    *,
    dropped_by_reason: Mapping[str, int],
    masked_by_tag: Mapping[str, int],
    emitted: int,
    out_png: str | Path,
    title: str = "Allele decisions",
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    labels = ["Emitted"]
    values = [int(emitted)]
    colors = ["#4c72b0"]
    for reason, n in sorted(dropped_by_reason.items()):
        labels.append(f"Dropped: {reason}")
        values.append(int(n))
        colors.append("#c44e52")
    for tag, n in sorted(masked_by_tag.items()):
        labels.append(f"Masked: {tag}")
        values.append(int(n))
        colors.append("#dd8452")

    plt.figure(figsize=(max(6.0, 0.6 * len(labels) + 2.0), 4.5))
    plt.bar(range(len(values)), values, color=colors)
    plt.ylabel("Allele count")
    plt.title(title)
    plt.xticks(range(len(labels)), labels, rotation=30, ha="right")
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_candidate_hist(
    *,
    candidate_count_hist: Dict[str, int],
    out_png: str | Path,
    title: str = "Samples carrying each emitted mutation",
    max_bin: int = 10,
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    # Collapse tail into max_bin+
    ys = np.zeros(max_bin + 1, dtype=np.int64)
    for k, v in candidate_count_hist.items():
        ys[min(int(k), max_bin)] += int(v)

    xs = np.arange(1, max_bin + 1)
    xticklabels = [str(x) for x in xs[:-1]] + [f"{max_bin}+"]

    plt.figure()
    plt.bar(xs, ys[1:])
    plt.xlabel("Candidate samples per record")
    plt.ylabel("Record count")
    plt.title(title)
    plt.xticks(xs, xticklabels)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()
