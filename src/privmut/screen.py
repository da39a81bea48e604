from __future__ import annotations

import logging
import time
from collections import Counter, deque
from concurrent.futures import Future, ProcessPoolExecutor
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Deque, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from tqdm import tqdm

from .cohort import check_cohort
from .filters import screen_locus
from .models import ScreenConfig
from .utils import chunked, write_json
from .validation import check_header
from .vcf_io import (
    build_output_header,
    format_record,
    open_output,
    open_vcf,
    parse_locus,
    passes_filter_selection,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineResult:
    """Output lines and counter events produced by one input record."""

    records: Tuple[str, ...] = ()
    events: Tuple[str, ...] = ()
    candidate_counts: Tuple[int, ...] = ()


def evaluate_line(
    line_number: int, line: str, sample_ids: Sequence[str], config: ScreenConfig
) -> LineResult:
    locus = parse_locus(line, line_number)

    if config.min_qual is not None:
        qual = locus.qual_value
        if qual is None or qual < config.min_qual:
            return LineResult(events=("records_skipped_quality",))

    if not passes_filter_selection(locus, config):
        return LineResult(events=("records_skipped_filter",))

    decisions = screen_locus(locus, sample_ids, config)
    if not decisions:
        return LineResult(events=("records_without_candidates",))

    records: List[str] = []
    events: List[str] = []
    candidate_counts: List[int] = []
    for decision in decisions:
        events.append("alleles_evaluated")
        if decision.emitted:
            records.append(format_record(locus, decision))
            events.append("alleles_emitted")
            events.extend(f"masked:{tag}" for tag in decision.masked)
            candidate_counts.append(len(decision.candidates))
        else:
            events.append("alleles_dropped")
            events.append(f"dropped:{decision.reason}")
    return LineResult(tuple(records), tuple(events), tuple(candidate_counts))


def _screen_chunk(
    chunk: List[Tuple[int, str]], sample_ids: Sequence[str], config: ScreenConfig
) -> List[LineResult]:
    return [evaluate_line(n, line, sample_ids, config) for n, line in chunk]


def iter_results(
    lines: Iterable[Tuple[int, str]],
    sample_ids: Sequence[str],
    config: ScreenConfig,
    *,
    threads: int = 1,
    chunk_size: int = 1000,
) -> Iterator[LineResult]:
    """Evaluate records, yielding results in input order.

    With ``threads > 1`` chunks of records are screened in a process pool; at
    most ``2 * threads`` chunks are in flight and results are yielded in
    submission order.
    """
    if threads <= 1:
        for n, line in lines:
            yield evaluate_line(n, line, sample_ids, config)
        return

    pool = ProcessPoolExecutor(max_workers=threads)
    pending: Deque[Future] = deque()
    try:
        for chunk in chunked(lines, chunk_size):
            pending.append(pool.submit(_screen_chunk, chunk, sample_ids, config))
            if len(pending) >= 2 * threads:
                yield from pending.popleft().result()
        while pending:
            yield from pending.popleft().result()
    except BaseException:
        pool.shutdown(wait=False, cancel_futures=True)
        raise
    pool.shutdown(wait=True)


def config_summary(config: ScreenConfig) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for f in fields(config):
        value = getattr(config, f.name)
        if f.name == "group_map":
            out["grouped_samples"] = None if value is None else len(value)
        elif isinstance(value, (frozenset, set)):
            out[f.name] = sorted(value)
        elif isinstance(value, tuple):
            out[f.name] = list(value)
        else:
            out[f.name] = value
    return out


def screen_vcf(
    *,
    vcf_path: str | Path,
    config: ScreenConfig,
    output: Optional[str | Path] = None,
    version: str = "",
    command_line: str = "",
    threads: int = 1,
    chunk_size: int = 1000,
    tabix: bool = False,
    progress: bool = True,
    summary_json: Optional[str | Path] = None,
) -> Dict[str, Any]:
    """Main workhorse: stream the VCF, screen each locus, write records, return a summary dict.

    MissingDepthField from any record aborts the run; records already
    written stay in the output.
    """
    t0 = time.time()
    if threads < 1:
        raise ValueError("threads must be >= 1")
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")

    counts: Counter = Counter(
        {
            "records_total": 0,
            "records_skipped_quality": 0,
            "records_skipped_filter": 0,
            "records_without_candidates": 0,
            "alleles_evaluated": 0,
            "alleles_emitted": 0,
            "alleles_dropped": 0,
        }
    )
    dropped: Counter = Counter()
    masked: Counter = Counter()
    candidate_count_hist: Counter = Counter()

    with open_vcf(vcf_path) as (header, data_lines):
        check_header(header)
        sample_ids = header.sample_ids
        logger.info("Screening %d samples from %s", len(sample_ids), vcf_path)
        logger.debug("Configuration: %s", config_summary(config))
        cohort_warnings = check_cohort(
            sample_ids, controls=config.controls, group_map=config.group_map
        )

        with open_output(output, tabix=tabix) as out:
            out.write(
                build_output_header(header, config, version=version, command_line=command_line)
            )

            it: Iterable[Tuple[int, str]] = data_lines
            if progress:
                it = tqdm(it, unit="record", desc="Screening loci")

            for result in iter_results(
                it, sample_ids, config, threads=threads, chunk_size=chunk_size
            ):
                counts["records_total"] += 1
                for event in result.events:
                    if event.startswith("dropped:"):
                        dropped[event.split(":", 1)[1]] += 1
                    elif event.startswith("masked:"):
                        masked[event.split(":", 1)[1]] += 1
                    else:
                        counts[event] += 1
                for n in result.candidate_counts:
                    candidate_count_hist[n] += 1
                for record in result.records:
                    out.write(record)

    dt = time.time() - t0

    summary: Dict[str, Any] = {
        "vcf_path": str(vcf_path),
        "output": str(output) if output is not None else "-",
        "version": version,
        "samples": len(sample_ids),
        "counts": dict(counts),
        "dropped_by_reason": dict(sorted(dropped.items())),
        "masked_by_tag": dict(sorted(masked.items())),
        "candidate_count_hist": {str(k): v for k, v in sorted(candidate_count_hist.items())},
        "config": config_summary(config),
        "warnings": cohort_warnings,
        "threads": int(threads),
        "runtime_seconds": float(dt),
    }

    logger.info(
        "Screened %d records: %d alleles emitted, %d dropped",
        counts["records_total"],
        counts["alleles_emitted"],
        counts["alleles_dropped"],
    )

    if summary_json is not None:
        write_json(summary_json, summary)
    return summary
