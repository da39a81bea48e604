"""Reading input VCF text and writing screened mutation records.

Records are handled as text rather than through pysam.VariantFile so that
per-sample genotype strings and unknown meta-lines pass through unchanged.
pysam is used for the BGZF output sink and its tabix index.
"""

from __future__ import annotations

import logging
import re
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, TextIO, Tuple

import pysam

from .models import FILTER_DESCRIPTIONS, Decision, Locus, ScreenConfig
from .utils import open_textmaybe_gzip

logger = logging.getLogger(__name__)

N_FIXED_COLUMNS = 9
OUTPUT_SAMPLE = "MUTATION"
_SOURCE_PREFIX = "##source=privmut "
_DEFINITION_RE = re.compile(r"^##(INFO|FILTER)=<ID=([^,>]+)")

_INFO_DEFINITIONS: Tuple[Tuple[str, str, str, str], ...] = (
    ("MA", "1", "String", "Mutation allele"),
    ("MAR", "1", "Float", "Ratio of reads contain mutation allele among all covered reads in mutation sample"),
    ("FPD", ".", "Integer", "Depth of mutation-like allele in compare samples"),
    ("FPFQ", ".", "Integer", "Mutation-like allele frequency of different depth in compare samples"),
    ("FPS", "1", "String", "Compare samples with mutation-like alleles"),
    ("NMISS", "1", "Integer", "Number of uncallable compare samples"),
    ("SMISS", "1", "String", "Uncallable compare samples"),
    (
        "Shared",
        ".",
        "String",
        "Number of samples sharing this mutation allele(Details of shared samples, listed same as FORMAT field)",
    ),
)

_GROUP_INFO_DEFINITIONS: Tuple[Tuple[str, str, str, str], ...] = (
    ("GRPID", "1", "String", "Group ID"),
    ("GRPD", ".", "Integer", "Depth of mutation-like allele in other group members"),
    ("GRPFQ", ".", "Integer", "Mutation-like allele frequency of different depth in other group samples"),
    ("GRPS", "1", "String", "Other group samples with mutation-like alleles"),
)


@dataclass(frozen=True)
class VcfHeader:
    meta_lines: Tuple[str, ...]
    column_line: str
    sample_ids: Tuple[str, ...]


def parse_header(lines: Iterator[str]) -> Tuple[VcfHeader, int]:
    """Consume header lines up to and including ``#CHROM``.

    Returns the header and the number of lines consumed. Lines before the
    column header are kept verbatim, malformed or not.
    """
    meta: List[str] = []
    n = 0
    for line in lines:
        n += 1
        text = line.rstrip("\r\n")
        if text.startswith("#CHROM"):
            cols = text.split("\t")
            if len(cols) <= N_FIXED_COLUMNS:
                raise ValueError(
                    f"VCF column header (line {n}) lists no sample columns; "
                    "at least one sample is required."
                )
            return VcfHeader(tuple(meta), text, tuple(cols[N_FIXED_COLUMNS:])), n
        meta.append(text)
    raise ValueError("VCF header has no #CHROM column line.")


def parse_locus(line: str, line_number: int = 0) -> Locus:
    cols = line.rstrip("\r\n").split("\t")
    if len(cols) < 8:
        raise ValueError(
            f"Malformed VCF record at line {line_number}: expected at least 8 tab-separated "
            f"columns, found {len(cols)}"
        )
    fmt = cols[8] if len(cols) > 8 else ""
    alts = tuple(a for a in cols[4].split(",") if a not in ("", "."))
    return Locus(
        chrom=cols[0],
        pos=cols[1],
        id=cols[2],
        ref=cols[3],
        alts=alts,
        qual=cols[5],
        filter=cols[6],
        info=cols[7],
        format=fmt,
        samples=tuple(cols[N_FIXED_COLUMNS:]),
        line_number=line_number,
    )


def iter_data_lines(lines: Iterable[str], start: int) -> Iterator[Tuple[int, str]]:
    """Yield (line number, line) for non-blank data lines."""
    for n, line in enumerate(lines, start=start + 1):
        if not line.strip():
            continue
        yield n, line


@contextmanager
def open_vcf(path: str | Path) -> Iterator[Tuple[VcfHeader, Iterator[Tuple[int, str]]]]:
    fh = open_textmaybe_gzip(path, "rt")
    try:
        lines = iter(fh)
        header, consumed = parse_header(lines)
        yield header, iter_data_lines(lines, consumed)
    finally:
        fh.close()


def passes_filter_selection(locus: Locus, config: ScreenConfig) -> bool:
    """Apply --filter (skip listed FILTER values) and --match (keep only listed values)."""
    tags = set(locus.filter.split(";"))
    if config.skip_filters and tags & config.skip_filters:
        return False
    if config.match_filters and not tags & config.match_filters:
        return False
    return True


def build_output_header(
    header: VcfHeader,
    config: ScreenConfig,
    *,
    version: str,
    command_line: str = "",
) -> str:
    """Input meta-lines plus the FILTER/INFO definitions this run can produce.

    Input definitions of the same IDs and earlier privmut source lines are
    replaced, so screening a privmut output does not repeat them.
    """
    filters = [
        (kind, description)
        for kind, description in FILTER_DESCRIPTIONS.items()
        if config.is_masked(kind) and config.check_enabled(kind)
    ]
    definitions = list(_INFO_DEFINITIONS)
    if config.grouping:
        definitions.extend(_GROUP_INFO_DEFINITIONS)

    redeclared = {("FILTER", kind) for kind, _ in filters}
    redeclared.update(("INFO", d[0]) for d in definitions)

    lines: List[str] = []
    for line in header.meta_lines:
        if line.startswith(_SOURCE_PREFIX):
            continue
        m = _DEFINITION_RE.match(line)
        if m and (m.group(1), m.group(2)) in redeclared:
            continue
        lines.append(line)

    for kind, description in filters:
        lines.append(f'##FILTER=<ID={kind},Description="{description}">')
    for tag, number, typ, description in definitions:
        lines.append(f'##INFO=<ID={tag},Number={number},Type={typ},Description="{description}">')

    source = f"{_SOURCE_PREFIX}{version}"
    if command_line:
        source += f" {command_line}"
    lines.append(source)

    lines.append("\t".join(["#CHROM", "POS", "ID", "REF", "ALT", "QUAL", "FILTER", "INFO", "FORMAT", OUTPUT_SAMPLE]))
    return "\n".join(lines) + "\n"


def format_record(locus: Locus, decision: Decision) -> str:
    """Serialize an emitted decision; the first candidate's genotype field is the sample column."""
    if not decision.emitted:
        raise ValueError(f"Cannot serialize a dropped allele at {locus.describe()}")
    filter_value = ";".join(sorted(decision.filters)) if decision.filters else locus.filter
    cols = [
        locus.chrom,
        locus.pos,
        ";".join(sorted(decision.candidates)),
        locus.ref,
        ",".join(locus.alts) if locus.alts else ".",
        locus.qual,
        filter_value,
        decision.info,
        locus.format,
        decision.sample_field,
    ]
    return "\t".join(cols) + "\n"


class _BgzfTextWriter:
    def __init__(self, path: str | Path) -> None:
        self._fh = pysam.BGZFile(str(path), "wb")

    def write(self, text: str) -> int:
        return self._fh.write(text.encode("utf-8"))

    def flush(self) -> None:
        self._fh.flush()

    def close(self) -> None:
        self._fh.close()


@contextmanager
def open_output(path: Optional[str | Path], *, tabix: bool = False) -> Iterator[TextIO]:
    """Output sink: stdout when ``path`` is None or '-', BGZF when it ends in .gz."""
    if path is None or str(path) == "-":
        yield sys.stdout
        sys.stdout.flush()
        return

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    if p.suffix == ".gz":
        fh = _BgzfTextWriter(p)
    else:
        fh = open(p, "wt", encoding="utf-8")
    try:
        yield fh  # type: ignore[misc]
    finally:
        fh.close()

    if tabix:
        if p.suffix != ".gz":
            logger.warning("--tabix requires a .gz output; skipping index for %s", p)
        else:
            pysam.tabix_index(str(p), preset="vcf", force=True)
            logger.info("Tabix index written: %s.tbi", p)
