"""
Shared fixtures for privmut tests.
"""

from pathlib import Path
from typing import Callable, Sequence

import pytest

from privmut.models import Locus

SAMPLES = ("S1", "S2", "S3", "S4")

VCF_META = [
    "##fileformat=VCFv4.2",
    '##FORMAT=<ID=GT,Number=1,Type=String,Description="Genotype">',
    '##FORMAT=<ID=AD,Number=R,Type=Integer,Description="Allelic depths">',
]


@pytest.fixture
def make_locus() -> Callable[..., Locus]:
    """Build a Locus from per-sample genotype strings."""

    def _make(
        samples: Sequence[str],
        *,
        fmt: str = "GT:AD",
        ref: str = "A",
        alts: Sequence[str] = ("G",),
        filter: str = "PASS",
        info: str = ".",
        qual: str = "50",
        chrom: str = "chr1",
        pos: str = "100",
    ) -> Locus:
        return Locus(
            chrom=chrom,
            pos=pos,
            id=".",
            ref=ref,
            alts=tuple(alts),
            qual=qual,
            filter=filter,
            info=info,
            format=fmt,
            samples=tuple(samples),
        )

    return _make


def vcf_text(sample_ids: Sequence[str], records: Sequence[str]) -> str:
    header = "\t".join(
        ["#CHROM", "POS", "ID", "REF", "ALT", "QUAL", "FILTER", "INFO", "FORMAT", *sample_ids]
    )
    return "\n".join(VCF_META + [header] + list(records)) + "\n"


def record(pos: int, ref: str, alt: str, samples: Sequence[str], *, fmt: str = "GT:AD", filt: str = "PASS", info: str = ".") -> str:
    return "\t".join(["chr1", str(pos), ".", ref, alt, "50", filt, info, fmt, *samples])


@pytest.fixture
def write_vcf(tmp_path: Path) -> Callable[..., Path]:
    def _write(records: Sequence[str], *, sample_ids: Sequence[str] = SAMPLES, name: str = "input.vcf") -> Path:
        path = tmp_path / name
        path.write_text(vcf_text(sample_ids, records), encoding="utf-8")
        return path

    return _write
