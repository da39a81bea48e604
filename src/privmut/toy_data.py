from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple

import pysam

from .utils import ensure_outdir, write_json

TOY_SAMPLES = ("S1", "S2", "S3", "S4", "S5", "S6")
TOY_GROUPS = {"S1": "g1", "S2": "g1", "S3": "g1", "S4": "g2", "S5": "g2", "S6": "g2"}

# (pos, ref, alt, per-sample AD); AD (0, 0) makes a sample missing.
_TOY_SITES: List[Tuple[int, str, str, Tuple[Tuple[int, int], ...]]] = [
    # private to S1, noise in S3 (same group) and S5 (other group)
    (100, "A", "G", ((10, 6), (20, 0), (15, 1), (18, 0), (22, 1), (19, 0))),
    # shared by S2 and S3
    (200, "C", "T", ((20, 0), (12, 5), (9, 4), (20, 0), (20, 0), (20, 0))),
    # present everywhere: not group-specific
    (300, "G", "A", ((10, 4), (10, 4), (10, 4), (10, 4), (10, 4), (10, 4))),
    # private to S6, S5 uncovered
    (400, "T", "C", ((16, 0), (17, 0), (15, 0), (18, 0), (0, 0), (14, 7))),
    # weakly supported in S4
    (500, "A", "C", ((25, 0), (24, 0), (26, 0), (30, 3), (27, 0), (22, 0))),
]


def _genotype(ad: Tuple[int, int]) -> Tuple[object, object]:
    ref, alt = ad
    if ref + alt == 0:
        return (None, None)
    if alt == 0:
        return (0, 0)
    if ref == 0:
        return (1, 1)
    return (0, 1)


def make_toy_data(*, outdir: str | Path) -> Dict[str, str]:
    """Create a tiny six-sample cohort VCF and group file for quick demos/tests.

    The outputs include:
    - cohort.vcf (plain text)
    - cohort.vcf.gz (+ .tbi)
    - groups.txt

    Returns
    -------
    dict
        Paths to the generated files.
    """
    outdir_p = ensure_outdir(outdir)
    contig = "chr1"

    header = pysam.VariantHeader()
    header.add_meta("fileformat", "VCFv4.2")
    header.contigs.add(contig, length=1000)
    header.formats.add("GT", number=1, type="String", description="Genotype")
    header.formats.add(
        "AD", number="R", type="Integer", description="Allelic depths for the ref and alt alleles"
    )
    for sample in TOY_SAMPLES:
        header.add_sample(sample)

    vcf_path = outdir_p / "cohort.vcf"
    with pysam.VariantFile(str(vcf_path), "w", header=header) as vcf:
        for pos, ref, alt, ads in _TOY_SITES:
            rec = vcf.new_record(
                contig=contig,
                start=pos - 1,
                stop=pos,
                alleles=(ref, alt),
                qual=50,
                filter="PASS",
            )
            for sample, ad in zip(TOY_SAMPLES, ads):
                rec.samples[sample]["GT"] = _genotype(ad)
                rec.samples[sample]["AD"] = ad
            vcf.write(rec)

    vcf_gz = outdir_p / "cohort.vcf.gz"
    pysam.tabix_compress(str(vcf_path), str(vcf_gz), force=True)
    pysam.tabix_index(str(vcf_gz), preset="vcf", force=True)

    group_file = outdir_p / "groups.txt"
    lines = ["# sample group"] + [f"{s}\t{g}" for s, g in TOY_GROUPS.items()]
    group_file.write_text("\n".join(lines) + "\n", encoding="utf-8")

    summary = {
        "cohort_vcf": str(vcf_gz),
        "cohort_vcf_plain": str(vcf_path),
        "group_file": str(group_file),
        "outdir": str(outdir_p),
    }

    write_json(outdir_p / "toy_summary.json", summary)
    return summary
