from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .vcf_io import VcfHeader

logger = logging.getLogger(__name__)


def check_input_vcf(vcf_path: str | Path) -> None:
    """Ensure the input VCF exists and looks like a VCF; raise ValueError with fix instructions."""
    vcf = Path(vcf_path)
    if not vcf.is_file():
        raise ValueError(f"Input VCF not found: {vcf}")
    if vcf.suffixes[-2:] == [".vcf", ".gz"] or vcf.suffix == ".bgz":
        return
    if vcf.suffix == ".vcf":
        logger.info("VCF is uncompressed (.vcf). This is supported; bgzip saves disk for large cohorts.")
        return
    logger.warning("Input %s does not end in .vcf or .vcf.gz; reading it as plain VCF text.", vcf)


def check_output_path(output: Optional[str], *, tabix: bool) -> None:
    if tabix and (output is None or output == "-" or not output.endswith(".gz")):
        raise ValueError(
            "--tabix needs a bgzipped output file. Use e.g. --output mutations.vcf.gz --tabix"
        )


def check_header(header: VcfHeader) -> None:
    """Warn about header problems that do not stop screening."""
    if not any(line.startswith("##fileformat=") for line in header.meta_lines):
        logger.warning("VCF header has no ##fileformat line; continuing anyway.")
    if len(set(header.sample_ids)) != len(header.sample_ids):
        raise ValueError("VCF column header contains duplicate sample ids.")
