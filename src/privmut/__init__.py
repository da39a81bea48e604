"""privmut: screen multi-sample VCFs for candidate private mutations.

Public API is intentionally small; most users should use the CLI:

    privmut screen --vcf cohort.vcf.gz --output mutations.vcf

"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "1.5.0"
