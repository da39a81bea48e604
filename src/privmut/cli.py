from __future__ import annotations

import argparse
import json
import logging
import shlex
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .cohort import load_group_map
from .depths import MissingDepthField
from .models import FILTER_DESCRIPTIONS, ScreenConfig
from .report import render_report
from .screen import screen_vcf
from .toy_data import make_toy_data
from .utils import ensure_outdir, parse_int_csv, write_json
from .validation import check_input_vcf, check_output_path

EXIT_ERROR = 1
EXIT_MISSING_DEPTH = 3


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logfile)
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)


def _path_exists(p: str) -> str:
    if not Path(p).exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {p}")
    return p


def _log_path(outdir: Path, name: str) -> Path:
    return outdir / "logs" / name


def _handle_error(err: Exception, *, log_path: Optional[Path] = None, status: int = EXIT_ERROR) -> int:
    if isinstance(err, MissingDepthField):
        msg = f"Error: {err}"
    else:
        msg = f"{err.__class__.__name__}: {err}"

    sys.stderr.write(msg + "\n")
    if log_path is not None:
        sys.stderr.write(f"See log: {log_path}\n")
    return status


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="privmut",
        description=(
            "privmut: screen multi-sample VCFs for candidate private mutations, i.e. alleles "
            "supported in one or a few samples and absent from the other compare samples."
        ),
    )
    p.add_argument("--version", action="version", version=f"privmut {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # quickstart
    # -----------------
    sub.add_parser(
        "quickstart",
        help="Print ready-to-run recipes for common scenarios.",
    )

    # -----------------
    # make-toy-data
    # -----------------
    t = sub.add_parser(
        "make-toy-data",
        help="Generate a tiny six-sample cohort VCF and group file for demos/tests.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--dry-run", action="store_true", help="Validate paths without writing files.")

    # -----------------
    # screen
    # -----------------
    s = sub.add_parser(
        "screen",
        help="Screen a multi-sample VCF for candidate private mutations.",
    )
    s.add_argument(
        "--vcf",
        required=True,
        type=_path_exists,
        help="Input VCF (.vcf/.vcf.gz) with per-sample allele depths (AD; NR,NV; DR,DV,RR,RV; or PR).",
    )
    s.add_argument("-o", "--output", default=None, help="Output VCF (default: stdout; .gz => bgzip).")
    s.add_argument("--tabix", action="store_true", help="Tabix-index a bgzipped --output.")
    s.add_argument(
        "-a",
        "--append-info",
        action="store_true",
        help="Append new INFO fields to the original INFO instead of replacing it.",
    )
    s.add_argument(
        "-f",
        "--filter",
        nargs="+",
        default=[],
        metavar="TAG",
        help="Skip loci whose FILTER contains any of these values (e.g. LowQual SNPFilter).",
    )
    s.add_argument(
        "-M",
        "--match",
        nargs="+",
        default=[],
        metavar="TAG",
        help="Only retain loci whose FILTER contains one of these values (e.g. PASS).",
    )
    s.add_argument("-q", "--quality", type=float, default=None, help="Skip loci with QUAL below this.")

    # Groups and controls
    s.add_argument(
        "-g",
        "--group-file",
        type=_path_exists,
        default=None,
        help="'sample_id group_id' per line; screen group-specific mutations.",
    )
    s.add_argument(
        "--controls",
        nargs="+",
        default=[],
        metavar="SAMPLE",
        help="Control samples: no missing calls allowed, and mutations shared with them are removed.",
    )
    s.add_argument(
        "--max-shared-freq",
        type=int,
        default=None,
        help="Keep mutations shared by at most this many samples (default: shared mutations are not checked).",
    )

    # Candidate support
    s.add_argument("--min-supp-depth", type=int, default=0, help="Minimum supporting reads.")
    s.add_argument("--min-supp-plus", type=int, default=0, help="Minimum supporting reads on the plus strand.")
    s.add_argument("--min-supp-minus", type=int, default=0, help="Minimum supporting reads on the minus strand.")
    s.add_argument("--min-lib-depth", type=int, default=0, help="Minimum supporting reads in each library.")
    s.add_argument("--min-lib-cnt", type=int, default=0, help="Minimum number of supporting libraries.")
    s.add_argument(
        "--min-split-cnt",
        type=int,
        default=None,
        help="Minimum supporting split reads (SR field, e.g. Manta).",
    )
    s.add_argument("--no-ref-mut", action="store_true", help="Do not report mutations to the reference allele.")

    # Compare samples
    s.add_argument("--max-cmp-miss", type=int, default=None, help="Maximum missing compare samples.")
    s.add_argument(
        "--max-cmp-depth",
        type=int,
        default=1,
        help="Samples with more mutation-like reads than this are candidates; others are compare samples.",
    )
    s.add_argument(
        "--max-cmp-perc",
        type=float,
        default=None,
        help="Percentage alternative to --max-cmp-depth (takes precedence when set).",
    )
    s.add_argument(
        "--max-cmp-total",
        type=int,
        default=None,
        help="Maximum total mutation-like reads across all compare samples.",
    )
    s.add_argument(
        "--max-cmp-freq",
        default=None,
        help="Comma-separated maximum number of compare samples with 1, 2, ... mutation-like reads, e.g. '3,1'.",
    )

    s.add_argument(
        "--mask-only",
        nargs="+",
        default=[],
        choices=list(FILTER_DESCRIPTIONS),
        metavar="KIND",
        help="Tag FILTER instead of removing records for these kinds: " + ", ".join(FILTER_DESCRIPTIONS),
    )
    s.add_argument("--min-indel-len", type=int, default=None, help="Minimum indel length.")
    s.add_argument("--max-indel-len", type=int, default=None, help="Maximum indel length.")

    # Run
    s.add_argument("--threads", type=int, default=1, help="Worker processes for screening.")
    s.add_argument("--chunk-size", type=int, default=1000, help="Records per worker task.")
    s.add_argument("--summary-json", default=None, help="Write run statistics as JSON.")
    s.add_argument(
        "--report-dir",
        default=None,
        help="Write report.html, plots, summary.json and logs into this directory.",
    )
    s.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    s.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    return p


def config_from_args(args: argparse.Namespace) -> ScreenConfig:
    group_map = load_group_map(args.group_file) if args.group_file else None
    return ScreenConfig(
        min_qual=args.quality,
        min_supp_depth=int(args.min_supp_depth),
        min_supp_plus=int(args.min_supp_plus),
        min_supp_minus=int(args.min_supp_minus),
        min_lib_cnt=int(args.min_lib_cnt),
        min_lib_depth=int(args.min_lib_depth),
        min_split_reads=args.min_split_cnt,
        max_cmp_missing=args.max_cmp_miss,
        max_cmp_depth=int(args.max_cmp_depth),
        max_cmp_perc=args.max_cmp_perc,
        max_cmp_total=args.max_cmp_total,
        max_cmp_freq=parse_int_csv(args.max_cmp_freq),
        max_shared_freq=args.max_shared_freq,
        group_map=group_map,
        exclude_ref=bool(args.no_ref_mut),
        controls=frozenset(args.controls),
        mask_only=frozenset(args.mask_only),
        min_indel_len=args.min_indel_len,
        max_indel_len=args.max_indel_len,
        append_info=bool(args.append_info),
        skip_filters=frozenset(args.filter),
        match_filters=frozenset(args.match),
    )


# -----------------
# Command handlers
# -----------------

def cmd_quickstart() -> int:
    lines = [
        "privmut quickstart (copy/paste):",
        "",
        "1) Private mutations in a cohort (candidates need >= 3 reads, compare samples <= 1):",
        "   privmut screen \\",
        "     --vcf cohort.vcf.gz \\",
        "     --min-supp-depth 3 --max-cmp-depth 1 \\",
        "     --output mutations.vcf",
        "",
        "2) Group-specific mutations shared by up to 3 samples, controls required:",
        "   privmut screen \\",
        "     --vcf cohort.vcf.gz \\",
        "     --group-file groups.txt \\",
        "     --max-shared-freq 3 \\",
        "     --controls parent1 parent2 \\",
        "     --output group_mutations.vcf.gz --tabix",
        "",
        "3) Keep everything, tag failures in FILTER instead of removing them:",
        "   privmut screen \\",
        "     --vcf cohort.vcf.gz \\",
        "     --min-supp-depth 3 --max-cmp-miss 2 --max-cmp-total 5 \\",
        "     --mask-only LowDepth HighMissing NonSpecific \\",
        "     --report-dir screen_report/",
        "",
        "Tip: run 'privmut make-toy-data --outdir toy/' to try these on a tiny cohort.",
    ]
    print("\n".join(lines))
    return 0


def cmd_make_toy_data(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    if args.dry_run:
        print(f"Would write toy data into: {outdir}")
        return 0

    summary = make_toy_data(outdir=outdir)
    print(json.dumps(summary, indent=2))
    return 0


def cmd_screen(args: argparse.Namespace, *, command_line: str = "") -> int:
    report_dir = Path(args.report_dir).expanduser().resolve() if args.report_dir else None
    log_path = _log_path(report_dir, "screen.log") if report_dir is not None else None
    _setup_logging(args.verbose, logfile=log_path)

    logger = logging.getLogger("privmut")
    logger.info("privmut %s", __version__)

    try:
        check_input_vcf(args.vcf)
        check_output_path(args.output, tabix=bool(args.tabix))
        config = config_from_args(args)

        summary_json = args.summary_json
        if summary_json is None and report_dir is not None:
            summary_json = str(ensure_outdir(report_dir) / "summary.json")

        summary = screen_vcf(
            vcf_path=args.vcf,
            config=config,
            output=args.output,
            version=__version__,
            command_line=command_line,
            threads=int(args.threads),
            chunk_size=int(args.chunk_size),
            tabix=bool(args.tabix),
            progress=not bool(args.no_progress),
            summary_json=summary_json,
        )

        if report_dir is not None:
            if args.summary_json is not None:
                write_json(report_dir / "summary.json", summary)
            print(str(render_report(outdir=report_dir, version=__version__, summary=summary)), file=sys.stderr)
        return 0
    except MissingDepthField as e:
        return _handle_error(e, log_path=log_path, status=EXIT_MISSING_DEPTH)
    except Exception as e:
        return _handle_error(e, log_path=log_path)


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "quickstart":
        return cmd_quickstart()
    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)
    if args.cmd == "screen":
        return cmd_screen(args, command_line="privmut " + " ".join(shlex.quote(a) for a in argv))

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
