import json
import subprocess
import sys
from pathlib import Path

import pysam

from privmut.toy_data import make_toy_data

from conftest import record, vcf_text


def _run_cli(args: list[str]) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "privmut"] + args,
        check=False,
        capture_output=True,
        text=True,
    )


def test_quickstart_output() -> None:
    cp = _run_cli(["quickstart"])
    assert cp.returncode == 0
    assert "privmut screen" in cp.stdout
    assert "--mask-only" in cp.stdout


def test_make_toy_data_dry_run_does_not_write(tmp_path: Path) -> None:
    outdir = tmp_path / "toy"
    cp = _run_cli(["make-toy-data", "--outdir", str(outdir), "--dry-run"])
    assert cp.returncode == 0
    assert "Would write" in cp.stdout
    assert not outdir.exists()


def test_make_toy_data_and_screen(tmp_path: Path) -> None:
    toy_dir = tmp_path / "toy"
    cp = _run_cli(["make-toy-data", "--outdir", str(toy_dir)])
    assert cp.returncode == 0
    assert (toy_dir / "cohort.vcf.gz.tbi").exists()

    out = tmp_path / "mutations.vcf.gz"
    cp = _run_cli(
        [
            "screen",
            "--vcf",
            str(toy_dir / "cohort.vcf.gz"),
            "--group-file",
            str(toy_dir / "groups.txt"),
            "--no-ref-mut",
            "--min-supp-depth",
            "5",
            "--output",
            str(out),
            "--tabix",
            "--no-progress",
        ]
    )
    assert cp.returncode == 0, cp.stderr

    with pysam.VariantFile(str(out)) as vf:
        assert list(vf.header.samples) == ["MUTATION"]
        ids = [rec.id for rec in vf]
    assert ids == ["S1", "S2;S3", "S6"]


def test_report_dir_writes_report(tmp_path: Path) -> None:
    toy = make_toy_data(outdir=tmp_path / "toy")
    report_dir = tmp_path / "report"
    cp = _run_cli(
        [
            "screen",
            "--vcf",
            toy["cohort_vcf_plain"],
            "--output",
            str(tmp_path / "out.vcf"),
            "--max-shared-freq",
            "2",
            "--report-dir",
            str(report_dir),
            "--no-progress",
        ]
    )
    assert cp.returncode == 0, cp.stderr
    assert (report_dir / "report.html").exists()
    assert (report_dir / "plots" / "decision_counts.png").exists()
    summary = json.loads((report_dir / "summary.json").read_text(encoding="utf-8"))
    assert summary["dropped_by_reason"]["SharedTooFrequent"] >= 1


def test_missing_depth_field_exit_status(tmp_path: Path) -> None:
    vcf = tmp_path / "dp.vcf"
    vcf.write_text(
        vcf_text(["S1", "S2"], [record(100, "A", "G", ["0/1:30", "0/0:20"], fmt="GT:DP")]),
        encoding="utf-8",
    )
    cp = _run_cli(["screen", "--vcf", str(vcf), "--no-progress"])
    assert cp.returncode == 3
    assert "Error:" in cp.stderr
    assert "GT:DP" in cp.stderr


def test_nonexistent_vcf_is_a_usage_error(tmp_path: Path) -> None:
    cp = _run_cli(["screen", "--vcf", str(tmp_path / "nope.vcf")])
    assert cp.returncode == 2
    assert "Path does not exist" in cp.stderr


def test_tabix_without_gz_output(tmp_path: Path) -> None:
    toy = make_toy_data(outdir=tmp_path / "toy")
    cp = _run_cli(
        ["screen", "--vcf", toy["cohort_vcf_plain"], "--output", str(tmp_path / "o.vcf"), "--tabix"]
    )
    assert cp.returncode == 1
    assert "--tabix" in cp.stderr


def test_bgz_input_is_decompressed(tmp_path: Path) -> None:
    toy = make_toy_data(outdir=tmp_path / "toy")
    bgz = tmp_path / "cohort.vcf.bgz"
    pysam.tabix_compress(toy["cohort_vcf_plain"], str(bgz), force=True)

    out = tmp_path / "out.vcf"
    cp = _run_cli(["screen", "--vcf", str(bgz), "--no-ref-mut", "--output", str(out), "--no-progress"])
    assert cp.returncode == 0, cp.stderr
    ids = [line.split("\t")[2] for line in out.read_text(encoding="utf-8").splitlines() if not line.startswith("#")]
    assert "S1" in ids
