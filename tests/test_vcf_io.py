import pysam
import pytest

from privmut.models import Decision, ScreenConfig
from privmut.vcf_io import (
    build_output_header,
    format_record,
    open_output,
    open_vcf,
    parse_header,
    parse_locus,
    passes_filter_selection,
)

from conftest import record, vcf_text


def test_parse_header_keeps_meta_lines():
    text = vcf_text(["S1", "S2"], [])
    header, consumed = parse_header(iter(text.splitlines(True)))
    assert header.sample_ids == ("S1", "S2")
    assert header.meta_lines[0] == "##fileformat=VCFv4.2"
    assert consumed == 4


def test_header_without_samples_is_rejected():
    lines = ["##fileformat=VCFv4.2\n", "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\n"]
    with pytest.raises(ValueError, match="no sample columns"):
        parse_header(iter(lines))


def test_header_without_column_line_is_rejected():
    with pytest.raises(ValueError, match="#CHROM"):
        parse_header(iter(["##fileformat=VCFv4.2\n"]))


def test_parse_locus():
    locus = parse_locus(record(100, "A", "G,T", ["0/1:10,6,0", "0/0:9,0,0"]), 7)
    assert locus.alleles == ("A", "G", "T")
    assert locus.samples == ("0/1:10,6,0", "0/0:9,0,0")
    assert locus.line_number == 7
    assert locus.tag_index == {"GT": 0, "AD": 1}


def test_short_record_is_rejected():
    with pytest.raises(ValueError, match="line 12"):
        parse_locus("chr1\t100\t.\tA", 12)


def test_open_vcf_skips_blank_lines(write_vcf):
    path = write_vcf([record(100, "A", "G", ["0/1:10,6"] * 4), "", record(200, "C", "T", ["0/0:5,0"] * 4)])
    with open_vcf(path) as (header, lines):
        numbers = [n for n, _ in lines]
    assert header.sample_ids == ("S1", "S2", "S3", "S4")
    assert numbers == [5, 7]


def test_filter_selection(make_locus):
    locus = make_locus(["0/1:10,6"], filter="LowQual;q10")
    assert passes_filter_selection(locus, ScreenConfig())
    assert not passes_filter_selection(locus, ScreenConfig(skip_filters=frozenset({"q10"})))
    assert passes_filter_selection(locus, ScreenConfig(match_filters=frozenset({"LowQual"})))
    assert not passes_filter_selection(locus, ScreenConfig(match_filters=frozenset({"PASS"})))


def test_output_header_lists_only_maskable_filters():
    header, _ = parse_header(iter(vcf_text(["S1"], []).splitlines(True)))
    config = ScreenConfig(min_supp_depth=3, mask_only=frozenset({"LowDepth", "StrandBias"}))
    text = build_output_header(header, config, version="1.5.0", command_line="privmut screen")
    lines = text.splitlines()

    assert '##FILTER=<ID=LowDepth,Description="Low depth of mutation allele">' in lines
    assert not any("ID=StrandBias" in line for line in lines)
    assert not any("ID=GRPID" in line for line in lines)
    assert "##source=privmut 1.5.0 privmut screen" in lines
    assert lines[-1].endswith("FORMAT\tMUTATION")


def test_output_header_with_groups():
    header, _ = parse_header(iter(vcf_text(["S1"], []).splitlines(True)))
    text = build_output_header(header, ScreenConfig(group_map={"S1": "g1"}), version="x")
    assert "##INFO=<ID=GRPID,Number=1,Type=String" in text


def test_format_record(make_locus):
    locus = make_locus(["0/1:10,6", "0/1:8,5"], filter="PASS")
    decision = Decision(
        allele=1,
        action="emit",
        info="MA=G",
        candidates=("S2", "S1"),
        sample_field="0/1:8,5",
    )
    cols = format_record(locus, decision).rstrip("\n").split("\t")
    assert cols[2] == "S1;S2"
    assert cols[6] == "PASS"
    assert cols[7] == "MA=G"
    assert cols[9] == "0/1:8,5"

    masked = Decision(allele=1, action="emit", filters=("Shared", "LowDepth"), info="MA=G", candidates=("S1",), sample_field="x")
    assert format_record(locus, masked).split("\t")[6] == "LowDepth;Shared"


def test_dropped_decision_cannot_be_written(make_locus):
    with pytest.raises(ValueError):
        format_record(make_locus(["0/1:10,6"]), Decision.drop(1, "LowDepth"))


def test_bgzf_output_with_tabix(tmp_path):
    header, _ = parse_header(iter(vcf_text(["S1"], []).splitlines(True)))
    out = tmp_path / "out.vcf.gz"
    with open_output(out, tabix=True) as fh:
        fh.write(build_output_header(header, ScreenConfig(), version="x"))
        fh.write(record(100, "A", "G", ["0/1:10,6"]).replace("\t.\tA", "\tS1\tA", 1) + "\n")

    assert (tmp_path / "out.vcf.gz.tbi").exists()
    with pysam.VariantFile(str(out)) as vf:
        recs = list(vf)
    assert [r.id for r in recs] == ["S1"]


def test_open_vcf_sniffs_compression(write_vcf, tmp_path):
    plain = write_vcf([record(100, "A", "G", ["0/1:10,6"] * 4)])
    bgz = tmp_path / "input.vcf.bgz"
    pysam.tabix_compress(str(plain), str(bgz), force=True)
    with open_vcf(bgz) as (header, lines):
        assert header.sample_ids == ("S1", "S2", "S3", "S4")
        assert [n for n, _ in lines] == [5]


def test_output_header_replaces_existing_definitions():
    first, _ = parse_header(iter(vcf_text(["S1"], []).splitlines(True)))
    config = ScreenConfig(min_supp_depth=3, mask_only=frozenset({"LowDepth"}))
    once = build_output_header(first, config, version="1.5.0", command_line="privmut screen")

    again, _ = parse_header(iter(once.splitlines(True)))
    twice = build_output_header(again, config, version="1.5.0", command_line="privmut screen")
    lines = twice.splitlines()

    assert sum(line.startswith("##INFO=<ID=MA,") for line in lines) == 1
    assert sum(line.startswith("##FILTER=<ID=LowDepth,") for line in lines) == 1
    assert sum(line.startswith("##source=privmut ") for line in lines) == 1
    assert lines[0] == "##fileformat=VCFv4.2"
    assert '##FORMAT=<ID=AD,Number=R,Type=Integer,Description="Allelic depths">' in lines
