from privmut.annotations import (
    build_info,
    depth_histogram,
    format_ratio,
    split_background,
)
from privmut.classifier import classify_locus
from privmut.models import ScreenConfig

SAMPLES = ("S1", "S2", "S3", "S4")


def test_depth_histogram_groups_samples_by_depth():
    hist = depth_histogram({"a": 1, "b": 2, "c": 1}, ["c", "b", "a"])
    assert hist.depths == (1, 2)
    assert hist.freqs == (2, 1)
    assert hist.total_depth == 4
    assert hist.format() == ("1,2", "2,1", "(a,c),(b)")


def test_empty_histogram_is_falsy():
    assert not depth_histogram({}, [])


def test_format_ratio():
    assert format_ratio(0.5) == "0.5"
    assert format_ratio(1.0) == "1"
    assert format_ratio(2 / 3) == "0.6667"
    assert format_ratio(0.375) == "0.375"


def test_private_mutation_info(make_locus):
    locus = make_locus(["0/1:10,6", "0/0:20,1", "0/0:15,0", "./.:."])
    config = ScreenConfig()
    depths, partitions = classify_locus(locus, SAMPLES, config)
    info = build_info(locus, partitions[1], depths, config)
    assert info == "NMISS=1;SMISS=S4;FPD=1;FPFQ=1;FPS=(S2);MA=G;MAR=0.375"


def test_sentinels_without_missing_or_background(make_locus):
    locus = make_locus(["0/1:10,6", "0/0:20,0", "0/0:15,0", "0/0:12,0"])
    config = ScreenConfig()
    depths, partitions = classify_locus(locus, SAMPLES, config)
    info = build_info(locus, partitions[1], depths, config)
    assert info == "NMISS=0;SMISS=NA;FPD=0;FPFQ=0;FPS=NA;MA=G;MAR=0.375"


def test_shared_info_replaces_ratio(make_locus):
    locus = make_locus(["0/0:10,0", "0/1:12,5", "0/1:9,4", "0/0:12,0"])
    config = ScreenConfig()
    depths, partitions = classify_locus(locus, SAMPLES, config)
    info = build_info(locus, partitions[1], depths, config)
    assert "MAR=" not in info
    assert info.endswith("MA=G;Shared=2(0/1:12,5|0/1:9,4)")


def test_append_keeps_existing_info(make_locus):
    config = ScreenConfig(append_info=True)
    locus = make_locus(["0/1:10,6", "0/0:20,0", "0/0:15,0", "0/0:12,0"], info="DP=63")
    depths, partitions = classify_locus(locus, SAMPLES, config)
    assert build_info(locus, partitions[1], depths, config).startswith("DP=63;NMISS=0")

    empty = make_locus(["0/1:10,6", "0/0:20,0", "0/0:15,0", "0/0:12,0"], info=".")
    depths, partitions = classify_locus(empty, SAMPLES, config)
    assert build_info(empty, partitions[1], depths, config).startswith("NMISS=0")


def test_unknown_group_is_rendered_as_dot(make_locus):
    config = ScreenConfig(group_map={"S2": "g1", "S3": "g1"})
    locus = make_locus(["0/1:10,6", "0/0:20,1", "0/0:15,0", "0/0:12,0"])
    depths, partitions = classify_locus(locus, SAMPLES, config)
    info = build_info(locus, partitions[1], depths, config)
    assert info.endswith("GRPID=.")


def test_split_background_by_group(make_locus):
    config = ScreenConfig(group_map={"S1": "g1", "S2": "g1", "S3": "g2", "S4": "g2"})
    locus = make_locus(["0/1:10,6", "0/0:20,1", "0/0:15,2", "0/0:12,0"])
    _, partitions = classify_locus(locus, SAMPLES, config)
    compare, same_group = split_background(partitions[1], config)
    assert compare == ["S3"]
    assert same_group == ["S2"]
