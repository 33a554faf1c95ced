import pytest

from history_ingest.query_pack import (
    BULK_CATALOG,
    build_broad_query,
    build_topic_query,
    build_type_query,
    build_youtube_batch_query,
    select_catalog,
)


def test_topic_query_unions_five_relations():
    q = build_topic_query("Q12544")
    for pattern in (
        "wdt:P31/wdt:P279* wd:Q12544",
        "wdt:P921 wd:Q12544",
        "wdt:P361 wd:Q12544",
        "wdt:P17 wd:Q12544",
        "wdt:P276 wd:Q12544",
    ):
        assert pattern in q
    assert q.count("UNION") == 4


def test_topic_query_requires_geometry_and_date():
    q = build_topic_query("Q12544", limit=25)
    assert "wdt:P625 ?coord" in q
    assert "wdt:P585 ?date" in q
    assert "OPTIONAL { ?event wdt:P18 ?image. }" in q
    assert "schema:about ?event" in q
    assert "OPTIONAL { ?event wdt:P31 ?type. }" in q
    assert q.endswith("LIMIT 25")


def test_ids_are_validated_before_interpolation():
    with pytest.raises(ValueError):
        build_topic_query("Q1. } DROP")
    with pytest.raises(ValueError):
        build_type_query("battle")
    assert "wd:Q5" in build_topic_query(" q5 ")


def test_type_query_year_filters():
    q = build_type_query("Q178561", 1500, 1800, 400)
    assert "FILTER(YEAR(?date) >= 1500)" in q
    assert "FILTER(YEAR(?date) < 1800)" in q
    assert "wdt:P31/wdt:P279* wd:Q178561" in q
    assert "wdt:P18 ?image" in q
    assert "{ ?event wdt:P585 ?date. } UNION { ?event wdt:P580 ?date. }" in q
    assert "OPTIONAL { ?event wdt:P1651 ?youtube. }" in q
    assert q.endswith("LIMIT 400")


def test_open_ended_ranges_have_no_filter():
    assert "FILTER" not in build_type_query("Q198")
    q = build_broad_query(1950, None, 500)
    assert "FILTER(YEAR(?date) >= 1950)" in q
    assert "YEAR(?date) <" not in q
    assert "wd:Q1190554" in q


def test_negative_years_render_as_integers():
    q = build_broad_query(-500, 0, 10)
    assert "FILTER(YEAR(?date) >= -500)" in q
    assert "FILTER(YEAR(?date) < 0)" in q


def test_youtube_batch_query_values():
    q = build_youtube_batch_query(["Q1", "Q2", "Q3"])
    assert "VALUES ?event { wd:Q1 wd:Q2 wd:Q3 }" in q
    assert "wdt:P1651 ?youtube" in q
    with pytest.raises(ValueError):
        build_youtube_batch_query([])


def test_catalog_is_bounded_and_named_uniquely():
    names = [q.name for q in BULK_CATALOG]
    assert len(names) == len(set(names))
    assert all("LIMIT" in q.query for q in BULK_CATALOG)


def test_select_catalog_filters_by_era_in_order():
    picked = select_catalog(BULK_CATALOG, "Medieval")
    assert [q.name for q in picked] == [
        "Battles (ancient-medieval)",
        "Events with images (medieval: 500-1500)",
    ]
    assert len(select_catalog(BULK_CATALOG, None)) == len(BULK_CATALOG)
    assert select_catalog(BULK_CATALOG, "no such era") == []
