import json
from datetime import date

from history_ingest.merge import EventAccumulator, merge
from history_ingest.models import NormalizedOutput

TODAY = date(2026, 10, 19)


def test_merge_is_idempotent(make_candidate):
    a = {c.source_url: c for c in (make_candidate(1), make_candidate(2))}
    assert merge(a, a.values()) == a


def test_first_write_wins(make_candidate):
    first = make_candidate(7, title="From the battle query")
    later = make_candidate(7, title="From the broad sweep", image_url="http://img/x.jpg")

    out = merge({}, [first, later])
    assert len(out) == 1
    assert out[first.source_url].title == "From the battle query"
    assert out[first.source_url].image_url is None


def test_merge_does_not_mutate_input(make_candidate):
    a = {make_candidate(1).source_url: make_candidate(1)}
    merge(a, [make_candidate(2)])
    assert len(a) == 1


def test_accumulator_counts_only_new_keys(make_candidate):
    acc = EventAccumulator()
    assert acc.merge([make_candidate(1), make_candidate(2), make_candidate(1)]) == 2
    assert acc.merge([make_candidate(2), make_candidate(3)]) == 1
    assert len(acc) == 3
    assert "http://www.wikidata.org/entity/Q3" in acc
    assert [c.time_start for c in acc] == [1001, 1002, 1003]


def test_seed_keeps_image_bearing_non_noise(make_candidate):
    acc = EventAccumulator()
    kept = acc.seed(
        [
            make_candidate(1, image_url="http://img/1.jpg"),
            make_candidate(2),
            make_candidate(3, title="Solar eclipse of March 30, 2033", time_start=2033, image_url="http://img/3.jpg"),
        ],
        TODAY,
    )
    assert kept == 1
    assert [c.source_url for c in acc] == ["http://www.wikidata.org/entity/Q1"]


def test_missing_snapshot_is_fresh_start(tmp_path):
    acc = EventAccumulator()
    assert acc.seed_from_snapshot(tmp_path / "nope.json", TODAY) == 0
    assert len(acc) == 0


def test_seed_from_snapshot_reads_previous_output(tmp_path, source, make_candidate):
    snapshot = NormalizedOutput(
        generated_at="2026-01-01T00:00:00Z",
        sources=[source],
        events=[
            make_candidate(1, id="wd-0", image_url="http://img/1.jpg"),
            make_candidate(2, id="wd-1"),
        ],
    )
    payload = snapshot.model_dump(by_alias=True, mode="json")
    payload["events"].append({"title": "broken row"})
    path = tmp_path / "events.normalized.json"
    path.write_text(json.dumps(payload), encoding="utf-8")

    acc = EventAccumulator()
    assert acc.seed_from_snapshot(path, TODAY) == 1
    kept = acc.get("http://www.wikidata.org/entity/Q1")
    assert kept.image_url == "http://img/1.jpg"
    assert kept.provenance.source_id == "wikidata-source"


def test_corrupt_snapshot_is_fresh_start(tmp_path):
    path = tmp_path / "events.normalized.json"
    path.write_text('{"generatedAt": "2026-01-01", "events": [', encoding="utf-8")
    acc = EventAccumulator()
    assert acc.seed_from_snapshot(path, TODAY) == 0
    assert len(acc) == 0


def test_snapshot_without_events_list_is_fresh_start(tmp_path):
    path = tmp_path / "events.normalized.json"
    path.write_text('{"events": {"not": "a list"}}', encoding="utf-8")
    assert EventAccumulator().seed_from_snapshot(path, TODAY) == 0
