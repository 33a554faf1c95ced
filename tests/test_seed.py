import json

import pytest

from history_ingest.allowlist import LicensePolicy
from history_ingest.errors import LicenseGateError, SeedError
from history_ingest.seed import ingest_seed, load_seed, parse_seed
from history_ingest.storage import EventStore

POLICY = LicensePolicy.from_config(["CC0", "CC BY 4.0", "ODbL"])


def seed_source(id, license="CC0", **overrides):
    record = dict(
        id=id,
        source_name=f"Source {id}",
        source_url=f"https://example.org/{id}",
        license=license,
        attribution_text=f"Data from source {id}",
        retrieved_at="2025-06-01T00:00:00Z",
    )
    record.update(overrides)
    return record


def seed_event(id, source_id=1, **overrides):
    record = dict(
        id=id,
        title=f"  Event {id} ",
        summary="Something happened.",
        category="war",
        region_name=" Anatolia ",
        precision_level="year",
        confidence_score=0.9,
        time_start=1000 + id,
        time_end=None,
        source_id=source_id,
        source_url=f"https://example.org/events/{id}",
        lat=39.9,
        lng=32.8,
    )
    record.update(overrides)
    return record


def test_parse_seed_links_provenance():
    payload = parse_seed(
        {
            "sources": [seed_source(1), seed_source(2, license="ODbL")],
            "events": [seed_event(10), seed_event(11, source_id=2)],
        }
    )
    assert [s.id for s in payload.sources] == ["1", "2"]
    first, second = payload.events
    assert first.id == "10"
    assert first.title == "Event 10"
    assert first.region_name == "Anatolia"
    assert first.confidence_score == 0.9
    assert first.provenance.source_id == "1"
    assert second.license == "ODbL"
    assert second.provenance.attribution_text == "Data from source 2"


@pytest.mark.parametrize("field", ["title", "summary", "category", "precision_level", "source_id", "lat"])
def test_event_required_fields(field):
    data = {"sources": [seed_source(1)], "events": [seed_event(1, **{field: None})]}
    with pytest.raises(SeedError, match=f"Missing required field: {field}"):
        parse_seed(data)


def test_source_required_fields():
    with pytest.raises(SeedError, match="Missing required field: license"):
        parse_seed({"sources": [seed_source(1, license="  ")], "events": []})


def test_dangling_source_id():
    data = {"sources": [seed_source(1)], "events": [seed_event(7, source_id=99)]}
    with pytest.raises(SeedError, match="Missing source for event id=7 source_id=99"):
        parse_seed(data)


def test_invalid_values_are_seed_errors():
    with pytest.raises(SeedError, match="events\\[0\\]"):
        parse_seed({"sources": [seed_source(1)], "events": [seed_event(1, category="gossip")]})
    with pytest.raises(SeedError, match="Duplicate source"):
        parse_seed({"sources": [seed_source(1), seed_source(1)], "events": []})
    with pytest.raises(SeedError):
        parse_seed({"sources": [], "events": {}})


def test_unreadable_seed_file(tmp_path):
    bad = tmp_path / "seed.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(SeedError):
        load_seed(bad)
    with pytest.raises(SeedError):
        load_seed(tmp_path / "missing.json")


def write_seed(tmp_path, data):
    path = tmp_path / "events.seed.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_disallowed_source_license_blocks_output(tmp_path):
    path = write_seed(
        tmp_path,
        {
            "sources": [seed_source(1), seed_source(2, license="CC BY-NC 4.0")],
            "events": [seed_event(1), seed_event(2, source_id=2), seed_event(3)],
        },
    )
    out, audit = tmp_path / "out" / "events.json", tmp_path / "out" / "audit.json"

    with pytest.raises(LicenseGateError) as ei:
        ingest_seed(path, POLICY, out, audit)

    assert ei.value.violation_count == 1
    assert not out.exists()
    report = json.loads(audit.read_text(encoding="utf-8"))
    assert report["violations"] == [{"eventId": "2", "sourceId": "2", "license": "CC BY-NC 4.0"}]


def test_valid_seed_keeps_ids_and_order(tmp_path):
    path = write_seed(
        tmp_path,
        {
            "sources": [seed_source(1), seed_source(2, license="CC BY 4.0")],
            "events": [seed_event(5, time_start=1900), seed_event(6, source_id=2, time_start=-50)],
        },
    )
    out, audit = tmp_path / "events.json", tmp_path / "audit.json"

    with EventStore(tmp_path / "events.sqlite") as store:
        result = ingest_seed(path, POLICY, out, audit, store)
        assert store.count_events() == 2

    assert result.inserted == 2
    data = json.loads(out.read_text(encoding="utf-8"))
    assert [e["id"] for e in data["events"]] == ["5", "6"]
    assert [s["id"] for s in data["sources"]] == ["1", "2"]
    assert data["events"][1]["provenance"]["license"] == "CC BY 4.0"
