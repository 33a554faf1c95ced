import json

import httpx
import pytest
from typer.testing import CliRunner

from conftest import binding, sparql_json
from history_ingest import cli
from history_ingest.config import load_config

runner = CliRunner()

SETTINGS = """
bulk:
  query_delay_s: 0
enrichment:
  delay_s: 0
artifacts:
  base_dir: {base}
source:
  id: wikidata-source
  source_name: Wikidata
  source_url: "https://www.wikidata.org/"
  license: {license}
  attribution_text: "Data from Wikidata"
"""


@pytest.fixture
def use_config(tmp_path, monkeypatch):
    monkeypatch.delenv("HISTORY_INGEST_DB", raising=False)

    def _use(license="CC0"):
        settings = tmp_path / "settings.yaml"
        settings.write_text(SETTINGS.format(base=tmp_path / "artifacts", license=license), encoding="utf-8")
        licenses = tmp_path / "licenses.yaml"
        licenses.write_text("allowed: [CC0, CC BY 4.0, ODbL]\n", encoding="utf-8")
        monkeypatch.setattr(cli, "load_config", lambda: load_config(settings, licenses))
        return tmp_path / "artifacts"

    return _use


@pytest.fixture
def use_handler(monkeypatch, make_client):
    def _use(handler):
        monkeypatch.setattr(cli, "build_client", lambda settings: make_client(handler))

    return _use


def test_check_license_allowed():
    result = runner.invoke(cli.app, ["check-license", "CC BY 4.0"])
    assert result.exit_code == 0
    assert "allowed=True" in result.output


def test_check_license_rejected():
    result = runner.invoke(cli.app, ["check-license", "cc0"])
    assert result.exit_code == 1
    assert "allowed=False" in result.output


def test_topic_not_found_exits_2_with_suggestions(use_config, use_handler):
    use_config()

    def handler(request):
        if request.url.params.get("action") == "wbsearchentities":
            return httpx.Response(200, json={"search": []})
        return httpx.Response(200, json={"query": {"categorymembers": [{"title": "Category:Ancient Rome"}]}})

    use_handler(handler)
    result = runner.invoke(cli.app, ["ingest-topic", "Romee"])

    assert result.exit_code == 2
    assert "topic not found" in result.output
    assert "Ancient Rome" in result.output


def test_bulk_gate_failure_exits_1(use_config, use_handler):
    artifacts = use_config(license="CC BY-NC 4.0")
    row = binding(
        event="http://www.wikidata.org/entity/Q5",
        eventLabel="Siege of Paris",
        date="0885-11-24T00:00:00Z",
        coord="Point(2.35 48.85)",
        image="http://img/paris.jpg",
    )
    use_handler(lambda request: httpx.Response(200, json=sparql_json([row])))

    result = runner.invoke(cli.app, ["bulk", "--era", "Sieges", "--no-enrich"])

    assert result.exit_code == 1
    assert "license gate failed" in result.output
    assert "violations=1" in result.output
    assert "audit=" in result.output
    audit = artifacts / "normalized" / "license-audit.json"
    assert json.loads(audit.read_text(encoding="utf-8"))["violations"][0]["license"] == "CC BY-NC 4.0"
    assert not (artifacts / "normalized" / "events.normalized.json").exists()


def test_ingest_seed_command(use_config, tmp_path):
    artifacts = use_config()
    seed = tmp_path / "events.seed.json"
    seed.write_text(
        json.dumps(
            {
                "sources": [
                    {
                        "id": 1,
                        "source_name": "Atlas",
                        "source_url": "https://example.org/atlas",
                        "license": "ODbL",
                        "attribution_text": "Atlas contributors",
                        "retrieved_at": "2025-06-01T00:00:00Z",
                    }
                ],
                "events": [
                    {
                        "id": 1,
                        "title": "Founding of Constantinople",
                        "summary": "Constantine dedicates the new capital.",
                        "category": "civilization",
                        "precision_level": "year",
                        "time_start": 330,
                        "source_id": 1,
                        "source_url": "https://example.org/events/1",
                        "lat": 41.01,
                        "lng": 28.98,
                    }
                ],
            }
        ),
        encoding="utf-8",
    )

    result = runner.invoke(cli.app, ["ingest-seed", str(seed)])
    assert result.exit_code == 0
    assert "events=1" in result.output
    assert (artifacts / "seed" / "events.normalized.json").exists()

    seed.write_text(json.dumps({"sources": [], "events": [dict(title="x")]}), encoding="utf-8")
    result = runner.invoke(cli.app, ["ingest-seed", str(seed)])
    assert result.exit_code == 1
    assert "invalid seed" in result.output
