import json

import yaml

from propweb.app.cli import main


def test_cli_run_prints_attribution_json(tmp_path, capsys):
    cfg = {
        "run": {"seed": 1, "start_date": "2026-01-01", "base_url": "https://site.test"},
        "storage": {"duckdb_path": str(tmp_path / "site.duckdb"), "clean_slate": True},
        "logging": {"level": "WARNING"},
        "journey": {
            "landing": {"url": "/?utm_source=newsletter"},
            "steps": [
                {"action": "consent", "choice": "accept"},
                {"action": "navigate", "url": "/contact"},
                {"action": "submit_lead", "source": "contact_form"},
            ],
        },
    }
    cfg_path = tmp_path / "site.yaml"
    cfg_path.write_text(yaml.safe_dump(cfg), encoding="utf-8")

    assert main(["run", "--config", str(cfg_path)]) == 0

    lines = [ln for ln in capsys.readouterr().out.splitlines() if '"attribution"' in ln]
    out = json.loads(lines[-1])
    assert out["steps_run"] == 3
    assert out["attribution"]["utm_source"] == "newsletter"
    assert out["attribution"]["landing_page"] == "/"
    assert out["attribution"]["last_page_before_submit"] == "/contact"
