from __future__ import annotations

from pathlib import Path

import pytest

from sitemap_monitor import cli, precommit


def test_help_exits_cleanly(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["--help"])
    assert exc.value.code == 0
    out = capsys.readouterr().out
    assert "SLACK_WEBHOOK_URL" in out
    assert "monitor" in out


def test_parser_defaults() -> None:
    args = cli.build_parser().parse_args([])
    assert args.mode == "standard"
    assert args.environment == "production"
    assert args.interval == 300.0
    assert args.duration is None


def test_modes_are_listed_once() -> None:
    assert len(cli.MODES) == len(set(cli.MODES))
    assert "monitor" in cli.MODES


def test_invalid_mode_rejected() -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["turbo"])
    assert exc.value.code == 2


def test_missing_page_tree_exits_nonzero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    config = tmp_path / "monitor.yaml"
    config.write_text("alerts:\n  enabled: false\n", encoding="utf-8")
    assert cli.main(["quick", "production", "--config", str(config), "--base-dir", str(tmp_path)]) == 1


def test_precommit_main_with_nothing_staged(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(precommit, "get_staged_files", lambda cwd=None: [])
    code = precommit.main(["--config", str(tmp_path / "missing.yaml"), "--repo-root", str(tmp_path)])
    assert code == 0
