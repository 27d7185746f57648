import json
import re

import pytest

from adaptwriter import cli, llm


def _write_chapters(directory, count):
    directory.mkdir(parents=True, exist_ok=True)
    for i in range(1, count + 1):
        (directory / f"第{i}章.txt").write_text(f"第{i}章正文。", encoding="utf-8")
    return directory


def _fake_service(aligner_reply="✅ PASS"):
    calls = []

    def fake_complete(prompt, *, system=None, temperature=0.7, max_tokens=4000, model=None):
        first = (system or "").splitlines()[0]
        calls.append(first)
        if "Aligner" in first:
            return aligner_reply
        if "Breakdown Worker" in first:
            start = int(re.search(r"continues from episode (\d+)", prompt).group(1))
            return "\n".join([
                f"【剧情1】萧家大厅，萧炎受辱，第{start}集，状态：未用",
                f"【剧情2】后山，药老现身，第{start + 1}集，状态：未用",
            ])
        episode = re.search(r"Write Script for Episode (\d+)", prompt).group(1)
        return f"# 第{episode}集：标题{episode}\n※ 场景\n萧炎：台词"

    return fake_complete, calls


def test_adapt_runs_until_points_run_out(monkeypatch, tmp_path, capsys):
    fake, calls = _fake_service()
    monkeypatch.setattr(llm, "complete", fake)
    chapters = _write_chapters(tmp_path / "novel", 8)
    project = tmp_path / "project.yaml"
    project.write_text("title: 斗破苍穹\ntype: 玄幻\n", encoding="utf-8")
    out = tmp_path / "out"

    code = cli.main(["adapt", str(chapters), "--project", str(project), "--out", str(out)])

    assert code == 0
    names = sorted(p.name for p in out.iterdir())
    assert names == ["breakdown.md", "episode_001.md", "episode_002.md", "episode_003.md", "episode_004.md"]
    assert "斗破苍穹" in (out / "breakdown.md").read_text(encoding="utf-8")
    assert (out / "episode_003.md").read_text(encoding="utf-8").startswith("# 第3集：标题3")
    printed = capsys.readouterr().out
    assert "No new chapters" in printed
    assert "No unused plot points left for episode 5" in printed
    assert "[worker #1] Worker: Generating content..." in printed


def test_breakdown_respects_batch_limit(monkeypatch, tmp_path):
    fake, calls = _fake_service()
    monkeypatch.setattr(llm, "complete", fake)
    chapters = _write_chapters(tmp_path / "novel", 13)
    out = tmp_path / "out"

    assert cli.main(["breakdown", str(chapters), "--batches", "1", "--out", str(out)]) == 0

    assert [p.name for p in out.iterdir()] == ["breakdown.md"]
    text = (out / "breakdown.md").read_text(encoding="utf-8")
    assert "(1-6章)" in text
    assert "(7-12章)" not in text
    assert sum(1 for c in calls if "Breakdown Worker" in c) == 1


def test_llm_exchange_logs(monkeypatch, tmp_path):
    monkeypatch.setenv("AW_LOG_LLM", "0")
    fake, _ = _fake_service()
    monkeypatch.setattr(llm, "complete", fake)
    chapters = _write_chapters(tmp_path / "novel", 2)
    base = tmp_path / "work"

    assert cli.main(["breakdown", str(chapters), "--log-llm", "--base", str(base), "--out", str(tmp_path / "o")]) == 0

    logs = sorted(p.name for p in (base / "llm_logs").iterdir())
    assert logs == ["batch00_aligner_r1.txt", "batch00_worker_r1.txt"]
    assert (base / "run.log").exists()


def test_missing_api_key_fails_without_exports(tmp_path, capsys):
    chapters = _write_chapters(tmp_path / "novel", 3)
    out = tmp_path / "out"

    code = cli.main(["adapt", str(chapters), "--out", str(out)])

    assert code == 3
    assert not out.exists()
    assert "OPENAI_API_KEY" in capsys.readouterr().out
    assert (tmp_path / "base" / "run_error.log").exists()


def test_mock_mode_runs_end_to_end(monkeypatch, tmp_path):
    # The offline mock always passes review but yields no parsable plot points
    monkeypatch.setenv("AW_MOCK_LLM", "1")
    chapters = _write_chapters(tmp_path / "novel", 3)
    out = tmp_path / "out"
    assert cli.main(["adapt", str(chapters), "--out", str(out)]) == 0
    assert [p.name for p in out.iterdir()] == ["breakdown.md"]


def test_input_errors(tmp_path, capsys):
    assert cli.main(["adapt", str(tmp_path / "missing")]) == 2
    empty = tmp_path / "empty"
    empty.mkdir()
    assert cli.main(["adapt", str(empty)]) == 2
    chapters = _write_chapters(tmp_path / "novel", 1)
    assert cli.main(["adapt", str(chapters), "--project", str(tmp_path / "nope.yaml")]) == 2
    assert cli.main([]) == 1


def test_env_command_masks_secrets(monkeypatch, capsys):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-secret-value-1234")
    assert cli.main(["env"]) == 0
    snap = json.loads(capsys.readouterr().out)
    assert snap["env"]["OPENAI_API_KEY"].endswith("1234")
    assert "secret" not in snap["env"]["OPENAI_API_KEY"]


@pytest.mark.parametrize("novel_type", ["玄幻", "赛博朋克"])
def test_novel_type_passes_through(monkeypatch, tmp_path, capsys, novel_type):
    fake, _ = _fake_service()
    monkeypatch.setattr(llm, "complete", fake)
    chapters = _write_chapters(tmp_path / "novel", 1)
    project = tmp_path / "project.yaml"
    project.write_text(f"type: {novel_type}\n", encoding="utf-8")
    assert cli.main(["breakdown", str(chapters), "--project", str(project), "--out", str(tmp_path / "o")]) == 0
    warned = "Unrecognized novel type" in capsys.readouterr().out
    assert warned == (novel_type == "赛博朋克")


@pytest.mark.parametrize("flag,value", [("--max-retries", "-1"), ("--max-retries", "0"), ("--episodes", "0"), ("--max-retries", "two")])
def test_non_positive_counts_are_usage_errors(monkeypatch, tmp_path, capsys, flag, value):
    fake, calls = _fake_service()
    monkeypatch.setattr(llm, "complete", fake)
    chapters = _write_chapters(tmp_path / "novel", 3)
    out = tmp_path / "out"
    with pytest.raises(SystemExit) as ei:
        cli.main(["adapt", str(chapters), flag, value, "--out", str(out)])
    assert ei.value.code == 2
    assert "positive integer" in capsys.readouterr().err
    assert calls == []
    assert not out.exists()


def test_batches_limit_must_be_positive(tmp_path):
    chapters = _write_chapters(tmp_path / "novel", 3)
    with pytest.raises(SystemExit):
        cli.main(["breakdown", str(chapters), "--batches", "0"])
