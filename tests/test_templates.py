from adaptwriter.batches import make_chapters
from adaptwriter.prompts import (
    BREAKDOWN_SOURCE_LIMIT,
    build_breakdown_check_prompt,
    build_breakdown_prompt,
    build_script_check_prompt,
    build_script_prompt,
    system_prompt,
)
from adaptwriter.templates import apply_template_text, prompt_key_from_filename, resolve_template


def test_prompt_key_from_filename():
    assert prompt_key_from_filename("breakdown_worker_system_prompt.md") == "BREAKDOWN_WORKER_SYSTEM"
    assert prompt_key_from_filename("/x/y/script-task_prompt.md") == "SCRIPT_TASK"
    assert prompt_key_from_filename("adapt_method.md") == "ADAPT_METHOD"


def test_apply_template_text():
    assert apply_template_text("第[EPISODE]集 [EPISODE]", {"[EPISODE]": "3"}) == "第3集 3"


def test_override_file_replaces_builtin(monkeypatch, tmp_path):
    prompts = tmp_path / "prompts"
    prompts.mkdir()
    (prompts / "script_check_prompt.md").write_text("CHECK [PLOT_POINTS] // [OUTPUT]", encoding="utf-8")
    assert resolve_template("script_check_prompt.md", "builtin") == "builtin"
    monkeypatch.setenv("AW_PROMPTS_DIR", str(prompts))
    assert build_script_check_prompt("【剧情1】", "剧本") == "CHECK 【剧情1】 // 剧本"
    # files that are absent keep the built-in text
    assert resolve_template("missing.md", "builtin") == "builtin"


def test_relative_prompts_dir_resolves_under_base(monkeypatch, tmp_path):
    base = tmp_path / "base"
    (base / "my_prompts").mkdir(parents=True)
    (base / "my_prompts" / "webtoon_aligner_system_prompt.md").write_text("You are the \"Webtoon Aligner\" v2", encoding="utf-8")
    monkeypatch.setenv("AW_PROMPTS_DIR", "my_prompts")
    assert system_prompt("webtoon_aligner") == "You are the \"Webtoon Aligner\" v2"


def test_aligner_system_prompts_identify_themselves():
    assert "Aligner" in system_prompt("breakdown_aligner").splitlines()[0]
    assert "Aligner" in system_prompt("webtoon_aligner").splitlines()[0]
    assert "Aligner" not in system_prompt("breakdown_worker").splitlines()[0]
    assert "Aligner" not in system_prompt("script_worker").splitlines()[0]


def test_breakdown_prompt_fills_every_placeholder():
    chapters = make_chapters([("第1章.txt", "萧炎被退婚。"), ("第2章.txt", "药老现身。")])
    prompt = build_breakdown_prompt(chapters, "玄幻", first_episode=4)
    assert "NOVEL TYPE: 玄幻" in prompt
    assert "Breakdown the following 2 chapters" in prompt
    assert "continues from episode 4" in prompt
    assert "Chapter 第1章.txt:\n萧炎被退婚。" in prompt
    assert "【剧情n】" in prompt
    assert "[CHAPTERS]" not in prompt and "[PLOT_TEMPLATE]" not in prompt


def test_breakdown_source_is_truncated():
    chapters = make_chapters([("1.txt", "字" * (BREAKDOWN_SOURCE_LIMIT + 500))])
    prompt = build_breakdown_prompt(chapters, "玄幻")
    assert BREAKDOWN_SOURCE_LIMIT - 100 < prompt.count("字") < BREAKDOWN_SOURCE_LIMIT
    check = build_breakdown_check_prompt(chapters, "OUT")
    assert check.count("字") < BREAKDOWN_SOURCE_LIMIT
    assert check.endswith("OUT")


def test_script_prompt():
    prompt = build_script_prompt(7, "【剧情9】甲，乙，第7集，状态：未用", "原文")
    assert "Episode 7" in prompt
    assert "【剧情9】" in prompt
    assert "原文" in prompt
    assert "[SCRIPT_TEMPLATE]" not in prompt
