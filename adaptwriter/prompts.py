"""Built-in prompts and prompt builders for the breakdown and script stages.

The control flow only relies on two conventions carried by these prompts:
breakdown lines follow the 【剧情n】...第N集，状态：... grammar, and aligners
answer with PASS or FAIL.
"""
from __future__ import annotations

from typing import Sequence

from .models import Chapter
from .templates import render, resolve_template
from .utils import truncate

# Character budgets for source text embedded in prompts.
BREAKDOWN_SOURCE_LIMIT = 30000
BREAKDOWN_CHECK_SOURCE_LIMIT = 5000
SCRIPT_SOURCE_LIMIT = 20000

ADAPT_METHOD = """
改编方法论：
- 提取情绪钩子：打脸、逆袭、身份揭露、危机、反转。
- 压缩冲突：删除支线与冗长铺垫，每集只保留一条主冲突。
- 视觉化：把心理描写转成可拍摄的动作、表情和画面。
- 重构节奏：每集开头3秒入戏，结尾必须留悬念。
""".strip()

OUTPUT_STYLE = """
输出风格：
- 场景头以 ※ 开头，画面描述放在括号里。
- 对白格式为「角色：台词」，台词口语化、短促有力。
- 每集500-800字。
""".strip()

PLOT_TEMPLATE = """
每个剧情点单独一行，严格使用以下格式：
【剧情n】场景，角色A对角色B的动作，第X集，状态：未用
示例：
【剧情1】萧家大厅，纳兰嫣然当众向萧炎退婚，第1集，状态：未用
【剧情2】后山悬崖，萧炎发现戒指中的药老，第1集，状态：未用
""".strip()

SCRIPT_TEMPLATE = """
# 第X集：[标题]
---
※ [场景]
（画面描述）
角色：台词……
---
[以悬念/钩子结尾]
""".strip()

BREAKDOWN_WORKER_SYSTEM = """
You are the "Breakdown Worker", an experienced web-novel adaptation screenwriter.
Task: break the given chapters into plot points (剧情点) for a short-episode webtoon drama.
Rules:
1. Always write in CHINESE.
2. Output one plot point per line, strictly in the format:
   【剧情n】场景，角色A对角色B的动作，第X集，状态：未用
3. Number plot points from 1 within this batch; tag every point with the episode it belongs to.
4. If feedback from the Breakdown Aligner is provided, REVISE your breakdown to fix every issue.
""".strip()

BREAKDOWN_ALIGNER_SYSTEM = """
You are the "Breakdown Aligner" Sub-Agent.
Role: Quality Checker for Plot Breakdown.
Task: Check conflict intensity, emotional hook density, episode pacing, and compression strategy.
Input: A segment of plot breakdown provided by the Breakdown Worker.
Output:
- If Good: "✅ PASS" followed by summary.
- If Bad: "❌ FAIL" followed by specific dimension errors (Conflict Intensity, Hook Density, etc.) and required fixes.
Language: Chinese.
""".strip()

SCRIPT_WORKER_SYSTEM = """
You are the "Script Worker", an experienced webtoon drama screenwriter.
Task: write ONE episode script from the given plot points and source novel content.
Rules:
1. Always write in CHINESE.
2. Write visually, 500-800 characters per episode.
3. Start with a heading "# 第X集：标题" and follow the template exactly.
4. End with suspense or a cliffhanger.
5. If feedback from the Webtoon Aligner is provided, REVISE your script to fix every issue.
""".strip()

WEBTOON_ALIGNER_SYSTEM = """
You are the "Webtoon Aligner" Sub-Agent.
Role: Consistency Checker for Webtoon Scripts.
Task: Check plot restoration, pacing (500-800 chars), visual style, formatting, and suspense at the end.
Input: A webtoon script provided by the Script Worker.
Output:
- If Good: "✅ PASS" followed by summary.
- If Bad: "❌ FAIL" followed by specific dimension errors (Pacing, Visuals, Character Consistency) and required fixes.
Language: Chinese.
""".strip()

BREAKDOWN_TASK = """
NOVEL TYPE: [NOVEL_TYPE]

TASK: Breakdown the following [CHAPTER_COUNT] chapters into plot points.
Episode numbering continues from episode [FIRST_EPISODE].

CONTEXT (Adapt Method):
[ADAPT_METHOD]

TEMPLATE:
[PLOT_TEMPLATE]

NOVEL CONTENT:
[CHAPTERS]
""".strip()

BREAKDOWN_CHECK = """
TASK: Check the quality of this plot breakdown.

ORIGINAL NOVEL:
[CHAPTERS]... (truncated)

GENERATED BREAKDOWN:
[OUTPUT]
""".strip()

SCRIPT_TASK = """
TASK: Write Script for Episode [EPISODE].

PLOT POINTS:
[PLOT_POINTS]

SOURCE NOVEL CONTENT:
[SOURCE]

KNOWLEDGE (Method & Style):
[ADAPT_METHOD]
[OUTPUT_STYLE]

TEMPLATE:
[SCRIPT_TEMPLATE]
""".strip()

SCRIPT_CHECK = """
TASK: Check consistency of this script.

PLOT POINTS:
[PLOT_POINTS]

GENERATED SCRIPT:
[OUTPUT]
""".strip()


def system_prompt(name: str) -> str:
    defaults = {
        "breakdown_worker": BREAKDOWN_WORKER_SYSTEM,
        "breakdown_aligner": BREAKDOWN_ALIGNER_SYSTEM,
        "script_worker": SCRIPT_WORKER_SYSTEM,
        "webtoon_aligner": WEBTOON_ALIGNER_SYSTEM,
    }
    return resolve_template(f"{name}_system_prompt.md", defaults[name])


def chapters_text(chapters: Sequence[Chapter]) -> str:
    return "\n\n".join(f"Chapter {c.name}:\n{c.content}" for c in chapters)


def _knowledge() -> dict:
    return {
        "[ADAPT_METHOD]": resolve_template("adapt_method.md", ADAPT_METHOD),
        "[OUTPUT_STYLE]": resolve_template("output_style.md", OUTPUT_STYLE),
        "[PLOT_TEMPLATE]": resolve_template("plot_template.md", PLOT_TEMPLATE),
        "[SCRIPT_TEMPLATE]": resolve_template("script_template.md", SCRIPT_TEMPLATE),
    }


def build_breakdown_prompt(chapters: Sequence[Chapter], novel_type: str, first_episode: int = 1) -> str:
    reps = _knowledge()
    reps.update({
        "[NOVEL_TYPE]": novel_type,
        "[CHAPTER_COUNT]": str(len(chapters)),
        "[FIRST_EPISODE]": str(first_episode),
        "[CHAPTERS]": truncate(chapters_text(chapters), BREAKDOWN_SOURCE_LIMIT),
    })
    return render("breakdown_task_prompt.md", BREAKDOWN_TASK, reps)


def build_breakdown_check_prompt(chapters: Sequence[Chapter], output: str) -> str:
    reps = {
        "[CHAPTERS]": truncate(chapters_text(chapters), BREAKDOWN_CHECK_SOURCE_LIMIT),
        "[OUTPUT]": output,
    }
    return render("breakdown_check_prompt.md", BREAKDOWN_CHECK, reps)


def build_script_prompt(episode: int, plot_text: str, source_content: str) -> str:
    reps = _knowledge()
    reps.update({
        "[EPISODE]": str(episode),
        "[PLOT_POINTS]": plot_text,
        "[SOURCE]": truncate(source_content, SCRIPT_SOURCE_LIMIT),
    })
    return render("script_task_prompt.md", SCRIPT_TASK, reps)


def build_script_check_prompt(plot_text: str, output: str) -> str:
    return render("script_check_prompt.md", SCRIPT_CHECK, {"[PLOT_POINTS]": plot_text, "[OUTPUT]": output})
