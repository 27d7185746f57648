"""AdaptWriter package.

Adapts novel chapters into short episodic webtoon scripts: chapters are
broken down into plot points in fixed-size batches, then scripts are written
episode by episode from the unused points. Every generation step is checked
by an aligner pass and revised on rejection.
"""

__all__ = [
    "agent_loop",
    "artifacts",
    "assigner",
    "batches",
    "cli",
    "context",
    "env",
    "ingest",
    "llm",
    "logging",
    "models",
    "parser",
    "pipelines",
    "prompts",
    "session",
    "state",
    "templates",
    "tokenizer",
    "utils",
    "validation",
]
