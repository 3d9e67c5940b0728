# capabilities.py
# Best-effort capability flags for a model listing entry.
#
# The server does not report these for /api/tags or /api/ps entries, so
# they are inferred from the model family and name.

import re
from typing import Any

TOOLS_FAMILIES = {"llama", "qwen2", "qwen3", "qwen3vl", "command-r", "mistral", "gemma2"}
VISION_FAMILIES = {"llava", "clip", "qwen3vl", "mllama"}
EMBEDDING_FAMILIES = {"nomic-bert", "bert", "mxbai-embed-large"}

THINKING_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (r"deepseek-r1", r"-r1", r"qwq", r"qwen3")]
VISION_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (r"vision", r"vl")]
EMBEDDING_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (r"embed", r"minilm")]


def _matches(patterns: list[re.Pattern], name: str) -> bool:
    return bool(name) and any(p.search(name) for p in patterns)


def for_model(info: dict[str, Any]) -> dict[str, bool]:
    name = info.get("name") or info.get("model") or ""
    details = info.get("details") or info
    family = details.get("family") or ""
    families = {str(f).lower() for f in (details.get("families") or [family])}

    return {
        "tools": not re.search("codellama", name, re.IGNORECASE) and bool(families & TOOLS_FAMILIES),
        "thinking": _matches(THINKING_PATTERNS, name),
        "vision": bool(families & VISION_FAMILIES) or _matches(VISION_PATTERNS, name),
        "embeddings": bool(families & EMBEDDING_FAMILIES) or _matches(EMBEDDING_PATTERNS, name),
    }
