"""
File-backed system prompts for the LLM collaborator.

Prompts ship inside the package as <name>.system files so they are versioned
with the code that parses the model's answers.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

CLASSIFICATION = "classification"
QUERY_GENERATION = "query_generation"
SUMMARIZATION = "summarization"


class ComponentPromptRepository:
    def __init__(self, prompts_root: Optional[Path] = None):
        # Default: casequery/components/prompts
        if prompts_root is None:
            prompts_root = Path(__file__).resolve().parent / "prompts"
        self.prompts_root = prompts_root

    def get_system_prompt(self, component_name: str) -> str:
        path = self.prompts_root / f"{component_name}.system"
        return path.read_text(encoding="utf-8")
