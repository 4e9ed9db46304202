"""
Prompt Cache

In-memory cache for prompt files (executive personas, skills, system prompts).
Reads prompts from disk on first access, caches in memory.
Supports cache clear without restart.
"""
import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger("studio.services.prompt_cache")


class PromptCache:
    """
    Cache for prompts stored as markdown files under prompts_dir.

    Prompts are read from disk on first access and cached in memory.
    Cache can be cleared per-file or entirely via admin API.
    """

    def __init__(self, prompts_dir: str):
        self._cache: dict[str, str] = {}
        self._prompts_dir = prompts_dir

    def get_prompt(self, prompt_file: str, fallback: str = "") -> str:
        """
        Get a prompt by its path relative to prompts_dir.

        Args:
            prompt_file: e.g. "executives/cfo.md"
            fallback: Returned (and not cached) when the file is missing

        Returns:
            Prompt text
        """
        if prompt_file not in self._cache:
            path = os.path.join(self._prompts_dir, prompt_file)
            try:
                self._cache[prompt_file] = Path(path).read_text(encoding="utf-8")
                logger.info(f"Loaded prompt from file: {prompt_file}")
            except FileNotFoundError:
                logger.warning(f"Prompt file not found: {path}, using fallback")
                return fallback
        return self._cache[prompt_file]

    def clear(self, prompt_file: Optional[str] = None):
        """
        Clear cached prompts.

        Args:
            prompt_file: If provided, clear only this file's cache.
                        If None, clear entire cache.
        """
        if prompt_file:
            removed = self._cache.pop(prompt_file, None)
            if removed is not None:
                logger.info(f"Cleared prompt cache for: {prompt_file}")
            else:
                logger.info(f"Prompt not in cache: {prompt_file}")
        else:
            count = len(self._cache)
            self._cache.clear()
            logger.info(f"Cleared entire prompt cache ({count} entries)")

    @property
    def cached_count(self) -> int:
        """Number of cached prompts"""
        return len(self._cache)

    @property
    def cached_files(self) -> list[str]:
        """List of cached prompt file names"""
        return list(self._cache.keys())
