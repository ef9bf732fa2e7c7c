"""Character-budgeted assembly of ranked items into a prompt context block."""

from typing import Callable, List, Optional, Sequence, TypeVar

from loguru import logger

from .config import AssemblerConfig, SectionLimits
from .models import (
    RankedItem, MemoryItem, ActivityItem, ClipboardItem, SearchItem,
    format_relative_time, short_app_name, truncate, now_ms
)


T = TypeVar("T")

MEMORY_HEADER = "## Remembered Information:"
ACTIVITY_HEADER = "## Related Activity:"
CLIPBOARD_HEADER = "## Related from Clipboard:"
SEARCH_HEADER = "## Related Searches:"


class ContextAssembler:
    """
    Greedy, priority-ordered context builder.

    Sections are filled in a fixed order (memories, activity, clipboard,
    searches) so the most valuable source always gets the budget first.
    Each line must fit inside the remaining budget minus a safety margin;
    the first line that does not fit closes its section. Headers and
    section separators are charged against the budget as well, so the
    result never exceeds max_chars.
    """

    def __init__(self, config: Optional[AssemblerConfig] = None):
        self.config = config or AssemblerConfig()

    # Line formats -------------------------------------------------------

    def memory_line(self, item: MemoryItem, now: int) -> str:
        return f"- {item.key}: {truncate(item.value, self.config.max_line_text)}"

    def activity_line(self, item: ActivityItem, now: int) -> str:
        when = format_relative_time(item.timestamp, now)
        return f"- [{when}] {item.app_name}: {truncate(item.title, self.config.max_line_text)}"

    def clipboard_line(self, item: ClipboardItem, now: int) -> str:
        when = format_relative_time(item.timestamp, now)
        return f"- [{when}] {truncate(item.content, self.config.max_line_text)}"

    def search_line(self, item: SearchItem, now: int) -> str:
        return f"- \"{truncate(item.query, self.config.max_line_text)}\" in {short_app_name(item.source_app)}"

    # Assembly -----------------------------------------------------------

    def assemble(self,
                 query: str,
                 memories: Sequence[RankedItem[MemoryItem]],
                 activities: Sequence[RankedItem[ActivityItem]],
                 clipboard: Sequence[RankedItem[ClipboardItem]],
                 searches: Sequence[RankedItem[SearchItem]],
                 max_chars: int,
                 limits: Optional[SectionLimits] = None,
                 now: Optional[int] = None) -> str:
        """Build the context string for query within max_chars."""
        limits = limits or SectionLimits()
        now = now if now is not None else now_ms()
        cfg = self.config

        lines: List[str] = []
        remaining = max_chars

        sections = [
            (MEMORY_HEADER, memories, limits.memories, self.memory_line, False),
            (ACTIVITY_HEADER, activities, limits.activities, self.activity_line, False),
            (CLIPBOARD_HEADER, clipboard, limits.clipboard, self.clipboard_line, False),
            (SEARCH_HEADER, searches, limits.searches, self.search_line, True),
        ]

        for header, ranked, limit, formatter, last in sections:
            min_remaining = cfg.last_section_min_remaining if last else cfg.section_min_remaining
            margin = cfg.last_section_margin if last else cfg.safety_margin
            if not ranked or remaining <= min_remaining:
                continue

            mark, budget_before = len(lines), remaining
            if lines:
                # Blank separator line before a new section.
                lines.append("")
                remaining -= 1
            lines.append(header)
            remaining -= len(header) + 1
            header_end = len(lines)

            remaining = self._fill_section(
                lines, ranked, limit, formatter, remaining, margin, now
            )
            if len(lines) == header_end:
                # Nothing fit; drop the empty section.
                del lines[mark:]
                remaining = budget_before

        context = "\n".join(lines).strip()
        logger.debug(f"Assembled {len(context)}/{max_chars} chars for: {query[:40]}")
        return context

    def _fill_section(self,
                      lines: List[str],
                      ranked: Sequence[RankedItem[T]],
                      limit: Optional[int],
                      formatter: Callable[[T, int], str],
                      remaining: int,
                      margin: int,
                      now: int) -> int:
        items = ranked if limit is None else ranked[:limit]
        for entry in items:
            line = formatter(entry.item, now)
            if len(line) >= remaining - margin:
                break
            lines.append(line)
            remaining -= len(line) + 1
        return remaining
