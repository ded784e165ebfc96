"""
Explicit, UI-owned session state. Handlers receive it as an argument instead of
reading module-level globals.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class SessionState:
    """Tracks the current search results and whether a subtitle is being applied."""

    current_results: list[dict[str, Any]] = field(default_factory=list)
    current_page: int = 1
    total_pages: int = 1
    total_count: int = 0
    per_page: int = 50
    current_query: str = ""
    current_params: str | None = None
    application_in_progress: bool = False

    def begin_application(self) -> bool:
        """
        Marks a subtitle application as started.

        Returns:
            False if another application is already running, True otherwise.
        """
        if self.application_in_progress:
            return False
        self.application_in_progress = True
        return True

    def end_application(self) -> None:
        self.application_in_progress = False

    def find_result_for_file(self, file_id: str) -> dict[str, Any] | None:
        """Finds the search result that owns the given file id."""
        for result in self.current_results:
            files = result.get("attributes", {}).get("files", [])
            if any(str(f.get("file_id")) == file_id for f in files):
                return result
        return None
