from __future__ import annotations

import json
import re
from typing import Any, List, Optional, Tuple

DEFAULT_TAGS: Tuple[str, ...] = ("general", "note")
MAX_TAGS = 5

_QUOTED = re.compile(r'"([^"]+)"')


class TagParser:
    """Turn raw model output into a short list of lowercase tags.

    Strategies are tried in order:

    1. ``parse_strict`` - the output is a JSON array of strings.
    2. ``extract_quoted`` - only when the output is not valid JSON, every
       double-quoted substring is taken as a tag.
    3. ``DEFAULT_TAGS`` - when neither yields anything.

    ``parse`` never raises and never returns an empty list.
    """

    def __init__(
        self, max_tags: int = MAX_TAGS, default: Tuple[str, ...] = DEFAULT_TAGS
    ) -> None:
        self.max_tags = max_tags
        self.default = default

    def parse_strict(self, raw: str) -> Optional[List[str]]:
        """Return tags from a JSON array, ``[]`` for valid non-array JSON.

        Returns ``None`` when ``raw`` is not valid JSON at all, which is the
        only case where the heuristic fallback applies.
        """
        try:
            data: Any = json.loads(raw)
        except (TypeError, ValueError):
            return None
        if not isinstance(data, list):
            return []
        head = data[: self.max_tags]
        if not all(isinstance(tag, str) for tag in head):
            return []
        return [tag.lower() for tag in head]

    def extract_quoted(self, raw: str) -> List[str]:
        return [m.lower() for m in _QUOTED.findall(raw)][: self.max_tags]

    def parse(self, raw: Optional[str]) -> List[str]:
        raw = raw or "[]"
        tags = self.parse_strict(raw)
        if tags is None:
            tags = self.extract_quoted(raw)
        return tags or self.defaults()

    def defaults(self) -> List[str]:
        return list(self.default)


__all__ = ["DEFAULT_TAGS", "MAX_TAGS", "TagParser"]
