"""
Component reuse check: warn before creating a near-duplicate component.

Applies to new files under component directories. The name derived from the
file is compared against the component index and the markdown app map.
An exact (case-insensitive) name or alias match means the component most
likely already exists; lower-scoring matches are surfaced as suggestions.
Only exact matches can block, and only when ``blockOnSimilar`` is set.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import PurePath

from flowgate.lib.config import FlowConfig
from flowgate.lib.paths import normalize_path
from flowgate.lib.result import HookResult, Reason, SimilarComponent
from flowgate.lib.state_store import StateStore

logger = logging.getLogger(__name__)

COMPONENT_SUFFIX_RE = re.compile(r"\.(component|view|container|page|screen)$", re.IGNORECASE)
TABLE_ROW_RE = re.compile(r"^\|\s*([^|]+?)\s*\|")
LIST_ITEM_RE = re.compile(r"^[-*]\s+\*{0,2}([A-Z][a-zA-Z0-9]+)\*{0,2}")
TABLE_HEADER_NAMES = {"Component", "Name"}

MAX_LISTED_ALTERNATIVES = 3


@lru_cache(maxsize=64)
def _pattern_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a ``**``/``*`` glob into a regex searched along the path.

    ``**/`` also matches zero directories, so ``**/components/**`` covers a
    top-level ``components/`` as well as nested ones. Matches start at a path
    segment boundary.
    """
    regex = ""
    for token in re.split(r"(\*\*/|\*\*|\*)", pattern):
        if token == "**/":
            regex += "(?:.*/)?"
        elif token == "**":
            regex += ".*"
        elif token == "*":
            regex += "[^/]*"
        else:
            regex += re.escape(token)
    return re.compile(r"(?:^|/)" + regex)


def is_component_path(file_path: str, patterns: list[str]) -> bool:
    normalized = normalize_path(file_path)
    return any(_pattern_to_regex(p).search(normalized) for p in patterns)


def extract_component_name(file_path: str) -> str:
    """``src/components/date-picker.component.tsx`` -> ``datepicker``."""
    stem = PurePath(normalize_path(file_path)).stem
    stem = COMPONENT_SUFFIX_RE.sub("", stem)
    return re.sub(r"[-_]", "", stem)


def calculate_similarity(a: str, b: str) -> int:
    """Similarity score 0-100: equality, containment ratio, else Levenshtein."""
    if not a or not b:
        return 0

    a_lower, b_lower = a.lower(), b.lower()
    if a_lower == b_lower:
        return 100

    if a_lower in b_lower or b_lower in a_lower:
        shorter, longer = sorted((len(a), len(b)))
        return round(shorter / longer * 100)

    previous = list(range(len(b_lower) + 1))
    for i, ca in enumerate(a_lower, start=1):
        current = [i]
        for j, cb in enumerate(b_lower, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current

    max_len = max(len(a), len(b))
    return round((max_len - previous[-1]) / max_len * 100)


def parse_app_map(content: str) -> list[str]:
    """Component names from app-map tables (first column) and bullet lists."""
    names: list[str] = []
    for line in content.splitlines():
        row = TABLE_ROW_RE.match(line)
        if row:
            name = row.group(1).strip()
            if name and "---" not in name and name not in TABLE_HEADER_NAMES:
                names.append(name)
            continue

        item = LIST_ITEM_RE.match(line)
        if item:
            names.append(item.group(1))
    return names


def find_similar_components(
    store: StateStore, component_name: str, threshold: int
) -> list[SimilarComponent]:
    """Registry entries scoring at least ``threshold``, best first."""
    similar: list[SimilarComponent] = []

    index = store.component_index.load()
    for entry in index.components if index else []:
        name = entry.name or extract_component_name(entry.path or "")
        candidates = [name, *entry.aliases, *entry.variants]
        score = max(calculate_similarity(component_name, c) for c in candidates)
        if score >= threshold:
            similar.append(
                SimilarComponent(
                    name=name,
                    path=entry.path,
                    similarity=score,
                    source="component-index",
                    exact=score == 100,
                )
            )

    app_map = store.app_map.load()
    seen = {s.name for s in similar}
    for name in parse_app_map(app_map) if app_map else []:
        if name in seen:
            continue
        score = calculate_similarity(component_name, name)
        if score >= threshold:
            seen.add(name)
            similar.append(
                SimilarComponent(name=name, similarity=score, source="app-map", exact=score == 100)
            )

    return sorted(similar, key=lambda s: s.similarity, reverse=True)


def generate_similar_message(similar: list[SimilarComponent]) -> str:
    best = similar[0]
    if best.exact:
        msg = f"Component already exists: {best.name}"
    else:
        msg = f"Similar component found: {best.name} ({best.similarity}% match)"
    if best.path:
        msg += f" at {best.path}"

    if len(similar) > 1:
        msg += "\n\nOther similar components:"
        for s in similar[1 : MAX_LISTED_ALTERNATIVES + 1]:
            msg += f"\n- {s.name} ({s.similarity}%)"
            if s.path:
                msg += f" at {s.path}"

    msg += (
        "\n\nConsider:"
        "\n1. Using the existing component"
        "\n2. Adding a variant to the existing component"
        "\n3. Extending the existing component"
    )
    return msg


def check_component_reuse(
    store: StateStore, file_path: str, content: str | None = None
) -> HookResult:
    """Check a new file against the component registry.

    ``content`` is accepted for adapters that have it; matching is by name.
    """
    config: FlowConfig = store.load_config()
    rule = config.hooks.rules.component_reuse
    if not rule.enabled:
        return HookResult.allow(Reason.COMPONENT_CHECK_DISABLED)

    if not is_component_path(file_path, config.component_patterns()):
        return HookResult.allow(Reason.NOT_COMPONENT_PATH)

    component_name = extract_component_name(file_path)
    similar = find_similar_components(store, component_name, rule.threshold)
    if not similar:
        return HookResult.allow(Reason.NO_SIMILAR_FOUND)

    best = similar[0]
    message = generate_similar_message(similar)
    logger.info(f"Component {component_name!r} resembles {best.name!r} ({best.similarity}%)")

    if best.exact and rule.block_on_similar:
        return HookResult.block(
            Reason.COMPONENT_EXISTS, message, similar=similar, best_match=best
        )
    reason = Reason.COMPONENT_EXISTS_WARNING if best.exact else Reason.SIMILAR_COMPONENT_WARNING
    return HookResult.warn(reason, message, similar=similar, best_match=best)
