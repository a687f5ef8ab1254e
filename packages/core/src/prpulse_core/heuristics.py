"""AI-authorship heuristics for pull requests.

classify_pull_request() labels a PR as "ai", "human" or "mixed" from four
independent signals, each gated by its enabled flag:

    author-bot  : PR author is in the bot list (exact, case-insensitive)
    branch-name : head branch matches a glob pattern
    label       : a PR label is in the label list (exact, case-insensitive)
    co-author   : commits carry an AI Co-Authored-By trailer

Any full signal → "ai". Co-author on some but not all commits → "mixed".
Otherwise → "human". A full signal always wins over a partial one.

Everything here is pure: the config is an immutable value object passed in
explicitly, never read from ambient state.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from prpulse_store.models import PullRequestLabel

logger = logging.getLogger(__name__)

AI_LABELS = ("ai", "human", "mixed")

_CO_AUTHOR_RE = re.compile(r"Co-Authored-By:\s*(.+)", re.IGNORECASE)


@dataclass(frozen=True)
class HeuristicsEnabled:
    co_author: bool = True
    author_bot: bool = True
    branch_name: bool = True
    label: bool = True


@dataclass(frozen=True)
class AiHeuristicsConfig:
    co_author_patterns: tuple[str, ...] = ()
    author_bot_list: tuple[str, ...] = ()
    branch_name_patterns: tuple[str, ...] = ()
    labels: tuple[str, ...] = ()
    enabled: HeuristicsEnabled = field(default_factory=HeuristicsEnabled)

    @classmethod
    def from_dict(cls, data: dict) -> AiHeuristicsConfig:
        """Build a config from the camelCase structure stored in settings.

        Raises ValueError when the structure is incomplete or mistyped.
        """
        if not isinstance(data, dict):
            raise ValueError("AI heuristics config must be an object")

        lists = {}
        for key in ("coAuthorPatterns", "authorBotList", "branchNamePatterns", "labels"):
            value = data.get(key)
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ValueError(f"AI heuristics config: {key!r} must be a list of strings")
            lists[key] = tuple(value)

        enabled = data.get("enabled")
        if not isinstance(enabled, dict):
            raise ValueError("AI heuristics config: 'enabled' must be an object")
        flags = {}
        for key in ("coAuthor", "authorBot", "branchName", "label"):
            if not isinstance(enabled.get(key), bool):
                raise ValueError(f"AI heuristics config: 'enabled.{key}' must be a boolean")
            flags[key] = enabled[key]

        return cls(
            co_author_patterns=lists["coAuthorPatterns"],
            author_bot_list=lists["authorBotList"],
            branch_name_patterns=lists["branchNamePatterns"],
            labels=lists["labels"],
            enabled=HeuristicsEnabled(
                co_author=flags["coAuthor"],
                author_bot=flags["authorBot"],
                branch_name=flags["branchName"],
                label=flags["label"],
            ),
        )

    def to_dict(self) -> dict:
        return {
            "coAuthorPatterns": list(self.co_author_patterns),
            "authorBotList": list(self.author_bot_list),
            "branchNamePatterns": list(self.branch_name_patterns),
            "labels": list(self.labels),
            "enabled": {
                "coAuthor": self.enabled.co_author,
                "authorBot": self.enabled.author_bot,
                "branchName": self.enabled.branch_name,
                "label": self.enabled.label,
            },
        }


DEFAULT_AI_HEURISTICS = AiHeuristicsConfig(
    co_author_patterns=("*Claude*", "*Copilot*", "*[bot]*"),
    author_bot_list=("dependabot", "renovate", "dependabot[bot]", "renovate[bot]"),
    branch_name_patterns=("ai/*", "copilot/*", "claude/*"),
    labels=("ai-generated", "ai-assisted", "bot"),
)


@dataclass(frozen=True)
class PrData:
    author: str
    branch_name: str | None = None
    labels: tuple[str, ...] = ()


@dataclass(frozen=True)
class CommitData:
    message: str


def matches_glob(text: str, pattern: str) -> bool:
    """Case-insensitive full match where only ``*`` is a wildcard.

    Every other character in the pattern is literal, so "[bot]" matches the
    text "[bot]" rather than a character class.
    """
    regex = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.fullmatch(regex, text, flags=re.IGNORECASE | re.DOTALL) is not None


def matches_any_glob(text: str, patterns: Iterable[str]) -> bool:
    return any(matches_glob(text, p) for p in patterns)


def has_co_author_match(commit_message: str, patterns: Iterable[str]) -> bool:
    """Return True if any Co-Authored-By trailer in the message matches a pattern."""
    patterns = list(patterns)
    for match in _CO_AUTHOR_RE.finditer(commit_message or ""):
        if matches_any_glob(match.group(1).strip(), patterns):
            return True
    return False


def classify_pull_request(pr: PrData, commits: list[CommitData], config: AiHeuristicsConfig) -> str:
    has_full_signal = False
    has_partial_signal = False

    if config.enabled.author_bot:
        author = pr.author.lower()
        if any(bot.lower() == author for bot in config.author_bot_list):
            has_full_signal = True

    if config.enabled.branch_name and pr.branch_name:
        if matches_any_glob(pr.branch_name, config.branch_name_patterns):
            has_full_signal = True

    if config.enabled.label:
        wanted = {label.lower() for label in config.labels}
        if any(label.lower() in wanted for label in pr.labels):
            has_full_signal = True

    # Zero commits never contributes a co-author signal.
    if config.enabled.co_author and commits:
        match_count = sum(1 for c in commits if has_co_author_match(c.message, config.co_author_patterns))
        if match_count == len(commits):
            has_full_signal = True
        elif match_count > 0:
            has_partial_signal = True

    if has_full_signal:
        return "ai"
    if has_partial_signal:
        return "mixed"
    return "human"


def load_ai_heuristics(raw: str | None) -> AiHeuristicsConfig:
    """Parse the ``ai_heuristics`` setting, falling back to the defaults.

    A missing or malformed setting must not stop a sync, so errors are logged
    rather than raised.
    """
    if not raw:
        return DEFAULT_AI_HEURISTICS
    try:
        return AiHeuristicsConfig.from_dict(json.loads(raw))
    except (json.JSONDecodeError, ValueError) as e:
        logger.warning("Invalid ai_heuristics setting, using defaults: %s", e)
        return DEFAULT_AI_HEURISTICS


@dataclass
class AiRatio:
    ai: int = 0
    human: int = 0
    mixed: int = 0

    @property
    def total(self) -> int:
        return self.ai + self.human + self.mixed

    def percent(self, label: str) -> float:
        if not self.total:
            return 0.0
        return getattr(self, label) / self.total * 100



def compute_ai_ratio(labels: Iterable[str]) -> AiRatio:
    """Count ai/human/mixed labels. Anything else is logged and skipped."""
    ratio = AiRatio()
    for label in labels:
        if label not in AI_LABELS:
            logger.warning("Skipping unknown AI label %r", label)
            continue
        setattr(ratio, label, getattr(ratio, label) + 1)
    return ratio


def compute_ai_ratio_by_author(rows: Iterable[PullRequestLabel]) -> dict[str, AiRatio]:
    """Group labelled pull requests into one AiRatio per author.

    Authors are returned in alphabetical order.
    """
    labels_by_author: dict[str, list[str]] = {}
    for row in rows:
        labels_by_author.setdefault(row.author, []).append(row.ai_generated)
    return {author: compute_ai_ratio(labels_by_author[author]) for author in sorted(labels_by_author)}
