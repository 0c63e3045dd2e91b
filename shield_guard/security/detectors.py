"""Heuristic request classifiers.

Both detectors are pure functions of request metadata: no I/O, no shared
state.
"""

from typing import Iterable, Mapping, Set

from shield_guard.database.models import RequestContext

BOT_TOKENS = (
    "bot",
    "crawler",
    "spider",
    "scraper",
    "curl",
    "wget",
    "python",
    "java",
    "headless",
    "phantom",
    "selenium",
    "webdriver",
    "automation",
)

CLI_TOOL_TOKENS = ("curl",)

SENSITIVE_PATHS = ("/admin", "/wp-admin", "/phpmyadmin", "/.env", "/config")

REQUIRED_HEADERS = ("accept", "accept-language")

MIN_USER_AGENT_LENGTH = 10

MISSING_HEADERS = "missing_headers"
SUSPICIOUS_USER_AGENT = "suspicious_user_agent"
SUSPICIOUS_PATH = "suspicious_path"


class BotDetector:
    """Flags user agents of automation tools.

    Example:
        >>> BotDetector().is_bot("Mozilla/5.0 (compatible; TestBot/1.0)")
        True
    """

    def __init__(self, tokens: Iterable[str] = BOT_TOKENS):
        self.tokens = tuple(t.lower() for t in tokens)

    def is_bot(self, user_agent: str) -> bool:
        ua = (user_agent or "").lower()
        return any(token in ua for token in self.tokens)


class SuspiciousPatternDetector:
    """Runs independent header, user-agent and path checks.

    Returns the names of every check that matched; an empty set means clean.
    """

    def __init__(
        self,
        sensitive_paths: Iterable[str] = SENSITIVE_PATHS,
        cli_tokens: Iterable[str] = CLI_TOOL_TOKENS,
        min_user_agent_length: int = MIN_USER_AGENT_LENGTH,
        required_headers: Iterable[str] = REQUIRED_HEADERS,
    ):
        self.sensitive_paths = tuple(sensitive_paths)
        self.cli_tokens = tuple(cli_tokens)
        self.min_user_agent_length = min_user_agent_length
        self.required_headers = tuple(h.lower() for h in required_headers)

    def _missing_headers(self, headers: Mapping[str, str]) -> bool:
        lowered = {str(k).lower(): v for k, v in headers.items()}
        return any(not lowered.get(name) for name in self.required_headers)

    def _suspicious_user_agent(self, user_agent: str) -> bool:
        ua = user_agent or ""
        return len(ua) < self.min_user_agent_length or any(token in ua for token in self.cli_tokens)

    def _suspicious_path(self, path: str) -> bool:
        return any(fragment in (path or "") for fragment in self.sensitive_paths)

    def detect(self, context: RequestContext) -> Set[str]:
        patterns = set()
        if self._missing_headers(context.headers):
            patterns.add(MISSING_HEADERS)
        if self._suspicious_user_agent(context.user_agent):
            patterns.add(SUSPICIOUS_USER_AGENT)
        if self._suspicious_path(context.path):
            patterns.add(SUSPICIOUS_PATH)
        return patterns


_default_bot_detector = BotDetector()
_default_pattern_detector = SuspiciousPatternDetector()


def detect_bot(user_agent: str) -> bool:
    return _default_bot_detector.is_bot(user_agent)


def detect_suspicious_patterns(context: RequestContext) -> Set[str]:
    return _default_pattern_detector.detect(context)
