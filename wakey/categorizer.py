"""App categorisation — keyword rules, browser domain rules, optional AI fallback.

Rules are an ordered list of ``(keyword, category)`` pairs matched as
lowercase substrings of the app name; the first match wins. Some pairs are
shadowed by earlier, shorter keywords (``"code"`` catches anything with
"code" in it before ``"visual studio"`` is tried) and that precedence is
kept as is.
"""

from __future__ import annotations

import json
import logging
import urllib.request
from typing import Protocol
from urllib.parse import urlparse

import wakey.config as config
from wakey.errors import CategorizerFailure

log = logging.getLogger(__name__)


class Categorizer(Protocol):
    def categorize(self, app_name: str, title: str | None, url: str | None = None) -> str:
        """Return a category label for the window."""


def match_keyword_rules(rules, app_name: str) -> str | None:
    lower = app_name.lower()
    for keyword, category in rules:
        if keyword in lower:
            return category
    return None


def match_domain_rules(rules: dict[str, str], url: str | None) -> str | None:
    """Category for a browser URL's host, accepting subdomains of a rule's host."""
    if not url:
        return None
    host = (urlparse(url if "://" in url else f"//{url}").hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    if not host:
        return None
    if host in rules:
        return rules[host]
    for domain, category in rules.items():
        if host.endswith("." + domain):
            return category
    return None


class RuleCategorizer:
    """Categorises from the URL's domain first, then from app-name keywords."""

    def __init__(self, rules=None, domain_rules=None, default: str | None = None):
        self.rules = tuple(config.CATEGORY_RULES if rules is None else rules)
        self.domain_rules = dict(config.DOMAIN_RULES if domain_rules is None else domain_rules)
        self.default = default or config.DEFAULT_CATEGORY

    def match(self, app_name: str, url: str | None = None) -> str | None:
        return match_domain_rules(self.domain_rules, url) or match_keyword_rules(
            self.rules, app_name
        )

    def categorize(self, app_name: str, title: str | None, url: str | None = None) -> str:
        return self.match(app_name, url) or self.default


class AICategorizer:
    """Asks an OpenAI-compatible chat completion endpoint for a category.

    Only reached for apps the rules do not know. Any HTTP, parsing or
    vocabulary problem raises CategorizerFailure.
    """

    def __init__(self, api_key: str | None = None, url: str | None = None,
                 model: str | None = None, timeout: float | None = None):
        self.api_key = config.AI_API_KEY if api_key is None else api_key
        self.url = url or config.AI_API_URL
        self.model = model or config.AI_MODEL
        self.timeout = timeout or config.AI_TIMEOUT

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _request(self, payload: dict) -> dict:
        req = urllib.request.Request(
            self.url,
            data=json.dumps(payload).encode(),
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )
        with urllib.request.urlopen(req, timeout=self.timeout) as resp:
            return json.loads(resp.read())

    def categorize(self, app_name: str, title: str | None, url: str | None = None) -> str:
        if not self.enabled:
            raise CategorizerFailure("no API key configured")
        payload = {
            "model": self.model,
            "messages": [
                {
                    "role": "system",
                    "content": (
                        "You are an app categorizer. Categorize apps into one of these "
                        f"categories: {', '.join(config.AI_CATEGORIES)}. "
                        "Respond with ONLY the category name, nothing else."
                    ),
                },
                {"role": "user", "content": f"App: {app_name}\nWindow: {title or ''}"},
            ],
            "max_tokens": 20,
            "temperature": 0,
        }
        try:
            body = self._request(payload)
            answer = body["choices"][0]["message"]["content"].strip()
        except Exception as e:
            raise CategorizerFailure(f"AI categorization failed: {e}") from e
        for category in config.AI_CATEGORIES:
            if answer.lower() == category.lower():
                return category
        raise CategorizerFailure(f"unexpected category {answer!r}")


class CompositeCategorizer:
    """Rules first, AI for unknown apps, cached per app name, never raises."""

    def __init__(self, rules: RuleCategorizer | None = None, ai: AICategorizer | None = None):
        self.rules = rules or RuleCategorizer()
        self.ai = ai
        self._cache: dict[str, str] = {}

    def categorize(self, app_name: str, title: str | None, url: str | None = None) -> str:
        matched = self.rules.match(app_name, url)
        if matched:
            return matched
        if self.ai is None or not self.ai.enabled:
            return self.rules.default
        key = app_name.lower()
        if key in self._cache:
            return self._cache[key]
        try:
            category = self.ai.categorize(app_name, title, url)
        except CategorizerFailure as e:
            log.warning("[categorizer] %s for %r, using %s", e, app_name, self.rules.default)
            return self.rules.default
        self._cache[key] = category
        return category


class DistractionPolicy:
    """Decides whether a window counts as a distraction."""

    def __init__(self, keywords=None, categories=None):
        self.keywords = tuple(
            k.lower() for k in (config.DISTRACTION_KEYWORDS if keywords is None else keywords)
        )
        self.categories = frozenset(
            config.DISTRACTION_CATEGORIES if categories is None else categories
        )

    def is_distraction(self, app_name: str, category: str | None,
                       url: str | None = None) -> bool:
        if category in self.categories:
            return True
        haystack = f"{app_name} {url or ''}".lower()
        return any(k in haystack for k in self.keywords)


def build_default_categorizer() -> CompositeCategorizer:
    ai = AICategorizer()
    if ai.enabled:
        log.info("[categorizer] AI fallback enabled (%s)", ai.model)
    return CompositeCategorizer(RuleCategorizer(), ai if ai.enabled else None)
