"""Tests for wakey.categorizer — rules, domains, AI fallback, distraction policy."""

import pytest

import wakey.config as cfg
from wakey.categorizer import (
    AICategorizer,
    CompositeCategorizer,
    DistractionPolicy,
    RuleCategorizer,
    build_default_categorizer,
    match_domain_rules,
    match_keyword_rules,
)
from wakey.errors import CategorizerFailure


def _ai_reply(text):
    return {"choices": [{"message": {"content": text}}]}


class TestKeywordRules:
    @pytest.mark.parametrize("app,expected", [
        ("Code", "Development"),
        ("Visual Studio Code", "Development"),
        ("iTerm Terminal", "Development"),
        ("Slack", "Communication"),
        ("Microsoft Word", "Productivity"),
        ("Figma", "Design"),
        ("Spotify", "Entertainment"),
        ("Google Chrome", "Browser"),
        ("Calculator", "Other"),
    ])
    def test_default_rules(self, app, expected):
        assert RuleCategorizer().categorize(app, None) == expected

    def test_first_match_wins(self):
        rules = [("a", "First"), ("ab", "Second")]
        assert match_keyword_rules(rules, "ab") == "First"
        assert match_keyword_rules(list(reversed(rules)), "ab") == "Second"

    def test_shadowed_rules_are_kept(self):
        # "word" is a substring of "1Password" and matches before anything else
        assert RuleCategorizer().categorize("1Password", None) == "Productivity"

    def test_case_insensitive(self):
        assert match_keyword_rules([("slack", "Communication")], "SLACK") == "Communication"

    def test_custom_default(self):
        assert RuleCategorizer(rules=[], domain_rules={}, default="Misc").categorize("x", None) == "Misc"


class TestDomainRules:
    @pytest.mark.parametrize("url,expected", [
        ("https://github.com/anthropics", "Development"),
        ("https://www.youtube.com/watch?v=1", "Entertainment"),
        ("https://gist.github.com/x", "Development"),
        ("reddit.com/r/python", "Social Media"),
        ("https://notgithub.com", None),
        ("", None),
        (None, None),
    ])
    def test_match(self, url, expected):
        assert match_domain_rules(cfg.DOMAIN_RULES, url) == expected

    def test_domain_takes_precedence_over_app_keyword(self):
        c = RuleCategorizer()
        assert c.categorize("Google Chrome", "PR", "https://github.com/x/pull/1") == "Development"

    def test_unknown_domain_falls_back_to_app(self):
        c = RuleCategorizer()
        assert c.categorize("Google Chrome", "Blog", "https://example.org") == "Browser"


class TestAICategorizer:
    def test_disabled_without_key(self):
        ai = AICategorizer(api_key="")
        assert not ai.enabled
        with pytest.raises(CategorizerFailure):
            ai.categorize("Mystery", None)

    def test_normalises_answer(self):
        ai = AICategorizer(api_key="k")
        ai._request = lambda payload: _ai_reply("  development\n")
        assert ai.categorize("Zed", "main.rs") == "Development"

    def test_sends_app_and_title(self):
        ai = AICategorizer(api_key="k", model="test-model")
        sent = []

        def fake(payload):
            sent.append(payload)
            return _ai_reply("Design")

        ai._request = fake
        ai.categorize("Sketch", "Logo")
        assert sent[0]["model"] == "test-model"
        assert "App: Sketch" in sent[0]["messages"][1]["content"]
        assert "Window: Logo" in sent[0]["messages"][1]["content"]

    def test_unknown_label_fails(self):
        ai = AICategorizer(api_key="k")
        ai._request = lambda payload: _ai_reply("Gardening")
        with pytest.raises(CategorizerFailure, match="unexpected category"):
            ai.categorize("Mystery", None)

    def test_transport_error_fails(self):
        ai = AICategorizer(api_key="k")

        def offline(payload):
            raise OSError("network unreachable")

        ai._request = offline
        with pytest.raises(CategorizerFailure):
            ai.categorize("Mystery", None)

    def test_malformed_body_fails(self):
        ai = AICategorizer(api_key="k")
        ai._request = lambda payload: {"error": "rate limited"}
        with pytest.raises(CategorizerFailure):
            ai.categorize("Mystery", None)


class CountingAI:
    enabled = True

    def __init__(self, answer="Finance", fail=False):
        self.answer = answer
        self.fail = fail
        self.calls = 0

    def categorize(self, app_name, title, url=None):
        self.calls += 1
        if self.fail:
            raise CategorizerFailure("offline")
        return self.answer


class TestCompositeCategorizer:
    def test_rules_win_without_calling_ai(self):
        ai = CountingAI()
        c = CompositeCategorizer(ai=ai)
        assert c.categorize("Slack", None) == "Communication"
        assert ai.calls == 0

    def test_unknown_app_asks_ai_once(self):
        ai = CountingAI("Finance")
        c = CompositeCategorizer(ai=ai)
        assert c.categorize("Quicken", "Budget") == "Finance"
        assert c.categorize("quicken", "Other window") == "Finance"
        assert ai.calls == 1

    def test_ai_failure_gives_default_and_is_retried_later(self):
        ai = CountingAI(fail=True)
        c = CompositeCategorizer(ai=ai)
        assert c.categorize("Quicken", None) == "Other"
        ai.fail = False
        assert c.categorize("Quicken", None) == "Finance"
        assert ai.calls == 2

    def test_no_ai(self):
        assert CompositeCategorizer().categorize("Quicken", None) == "Other"

    def test_default_build_without_key_has_no_ai(self, monkeypatch):
        monkeypatch.setattr(cfg, "AI_API_KEY", "")
        assert build_default_categorizer().ai is None

    def test_default_build_with_key(self, monkeypatch):
        monkeypatch.setattr(cfg, "AI_API_KEY", "secret")
        assert build_default_categorizer().ai.enabled


class TestDistractionPolicy:
    def test_category_flags_distraction(self):
        assert DistractionPolicy().is_distraction("Twitter", "Social Media")

    def test_keyword_in_url(self):
        p = DistractionPolicy(keywords=["youtube"], categories=[])
        assert p.is_distraction("Google Chrome", "Browser", "https://youtube.com/watch")
        assert not p.is_distraction("Google Chrome", "Browser", "https://github.com")

    def test_keyword_in_app_name(self):
        p = DistractionPolicy(keywords=["steam"], categories=[])
        assert p.is_distraction("Steam", None)

    def test_work_apps_are_not_distractions(self):
        assert not DistractionPolicy().is_distraction("Code", "Development")
