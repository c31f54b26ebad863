"""Tests for CachePolicy — longest-prefix Cache-Control resolution."""

from __future__ import annotations

from sitedeploy.models.policy import NO_CACHE_HEADER, CachePolicy, CacheRule


class TestCacheRule:
    def test_header_plain(self):
        assert CacheRule(max_age=300).header() == "public, max-age=300"

    def test_header_flags(self):
        rule = CacheRule(max_age=31536000, revalidate=True, immutable=True)
        assert rule.header() == "public, max-age=31536000, must-revalidate, immutable"


class TestCachePolicy:
    def test_longest_prefix_wins(self, policy):
        assert policy.match("assets/app.js") == "assets/"
        assert policy.resolve("assets/app.js") == "public, max-age=31536000, immutable"

    def test_exact_path_rule(self, policy):
        assert policy.resolve("index.html") == "public, max-age=0, must-revalidate"

    def test_empty_prefix_is_catch_all(self, policy):
        assert policy.match("about/index.html") == ""
        assert policy.resolve("about/index.html") == "public, max-age=300"

    def test_unmatched_defaults_to_no_cache(self):
        policy = CachePolicy(rules={"assets/": CacheRule(max_age=60)})
        assert policy.match("index.html") is None
        assert policy.resolve("index.html") == NO_CACHE_HEADER

    def test_empty_policy(self):
        assert CachePolicy().resolve("anything") == NO_CACHE_HEADER

    def test_nested_prefixes(self):
        policy = CachePolicy(rules={
            "static/": CacheRule(max_age=60),
            "static/fonts/": CacheRule(max_age=86400, immutable=True),
        })
        assert policy.resolve("static/app.css") == "public, max-age=60"
        assert policy.resolve("static/fonts/a.woff2") == "public, max-age=86400, immutable"
