"""Tests for the TTL policy."""

from taskhub.cache.ttl import DEFAULT_TTLS, CacheKind, TtlPolicy
from taskhub.config import Settings


class TestTtlPolicy:
    """Test TTL lookup per cache kind."""

    def test_defaults(self) -> None:
        policy = TtlPolicy()
        assert policy.ttl_for(CacheKind.USER) == 3600
        assert policy.ttl_for(CacheKind.TASK) == 600
        assert policy.ttl_for(CacheKind.COMMENT) == 300
        assert policy.ttl_for(CacheKind.LIST) == 300
        assert policy.ttl_for(CacheKind.STATS) == 180
        assert policy.ttl_for(CacheKind.SEARCH) == 300

    def test_unknown_kind_uses_default(self) -> None:
        """Kinds missing from the table fall back to the default TTL."""
        policy = TtlPolicy()
        assert policy.ttl_for("audit") == DEFAULT_TTLS[CacheKind.DEFAULT]

    def test_string_kinds_match_enum(self) -> None:
        policy = TtlPolicy()
        assert policy.ttl_for("user") == policy.ttl_for(CacheKind.USER)

    def test_overrides_keep_other_defaults(self) -> None:
        policy = TtlPolicy({CacheKind.TASK: 60})
        assert policy.ttl_for(CacheKind.TASK) == 60
        assert policy.ttl_for(CacheKind.USER) == 3600

    def test_override_default_entry(self) -> None:
        policy = TtlPolicy({"default": 42})
        assert policy.ttl_for("anything") == 42

    def test_from_settings(self) -> None:
        settings = Settings(CACHE_STATS_TTL=30, CACHE_USER_TTL=90)
        policy = TtlPolicy.from_settings(settings)
        assert policy.ttl_for(CacheKind.STATS) == 30
        assert policy.ttl_for(CacheKind.USER) == 90
        assert policy.as_dict()["task"] == 600

    def test_zero_or_negative_override_keeps_default(self) -> None:
        policy = TtlPolicy({CacheKind.STATS: 0, CacheKind.LIST: -5, "default": 0})
        assert policy.ttl_for(CacheKind.STATS) == 180
        assert policy.ttl_for(CacheKind.LIST) == 300
        assert policy.ttl_for("anything") == 3600

    def test_zero_ttl_setting_keeps_default(self) -> None:
        policy = TtlPolicy.from_settings(Settings(_env_file=None, CACHE_STATS_TTL=0))
        assert policy.ttl_for(CacheKind.STATS) == 180
