import logging

from sped_profiler.cascade import DEFAULT_SOURCE, Tier, run_cascade


def test_first_applicable_tier_wins() -> None:
    """Tiers are tried in order and never combined."""
    tiers = [
        Tier("first", lambda s: s["a"]),
        Tier("second", lambda s: s["b"]),
    ]

    estimate = run_cascade("test", tiers, {"a": 1, "b": 2}, default=0)

    assert estimate.value == 1
    assert estimate.source == "first"
    assert not estimate.is_default


def test_none_and_false_predicate_skip_a_tier() -> None:
    """A tier with no signal or a false predicate falls through."""
    tiers = [
        Tier("no_signal", lambda s: None),
        Tier("guarded", lambda s: 5, when=lambda s: False),
        Tier("last", lambda s: 0.0),
    ]

    estimate = run_cascade("test", tiers, None, default=9.0)

    # zero is a legitimate value, not a missing one
    assert estimate.value == 0.0
    assert estimate.source == "last"


def test_raising_tier_is_skipped(caplog) -> None:
    """An exception inside a tier is logged at DEBUG and the next tier runs."""
    tiers = [
        Tier("broken", lambda s: 1 / 0),
        Tier("fallback", lambda s: "ok"),
    ]

    with caplog.at_level(logging.DEBUG, logger="sped_profiler.cascade"):
        estimate = run_cascade("test", tiers, None, default="default")

    assert estimate.value == "ok"
    assert "tier 'broken' failed" in caplog.text


def test_default_when_no_tier_applies() -> None:
    """The default is returned with the 'default' source."""
    estimate = run_cascade("test", [Tier("none", lambda s: None)], None, default=30)

    assert estimate.value == 30
    assert estimate.source == DEFAULT_SOURCE
    assert estimate.is_default
    assert run_cascade("test", [], None, default=1).is_default
