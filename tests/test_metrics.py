"""Tests for Prometheus metrics functionality."""

from chainsig import __version__, metrics


def test_metrics_output_is_prometheus_format() -> None:
    """Test that the registry renders the expected metrics."""
    text = metrics.get_metrics_output().decode("utf-8")

    assert "chainsig_build_info" in text
    assert "signatures_assembled_total" in text
    assert "receipts_skipped_total" in text
    assert "derivation_checks_total" in text


def test_build_info_version() -> None:
    value = metrics.REGISTRY.get_sample_value(
        "chainsig_build_info", {"version": __version__, "name": "chainsig"}
    )
    assert value == 1.0

