"""Tests for rate-limit classification and sample-data selection."""

from datetime import date

import pytest

from space_explorer.errors import UpstreamDataError, UpstreamRateLimited, UpstreamUnavailable
from space_explorer.fallback import (
    FALLBACK_APOD_COLLECTION,
    FALLBACK_MARKER,
    FALLBACK_NEO_FEED,
    DegradationPolicy,
    FallbackCategory,
    fallback_apod,
    fallback_apod_range,
    is_fallback,
    mark_fallback,
)


@pytest.fixture
def policy():
    return DegradationPolicy(["rate limit", "429", "too many requests"])


class TestClassification:
    def test_status_429_is_degraded(self, policy):
        error = UpstreamRateLimited("NASA API rate limit exceeded.", 429, "APOD")

        assert policy.is_degraded_condition(error) is True

    def test_message_indicator_without_status(self, policy):
        error = UpstreamUnavailable("OVER_RATE_LIMIT: Rate Limit reached for this key", None, "APOD")

        assert policy.is_degraded_condition(error) is True

    def test_plain_exception_message(self, policy):
        assert policy.is_degraded_condition(RuntimeError("HTTP 429 returned")) is True

    @pytest.mark.parametrize(
        "error",
        [
            UpstreamDataError("APOD: Requested data not found.", 404, "APOD"),
            UpstreamDataError("NASA API key is invalid or missing.", 403, "APOD"),
            UpstreamDataError("APOD API Error (500): Internal Server Error", 500, "APOD"),
            UpstreamUnavailable("APOD: Unable to reach NASA API.", None, "APOD"),
        ],
    )
    def test_other_failures_are_not_degraded(self, policy, error):
        assert policy.is_degraded_condition(error) is False

    def test_indicators_are_configurable(self):
        policy = DegradationPolicy(["quota"])

        assert policy.is_degraded_condition(RuntimeError("Quota exhausted")) is True
        assert policy.is_degraded_condition(RuntimeError("rate limit")) is False


class TestApodSelection:
    def test_exact_date(self):
        payload = fallback_apod("2025-07-01")

        assert payload == {**FALLBACK_APOD_COLLECTION["2025-07-01"], FALLBACK_MARKER: True}

    def test_nearest_date_after_collection(self):
        assert fallback_apod("2025-08-15")["date"] == "2025-07-01"

    def test_nearest_date_before_collection(self):
        assert fallback_apod("2020-01-01")["date"] == "2025-06-25"

    def test_nearest_date_tie_prefers_earlier(self, monkeypatch):
        collection = {
            "2025-01-01": {"date": "2025-01-01"},
            "2025-01-05": {"date": "2025-01-05"},
        }
        monkeypatch.setattr("space_explorer.fallback.FALLBACK_APOD_COLLECTION", collection)

        assert fallback_apod("2025-01-03")["date"] == "2025-01-01"

    def test_no_date_uses_today_when_bundled(self):
        assert fallback_apod(None, today=date(2025, 6, 28))["date"] == "2025-06-28"

    def test_no_date_defaults_to_baseline(self):
        assert fallback_apod(None, today=date(2031, 1, 1))["date"] == "2025-07-01"

    def test_range_has_one_entry_per_day(self):
        payloads = fallback_apod_range("2025-06-30", "2025-07-03")

        assert [p["date"] for p in payloads] == ["2025-06-30", "2025-07-01", "2025-07-01", "2025-07-01"]
        assert all(p[FALLBACK_MARKER] is True for p in payloads)

    def test_single_day_range(self):
        assert len(fallback_apod_range("2025-06-27", "2025-06-27")) == 1

    def test_collection_is_not_modified(self):
        fallback_apod("2025-07-01")

        assert FALLBACK_MARKER not in FALLBACK_APOD_COLLECTION["2025-07-01"]


class TestSelectFallback:
    def test_daily_image_single(self, policy):
        payload = policy.select_fallback(FallbackCategory.DAILY_IMAGE, {"date": "2025-06-29"})

        assert payload["title"] == "Planetary Nebula NGC 7027"

    def test_daily_image_range(self, policy):
        payload = policy.select_fallback(
            FallbackCategory.DAILY_IMAGE, {"start_date": "2025-06-25", "end_date": "2025-06-26"}
        )

        assert [p["date"] for p in payload] == ["2025-06-25", "2025-06-26"]

    @pytest.mark.parametrize(
        "category, expected_key",
        [
            (FallbackCategory.ROVER_PHOTOS, "photos"),
            (FallbackCategory.ROVER_MANIFEST, "photo_manifest"),
            (FallbackCategory.NEAR_EARTH_OBJECTS, "near_earth_objects"),
            (FallbackCategory.MEDIA_SEARCH, "collection"),
        ],
    )
    def test_static_categories_ignore_parameters(self, policy, category, expected_key):
        first = policy.select_fallback(category, {"sol": 12, "rover": "spirit", "q": "mars"})
        second = policy.select_fallback(category)

        assert first == second
        assert expected_key in first
        assert first[FALLBACK_MARKER] is True

    def test_static_payload_is_a_shallow_copy(self, policy):
        payload = policy.select_fallback(FallbackCategory.NEAR_EARTH_OBJECTS)

        assert payload is not FALLBACK_NEO_FEED
        assert payload["near_earth_objects"] is FALLBACK_NEO_FEED["near_earth_objects"]
        assert FALLBACK_MARKER not in FALLBACK_NEO_FEED

    def test_earth_imagery_has_no_dataset(self, policy):
        assert policy.select_fallback(FallbackCategory.EARTH_IMAGERY, {"date": "2025-06-01"}) is None


class TestSubstitute:
    def test_rate_limited_error_is_substituted(self, policy):
        error = UpstreamRateLimited("NASA API rate limit exceeded.", 429, "Mars Photos")

        payload = policy.substitute(error, FallbackCategory.ROVER_PHOTOS)

        assert payload["total"] == 1

    def test_other_errors_are_not_substituted(self, policy):
        error = UpstreamDataError("Mars Photos: Requested data not found.", 404, "Mars Photos")

        assert policy.substitute(error, FallbackCategory.ROVER_PHOTOS) is None


class TestMarker:
    def test_mark_and_detect(self):
        assert is_fallback(mark_fallback({"a": 1})) is True
        assert is_fallback({"a": 1}) is False

    def test_list_payloads(self):
        assert is_fallback([{"a": 1}, mark_fallback({"b": 2})]) is True
        assert is_fallback([{"a": 1}]) is False
        assert is_fallback([]) is False

    def test_non_mapping_payloads(self):
        assert is_fallback(None) is False
        assert is_fallback("text") is False
