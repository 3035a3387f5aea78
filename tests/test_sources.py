"""Tests for source fetching."""

import pytest
import requests

from update_monitor.sources import (
    DEFAULT_SOURCES,
    FetchError,
    FetchKind,
    RawSignal,
    SourceDescriptor,
    fetch_signal,
    get_source,
)

APP_STORE_HTML = """
<html><body>
  <h4>Version History</h4>
  <p class="l-column small-6 medium-12 whats-new__latest__version">Version 2.672.0</p>
  <time data-test-we-datetime datetime="2024-01-15T00:00:00.000Z" aria-label="January 15, 2024">Jan 15, 2024</time>
</body></html>
"""

PLAY_STORE_HTML = (
    '<div class="xg1aie">Updated on</div><div class="xg1aie">Jan 15, 2024</div>'
    '<script>AF_initDataCallback({data:[[["2.672.0"]]]});</script>'
)


class TestFetchJson:
    """Tests for JSON API sources."""

    def test_reads_named_field(self, session, desktop_source, make_response):
        session.get.return_value = make_response(
            json_data={
                "version": "0.672.0.6720707",
                "clientVersionUpload": "version-f2b4c8e1a3d94b1c",
                "bootstrapperVersion": "1, 6, 0, 6720707",
            }
        )

        signal = fetch_signal(desktop_source, session, timeout=5)

        assert signal == RawSignal(version="version-f2b4c8e1a3d94b1c", date=None)
        _, kwargs = session.get.call_args
        assert kwargs["timeout"] == 5
        assert kwargs["verify"] is True

    def test_non_success_status(self, session, desktop_source, make_response):
        session.get.return_value = make_response(503, text="Service Unavailable")

        with pytest.raises(FetchError, match="HTTP 503"):
            fetch_signal(desktop_source, session)

    def test_body_not_json(self, session, desktop_source, make_response):
        session.get.return_value = make_response(200, text="<html>oops</html>")

        with pytest.raises(FetchError, match="not JSON"):
            fetch_signal(desktop_source, session)

    def test_missing_field(self, session, desktop_source, make_response):
        session.get.return_value = make_response(json_data={"version": "0.672"})

        with pytest.raises(FetchError, match="clientVersionUpload"):
            fetch_signal(desktop_source, session)

    def test_blank_version(self, session, desktop_source, make_response):
        session.get.return_value = make_response(json_data={"clientVersionUpload": "   "})

        with pytest.raises(FetchError, match="empty version"):
            fetch_signal(desktop_source, session)

    def test_timeout(self, session, desktop_source):
        session.get.side_effect = requests.Timeout("read timed out")

        with pytest.raises(FetchError, match="timed out"):
            fetch_signal(desktop_source, session, timeout=1)

    def test_connection_error(self, session, desktop_source):
        session.get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(FetchError, match="request failed"):
            fetch_signal(desktop_source, session)


class TestFetchPage:
    """Tests for scraped storefront sources."""

    def test_app_store_page(self, session, mobile_source, make_response):
        session.get.return_value = make_response(text=APP_STORE_HTML)

        signal = fetch_signal(mobile_source, session)

        assert signal == RawSignal(version="2.672.0", date="Jan 15, 2024")
        _, kwargs = session.get.call_args
        assert kwargs["verify"] is False
        assert kwargs["allow_redirects"] is True

    def test_play_store_patterns(self, session, make_response):
        source = get_source("Android")
        session.get.return_value = make_response(text=PLAY_STORE_HTML)

        signal = fetch_signal(source, session)

        assert signal == RawSignal(version="2.672.0", date="Jan 15, 2024")

    def test_date_markup_is_flattened(self, session, mobile_source, make_response):
        html = "Version 2.672.0 <time><span>Jan&nbsp;15, 2024</span></time>"
        session.get.return_value = make_response(text=html)

        signal = fetch_signal(mobile_source, session)

        assert " ".join(signal.date.split()) == "Jan 15, 2024"

    def test_version_pattern_miss(self, session, mobile_source, make_response):
        session.get.return_value = make_response(text="<time>Jan 15, 2024</time>")

        with pytest.raises(FetchError, match="pattern did not match"):
            fetch_signal(mobile_source, session)

    def test_date_pattern_miss(self, session, mobile_source, make_response):
        session.get.return_value = make_response(text="Version 2.672.0")

        with pytest.raises(FetchError, match="date=False"):
            fetch_signal(mobile_source, session)

    def test_blocked_page(self, session, mobile_source, make_response):
        session.get.return_value = make_response(403, text="Forbidden")

        with pytest.raises(FetchError, match="HTTP 403"):
            fetch_signal(mobile_source, session)


class TestDefaultSources:
    """Tests for the built-in source list."""

    def test_keys_are_unique(self):
        keys = [s.source_key for s in DEFAULT_SOURCES]
        assert len(keys) == len(set(keys)) == 6

    def test_desktop_sources_use_json(self):
        assert get_source("Windows").fetch_kind is FetchKind.JSON_API
        assert get_source("mac").fetch_kind is FetchKind.JSON_API
        assert not get_source("Windows").has_date

    def test_mobile_sources_have_dates(self):
        for key in ("IOS", "IOS-VNG", "Android", "Android-VNG"):
            source = get_source(key)
            assert source.fetch_kind is FetchKind.SCRAPED_PAGE
            assert source.has_date

    def test_unknown_source(self):
        with pytest.raises(KeyError):
            get_source("Linux")

    def test_scraped_page_requires_version_pattern(self):
        with pytest.raises(ValueError, match="version_pattern"):
            SourceDescriptor("IOS", FetchKind.SCRAPED_PAGE, "https://example.test/ios")
