"""
Tests for fetcher.py with a fake streaming session.
"""
import threading
from unittest.mock import MagicMock, patch

import pytest
import requests

from putiosync.exceptions import FetchFailureError
from putiosync.fetcher import BulkFetcher, FetchRequest
from tests.fixtures.fake_http import FakeResponse, FakeSession


def _fetcher(session, **kwargs):
    kwargs.setdefault("chunk_size", 4)
    kwargs.setdefault("max_retries", 0)
    return BulkFetcher(session=session, **kwargs)


class TestFetchOne:
    """Single transfers into the staging directory."""

    def test_writes_file(self, tmp_path):
        session = FakeSession({"u": [FakeResponse(b"hello world")]})
        target = tmp_path / "1-a.txt"

        written = _fetcher(session).fetch_one("u", target)

        assert written == 11
        assert target.read_bytes() == b"hello world"
        assert not (tmp_path / "1-a.txt.part").exists()

    def test_http_error(self, tmp_path):
        session = FakeSession({"u": [FakeResponse(status=404)]})
        target = tmp_path / "f"

        with pytest.raises(FetchFailureError, match="404"):
            _fetcher(session).fetch_one("u", target)

        assert list(tmp_path.iterdir()) == []

    def test_length_mismatch_leaves_nothing_staged(self, tmp_path):
        response = FakeResponse(b"short", headers={"Content-Length": "100"})
        session = FakeSession({"u": [response]})
        target = tmp_path / "f"

        with pytest.raises(FetchFailureError, match="Size mismatch"):
            _fetcher(session).fetch_one("u", target)

        assert list(tmp_path.iterdir()) == []

    def test_interrupted_stream_leaves_nothing_staged(self, tmp_path):
        session = FakeSession({"u": [FakeResponse(b"0123456789", fail_after=4)]})
        target = tmp_path / "f"

        with pytest.raises(requests.ConnectionError):
            _fetcher(session).fetch_one("u", target)

        assert list(tmp_path.iterdir()) == []

    def test_encoded_body_skips_length_check(self, tmp_path):
        response = FakeResponse(
            b"decoded body", headers={"Content-Length": "5", "Content-Encoding": "gzip"}
        )
        session = FakeSession({"u": [response]})
        target = tmp_path / "f"

        _fetcher(session).fetch_one("u", target)

        assert target.read_bytes() == b"decoded body"

    def test_missing_length_header(self, tmp_path):
        session = FakeSession({"u": [FakeResponse(b"data", headers={})]})
        target = tmp_path / "f"

        _fetcher(session).fetch_one("u", target)

        assert target.read_bytes() == b"data"


class TestFetchAll:
    """Bounded concurrent transfers."""

    def test_results_follow_request_order(self, tmp_path):
        session = FakeSession({
            "u1": [FakeResponse(b"one")],
            "u2": [FakeResponse(b"two")],
            "u3": [FakeResponse(b"three")],
        })
        requests_ = [FetchRequest("u1", "a"), FetchRequest("u2", "b"), FetchRequest("u3", "c")]

        results = _fetcher(session).fetch_all(requests_, 2, tmp_path)

        assert [r.request for r in results] == requests_
        assert all(r.ok for r in results)
        assert (tmp_path / "c").read_bytes() == b"three"

    def test_failure_does_not_cancel_siblings(self, tmp_path):
        session = FakeSession({
            "good": [FakeResponse(b"fine")],
            "bad": [FakeResponse(status=500)],
        })
        requests_ = [FetchRequest("bad", "x"), FetchRequest("good", "y")]

        results = _fetcher(session).fetch_all(requests_, 3, tmp_path)

        assert not results[0].ok
        assert isinstance(results[0].error, FetchFailureError)
        assert not (tmp_path / "x").exists()
        assert results[1].ok
        assert (tmp_path / "y").read_bytes() == b"fine"

    def test_transient_error_is_retried(self, tmp_path):
        session = FakeSession({
            "u": [FakeResponse(status=503), FakeResponse(b"eventually")],
        })

        with patch("time.sleep") as mock_sleep:
            results = _fetcher(session, max_retries=2).fetch_all(
                [FetchRequest("u", "f")], 1, tmp_path
            )

        assert results[0].ok
        assert session.requested == ["u", "u"]
        assert mock_sleep.call_count == 1
        assert (tmp_path / "f").read_bytes() == b"eventually"

    def test_progress_callback(self, tmp_path):
        session = FakeSession({"u1": [FakeResponse(b"1")], "u2": [FakeResponse(b"2")]})
        progress = MagicMock()

        _fetcher(session).fetch_all(
            [FetchRequest("u1", "a"), FetchRequest("u2", "b")], 2, tmp_path, progress
        )

        assert progress.call_count == 2
        assert sorted(c[0][0] for c in progress.call_args_list) == [1, 2]
        assert all(c[0][1] == 2 for c in progress.call_args_list)

    def test_rejects_zero_concurrency(self, tmp_path):
        with pytest.raises(ValueError):
            _fetcher(FakeSession({})).fetch_all([], 0, tmp_path)

    def test_empty_request_list(self, tmp_path):
        assert _fetcher(FakeSession({})).fetch_all([], 3, tmp_path) == []


class TestSessions:
    """Each worker thread talks through its own requests session."""

    def test_one_session_per_thread(self):
        fetcher = BulkFetcher()
        seen = {}

        def grab(name):
            seen[name] = (fetcher._get_session(), fetcher._get_session())

        with patch("putiosync.fetcher.requests.Session", side_effect=lambda: MagicMock()) as factory:
            threads = [threading.Thread(target=grab, args=(name,)) for name in ("a", "b")]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        assert seen["a"][0] is seen["a"][1]
        assert seen["a"][0] is not seen["b"][0]
        assert factory.call_count == 2

    def test_worker_sessions_closed_after_batch(self, tmp_path):
        created = []

        def make_session():
            session = MagicMock()
            session.get.side_effect = lambda url, **kwargs: FakeResponse(b"data")
            created.append(session)
            return session

        fetcher = BulkFetcher(chunk_size=4, max_retries=0)
        with patch("putiosync.fetcher.requests.Session", side_effect=make_session):
            results = fetcher.fetch_all(
                [FetchRequest("u1", "a"), FetchRequest("u2", "b")], 2, tmp_path
            )

        assert all(r.ok for r in results)
        assert 1 <= len(created) <= 2
        assert all(session.close.called for session in created)

    def test_injected_session_is_shared(self, tmp_path):
        session = FakeSession({"u1": [FakeResponse(b"1")], "u2": [FakeResponse(b"2")]})

        _fetcher(session).fetch_all(
            [FetchRequest("u1", "a"), FetchRequest("u2", "b")], 2, tmp_path
        )

        assert sorted(session.requested) == ["u1", "u2"]
