"""Tests for remote extraction sources."""

from datetime import date

import pytest

from whspine.core.errors import RemoteExtractionError
from whspine.core.rate_limit import MinIntervalLimiter
from whspine.core.secrets import SecretValue
from whspine.registry.connections import RemoteConnection
from whspine.remote import PacedRemoteSource, SqlAlchemyRemoteSource


@pytest.fixture
def remote_conn() -> RemoteConnection:
    return RemoteConnection("acme-prod", "127.0.0.1", 1, "acme", "reader", SecretValue("s3cret"))


class TestSqlAlchemyRemoteSource:
    def test_url_unwraps_secret(self, remote_conn):
        url = SqlAlchemyRemoteSource().url_for(remote_conn)
        assert url.drivername == "postgresql+psycopg2"
        assert url.password == "s3cret"
        assert url.host == "127.0.0.1"
        assert url.database == "acme"
        assert "s3cret" not in url.render_as_string(hide_password=True)

    def test_unreachable_source(self, remote_conn):
        with pytest.raises(RemoteExtractionError) as exc:
            SqlAlchemyRemoteSource(connect_timeout=1).fetch(remote_conn, "SELECT 1")
        assert exc.value.context.tenant == "acme-prod"
        assert exc.value.retryable
        assert "s3cret" not in exc.value.message


class TestPacedRemoteSource:
    def test_waits_between_extractions(self, remote, remote_conn):
        now = [0.0]
        sleeps: list[float] = []

        def sleep(seconds: float) -> None:
            sleeps.append(seconds)
            now[0] += seconds

        limiter = MinIntervalLimiter(2.0, clock=lambda: now[0], sleep=sleep)
        paced = PacedRemoteSource(remote, limiter)
        remote.default_rows = 2

        query = f"SELECT * FROM sales WHERE day = '{date(2024, 1, 15)}'"
        assert len(paced.fetch(remote_conn, query)) == 2
        paced.fetch(remote_conn, query)
        assert sleeps == [2.0]
        assert len(remote.calls) == 2
