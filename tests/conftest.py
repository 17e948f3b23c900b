"""
Pytest configuration and fixtures for the now/next service tests.
"""
from datetime import datetime, timezone

import httpx
import pytest

from nownext.utils.timezone import TimestampPolicy


SOURCE_URL = "http://epg.example.com/guide.xml"


SAMPLE_XMLTV = b"""<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE tv SYSTEM "xmltv.dtd">
<tv generator-info-name="test">
    <channel id="C1">
        <display-name>Channel One</display-name>
        <display-name>  C1 HD  </display-name>
        <icon src="https://example.com/c1.png"/>
    </channel>
    <channel>
        <display-name>No Id</display-name>
    </channel>
    <channel id="EMPTY">
        <display-name>   </display-name>
    </channel>
    <channel id="C2">
        <display-name>Old Two</display-name>
    </channel>
    <channel id="C2">
        <display-name>Channel Two</display-name>
    </channel>
    <programme start="20260110100000 +0000" stop="20260110110000 +0000" channel="C1">
        <title lang="en">A</title>
        <desc>First show</desc>
        <category>News</category>
        <category>Weather</category>
    </programme>
    <programme start="20260110110000 +0000" stop="20260110120000 +0000" channel="C1">
        <title>B</title>
    </programme>
    <programme start="notadate" stop="20260110130000 +0000" channel="C1">
        <title>Broken</title>
    </programme>
    <programme start="20260110120000 +0000" stop="20260110130000 +0000" channel="C1">
        <desc>No title here</desc>
    </programme>
    <programme start="20260110120000 +0000" channel="C1">
        <title>No stop</title>
    </programme>
    <programme start="20260110093000 +0000" stop="20260110113000 +0000" channel="C2">
        <title>Movie</title>
        <sub-title>Extension element</sub-title>
    </programme>
    <programme start="20260110100000 +0000" stop="20260110110000 +0000" channel="GHOST">
        <title>Unknown channel show</title>
    </programme>
</tv>
"""


def utc(hour: int, minute: int = 0, day: int = 10) -> datetime:
    """Reference instant on 2026-01-10 in UTC"""
    return datetime(2026, 1, day, hour, minute, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock the tests advance by hand"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingTransport(httpx.MockTransport):
    """MockTransport that records how many requests it served"""

    def __init__(self, handler):
        self.calls = 0

        async def counting_handler(request: httpx.Request) -> httpx.Response:
            self.calls += 1
            response = handler(request)
            if not isinstance(response, httpx.Response):
                response = await response
            return response

        super().__init__(counting_handler)


@pytest.fixture
def sample_xmltv():
    """Sample XMLTV document bytes"""
    return SAMPLE_XMLTV


@pytest.fixture
def utc_policy():
    """Decode timestamps as UTC wall clock, offsets ignored"""
    return TimestampPolicy(timezone_name="UTC")


@pytest.fixture
def clock():
    return FakeClock()
