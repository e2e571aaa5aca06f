import pytest

from streamz.ranges import RangePlan, negotiate_range


def test_no_header_is_whole_object():
    plan = negotiate_range(None, 1000)
    assert plan.status == 200
    assert (plan.start, plan.end, plan.length) == (0, 999, 1000)
    assert plan.headers("video/mp4") == {
        "Accept-Ranges": "bytes",
        "Content-Length": "1000",
        "Content-Type": "video/mp4",
    }


@pytest.mark.parametrize(
    "header, expected_range, length",
    [
        ("bytes=0-499", "bytes 0-499/1000", 500),
        ("bytes=500-", "bytes 500-999/1000", 500),
        ("bytes=999-999", "bytes 999-999/1000", 1),
        ("bytes=0-", "bytes 0-999/1000", 1000),
    ],
)
def test_satisfiable_ranges(header, expected_range, length):
    plan = negotiate_range(header, 1000)
    assert plan.status == 206
    headers = plan.headers()
    assert headers["Content-Range"] == expected_range
    assert headers["Content-Length"] == str(length)
    assert headers["Accept-Ranges"] == "bytes"


@pytest.mark.parametrize(
    "header",
    [
        "bytes=1000-1001",
        "bytes=0-1000",
        "bytes=1000-",
        "bytes=600-500",
        "bytes=-500",  # suffix ranges unsupported
        "bytes=0-1,5-9",  # multi-range unsupported
        "items=0-10",
        "garbage",
    ],
)
def test_unsatisfiable_or_malformed_ranges(header):
    plan = negotiate_range(header, 1000)
    assert plan.status == 416
    assert not plan.satisfiable
    assert plan.headers()["Content-Range"] == "bytes */1000"
    assert "Content-Length" not in plan.headers()


def test_negotiation_is_pure():
    first = negotiate_range("bytes=10-20", 100)
    second = negotiate_range("bytes=10-20", 100)
    assert first == second == RangePlan(status=206, size=100, start=10, end=20)


def test_whitespace_around_header_is_tolerated():
    assert negotiate_range("  bytes=1-2 ", 10).status == 206


def test_empty_object():
    assert negotiate_range(None, 0) == RangePlan(status=200, size=0)
    assert negotiate_range(None, 0).headers()["Content-Length"] == "0"
    assert negotiate_range("bytes=0-", 0).status == 416


def test_negative_size_rejected():
    with pytest.raises(ValueError):
        negotiate_range(None, -1)


@pytest.mark.parametrize(
    "header",
    ["bytes=" + "9" * 5000 + "-", "bytes=0-" + "9" * 5000, "bytes=" + "1" * 5000 + "-" + "2" * 5000],
)
def test_very_long_bounds_are_unsatisfiable(header):
    plan = negotiate_range(header, 1000)
    assert plan.status == 416
    assert plan.headers()["Content-Range"] == "bytes */1000"


def test_leading_zeros_are_not_length():
    plan = negotiate_range("bytes=" + "0" * 50 + "10-" + "0" * 50 + "19", 1000)
    assert (plan.status, plan.start, plan.end) == (206, 10, 19)
