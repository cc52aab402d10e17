import pytest

from datecoach.services.platform_detection import detect_platform


@pytest.mark.parametrize(
    "value, expected",
    [
        ("https://tinder.com/app/recs", "tinder"),
        ("https://www.bumble.com/app", "bumble"),
        ("hinge.co", "hinge"),
        ("https://www.okcupid.com/profile/1", "okcupid"),
        ("https://coffeemeetsbagel.com", "coffee_meets_bagel"),
        ("https://example.com", "unknown"),
        ("", "unknown"),
        (None, "unknown"),
        ("http://[::1", "unknown"),
    ],
)
def test_detect_platform(value, expected):
    assert detect_platform(value) == expected


def test_path_does_not_count_as_host():
    assert detect_platform("https://example.com/tinder.com") == "unknown"
