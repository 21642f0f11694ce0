import pytest

from app.scrapers import extract_shortcode, reel_url


@pytest.mark.parametrize(
    "url",
    [
        "https://www.instagram.com/reel/ABC123/",
        "https://www.instagram.com/reels/ABC123",
        "https://instagram.com/p/ABC123",
        "http://www.instagram.com/p/ABC123/?igsh=MTc4MmM1YmI2Ng==",
        "www.instagram.com/reel/ABC123/?utm_source=ig_web_copy_link",
        "https://m.instagram.com/reel/ABC123/#comments",
        "  https://www.instagram.com/reel/ABC123/  ",
    ],
)
def test_all_accepted_shapes_give_the_same_shortcode(url):
    assert extract_shortcode(url) == "ABC123"


def test_real_reel_url():
    assert extract_shortcode("https://www.instagram.com/reel/DPq_tjEgUMf/") == "DPq_tjEgUMf"


def test_bare_shortcode_is_returned_unchanged():
    assert extract_shortcode("DEF456GHI") == "DEF456GHI"


@pytest.mark.parametrize(
    "value",
    [
        "not a url",
        "https://example.com/foo",
        "https://example.com/reel/ABC123/",
        "https://www.instagram.com/someuser/",
        "https://www.instagram.com/reel/",
        "",
        "ABC$123",
    ],
)
def test_unparsable_input_is_rejected(value):
    assert extract_shortcode(value) is None


def test_extraction_is_idempotent():
    first = extract_shortcode("https://www.instagram.com/p/Xy_z-09/")
    assert extract_shortcode(first) == first
    assert extract_shortcode(reel_url(first)) == first
