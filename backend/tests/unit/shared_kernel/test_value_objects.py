import pytest

from serialforge.shared_kernel import QualityScore, WordCount, count_words, is_valid_slug


@pytest.mark.parametrize("slug", ["moon-court", "a", "book-2", "x1-y2-z3"])
def test_valid_slugs(slug):
    assert is_valid_slug(slug)


@pytest.mark.parametrize("slug", ["", "Moon", "moon_court", "-moon", "moon-", "moon--court", "moon court"])
def test_invalid_slugs(slug):
    assert not is_valid_slug(slug)


def test_count_words_uses_whitespace_tokens():
    assert count_words("  one two\nthree\tfour ") == 4


def test_word_count_range_is_inclusive():
    assert WordCount(800).is_within_range(800, 2000)
    assert WordCount(2000).is_within_range(800, 2000)
    assert not WordCount(799).is_within_range(800, 2000)
    with pytest.raises(ValueError):
        WordCount(-1)


def test_quality_score_bounds():
    assert QualityScore(7.0).is_acceptable()
    assert not QualityScore(6.99).is_acceptable()
    with pytest.raises(ValueError):
        QualityScore(10.5)
