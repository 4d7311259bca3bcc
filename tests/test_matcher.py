import pytest

from kamilist_resolver.search.matcher import (
    contains_source_script, cross_script_variants, score
)


@pytest.mark.parametrize("title", ["One Piece", "推しの子", "Spy x Family", "Jujutsu Kaisen 0", "-", ":", "--", ":-:"])
def test_identical_titles_score_100(title):
    assert score(title, title) == 100


def test_exact_match_ignores_case_and_separators():
    assert score("Spy x Family", "SPY-X-FAMILY") == 100
    assert score("Re: Zero", "re zero") == 100


def test_containment_rules():
    assert score("One Piece", "One Piece: Strong World") == 90
    assert score("One Piece: Strong World", "One Piece") == 85


def test_cross_script_equivalence():
    assert score("地雷なんですか？地原さん", "Jirai Nandesuka Chihara-san") == 80


def test_equivalence_needs_both_sides():
    assert score("Attack on Titan", "進撃の巨人") == 80
    assert score("Attack on Titan", "Demon Slayer") < 80


def test_token_overlap_with_script_bonus_is_asymmetric():
    # 1 of 2 query tokens matched (50) + start bonus (10) + length bonus (20 - 6)
    assert score("Oshi no Ko (Official)", "Oshi no Ko 推しの子") == pytest.approx(74)
    # same, plus the bonus for a Japanese query finding a Latin-script title
    assert score("Oshi no Ko 推しの子", "Oshi no Ko (Official)") == pytest.approx(89)


def test_token_overlap_is_capped():
    assert score("Solo Leveling Ragnarok", "Solo Leveling: Ragnarok Side") <= 100


def test_no_shared_tokens_scores_zero():
    assert score("Berserk", "Vagabond") == 0


def test_short_tokens_only_score_zero():
    assert score("Ao no Ex", "Ai ga Ko") == 0


def test_empty_inputs_score_zero():
    assert score("", "One Piece") == 0
    assert score("One Piece", "") == 0
    # decorative-only titles normalize to nothing
    assert score("★", "★") == 0


def test_separator_only_titles_match_only_themselves():
    assert score(" - ", "-") == 100
    assert score("-", ":") == 0
    assert score("--", "One Piece") == 0


def test_contains_source_script():
    assert contains_source_script("推しの子")
    assert contains_source_script("カグヤ")
    assert not contains_source_script("Oshi no Ko")
    assert not contains_source_script("")


def test_cross_script_variants_for_japanese_query():
    assert cross_script_variants("地雷なんですか？地原さん") == [
        "jirai", "landmine", "dangerous", "chihara", "desu ka", "what is", "is it"
    ]


def test_cross_script_variants_ignores_latin_query():
    assert cross_script_variants("Jirai Nandesuka") == []
    assert cross_script_variants("推しの子") == []
