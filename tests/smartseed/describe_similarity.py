"""Tests for pytest_smartseed.similarity."""

import pytest

from pytest_smartseed.configuration import configure
from pytest_smartseed.similarity import edit_distance, is_similar, similarity_ratio


def describe_is_similar():
    def describe_numbers():
        def it_accepts_differences_up_to_the_tolerance():
            assert is_similar(5, 14) is True
            assert is_similar(5, 15) is True

        def it_rejects_differences_beyond_the_tolerance():
            assert is_similar(5, 16) is False
            assert is_similar(-100, 100) is False

        def it_compares_ints_with_floats():
            assert is_similar(5, 14.9) is True
            assert is_similar(5, 15.5) is True  # integer view truncates to 15

        def it_accepts_when_only_the_integer_view_is_close():
            # float distance 10.1, truncated distance 9
            assert is_similar(0.5, -9.6) is True

        def it_rejects_infinite_values_far_from_finite_ones():
            assert is_similar(1, float("inf")) is False

        def it_reads_single_characters_by_code_point():
            assert is_similar("a", 100) is True
            assert is_similar("a", 200) is False

        def it_follows_the_configured_tolerance():
            configure(numeric_tolerance=0)
            assert is_similar(5, 6) is False

        def it_compares_huge_integers_exactly():
            assert is_similar(5, 10**400) is False
            assert is_similar(10**400, 10**400 + 3) is True

        def it_rejects_huge_integers_against_floats():
            assert is_similar(5.0, 10**400) is False

    def describe_none():
        def it_is_never_similar():
            assert is_similar(None, 1) is False
            assert is_similar(1, None) is False

        def it_is_not_similar_to_itself():
            assert is_similar(None, None) is False

    def describe_strings():
        def it_accepts_a_one_letter_change_in_six():
            assert is_similar("abcdef", "abcdeg") is True

        def it_rejects_unrelated_strings():
            assert is_similar("abcdef", "zyxwvu") is False

        def it_ignores_case():
            assert is_similar("Hello World", "hello world") is True

        def it_follows_the_threshold_argument():
            assert is_similar("abcdef", "abcdeg", threshold=0.9) is False

    def describe_mixed_values():
        def it_compares_stringified_values():
            assert is_similar("12345", 12345) is True

        def it_compares_digit_strings_of_any_length():
            assert is_similar(7, "7") is True
            assert is_similar(17, "17") is True
            assert is_similar("7", 7) is True

        def it_treats_booleans_as_values_not_numbers():
            assert is_similar(True, True) is True
            assert is_similar(True, 1) is True  # equal by value
            assert is_similar(False, 10) is False


def describe_edit_distance():
    def it_counts_single_substitutions():
        assert edit_distance("abcdef", "abcdeg") == 1

    def it_counts_insertions_and_deletions():
        assert edit_distance("abc", "abxc") == 1
        assert edit_distance("abc", "") == 3
        assert edit_distance("", "ab") == 2

    def it_costs_nothing_for_case_differences():
        assert edit_distance("ABC", "abc") == 0


def describe_similarity_ratio():
    def it_scales_distance_by_the_longer_string():
        assert similarity_ratio("abcdef", "abcdeg") == pytest.approx(1 - 1 / 6)

    def it_is_symmetric():
        pairs = [("kitten", "sitting"), ("ab", "abc"), ("", "x"), ("Flaw", "lawn")]
        for head, tail in pairs:
            assert similarity_ratio(head, tail) == similarity_ratio(tail, head)

    def it_boosts_short_strings():
        # distance 1 over length 3, boosted by 1 + 1/3
        assert similarity_ratio("abc", "abd") == pytest.approx((2 / 3) * (4 / 3))

    def it_treats_two_empty_strings_as_identical():
        assert similarity_ratio("", "") == 1.0

    def it_scores_none_as_dissimilar():
        assert similarity_ratio(None, "x") == 0.0
