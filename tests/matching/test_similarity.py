import pytest

from focuswatch.matching.aliases import AliasTable
from focuswatch.matching.similarity import (
    MATCH_THRESHOLD,
    jaro_winkler,
    levenshtein_distance,
    levenshtein_similarity,
    score,
)


class TestStringMetrics:
    """編集距離とJaro-Winklerのテスト"""

    @pytest.mark.parametrize(
        ("a", "b", "expected"),
        [
            ("kitten", "sitting", 3),
            ("", "abc", 3),
            ("abc", "abc", 0),
            ("flaw", "lawn", 2),
        ],
    )
    def test_levenshtein_distance(self, a, b, expected):
        assert levenshtein_distance(a, b) == expected
        assert levenshtein_distance(b, a) == expected

    def test_levenshtein_similarity(self):
        assert levenshtein_similarity("", "") == 1.0
        assert levenshtein_similarity("slakc", "slack") == pytest.approx(0.6)

    def test_jaro_winkler_known_value(self):
        assert jaro_winkler("martha", "marhta") == pytest.approx(0.9611, abs=1e-4)

    def test_jaro_winkler_edge_cases(self):
        assert jaro_winkler("", "") == 1.0
        assert jaro_winkler("abc", "") == 0.0
        assert jaro_winkler("abc", "xyz") == 0.0


class TestScore:
    """段階的スコアリングのテスト"""

    def test_alias_match(self):
        """別名経由で正式名と一致"""
        assert score("chrome", "Google Chrome.exe") == 1.0
        assert score("Code.exe", "Visual Studio Code") == 1.0

    def test_same_name_different_suffix(self):
        assert score("Slack", "slack.exe") == 1.0

    def test_containment_is_directional(self):
        """含有関係の向きでスコアが変わる"""
        assert score("studio", "visual studio code") == 0.9
        assert score("visual studio code", "studio") == 0.85

    def test_normalized_containment(self):
        """正式名では含有しないが正規化名で含有する場合"""
        assert score("code", "Code Helper") == 0.8
        assert score("Code Helper", "code") == 0.75

    def test_word_overlap(self):
        result = score("microsoft word document", "word document viewer")
        assert result == pytest.approx(0.6 + (2 / 3) * 0.15)

    def test_fuzzy_typo(self):
        """タイプミスは編集距離ベースで拾う"""
        assert score("slakc", "slack") == pytest.approx(0.812, abs=1e-3)

    def test_unrelated_names_score_zero(self):
        assert score("zzz", "Visual Studio Code") == 0.0

    @pytest.mark.parametrize(("target", "candidate"), [("!!!", "chrome"), ("", "x")])
    def test_empty_after_normalization(self, target, candidate):
        assert score(target, candidate) == 0.0
        assert score(candidate, target) == 0.0

    @pytest.mark.parametrize(
        ("target", "candidate"),
        [
            ("chrome", "firefox"),
            ("teams", "Microsoft Teams.exe"),
            ("spotify", "Spotify Helper"),
            ("notion", "obsidian"),
        ],
    )
    def test_score_in_range(self, target, candidate):
        result = score(target, candidate)
        assert 0.0 <= result <= 1.0
        # 0 でなければ必ずしきい値を超える (段階スコアの最低値は0.6超)
        assert result == 0.0 or result > MATCH_THRESHOLD

    def test_custom_aliases(self):
        table = AliasTable({"ide": "pycharm"})
        assert score("ide", "PyCharm", table) == 1.0
        assert score("ide", "PyCharm") < 1.0
