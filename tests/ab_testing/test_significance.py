# 統計的有意性計算のテスト
"""
significance モジュールの単体テスト

検証観点:
- カイ二乗統計量（プールしたコンバージョン率に対する適合度）
- 最小サンプル数未満では検定しない
- confidence の上限と単調性
- 勝者判定（有意な場合のみ、率の高い方）
"""

import pytest

from src.ab_testing import significance
from src.ab_testing.models import Experiment, Variant
from src.config.ab_testing_config import ABTestingConfig


@pytest.fixture
def config():
    return ABTestingConfig(min_visitors_per_variant=30)


# ============================================================================
# conversion_rate / chi_square_statistic
# ============================================================================


class TestConversionRate:
    """conversion_rate のテスト"""

    def test_zero_visitors(self):
        assert significance.conversion_rate(0, 0) == 0.0

    def test_rate(self):
        assert significance.conversion_rate(25, 100) == pytest.approx(0.25)


class TestChiSquareStatistic:
    """chi_square_statistic のテスト"""

    def test_known_value(self):
        """A=10/100, B=25/100 → 期待値17.5で chi²=6.4286"""
        chi = significance.chi_square_statistic(100, 10, 100, 25)
        assert chi == pytest.approx(2 * 7.5 ** 2 / 17.5)

    def test_equal_rates_is_zero(self):
        assert significance.chi_square_statistic(100, 20, 200, 40) == pytest.approx(0.0)

    def test_no_conversions_is_zero(self):
        """期待値0の項は寄与しない"""
        assert significance.chi_square_statistic(50, 0, 50, 0) == 0.0

    def test_no_visitors_is_zero(self):
        assert significance.chi_square_statistic(0, 0, 0, 0) == 0.0

    def test_p_value_below_threshold_when_above_critical(self):
        assert significance.chi_square_p_value(3.9) < 0.05
        assert significance.chi_square_p_value(3.8) > 0.05


# ============================================================================
# compute_results
# ============================================================================


class TestComputeResults:
    """compute_results のテスト"""

    def test_below_min_sample_size(self, config):
        """どちらかが30未満なら confidence=0・勝者なし（率は計算する）"""
        results = significance.compute_results("a", (29, 2), "b", (100, 50), config)

        assert results.confidence == 0
        assert results.winner is None
        assert results.statistical_significance is False
        assert results.p_value is None
        assert results.variant_a.conversion_rate == pytest.approx(2 / 29)
        assert results.variant_b.conversion_rate == pytest.approx(0.5)

    def test_significant_treatment_wins(self, config):
        results = significance.compute_results("a", (100, 10), "b", (100, 25), config)

        assert results.statistical_significance is True
        assert results.winner == "b"
        # 6.43/3.841*95 は 99 で打ち切り
        assert results.confidence == 99
        assert results.p_value == pytest.approx(0.0112, abs=0.001)

    def test_significant_control_wins(self, config):
        results = significance.compute_results("a", (100, 25), "b", (100, 10), config)

        assert results.statistical_significance is True
        assert results.winner == "a"

    def test_not_significant(self, config):
        """A=10/100, B=12/100 → chi²≈0.18、勝者なし"""
        results = significance.compute_results("a", (100, 10), "b", (100, 12), config)
        expected_chi = 2 / 11

        assert results.chi_square == pytest.approx(expected_chi)
        assert results.statistical_significance is False
        assert results.winner is None
        assert results.confidence == pytest.approx(expected_chi / 3.841 * 95)

    def test_confidence_never_exceeds_max(self, config):
        results = significance.compute_results("a", (1000, 10), "b", (1000, 500), config)
        assert results.confidence <= 99

    def test_uses_config_thresholds(self):
        config = ABTestingConfig(min_visitors_per_variant=5)
        results = significance.compute_results("a", (10, 1), "b", (10, 8), config)
        assert results.statistical_significance is True
        assert results.winner == "b"


class TestRecompute:
    """recompute のテスト"""

    def test_recompute_replaces_results(self, config):
        experiment = Experiment(
            id="exp_1",
            name="Test",
            variants=[Variant("variant_0", "A"), Variant("variant_1", "B")],
            traffic_allocation=50,
            goals=["purchase"],
        )
        experiment.results.variant_a.visitors = 100
        experiment.results.variant_a.conversions = 10
        experiment.results.variant_b.visitors = 100
        experiment.results.variant_b.conversions = 25

        results = significance.recompute(experiment, config)

        assert experiment.results is results
        assert results.winner == "variant_1"
        assert results.variant_b.conversion_rate == pytest.approx(0.25)


class TestSignificanceGate:
    """最小サンプル数の境界値テスト"""

    @pytest.mark.parametrize("conversions_a,conversions_b", [(0, 29), (29, 0), (1, 28), (14, 15)])
    def test_29_visitors_never_significant(self, config, conversions_a, conversions_b):
        results = significance.compute_results(
            "a", (29, conversions_a), "b", (29, conversions_b), config
        )

        assert results.statistical_significance is False
        assert results.winner is None

    def test_30_visitors_can_pass(self, config):
        results = significance.compute_results("a", (30, 1), "b", (30, 29), config)

        assert results.statistical_significance is True
        assert results.winner == "b"
