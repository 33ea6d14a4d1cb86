# 統計的有意性の計算
"""
SignificanceEngine: 2バリアントの集計から有意性と勝者を計算する

設計方針:
- 状態を持たない純粋関数
- 最小サンプル数（デフォルト30）未満は検定しない
- プールしたコンバージョン率に対するカイ二乗適合度検定（自由度1）
- confidence は chi²/臨界値×95 を 99 で打ち切った単調な指標。
  較正済みの p値は scipy.stats.chi2 で別途 p_value に格納する
"""

from typing import Optional, Tuple

from scipy import stats

from src.ab_testing.models import Experiment, ExperimentResults, VariantResult
from src.config.ab_testing_config import ABTestingConfig


def conversion_rate(conversions: int, visitors: int) -> float:
    """コンバージョン率（訪問者0のときは0）"""
    if visitors <= 0:
        return 0.0
    return conversions / visitors


def chi_square_statistic(
    visitors_a: int,
    conversions_a: int,
    visitors_b: int,
    conversions_b: int,
) -> float:
    """プールしたコンバージョン率に対するカイ二乗統計量

    expected_i = visitors_i × (総コンバージョン / 総訪問者) として、
    2バリアントのコンバージョン数について (観測-期待)²/期待 を合計する。
    """
    total_visitors = visitors_a + visitors_b
    if total_visitors == 0:
        return 0.0

    pooled_rate = (conversions_a + conversions_b) / total_visitors
    chi_square = 0.0
    for visitors, observed in ((visitors_a, conversions_a), (visitors_b, conversions_b)):
        expected = visitors * pooled_rate
        # 期待値0の項は寄与しない（全員未コンバージョン）
        if expected > 0:
            chi_square += (observed - expected) ** 2 / expected
    return chi_square


def chi_square_p_value(chi_square: float) -> float:
    """自由度1のカイ二乗分布による上側確率"""
    return float(stats.chi2.sf(chi_square, df=1))


def confidence_from_chi_square(chi_square: float, config: ABTestingConfig) -> float:
    """臨界値との比から confidence を求める（上限 max_confidence）"""
    ratio = chi_square / config.chi_square_critical_value
    return min(ratio * config.confidence_scale, config.max_confidence)


def compute_results(
    variant_a_id: str,
    variant_a: Tuple[int, int],
    variant_b_id: str,
    variant_b: Tuple[int, int],
    config: Optional[ABTestingConfig] = None,
) -> ExperimentResults:
    """2バリアントの (訪問者数, コンバージョン数) から結果を再計算

    Args:
        variant_a_id: バリアントA（コントロール）のID
        variant_a: Aの (visitors, conversions)
        variant_b_id: バリアントB（テスト）のID
        variant_b: Bの (visitors, conversions)
        config: 判定パラメータ。Noneの場合はデフォルト設定

    Returns:
        ExperimentResults: 新しい結果オブジェクト
    """
    config = config or ABTestingConfig()
    visitors_a, conversions_a = variant_a
    visitors_b, conversions_b = variant_b

    result_a = VariantResult(
        visitors=visitors_a,
        conversions=conversions_a,
        conversion_rate=conversion_rate(conversions_a, visitors_a),
    )
    result_b = VariantResult(
        visitors=visitors_b,
        conversions=conversions_b,
        conversion_rate=conversion_rate(conversions_b, visitors_b),
    )

    # 最小サンプル数のチェック
    min_visitors = config.min_visitors_per_variant
    if visitors_a < min_visitors or visitors_b < min_visitors:
        return ExperimentResults(variant_a=result_a, variant_b=result_b)

    chi_square = chi_square_statistic(visitors_a, conversions_a, visitors_b, conversions_b)
    is_significant = chi_square > config.chi_square_critical_value

    winner = None
    if is_significant:
        winner = (
            variant_b_id
            if result_b.conversion_rate > result_a.conversion_rate
            else variant_a_id
        )

    return ExperimentResults(
        variant_a=result_a,
        variant_b=result_b,
        confidence=confidence_from_chi_square(chi_square, config),
        winner=winner,
        statistical_significance=is_significant,
        chi_square=chi_square,
        p_value=chi_square_p_value(chi_square),
    )


def recompute(experiment: Experiment, config: Optional[ABTestingConfig] = None) -> ExperimentResults:
    """実験の現在のカウンタから results を再計算して設定する"""
    current = experiment.results
    experiment.results = compute_results(
        experiment.control.id,
        (current.variant_a.visitors, current.variant_a.conversions),
        experiment.treatment.id,
        (current.variant_b.visitors, current.variant_b.conversions),
        config,
    )
    return experiment.results
