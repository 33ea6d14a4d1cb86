#!/usr/bin/env python3
"""
A/Bテストエンジン - 基本操作サンプル

実験の作成から完了までの流れを、シミュレーションした訪問者で確認するサンプルです。
各機能を関数に分離し、実行順序がわかるように構成しています。

含まれる機能:
    1. サンプル実験の作成（examples/sample_experiments.yaml）
    2. 実験の開始
    3. ページ遷移時の割り当て（AnalyticsBridge）
    4. アナリティクスイベントからのコンバージョン記録
    5. 結果確認と実験の完了
    6. ダッシュボード集計

実行方法:
    cd /path/to/ab-testing-engine
    python examples/basic_usage.py

データは一時ディレクトリに保存され、実行後に削除されます。
"""

import os
import random
import sys
import tempfile

# ============================================
# プロジェクトルートをPythonパスに追加
# ============================================
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from src.ab_testing import AnalyticsBridge, EventBus, ExperimentRegistry, StaticPathProvider
from src.ab_testing.errors import ValidationError
from src.cli.utils.output import format_results
from src.cli.utils.yaml_loader import load_experiment_definitions
from src.config.ab_testing_config import ABTestingConfig
from src.storage.blob_store import JsonFileBlobStore


SAMPLE_FILE = os.path.join(PROJECT_ROOT, "examples", "sample_experiments.yaml")

# シミュレーションの真のコンバージョン率（バリアントBが優位）
TRUE_RATES = {"variant_0": 0.10, "variant_1": 0.25}


def create_sample_experiments(registry: ExperimentRegistry):
    """Example 1-2: サンプル実験の作成と開始"""
    print("=" * 60)
    print("Example 1-2: サンプル実験の作成と開始")
    print("=" * 60)

    for definition in load_experiment_definitions(SAMPLE_FILE):
        try:
            experiment = registry.create(definition)
        except ValidationError as e:
            print(f"[SKIP] {definition.get('id')}: {e}")
            continue
        registry.start(experiment.id)
        print(f"[OK] {experiment.id} を作成・開始しました")


def simulate_visitors(registry: ExperimentRegistry, path_provider: StaticPathProvider, count: int = 400):
    """Example 3-4: 訪問者のシミュレーション"""
    print("\n" + "=" * 60)
    print(f"Example 3-4: 訪問者 {count} 人のシミュレーション（/home）")
    print("=" * 60)

    bridge = AnalyticsBridge(registry)
    rng = random.Random(42)
    path_provider.set_path("/home")

    for i in range(count):
        user_id = f"visitor_{i}"
        bridge.handle_page_change(user_id=user_id)

        variant = registry.get_user_variant("hero-button-color-test", user_id)
        if variant is not None and rng.random() < TRUE_RATES[variant.id]:
            bridge.handle_event({
                "type": "conversion",
                "data": {"type": "purchase_initiated", "userId": user_id},
            })

    print("[OK] シミュレーションが完了しました")


def show_results(registry: ExperimentRegistry):
    """Example 5: 結果確認と実験の完了"""
    print("\n" + "=" * 60)
    print("Example 5: 結果確認と実験の完了")
    print("=" * 60)

    experiment = registry.complete("hero-button-color-test")
    print(format_results(experiment, experiment.results))


def show_dashboard(registry: ExperimentRegistry):
    """Example 6: ダッシュボード集計"""
    print("\n" + "=" * 60)
    print("Example 6: ダッシュボード集計")
    print("=" * 60)

    data = registry.get_dashboard_data()
    print(f"実験数: {data['totalExperiments']} (active: {data['activeExperiments']}, "
          f"completed: {data['completedExperiments']})")
    print(f"完了済み実験の平均コンバージョン率: {data['overallConversionRate']}%")


def main():
    """メイン処理: 各Exampleを順番に実行"""
    print("=" * 60)
    print("A/Bテストエンジン - 基本操作サンプル")
    print("=" * 60 + "\n")

    with tempfile.TemporaryDirectory() as data_dir:
        path_provider = StaticPathProvider("/")
        registry = ExperimentRegistry(
            store=JsonFileBlobStore(data_dir),
            event_bus=EventBus(),
            config=ABTestingConfig(data_dir=data_dir),
            path_provider=path_provider,
        )
        try:
            create_sample_experiments(registry)
            simulate_visitors(registry, path_provider)
            show_results(registry)
            show_dashboard(registry)
        finally:
            registry.close()


if __name__ == "__main__":
    main()
