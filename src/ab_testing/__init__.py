# A/B Testing Module
"""
A/Bテスト実験エンジン

ページ単位のA/Bテストを実行・評価する。

設計方針:
- 実験の作成・開始・一時停止・完了のライフサイクル管理
- 初回表示時の乱数割り当てと、その後の固定割り当て
- ゴール・ユーザーごとに最大1回のコンバージョン記録
- カイ二乗検定による統計的有意性と勝者判定
"""

from src.ab_testing.analytics_bridge import AnalyticsBridge
from src.ab_testing.conversion_recorder import ConversionRecorder
from src.ab_testing.errors import (
    ABTestingError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from src.ab_testing.event_bus import Event, EventBus
from src.ab_testing.experiment_registry import ExperimentRegistry
from src.ab_testing.models import (
    Assignment,
    ConversionEvent,
    Experiment,
    ExperimentResults,
    ExperimentStatus,
    Variant,
    VariantResult,
)
from src.ab_testing.providers import (
    CurrentPathProvider,
    StaticPathProvider,
    StaticUserIdentityProvider,
    StoredUserIdentityProvider,
    UserIdentityProvider,
)
from src.ab_testing.variant_assigner import VariantAssigner

__all__ = [
    "AnalyticsBridge",
    "ConversionRecorder",
    "ABTestingError",
    "InvalidStateError",
    "NotFoundError",
    "ValidationError",
    "Event",
    "EventBus",
    "ExperimentRegistry",
    "Assignment",
    "ConversionEvent",
    "Experiment",
    "ExperimentResults",
    "ExperimentStatus",
    "Variant",
    "VariantResult",
    "CurrentPathProvider",
    "StaticPathProvider",
    "StaticUserIdentityProvider",
    "StoredUserIdentityProvider",
    "UserIdentityProvider",
    "VariantAssigner",
]
