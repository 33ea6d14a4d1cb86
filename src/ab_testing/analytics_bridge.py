# アナリティクス連携
"""
AnalyticsBridge: 外部アナリティクスのイベントを実験のコンバージョンに転送する

アナリティクス側が発行する {"type": "conversion", "data": {"type": <ゴール名>, ...}}
形式のイベントを受け取り、現在ページを対象とする active な実験のうち
goals にそのゴール名を含むものへ record_conversion を1回ずつ呼ぶ。
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from src.ab_testing.experiment_registry import ExperimentRegistry


logger = logging.getLogger(__name__)


class AnalyticsBridge:
    """アナリティクスイベント → コンバージョン転送

    使用例:
        bridge = AnalyticsBridge(registry)
        analytics.subscribe(bridge.handle_event)

        # ページ遷移時
        bridge.handle_page_change("/pricing")

    Attributes:
        registry: 転送先の ExperimentRegistry
        conversion_event_type: 転送対象のイベントタイプ
    """

    def __init__(self, registry: "ExperimentRegistry", conversion_event_type: str = "conversion"):
        self.registry = registry
        self.conversion_event_type = conversion_event_type

    def handle_event(self, event: Dict[str, Any]) -> List[str]:
        """アナリティクスイベントを処理

        Args:
            event: {"type": str, "data": {"type": ゴール名, ...}}

        Returns:
            コンバージョンを記録した実験IDのリスト
        """
        if not isinstance(event, dict) or event.get("type") != self.conversion_event_type:
            return []

        data = event.get("data") or {}
        goal = data.get("type")
        if not goal:
            logger.debug("ゴール名のないコンバージョンイベントを無視")
            return []

        user_id = data.get("userId")
        recorded = []
        for experiment in self.registry.get_active_experiments_for_page(data.get("path")):
            if goal not in experiment.goals:
                continue
            if self.registry.record_conversion(experiment.id, goal, user_id, data):
                recorded.append(experiment.id)
        return recorded

    def handle_page_change(self, path: Optional[str] = None, user_id: Optional[str] = None) -> List[str]:
        """ページ表示時に対象の active な実験へユーザーを割り当てる

        Returns:
            割り当てのある実験IDのリスト
        """
        assigned = []
        for experiment in self.registry.get_active_experiments_for_page(path):
            assignment = self.registry.assign(experiment.id, user_id, path)
            if assignment is not None:
                assigned.append(experiment.id)
        return assigned
