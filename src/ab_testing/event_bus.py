# src/ab_testing/event_bus.py
"""イベントバスモジュール

実験の変更を外部リスナー（UI、アナリティクス連携）に通知する。

機能:
- イベントタイプ単位、または全イベント（"*"）の購読/購読解除
- 同期的なファンアウト通知
- リスナーの例外は捕捉してログに残し、他のリスナーや呼び出し元の処理は継続
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
import logging
import time


logger = logging.getLogger(__name__)


# =============================================================================
# イベントタイプ
# =============================================================================

EXPERIMENT_CREATED = "experimentCreated"
EXPERIMENT_STARTED = "experimentStarted"
EXPERIMENT_PAUSED = "experimentPaused"
EXPERIMENT_COMPLETED = "experimentCompleted"
EXPERIMENT_IMPORTED = "experimentImported"
EXPERIMENTS_PURGED = "experimentsPurged"
ASSIGNMENT = "assignment"
ASSIGNMENTS_RESET = "assignmentsReset"
CONVERSION = "conversion"
SNAPSHOT_RELOADED = "snapshotReloaded"

ALL_EVENTS = "*"

EVENT_TYPES: Dict[str, str] = {
    EXPERIMENT_CREATED: "実験作成",
    EXPERIMENT_STARTED: "実験開始（再開を含む）",
    EXPERIMENT_PAUSED: "実験一時停止",
    EXPERIMENT_COMPLETED: "実験完了",
    EXPERIMENT_IMPORTED: "実験インポート",
    EXPERIMENTS_PURGED: "期限切れ実験の削除",
    ASSIGNMENT: "バリアント割り当て",
    ASSIGNMENTS_RESET: "割り当てリセット",
    CONVERSION: "コンバージョン記録",
    SNAPSHOT_RELOADED: "スナップショット再読み込み",
}


Listener = Callable[["Event"], Any]


@dataclass
class Event:
    """リスナーに渡されるイベント

    timestamp はエポックミリ秒。
    """
    type: str
    data: Dict[str, Any]
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式に変換"""
        return {
            "type": self.type,
            "data": self.data,
            "timestamp": self.timestamp,
        }


class EventBus:
    """同期イベントバス

    使用例:
        bus = EventBus()
        bus.subscribe("conversion", lambda event: print(event.data))
        bus.subscribe("*", audit_log.append)
        bus.publish("conversion", {"experimentId": "exp_1", "goal": "purchase"})
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = {}

    def subscribe(self, event_type: str, listener: Listener) -> None:
        """リスナーを登録

        Args:
            event_type: イベントタイプ。"*" で全イベント
            listener: Event を受け取る呼び出し可能オブジェクト
        """
        if event_type != ALL_EVENTS and not validate_event_type(event_type):
            logger.warning("Subscribing to unknown event type: %s", event_type)
        self._listeners.setdefault(event_type, []).append(listener)

    def unsubscribe(self, event_type: str, listener: Listener) -> bool:
        """リスナーの登録を解除

        Returns:
            bool: 解除できた場合True
        """
        listeners = self._listeners.get(event_type)
        if not listeners or listener not in listeners:
            return False
        listeners.remove(listener)
        return True

    def publish(self, event_type: str, data: Dict[str, Any]) -> int:
        """イベントを通知

        Args:
            event_type: イベントタイプ（EVENT_TYPES のキー）
            data: イベントデータ

        Returns:
            int: 正常に処理したリスナー数
        """
        event = Event(type=event_type, data=data)
        listeners = list(self._listeners.get(event_type, [])) + list(
            self._listeners.get(ALL_EVENTS, [])
        )

        success_count = 0
        for listener in listeners:
            try:
                listener(event)
                success_count += 1
            except Exception:
                logger.exception("Event listener failed: event=%s", event_type)

        logger.debug(
            "Published event=%s, success=%d/%d",
            event_type,
            success_count,
            len(listeners),
        )
        return success_count

    def listener_count(self, event_type: Optional[str] = None) -> int:
        """登録済みリスナー数"""
        if event_type is None:
            return sum(len(listeners) for listeners in self._listeners.values())
        return len(self._listeners.get(event_type, []))

    def clear(self) -> None:
        self._listeners.clear()


def validate_event_type(event_type: str) -> bool:
    """イベントタイプの妥当性を検証"""
    return event_type in EVENT_TYPES


def get_event_description(event_type: str) -> Optional[str]:
    """イベントタイプの説明を取得"""
    return EVENT_TYPES.get(event_type)
