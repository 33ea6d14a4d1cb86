# スナップショット書き込み管理
"""
SnapshotWriter: ブロブストアへの全体書き込みと失敗時の再試行

設計方針:
- 書き込み失敗は呼び出し元に伝播させない（メモリ上の状態が正）
- 失敗したキーは最新値を保持し、次回フラッシュで再試行
- 定期フラッシュはデーモンタイマーで実行（任意）
"""

import logging
import threading
from typing import Any, Dict, Optional

from src.storage.blob_store import BlobStore, StorageError


logger = logging.getLogger(__name__)


class SnapshotWriter:
    """ブロブストアへのスナップショット書き込み

    使用例:
        writer = SnapshotWriter(store, flush_interval_seconds=30)
        writer.write("ab_testing_experiments", snapshot)  # 失敗しても例外なし
        writer.start_periodic_flush()
        ...
        writer.stop()  # 最終フラッシュ

    Attributes:
        store: 書き込み先のブロブストア
        flush_interval_seconds: 定期フラッシュ間隔（0で無効）
    """

    def __init__(self, store: BlobStore, flush_interval_seconds: float = 0):
        self.store = store
        self.flush_interval_seconds = flush_interval_seconds
        self._pending: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._stopped = False

    @property
    def has_pending(self) -> bool:
        """未保存のキーがあるか"""
        with self._lock:
            return bool(self._pending)

    def write(self, key: str, value: Any) -> bool:
        """値を書き込む

        Returns:
            bool: 書き込みに成功した場合True（失敗時は再試行待ち）
        """
        with self._lock:
            self._pending[key] = value
            return self._write_locked(key)

    def flush(self) -> int:
        """未保存のキーを再書き込み

        Returns:
            int: フラッシュ後も未保存のキー数
        """
        with self._lock:
            for key in list(self._pending):
                self._write_locked(key)
            remaining = len(self._pending)

        if remaining:
            logger.warning(f"スナップショットの保存に失敗したままのキー: {remaining}件")
        return remaining

    def discard_pending(self) -> int:
        """未保存のキーを書き込まずに破棄する

        Returns:
            int: 破棄したキー数
        """
        with self._lock:
            discarded = len(self._pending)
            self._pending.clear()

        if discarded:
            logger.warning(f"未保存のスナップショットを破棄: {discarded}件")
        return discarded

    def _write_locked(self, key: str) -> bool:
        try:
            self.store.set(key, self._pending[key])
        except StorageError as e:
            logger.warning(f"スナップショットの保存に失敗（次回フラッシュで再試行）: key={key}, error={e}")
            return False
        del self._pending[key]
        return True

    def start_periodic_flush(self) -> None:
        """定期フラッシュを開始（間隔0以下なら何もしない）"""
        if self.flush_interval_seconds <= 0:
            return
        self._stopped = False
        self._schedule()

    def _schedule(self) -> None:
        if self._stopped:
            return
        self._timer = threading.Timer(self.flush_interval_seconds, self._on_timer)
        self._timer.daemon = True
        self._timer.start()

    def _on_timer(self) -> None:
        try:
            if self.has_pending:
                self.flush()
        except Exception:
            # 定期フラッシュはベストエフォート
            logger.exception("定期フラッシュに失敗")
        finally:
            self._schedule()

    def stop(self) -> None:
        """定期フラッシュを停止し、最後に一度フラッシュする"""
        self._stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.flush()
