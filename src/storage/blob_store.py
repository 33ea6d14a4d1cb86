# ブロブストア（キー/値ストア）アダプタ
"""
スナップショット保存先の抽象化

エンジンが必要とするのは「キーでJSON値を丸ごと読み書きする」機能のみ。
部分更新は行わない（read-all-on-init, write-all-on-mutate）。

実装:
- InMemoryBlobStore: プロセス内の辞書（テスト・組み込み用）
- JsonFileBlobStore: キーごとに1つのJSONファイル（一時ファイル経由のアトミック書き込み）
- PostgresBlobStore: src/storage/postgres_blob_store.py
"""

import copy
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, runtime_checkable


logger = logging.getLogger(__name__)


class StorageError(Exception):
    """ストアの読み書きに失敗した場合のエラー"""
    pass


@runtime_checkable
class BlobStore(Protocol):
    """キー単位でJSON互換の値を読み書きするインターフェース"""

    def get(self, key: str) -> Optional[Any]:
        """値を取得（存在しない場合はNone）"""
        ...

    def set(self, key: str, value: Any) -> None:
        """値を丸ごと置き換える"""
        ...

    def delete(self, key: str) -> None:
        """値を削除（存在しなくてもエラーにしない）"""
        ...


class InMemoryBlobStore:
    """辞書ベースのストア

    読み書き時にディープコピーし、呼び出し側との参照共有を防ぐ。
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str) -> Optional[Any]:
        if key not in self._data:
            return None
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class JsonFileBlobStore:
    """ディレクトリ内にキーごとのJSONファイルを置くストア

    使用例:
        store = JsonFileBlobStore("data/ab_testing")
        store.set("ab_testing_experiments", {...})
        data = store.get("ab_testing_experiments")

    Attributes:
        base_dir: 保存先ディレクトリ
    """

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)

    def _path(self, key: str) -> Path:
        return self.base_dir / f"{_SAFE_KEY.sub('_', key)}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            # 破損ファイルは未保存として扱う
            logger.warning(f"JSONファイルが破損しています: path={path}, error={e}")
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False, indent=2)
            os.replace(tmp, path)
        except (OSError, TypeError, ValueError) as e:
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                pass
            raise StorageError(f"Failed to write {path}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e
