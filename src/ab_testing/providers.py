# 現在パス・ユーザーIDの取得インターフェース
"""
ページパスとユーザー識別子の取得を抽象化する

ブラウザ環境（window.location、localStorage）に直接依存せず、
構築時に注入することでテスト可能にする。
"""

import logging
import secrets
from typing import Optional, Protocol, runtime_checkable

from src.storage.blob_store import BlobStore, StorageError


logger = logging.getLogger(__name__)


@runtime_checkable
class CurrentPathProvider(Protocol):
    """現在のページパスを返すインターフェース"""

    def get_current_path(self) -> str:
        ...


@runtime_checkable
class UserIdentityProvider(Protocol):
    """閲覧コンテキストごとの永続ユーザーIDを返すインターフェース"""

    def get_user_id(self) -> str:
        ...


class StaticPathProvider:
    """固定パスを返す（CLI・テスト用）"""

    def __init__(self, path: str = "/"):
        self.path = path

    def get_current_path(self) -> str:
        return self.path

    def set_path(self, path: str) -> None:
        """ページ遷移を反映"""
        self.path = path


class StaticUserIdentityProvider:
    """固定ユーザーIDを返す（テスト用）"""

    def __init__(self, user_id: str):
        self.user_id = user_id

    def get_user_id(self) -> str:
        return self.user_id


class StoredUserIdentityProvider:
    """初回必要時にIDを生成し、ブロブストアに保存して使い回す

    IDは自動でローテーションしない。ストア書き込みに失敗しても
    同じインスタンス内では生成済みIDを返し続ける。
    """

    def __init__(self, store: BlobStore, key: str = "ab_testing_user_id"):
        self.store = store
        self.key = key
        self._user_id: Optional[str] = None

    def get_user_id(self) -> str:
        if self._user_id is not None:
            return self._user_id

        try:
            stored = self.store.get(self.key)
        except StorageError as e:
            logger.warning(f"ユーザーIDの読み込みに失敗: {e}")
            stored = None

        if isinstance(stored, str) and stored:
            self._user_id = stored
            return stored

        self._user_id = generate_user_id()
        try:
            self.store.set(self.key, self._user_id)
        except StorageError as e:
            logger.warning(f"ユーザーIDの保存に失敗: {e}")
        logger.info(f"ユーザーIDを発行: user_id={self._user_id}")
        return self._user_id


def generate_user_id() -> str:
    """推測困難なユーザーIDを生成"""
    return secrets.token_hex(8)
