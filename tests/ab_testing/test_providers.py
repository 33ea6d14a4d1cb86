# パス・ユーザーID取得インターフェースのテスト

from unittest.mock import MagicMock

from src.ab_testing.providers import (
    CurrentPathProvider,
    StaticPathProvider,
    StaticUserIdentityProvider,
    StoredUserIdentityProvider,
    UserIdentityProvider,
)
from src.storage.blob_store import InMemoryBlobStore, StorageError


class TestStaticProviders:
    """固定値プロバイダーのテスト"""

    def test_static_path(self):
        provider = StaticPathProvider("/home")
        assert isinstance(provider, CurrentPathProvider)
        assert provider.get_current_path() == "/home"

        provider.set_path("/pricing")
        assert provider.get_current_path() == "/pricing"

    def test_static_user(self):
        provider = StaticUserIdentityProvider("user_1")
        assert isinstance(provider, UserIdentityProvider)
        assert provider.get_user_id() == "user_1"


class TestStoredUserIdentityProvider:
    """保存済みユーザーIDのテスト"""

    def test_generates_and_persists(self):
        store = InMemoryBlobStore()
        provider = StoredUserIdentityProvider(store)

        user_id = provider.get_user_id()

        assert len(user_id) == 16
        assert store.get("ab_testing_user_id") == user_id
        assert provider.get_user_id() == user_id

    def test_reuses_stored_id(self):
        store = InMemoryBlobStore({"ab_testing_user_id": "returning_user"})

        assert StoredUserIdentityProvider(store).get_user_id() == "returning_user"

    def test_stable_across_instances(self):
        store = InMemoryBlobStore()
        first = StoredUserIdentityProvider(store).get_user_id()

        assert StoredUserIdentityProvider(store).get_user_id() == first

    def test_store_failure_still_returns_id(self):
        store = MagicMock()
        store.get.side_effect = StorageError("unavailable")
        store.set.side_effect = StorageError("unavailable")
        provider = StoredUserIdentityProvider(store)

        user_id = provider.get_user_id()

        assert user_id
        assert provider.get_user_id() == user_id
