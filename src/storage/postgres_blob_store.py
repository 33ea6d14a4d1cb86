# PostgreSQL ブロブストア
"""
PostgresBlobStore: ab_testing_blobs テーブルにキーごとのJSONBを保存する

テーブル定義（ensure_schema で作成）:
    CREATE TABLE IF NOT EXISTS ab_testing_blobs (
        key        TEXT PRIMARY KEY,
        value      JSONB NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )

書き込みは UPSERT による全体置換。last-writer-wins。
"""

import json
import logging
from typing import Any, Optional

import psycopg2

from src.db.connection import DatabaseConnection
from src.storage.blob_store import StorageError


logger = logging.getLogger(__name__)


class PostgresBlobStore:
    """PostgreSQLをバックエンドとするブロブストア

    使用例:
        db = DatabaseConnection()
        store = PostgresBlobStore(db)
        store.ensure_schema()
        store.set("ab_testing_experiments", {...})

    Attributes:
        db: DatabaseConnection インスタンス
        table: テーブル名
    """

    def __init__(self, db: DatabaseConnection, table: str = "ab_testing_blobs"):
        self.db = db
        self.table = table

    def ensure_schema(self) -> None:
        """テーブルがなければ作成"""
        try:
            with self.db.get_cursor() as cur:
                cur.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self.table} (
                        key        TEXT PRIMARY KEY,
                        value      JSONB NOT NULL,
                        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                    )
                    """
                )
        except psycopg2.Error as e:
            raise StorageError(f"Failed to create table {self.table}: {e}") from e
        logger.info(f"ブロブテーブルを確認: table={self.table}")

    def get(self, key: str) -> Optional[Any]:
        try:
            with self.db.get_cursor() as cur:
                cur.execute(
                    f"SELECT value FROM {self.table} WHERE key = %s",
                    (key,),
                )
                row = cur.fetchone()
        except psycopg2.Error as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

        if row is None:
            return None
        value = row[0]
        # psycopg2 は JSONB を dict に変換するが、TEXT 列の場合に備える
        return json.loads(value) if isinstance(value, str) else value

    def set(self, key: str, value: Any) -> None:
        try:
            with self.db.get_cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO {self.table} (key, value, updated_at)
                    VALUES (%s, %s, NOW())
                    ON CONFLICT (key) DO UPDATE
                    SET value = EXCLUDED.value, updated_at = NOW()
                    """,
                    (key, json.dumps(value, ensure_ascii=False)),
                )
        except (psycopg2.Error, TypeError, ValueError) as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            with self.db.get_cursor() as cur:
                cur.execute(f"DELETE FROM {self.table} WHERE key = %s", (key,))
        except psycopg2.Error as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e
