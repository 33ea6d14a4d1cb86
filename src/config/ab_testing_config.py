# A/Bテストエンジン パラメータ設定

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class ABTestingConfig:
    """A/Bテストエンジン パラメータ設定

    環境変数からの上書きをサポートします。

    環境変数:
        AB_TESTING_DATA_DIR: JSONスナップショットの保存先ディレクトリ
        AB_TESTING_STORAGE_KEY: スナップショットのキー名
        AB_TESTING_FLUSH_INTERVAL: 定期フラッシュ間隔（秒、0で無効）
        DATABASE_URL: PostgreSQLバックエンド使用時の接続文字列

    使用例:
        config = ABTestingConfig()  # 環境変数から自動取得
        config = ABTestingConfig(min_visitors_per_variant=100)
    """

    # === ストレージ ===
    storage_key: str = "ab_testing_experiments"
    """実験スナップショットのキー（割り当ては "<key>_assignments"）"""

    user_id_key: str = "ab_testing_user_id"
    """ユーザーIDを保存するキー"""

    data_dir: str = "data/ab_testing"
    """JSONファイルバックエンドの保存先"""

    database_url: Optional[str] = None
    """PostgreSQLバックエンドの接続文字列"""

    flush_interval_seconds: float = 0
    """書き込み失敗分を再試行する定期フラッシュ間隔（0で無効）"""

    # === 統計判定 ===
    min_visitors_per_variant: int = 30
    """有意性検定に必要なバリアントあたり最小訪問者数"""

    chi_square_critical_value: float = 3.841
    """自由度1・信頼度95%のカイ二乗臨界値"""

    confidence_scale: float = 95.0
    """臨界値ちょうどのときの confidence"""

    max_confidence: float = 99.0
    """confidence の上限"""

    # === 保守 ===
    expired_retention_days: int = 30
    """完了済み実験を保持する日数"""

    def __post_init__(self) -> None:
        """初期化後の処理: 環境変数から設定を取得"""
        env_data_dir = os.getenv("AB_TESTING_DATA_DIR")
        if env_data_dir:
            self.data_dir = env_data_dir

        env_storage_key = os.getenv("AB_TESTING_STORAGE_KEY")
        if env_storage_key:
            self.storage_key = env_storage_key

        env_interval = os.getenv("AB_TESTING_FLUSH_INTERVAL")
        if env_interval:
            self.flush_interval_seconds = float(env_interval)

        if self.database_url is None:
            self.database_url = os.getenv("DATABASE_URL")

    @property
    def assignments_key(self) -> str:
        """割り当てスナップショットのキー"""
        return f"{self.storage_key}_assignments"

    def validate(self) -> None:
        """設定値を検証

        Raises:
            ValueError: 値が無効な場合
        """
        if not self.storage_key:
            raise ValueError("storage_key は空にできません")

        if self.min_visitors_per_variant < 1:
            raise ValueError(
                f"min_visitors_per_variant は正の整数である必要があります: {self.min_visitors_per_variant}"
            )

        if self.chi_square_critical_value <= 0:
            raise ValueError(
                f"chi_square_critical_value は正の数である必要があります: {self.chi_square_critical_value}"
            )

        if not (0 < self.max_confidence <= 100):
            raise ValueError(f"max_confidence は 0-100 の範囲である必要があります: {self.max_confidence}")

        if self.flush_interval_seconds < 0:
            raise ValueError(
                f"flush_interval_seconds は非負である必要があります: {self.flush_interval_seconds}"
            )

        if self.expired_retention_days < 0:
            raise ValueError(
                f"expired_retention_days は非負の整数である必要があります: {self.expired_retention_days}"
            )


# デフォルト設定のインスタンス
ab_testing_config = ABTestingConfig()
