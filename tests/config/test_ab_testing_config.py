# ABTestingConfig の単体テスト

import os
from unittest.mock import patch

import pytest

from src.config import ABTestingConfig, ab_testing_config


class TestDefaults:
    """デフォルト値のテスト"""

    def test_default_values(self):
        with patch.dict(os.environ, {}, clear=True):
            config = ABTestingConfig()

        assert config.storage_key == "ab_testing_experiments"
        assert config.assignments_key == "ab_testing_experiments_assignments"
        assert config.user_id_key == "ab_testing_user_id"
        assert config.min_visitors_per_variant == 30
        assert config.chi_square_critical_value == 3.841
        assert config.max_confidence == 99.0
        assert config.flush_interval_seconds == 0
        assert config.database_url is None

    def test_module_instance(self):
        assert isinstance(ab_testing_config, ABTestingConfig)


class TestEnvironmentOverrides:
    """環境変数による上書きのテスト"""

    def test_env_overrides(self):
        env = {
            "AB_TESTING_DATA_DIR": "/var/lib/abtest",
            "AB_TESTING_STORAGE_KEY": "site_experiments",
            "AB_TESTING_FLUSH_INTERVAL": "15",
            "DATABASE_URL": "postgresql://localhost/ab_testing",
        }
        with patch.dict(os.environ, env, clear=True):
            config = ABTestingConfig()

        assert config.data_dir == "/var/lib/abtest"
        assert config.storage_key == "site_experiments"
        assert config.assignments_key == "site_experiments_assignments"
        assert config.flush_interval_seconds == 15.0
        assert config.database_url == "postgresql://localhost/ab_testing"

    def test_explicit_database_url_wins(self):
        with patch.dict(os.environ, {"DATABASE_URL": "postgresql://env"}, clear=True):
            config = ABTestingConfig(database_url="postgresql://explicit")

        assert config.database_url == "postgresql://explicit"


class TestValidate:
    """validate のテスト"""

    def test_defaults_are_valid(self):
        ABTestingConfig().validate()

    @pytest.mark.parametrize(
        "field,value",
        [
            ("storage_key", ""),
            ("min_visitors_per_variant", 0),
            ("chi_square_critical_value", 0),
            ("max_confidence", 101),
            ("flush_interval_seconds", -1),
            ("expired_retention_days", -1),
        ],
    )
    def test_invalid_values(self, field, value):
        config = ABTestingConfig()
        setattr(config, field, value)

        with pytest.raises(ValueError):
            config.validate()
