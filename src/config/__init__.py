# Config モジュール
from src.config.ab_testing_config import ABTestingConfig, ab_testing_config

__all__ = [
    "ABTestingConfig",
    "ab_testing_config",
]
