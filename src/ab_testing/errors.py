# A/Bテストエンジンの例外定義

from typing import List, Optional


class ABTestingError(Exception):
    """A/Bテストエンジンの基底例外"""
    pass


class ValidationError(ABTestingError):
    """実験設定が不正な場合のエラー

    Attributes:
        errors: 違反した制約のリスト
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid experiment configuration: " + "; ".join(self.errors))


class NotFoundError(ABTestingError):
    """実験が見つからない場合のエラー"""

    def __init__(self, experiment_id: str, message: Optional[str] = None):
        self.experiment_id = experiment_id
        super().__init__(message or f"Experiment {experiment_id} not found")


class InvalidStateError(ABTestingError):
    """実験の状態遷移が不正な場合のエラー"""
    pass
