# コンバージョン記録
"""
ConversionRecorder: 割り当て済みユーザーのコンバージョンを記録する

ゴールごと・ユーザーごとに最大1回。記録のたびに結果を再計算する。
バリアントのコンバージョン数は「コンバージョンしたユーザー数」で、
同じユーザーの2つ目以降のゴールはイベントとして残るがカウンタは増えない。
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from src.ab_testing import event_bus, significance
from src.ab_testing.models import ConversionEvent, ExperimentStatus

if TYPE_CHECKING:
    from src.ab_testing.experiment_registry import ExperimentRegistry


logger = logging.getLogger(__name__)


class ConversionRecorder:
    """コンバージョン記録クラス

    Attributes:
        registry: 割り当てとカウンタを所有する ExperimentRegistry
    """

    def __init__(self, registry: "ExperimentRegistry"):
        self.registry = registry

    def record(
        self,
        experiment_id: str,
        goal: str,
        user_id: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """コンバージョンを記録

        以下の場合は何もしない:
        - 実験が存在しない、または完了済み
        - (実験, ユーザー) の割り当てがない
        - goal が実験の goals に含まれない
        - 同じ goal が記録済み

        一時停止中の実験でも、割り当て済みユーザーのコンバージョンは記録する。

        Args:
            experiment_id: 実験ID
            goal: ゴール名
            user_id: ユーザーID
            metadata: 任意の付加情報

        Returns:
            bool: 新たに記録した場合True
        """
        experiment = self.registry.find(experiment_id)
        if experiment is None:
            logger.debug(f"実験が存在しないため無視: experiment_id={experiment_id}")
            return False

        if experiment.status == ExperimentStatus.COMPLETED:
            logger.debug(f"完了済みの実験のため無視: experiment_id={experiment_id}")
            return False

        assignment = self.registry.get_assignment(experiment_id, user_id)
        if assignment is None:
            return False

        if goal not in experiment.goals:
            logger.debug(f"対象外のゴール: experiment_id={experiment_id}, goal={goal}")
            return False

        if assignment.has_goal(goal):
            logger.debug(
                f"記録済みのゴール: experiment_id={experiment_id}, "
                f"user_id={user_id}, goal={goal}"
            )
            return False

        metadata = dict(metadata or {})
        first_conversion = not assignment.converted
        assignment.conversion_events.append(ConversionEvent(goal=goal, metadata=metadata))
        assignment.converted = True

        if first_conversion:
            self.registry.increment_conversions(experiment_id, assignment.variant_id)
        significance.recompute(experiment, self.registry.config)
        self.registry.save()

        logger.info(
            f"コンバージョンを記録: experiment_id={experiment_id}, "
            f"variant_id={assignment.variant_id}, goal={goal}"
        )
        self.registry.event_bus.publish(
            event_bus.CONVERSION,
            {
                "experimentId": experiment_id,
                "userId": user_id,
                "variantId": assignment.variant_id,
                "goal": goal,
                "metadata": metadata,
            },
        )
        return True
