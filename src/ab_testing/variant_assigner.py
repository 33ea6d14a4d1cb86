# バリアント割り当て
"""
VariantAssigner: ユーザーを実験のバリアントに振り分ける

割り当て手順:
1. 実験が active でなければ割り当てない
2. 既存の割り当てがあればそのまま返す（固定割り当て）
3. targetPages が空でなければ現在パスが一致する場合のみ対象
4. [0, 100) の一様乱数 r が trafficAllocation 以下なら B、そうでなければ A
5. 割り当てを保存し、バリアントの訪問者数を加算してイベントを通知

乱数はユーザーIDのハッシュではない。同じユーザーが常に同じバリアントになるのは
手順2の既存割り当てチェックによる。乱数を引くのはユーザーごと実験ごとに一度だけ。

注意: 「既存割り当ての確認 → 作成」は単一スレッド前提の check-then-act。
複数コンテキストで同じユーザーIDを共有すると訪問者が二重に数えられうる。
"""

import logging
import random
from typing import TYPE_CHECKING, Iterable, Optional

from src.ab_testing import event_bus, significance
from src.ab_testing.models import Assignment, Experiment, ExperimentStatus

if TYPE_CHECKING:
    from src.ab_testing.experiment_registry import ExperimentRegistry


logger = logging.getLogger(__name__)


def matches_target_pages(target_pages: Iterable[str], path: Optional[str]) -> bool:
    """現在パスが targetPages に一致するか

    - 空の targetPages はすべてのページに一致
    - "*" で始まるエントリは、"*" 以降の文字列をパスが含めば一致
    - それ以外は完全一致
    """
    patterns = list(target_pages)
    if not patterns:
        return True
    if path is None:
        return False

    for pattern in patterns:
        if pattern.startswith("*"):
            if pattern[1:] in path:
                return True
        elif pattern == path:
            return True
    return False


class VariantAssigner:
    """バリアント割り当てクラス

    使用例:
        assigner = VariantAssigner(registry)
        assignment = assigner.assign(experiment, user_id, "/home")
        if assignment:
            render(assignment.variant_id)

    Attributes:
        registry: 割り当てとカウンタを所有する ExperimentRegistry
        rng: 乱数生成器（テスト時にシード固定可能）
    """

    def __init__(
        self,
        registry: "ExperimentRegistry",
        rng: Optional[random.Random] = None,
    ):
        self.registry = registry
        self.rng = rng or random.Random()

    def assign(
        self,
        experiment: Experiment,
        user_id: str,
        current_path: Optional[str],
    ) -> Optional[Assignment]:
        """ユーザーをバリアントに割り当てる

        状態判定と再計算はレジストリが保持する実験本体に対して行う。
        渡された実験がコピーでも、IDで本体を引き直す。

        Args:
            experiment: 対象実験
            user_id: ユーザーID
            current_path: 現在のページパス

        Returns:
            Assignment。対象外の場合はNone
        """
        experiment = self.registry.find(experiment.id)
        if experiment is None or experiment.status != ExperimentStatus.ACTIVE:
            return None

        existing = self.registry.get_assignment(experiment.id, user_id)
        if existing is not None:
            return existing

        if not matches_target_pages(experiment.target_pages, current_path):
            logger.debug(
                f"対象ページ外: experiment_id={experiment.id}, path={current_path}"
            )
            return None

        variant = self._select_variant(experiment)
        assignment = Assignment(
            experiment_id=experiment.id,
            user_id=user_id,
            variant_id=variant.id,
        )

        self.registry.store_assignment(assignment)
        self.registry.increment_visitors(experiment.id, variant.id)
        significance.recompute(experiment, self.registry.config)
        self.registry.save()

        logger.debug(
            f"バリアントを割り当て: experiment_id={experiment.id}, "
            f"user_id={user_id}, variant_id={variant.id}"
        )
        self.registry.event_bus.publish(
            event_bus.ASSIGNMENT,
            {
                "experimentId": experiment.id,
                "userId": user_id,
                "variantId": variant.id,
                "path": current_path,
            },
        )
        return assignment

    def _select_variant(self, experiment: Experiment):
        """trafficAllocation に従って A または B を選ぶ

        3つ目以降のバリアントは選ばれない。
        """
        r = self.rng.uniform(0, 100)
        if r <= experiment.traffic_allocation:
            return experiment.treatment
        return experiment.control
