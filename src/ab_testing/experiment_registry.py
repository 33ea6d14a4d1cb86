# A/Bテスト実験レジストリ
"""
ExperimentRegistry: 実験と割り当てを所有し、ライフサイクルと永続化を管理する

設計方針:
- 実験ライフサイクル: draft → active → paused → active → completed
  （draft/paused からの直接 completed も可。completed は終端）
- 実験・割り当てのコレクションはレジストリだけが変更する
  （VariantAssigner / ConversionRecorder はレジストリのメソッド経由）
- 永続化: 起動時に全件読み込み、変更のたびに全件書き込み（last-writer-wins）。
  書き込み失敗は SnapshotWriter が吸収し、呼び出し元には伝播しない
- 変更のたびに EventBus へ通知
- ストア・イベントバス・パス/ユーザーIDの取得元は構築時に注入する
"""

import copy
import json
import logging
import random
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from src.ab_testing import event_bus as events
from src.ab_testing import significance
from src.ab_testing.conversion_recorder import ConversionRecorder
from src.ab_testing.errors import InvalidStateError, NotFoundError, ValidationError
from src.ab_testing.event_bus import EventBus
from src.ab_testing.models import (
    Assignment,
    Experiment,
    ExperimentResults,
    ExperimentStatus,
    Variant,
    now_iso,
    parse_iso,
)
from src.ab_testing.providers import (
    CurrentPathProvider,
    StaticPathProvider,
    StoredUserIdentityProvider,
    UserIdentityProvider,
)
from src.ab_testing.variant_assigner import VariantAssigner, matches_target_pages
from src.config.ab_testing_config import ABTestingConfig
from src.storage.blob_store import BlobStore, StorageError
from src.storage.snapshot_writer import SnapshotWriter


logger = logging.getLogger(__name__)


class ExperimentRegistry:
    """A/Bテスト実験レジストリ

    使用例:
        registry = ExperimentRegistry(
            store=JsonFileBlobStore("data/ab_testing"),
            event_bus=EventBus(),
            path_provider=StaticPathProvider("/home"),
        )

        # 実験作成
        experiment = registry.create({
            "name": "Hero Button Color Test",
            "variants": [{"name": "Blue"}, {"name": "Green"}],
            "trafficAllocation": 50,
            "targetPages": ["/home", "/"],
            "goals": ["purchase"],
        })

        # 実験開始
        registry.start(experiment.id)

        # ページ表示時の割り当て
        assignment = registry.assign(experiment.id)

        # コンバージョン記録
        registry.record_conversion(experiment.id, "purchase", metadata={"amount": 99})

        # 結果
        results = registry.get_results(experiment.id)

        # 実験完了
        registry.complete(experiment.id)

    Attributes:
        store: スナップショットの保存先
        event_bus: 変更通知先
        config: エンジン設定
        path_provider: 現在パスの取得元
        identity_provider: ユーザーIDの取得元
        assigner: VariantAssigner
        recorder: ConversionRecorder
    """

    def __init__(
        self,
        store: BlobStore,
        event_bus: Optional[EventBus] = None,
        config: Optional[ABTestingConfig] = None,
        path_provider: Optional[CurrentPathProvider] = None,
        identity_provider: Optional[UserIdentityProvider] = None,
        rng: Optional[random.Random] = None,
        writer: Optional[SnapshotWriter] = None,
    ):
        """ExperimentRegistryを初期化し、スナップショットを読み込む

        Args:
            store: ブロブストア
            event_bus: イベントバス。Noneの場合は新規作成
            config: 設定。Noneの場合はデフォルト設定
            path_provider: 現在パスの取得元。Noneの場合は "/" 固定
            identity_provider: ユーザーIDの取得元。Noneの場合はストアに保存するID
            rng: 割り当て用の乱数生成器
            writer: スナップショット書き込み。Noneの場合は store から作成
        """
        self.store = store
        self.event_bus = event_bus or EventBus()
        self.config = config or ABTestingConfig()
        self.path_provider = path_provider or StaticPathProvider("/")
        self.identity_provider = identity_provider or StoredUserIdentityProvider(
            store, self.config.user_id_key
        )
        self.writer = writer or SnapshotWriter(store, self.config.flush_interval_seconds)

        self._experiments: Dict[str, Experiment] = {}
        self._assignments: Dict[str, Assignment] = {}

        self.assigner = VariantAssigner(self, rng)
        self.recorder = ConversionRecorder(self)

        self._load()
        self.writer.start_periodic_flush()

    # ===== Lifecycle =====

    def create(self, experiment_config: Dict[str, Any]) -> Experiment:
        """実験を作成（status=draft）

        Args:
            experiment_config: 実験定義
                - name (必須): 実験名
                - variants (必須): 2つ以上。文字列または {id?, name, description?}
                - goals (必須): 1つ以上のゴール名
                - trafficAllocation: Bへの配分（1-99、デフォルト50）
                - targetPages: 対象ページパターン（空なら全ページ）
                - id, description, metadata: 任意

        Returns:
            作成された実験のコピー

        Raises:
            ValidationError: 設定が不正な場合（何も保存されない）
        """
        experiment = self._build_experiment(experiment_config)

        self._experiments[experiment.id] = experiment
        self.save()

        logger.info(f"実験を作成: experiment_id={experiment.id}, name={experiment.name}")
        self._publish_experiment(events.EXPERIMENT_CREATED, experiment)
        return copy.deepcopy(experiment)

    def start(self, experiment_id: str) -> Experiment:
        """実験を開始（draft/paused → active）

        startDate は最初の開始時のみ記録し、再開時は上書きしない。

        Raises:
            NotFoundError: 実験が見つからない場合
            InvalidStateError: draft/paused 以外の場合
        """
        experiment = self._require(experiment_id)

        if experiment.status not in (ExperimentStatus.DRAFT, ExperimentStatus.PAUSED):
            raise InvalidStateError(
                f"Cannot start experiment in '{experiment.status.value}' status. "
                f"Only 'draft' or 'paused' experiments can be started."
            )

        experiment.status = ExperimentStatus.ACTIVE
        if experiment.start_date is None:
            experiment.start_date = now_iso()
        experiment.touch()
        self.save()

        logger.info(f"実験を開始: experiment_id={experiment_id}")
        self._publish_experiment(events.EXPERIMENT_STARTED, experiment)
        return copy.deepcopy(experiment)

    def pause(self, experiment_id: str) -> Experiment:
        """実験を一時停止（active → paused）

        新規の割り当ては止まるが、既存の割り当てのコンバージョンは記録される。

        Raises:
            NotFoundError: 実験が見つからない場合
            InvalidStateError: active 以外の場合
        """
        experiment = self._require(experiment_id)

        if experiment.status != ExperimentStatus.ACTIVE:
            raise InvalidStateError(
                f"Cannot pause experiment in '{experiment.status.value}' status. "
                f"Only 'active' experiments can be paused."
            )

        experiment.status = ExperimentStatus.PAUSED
        experiment.touch()
        self.save()

        logger.info(f"実験を一時停止: experiment_id={experiment_id}")
        self._publish_experiment(events.EXPERIMENT_PAUSED, experiment)
        return copy.deepcopy(experiment)

    def complete(self, experiment_id: str) -> Experiment:
        """実験を完了（completed 以外 → completed）

        endDate を記録し、結果を再計算して確定する。

        Raises:
            NotFoundError: 実験が見つからない場合
            InvalidStateError: 既に completed の場合
        """
        experiment = self._require(experiment_id)

        if experiment.status == ExperimentStatus.COMPLETED:
            raise InvalidStateError(
                f"Experiment {experiment_id} is already completed."
            )

        significance.recompute(experiment, self.config)
        experiment.status = ExperimentStatus.COMPLETED
        experiment.end_date = now_iso()
        experiment.touch()
        self.save()

        logger.info(
            f"実験を完了: experiment_id={experiment_id}, "
            f"winner={experiment.results.winner}, "
            f"significant={experiment.results.statistical_significance}"
        )
        self._publish_experiment(events.EXPERIMENT_COMPLETED, experiment)
        return copy.deepcopy(experiment)

    # ===== Read-only =====

    def get(self, experiment_id: str) -> Experiment:
        """実験を取得（コピー）

        Raises:
            NotFoundError: 実験が見つからない場合
        """
        return copy.deepcopy(self._require(experiment_id))

    def get_results(self, experiment_id: str) -> ExperimentResults:
        """実験結果を取得（コピー）

        Raises:
            NotFoundError: 実験が見つからない場合
        """
        return copy.deepcopy(self._require(experiment_id).results)

    def list(self, status: Optional[Union[ExperimentStatus, str]] = None) -> List[Experiment]:
        """実験一覧を作成日時の新しい順で取得

        Args:
            status: フィルタするステータス。Noneの場合は全て
        """
        if status is not None:
            status = ExperimentStatus(status)
        experiments = [
            exp for exp in self._experiments.values()
            if status is None or exp.status == status
        ]
        experiments.sort(key=lambda exp: exp.created_at, reverse=True)
        return [copy.deepcopy(exp) for exp in experiments]

    def get_active_experiments_for_page(self, path: Optional[str] = None) -> List[Experiment]:
        """現在パスを対象とする active な実験

        Args:
            path: ページパス。Noneの場合は path_provider から取得
        """
        if path is None:
            path = self.path_provider.get_current_path()
        return [
            exp for exp in self.list(ExperimentStatus.ACTIVE)
            if matches_target_pages(exp.target_pages, path)
        ]

    def get_user_variant(self, experiment_id: str, user_id: Optional[str] = None) -> Optional[Variant]:
        """既存の割り当てのバリアント（割り当ては作成しない）"""
        experiment = self._require(experiment_id)
        user_id = user_id or self.identity_provider.get_user_id()
        assignment = self.get_assignment(experiment_id, user_id)
        if assignment is None:
            return None
        return copy.deepcopy(experiment.find_variant(assignment.variant_id))

    def get_dashboard_data(self) -> Dict[str, Any]:
        """ダッシュボード用の集計"""
        experiments = self.list()
        counts = {status: 0 for status in ExperimentStatus}
        for exp in experiments:
            counts[exp.status] += 1

        return {
            "totalExperiments": len(experiments),
            "draftExperiments": counts[ExperimentStatus.DRAFT],
            "activeExperiments": counts[ExperimentStatus.ACTIVE],
            "pausedExperiments": counts[ExperimentStatus.PAUSED],
            "completedExperiments": counts[ExperimentStatus.COMPLETED],
            "overallConversionRate": overall_conversion_rate(experiments),
            "experiments": [exp.to_dict() for exp in experiments],
        }

    def get_debug_info(self) -> Dict[str, Any]:
        """デバッグ用の内部状態"""
        return {
            "userId": self.identity_provider.get_user_id(),
            "currentPath": self.path_provider.get_current_path(),
            "experiments": len(self._experiments),
            "assignments": len(self._assignments),
            "pendingWrites": self.writer.has_pending,
            "store": type(self.store).__name__,
            "listeners": self.event_bus.listener_count(),
        }

    # ===== Assignment / conversion =====

    def assign(
        self,
        experiment_id: str,
        user_id: Optional[str] = None,
        path: Optional[str] = None,
    ) -> Optional[Assignment]:
        """ユーザーを実験に割り当てる（既存の割り当てがあればそれを返す）

        Args:
            experiment_id: 実験ID
            user_id: ユーザーID。Noneの場合は identity_provider から取得
            path: 現在パス。Noneの場合は path_provider から取得

        Returns:
            割り当てのコピー。対象外の場合はNone

        Raises:
            NotFoundError: 実験が見つからない場合
        """
        experiment = self._require(experiment_id)
        user_id = user_id or self.identity_provider.get_user_id()
        if path is None:
            path = self.path_provider.get_current_path()

        assignment = self.assigner.assign(experiment, user_id, path)
        return copy.deepcopy(assignment) if assignment is not None else None

    def record_conversion(
        self,
        experiment_id: str,
        goal: str,
        user_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """コンバージョンを記録（ゴール・ユーザーごとに1回）

        Returns:
            bool: 新たに記録した場合True
        """
        user_id = user_id or self.identity_provider.get_user_id()
        return self.recorder.record(experiment_id, goal, user_id, metadata)

    # ===== Collaborator methods (VariantAssigner / ConversionRecorder) =====

    def find(self, experiment_id: str) -> Optional[Experiment]:
        """実験本体を取得（コピーしない。見つからない場合はNone）"""
        return self._experiments.get(experiment_id)

    def get_assignment(self, experiment_id: str, user_id: str) -> Optional[Assignment]:
        """割り当て本体を取得（コピーしない）"""
        return self._assignments.get(f"{experiment_id}_{user_id}")

    def store_assignment(self, assignment: Assignment) -> None:
        """割り当てを登録"""
        self._assignments[assignment.key] = assignment

    def increment_visitors(self, experiment_id: str, variant_id: str) -> None:
        """バリアントの訪問者数を加算"""
        experiment = self._require(experiment_id)
        result = experiment.variant_result(variant_id)
        if result is None:
            logger.warning(
                f"集計対象外のバリアント: experiment_id={experiment_id}, variant_id={variant_id}"
            )
            return
        result.visitors += 1
        experiment.touch()

    def increment_conversions(self, experiment_id: str, variant_id: str) -> None:
        """バリアントのコンバージョン数を加算（訪問者数を超えない）"""
        experiment = self._require(experiment_id)
        result = experiment.variant_result(variant_id)
        if result is None:
            logger.warning(
                f"集計対象外のバリアント: experiment_id={experiment_id}, variant_id={variant_id}"
            )
            return
        if result.conversions >= result.visitors:
            logger.warning(
                f"コンバージョン数が訪問者数を超えるため加算しません: "
                f"experiment_id={experiment_id}, variant_id={variant_id}"
            )
            return
        result.conversions += 1
        experiment.touch()

    # ===== Export / import =====

    def export_experiment(self, experiment_id: str) -> Dict[str, Any]:
        """実験と割り当てをエクスポート形式の辞書にする

        Raises:
            NotFoundError: 実験が見つからない場合
        """
        experiment = self._require(experiment_id)
        assignments = [
            a.to_dict() for a in self._assignments.values()
            if a.experiment_id == experiment_id
        ]
        return {
            "experiment": experiment.to_dict(),
            "assignments": assignments,
            "exportDate": now_iso(),
        }

    def export_experiment_to_file(self, experiment_id: str, path: Union[str, Path]) -> Path:
        """エクスポートをJSONファイルに書き出す"""
        data = self.export_experiment(experiment_id)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        logger.info(f"実験をエクスポート: experiment_id={experiment_id}, path={path}")
        return path

    def import_experiment(self, data: Dict[str, Any], overwrite: bool = False) -> Experiment:
        """エクスポート形式の辞書から実験と割り当てを取り込む

        Args:
            data: {"experiment": ..., "assignments": [...], "exportDate": ...}
            overwrite: 同じIDの実験がある場合に置き換えるか

        Raises:
            ValidationError: 形式が不正、またはIDが重複する場合
        """
        if not isinstance(data, dict) or not isinstance(data.get("experiment"), dict):
            raise ValidationError(["export document must contain an 'experiment' object"])

        try:
            experiment = Experiment.from_dict(data["experiment"])
            assignments = [Assignment.from_dict(a) for a in data.get("assignments") or []]
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError([f"malformed export document: {e}"]) from e

        errors = _structural_errors(experiment)
        if experiment.id in self._experiments and not overwrite:
            errors.append(f"experiment id '{experiment.id}' already exists")
        foreign = [a for a in assignments if a.experiment_id != experiment.id]
        if foreign:
            errors.append(f"{len(foreign)} assignment(s) belong to another experiment")
        if errors:
            raise ValidationError(errors)

        self._drop_assignments(experiment.id)
        self._experiments[experiment.id] = experiment
        for assignment in assignments:
            self._assignments[assignment.key] = assignment
        self.save()

        logger.info(
            f"実験をインポート: experiment_id={experiment.id}, assignments={len(assignments)}"
        )
        self._publish_experiment(events.EXPERIMENT_IMPORTED, experiment)
        return copy.deepcopy(experiment)

    def import_experiment_from_file(self, path: Union[str, Path], overwrite: bool = False) -> Experiment:
        """JSONファイルから実験を取り込む"""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return self.import_experiment(data, overwrite=overwrite)

    # ===== Maintenance =====

    def reset_assignments(self, experiment_id: Optional[str] = None) -> int:
        """割り当てを削除（カウンタは変更しない）

        Args:
            experiment_id: 対象実験。Noneの場合は全実験

        Returns:
            削除した割り当て数
        """
        if experiment_id is not None:
            self._require(experiment_id)
            removed = self._drop_assignments(experiment_id)
        else:
            removed = len(self._assignments)
            self._assignments.clear()
        self.save()

        logger.info(f"割り当てをリセット: experiment_id={experiment_id}, count={removed}")
        self.event_bus.publish(
            events.ASSIGNMENTS_RESET,
            {"experimentId": experiment_id, "count": removed},
        )
        return removed

    def clear_expired_experiments(self, now: Optional[datetime] = None) -> List[str]:
        """保持期間を過ぎた完了済み実験を割り当てごと削除

        Returns:
            削除した実験IDのリスト
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=self.config.expired_retention_days)

        expired = []
        for exp in self._experiments.values():
            end = parse_iso(exp.end_date)
            if exp.status == ExperimentStatus.COMPLETED and end is not None and end < cutoff:
                expired.append(exp.id)

        if not expired:
            return []

        for experiment_id in expired:
            del self._experiments[experiment_id]
            self._drop_assignments(experiment_id)
        self.save()

        logger.info(f"期限切れの実験を削除: {len(expired)}件")
        self.event_bus.publish(events.EXPERIMENTS_PURGED, {"experimentIds": expired})
        return expired

    def reload(self) -> None:
        """ストアからスナップショットを読み直す（他コンテキストの変更を反映）

        未保存の書き込みは破棄する。残すと後のフラッシュが読み直した内容を上書きする。
        """
        self.writer.discard_pending()
        self._load()
        self.event_bus.publish(
            events.SNAPSHOT_RELOADED,
            {"experiments": len(self._experiments), "assignments": len(self._assignments)},
        )

    def save(self) -> None:
        """実験・割り当てのスナップショットを全件書き込む"""
        self.writer.write(
            self.config.storage_key,
            {exp_id: exp.to_dict() for exp_id, exp in self._experiments.items()},
        )
        self.writer.write(
            self.config.assignments_key,
            {key: a.to_dict() for key, a in self._assignments.items()},
        )

    def close(self) -> None:
        """定期フラッシュを停止し、未保存分を書き込む"""
        self.writer.stop()

    # ===== Private Methods =====

    def _require(self, experiment_id: str) -> Experiment:
        experiment = self._experiments.get(experiment_id)
        if experiment is None:
            raise NotFoundError(experiment_id)
        return experiment

    def _publish_experiment(self, event_type: str, experiment: Experiment) -> None:
        self.event_bus.publish(event_type, {"experiment": experiment.to_dict()})

    def _drop_assignments(self, experiment_id: str) -> int:
        keys = [k for k, a in self._assignments.items() if a.experiment_id == experiment_id]
        for key in keys:
            del self._assignments[key]
        return len(keys)

    def _load(self) -> None:
        """スナップショットを読み込む（不正なレコードは読み飛ばす）"""
        self._experiments = {}
        self._assignments = {}

        try:
            stored_experiments = self.store.get(self.config.storage_key) or {}
            stored_assignments = self.store.get(self.config.assignments_key) or {}
        except StorageError as e:
            logger.warning(f"スナップショットの読み込みに失敗: {e}")
            return

        for exp_id, data in _as_mapping(stored_experiments).items():
            try:
                experiment = Experiment.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"不正な実験レコードを無視: experiment_id={exp_id}, error={e}")
                continue
            if _structural_errors(experiment):
                logger.warning(f"不正な実験レコードを無視: experiment_id={exp_id}")
                continue
            self._experiments[experiment.id] = experiment

        for key, data in _as_mapping(stored_assignments).items():
            try:
                assignment = Assignment.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"不正な割り当てレコードを無視: key={key}, error={e}")
                continue
            self._assignments[assignment.key] = assignment

        logger.info(
            f"スナップショットを読み込み: experiments={len(self._experiments)}, "
            f"assignments={len(self._assignments)}"
        )

    def _build_experiment(self, config: Dict[str, Any]) -> Experiment:
        """実験定義を検証して Experiment を作る"""
        if not isinstance(config, dict):
            raise ValidationError(["experiment configuration must be a mapping"])

        errors: List[str] = []

        name = config.get("name")
        if not isinstance(name, str) or not name.strip():
            errors.append("name must be a non-empty string")

        variants = _normalize_variants(config.get("variants"), errors)

        traffic_allocation = config.get("trafficAllocation", 50)
        if (
            isinstance(traffic_allocation, bool)
            or not isinstance(traffic_allocation, int)
            or not 1 <= traffic_allocation <= 99
        ):
            errors.append("trafficAllocation must be an integer between 1 and 99")

        goals = config.get("goals")
        if (
            not isinstance(goals, (list, tuple))
            or len(goals) < 1
            or not all(isinstance(g, str) and g for g in goals)
        ):
            errors.append("goals must contain at least one goal name")

        target_pages = config.get("targetPages") or []
        if not isinstance(target_pages, (list, tuple)) or not all(
            isinstance(p, str) for p in target_pages
        ):
            errors.append("targetPages must be a list of path patterns")

        experiment_id = config.get("id")
        if experiment_id is not None:
            if not isinstance(experiment_id, str) or not experiment_id:
                errors.append("id must be a non-empty string")
            elif experiment_id in self._experiments:
                errors.append(f"experiment id '{experiment_id}' already exists")

        if errors:
            raise ValidationError(errors)

        now = now_iso()
        experiment = Experiment(
            id=experiment_id or _generate_experiment_id(),
            name=name.strip(),
            description=config.get("description") or "",
            variants=variants,
            traffic_allocation=traffic_allocation,
            target_pages=list(target_pages),
            goals=list(dict.fromkeys(goals)),
            created_at=now,
            updated_at=now,
            metadata=dict(config.get("metadata") or {}),
        )
        significance.recompute(experiment, self.config)
        return experiment


def overall_conversion_rate(experiments: List[Experiment]) -> float:
    """完了済み実験全体のコンバージョン率（%、小数1桁）"""
    completed = [exp for exp in experiments if exp.status == ExperimentStatus.COMPLETED]
    visitors = sum(
        exp.results.variant_a.visitors + exp.results.variant_b.visitors for exp in completed
    )
    conversions = sum(
        exp.results.variant_a.conversions + exp.results.variant_b.conversions for exp in completed
    )
    if visitors == 0:
        return 0.0
    return round(conversions / visitors * 100, 1)


def _normalize_variants(raw: Any, errors: List[str]) -> List[Variant]:
    """バリアント定義を Variant のリストにする（IDがなければ variant_<index>）"""
    if not isinstance(raw, (list, tuple)) or len(raw) < 2:
        errors.append("variants must contain at least 2 entries")
        return []

    variants: List[Variant] = []
    for index, item in enumerate(raw):
        default_id = f"variant_{index}"
        if isinstance(item, str) and item:
            variants.append(Variant(id=default_id, name=item))
        elif isinstance(item, dict):
            variant_id = item.get("id") or default_id
            variants.append(
                Variant(
                    id=str(variant_id),
                    name=str(item.get("name") or variant_id),
                    description=str(item.get("description") or ""),
                )
            )
        else:
            errors.append(f"variants[{index}] must be a name or a mapping")

    ids = [v.id for v in variants]
    if len(ids) != len(set(ids)):
        errors.append("variant ids must be unique")
    return variants


def _structural_errors(experiment: Experiment) -> List[str]:
    """読み込み・インポート時の構造チェック"""
    errors = []
    if not experiment.id or not experiment.name:
        errors.append("experiment must have an id and a name")
    if len(experiment.variants) < 2:
        errors.append("variants must contain at least 2 entries")
    if not 1 <= experiment.traffic_allocation <= 99:
        errors.append("trafficAllocation must be between 1 and 99")
    if experiment.status == ExperimentStatus.COMPLETED and experiment.end_date is None:
        errors.append("completed experiment must have an endDate")
    for result in (experiment.results.variant_a, experiment.results.variant_b):
        if result.conversions > result.visitors:
            errors.append("conversions cannot exceed visitors")
            break
    return errors


def _as_mapping(value: Any) -> Dict[str, Any]:
    if isinstance(value, dict):
        return value
    logger.warning(f"スナップショットの形式が不正です: type={type(value).__name__}")
    return {}


def _generate_experiment_id() -> str:
    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"exp_{millis}_{uuid.uuid4().hex[:6]}"
