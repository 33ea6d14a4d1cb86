# A/Bテスト データモデル
"""
A/Bテストのデータモデル

実験・バリアント・割り当て・結果を dataclass で表現する。
辞書形式（to_dict/from_dict）はスナップショット保存とエクスポートで使う形式で、
キーは camelCase。

設計方針:
- 実験は2つ以上のバリアントを持てるが、割り当てと結果に使うのは先頭2つのみ
  （variants[0] = A/コントロール, variants[1] = B/テスト）
- results は訪問者数・コンバージョン数から再計算される派生値
- 割り当ては (実験, ユーザー) ごとに1つ。一度決まったバリアントは変わらない
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def now_iso() -> str:
    """現在時刻（UTC）をISO-8601文字列で返す"""
    return datetime.now(timezone.utc).isoformat()


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """ISO-8601文字列をタイムゾーン付きdatetimeに変換（不正値はNone）"""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class ExperimentStatus(str, Enum):
    """実験のステータス"""
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass
class Variant:
    """実験のバリアント（A/Bの各アーム）"""
    id: str
    name: str
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "description": self.description}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Variant":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
        )


@dataclass
class VariantResult:
    """バリアントごとの集計値"""
    visitors: int = 0
    conversions: int = 0
    conversion_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "visitors": self.visitors,
            "conversions": self.conversions,
            "conversionRate": self.conversion_rate,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VariantResult":
        return cls(
            visitors=int(data.get("visitors", 0)),
            conversions=int(data.get("conversions", 0)),
            conversion_rate=float(data.get("conversionRate", 0.0)),
        )


@dataclass
class ExperimentResults:
    """実験結果

    Attributes:
        variant_a: コントロール（variants[0]）の集計
        variant_b: テスト（variants[1]）の集計
        confidence: 信頼度の指標（0-99、較正済みのp値ではない）
        winner: 勝者バリアントID（有意差がなければNone）
        statistical_significance: カイ二乗値が臨界値を超えたか
        chi_square: カイ二乗統計量
        p_value: 自由度1のカイ二乗分布による p値（サンプル不足時はNone）
    """
    variant_a: VariantResult = field(default_factory=VariantResult)
    variant_b: VariantResult = field(default_factory=VariantResult)
    confidence: float = 0.0
    winner: Optional[str] = None
    statistical_significance: bool = False
    chi_square: float = 0.0
    p_value: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variantA": self.variant_a.to_dict(),
            "variantB": self.variant_b.to_dict(),
            "confidence": self.confidence,
            "winner": self.winner,
            "statisticalSignificance": self.statistical_significance,
            "chiSquare": self.chi_square,
            "pValue": self.p_value,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ExperimentResults":
        if not data:
            return cls()
        return cls(
            variant_a=VariantResult.from_dict(data.get("variantA") or {}),
            variant_b=VariantResult.from_dict(data.get("variantB") or {}),
            confidence=float(data.get("confidence", 0.0)),
            winner=data.get("winner"),
            statistical_significance=bool(data.get("statisticalSignificance", False)),
            chi_square=float(data.get("chiSquare", 0.0)),
            p_value=data.get("pValue"),
        )


@dataclass
class Experiment:
    """実験定義と状態"""
    id: str
    name: str
    variants: List[Variant]
    traffic_allocation: int
    goals: List[str]
    description: str = ""
    status: ExperimentStatus = ExperimentStatus.DRAFT
    target_pages: List[str] = field(default_factory=list)
    results: ExperimentResults = field(default_factory=ExperimentResults)
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def control(self) -> Variant:
        """バリアントA（コントロール）"""
        return self.variants[0]

    @property
    def treatment(self) -> Variant:
        """バリアントB（テスト）"""
        return self.variants[1]

    @property
    def is_active(self) -> bool:
        return self.status == ExperimentStatus.ACTIVE

    def find_variant(self, variant_id: str) -> Optional[Variant]:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None

    def variant_result(self, variant_id: str) -> Optional[VariantResult]:
        """バリアントIDに対応する集計を返す（A/B以外はNone）"""
        if variant_id == self.control.id:
            return self.results.variant_a
        if variant_id == self.treatment.id:
            return self.results.variant_b
        return None

    def touch(self) -> None:
        self.updated_at = now_iso()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "variants": [v.to_dict() for v in self.variants],
            "trafficAllocation": self.traffic_allocation,
            "targetPages": list(self.target_pages),
            "goals": list(self.goals),
            "results": self.results.to_dict(),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Experiment":
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            status=ExperimentStatus(data.get("status", ExperimentStatus.DRAFT.value)),
            variants=[Variant.from_dict(v) for v in data["variants"]],
            traffic_allocation=int(data["trafficAllocation"]),
            target_pages=list(data.get("targetPages") or []),
            goals=list(data.get("goals") or []),
            results=ExperimentResults.from_dict(data.get("results")),
            created_at=data.get("createdAt") or now_iso(),
            updated_at=data.get("updatedAt") or now_iso(),
            start_date=data.get("startDate"),
            end_date=data.get("endDate"),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class ConversionEvent:
    """記録済みのコンバージョン"""
    goal: str
    timestamp: str = field(default_factory=now_iso)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"goal": self.goal, "timestamp": self.timestamp, "metadata": dict(self.metadata)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversionEvent":
        return cls(
            goal=data["goal"],
            timestamp=data.get("timestamp") or now_iso(),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class Assignment:
    """ユーザーとバリアントの割り当て（固定）"""
    experiment_id: str
    user_id: str
    variant_id: str
    assigned_at: str = field(default_factory=now_iso)
    converted: bool = False
    conversion_events: List[ConversionEvent] = field(default_factory=list)

    @property
    def key(self) -> str:
        return assignment_key(self.experiment_id, self.user_id)

    def has_goal(self, goal: str) -> bool:
        return any(event.goal == goal for event in self.conversion_events)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "experimentId": self.experiment_id,
            "userId": self.user_id,
            "variantId": self.variant_id,
            "assignedAt": self.assigned_at,
            "converted": self.converted,
            "conversionEvents": [e.to_dict() for e in self.conversion_events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Assignment":
        return cls(
            experiment_id=data["experimentId"],
            user_id=data["userId"],
            variant_id=data["variantId"],
            assigned_at=data.get("assignedAt") or now_iso(),
            converted=bool(data.get("converted", False)),
            conversion_events=[
                ConversionEvent.from_dict(e) for e in data.get("conversionEvents") or []
            ],
        )


def assignment_key(experiment_id: str, user_id: str) -> str:
    """割り当てスナップショットのキー "<experimentId>_<userId>" """
    return f"{experiment_id}_{user_id}"
