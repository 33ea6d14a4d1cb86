"""YAML loading and minimal schema validation for CLI."""

from __future__ import annotations

from typing import Any, Dict, List

import yaml

# YAML では snake_case も受け付ける
_KEY_ALIASES = {
    "traffic_allocation": "trafficAllocation",
    "target_pages": "targetPages",
}


class YamlValidationError(ValueError):
    """YAML schema validation error."""


def load_yaml(path: str) -> Dict[str, Any]:
    """Load YAML file and return data."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise YamlValidationError("YAMLのルートはオブジェクトである必要があります")
    return data


def load_experiment_definitions(path: str) -> List[Dict[str, Any]]:
    """Load one experiment, or several under an `experiments` key."""
    data = load_yaml(path)
    if "experiments" in data:
        items = data["experiments"]
        if not isinstance(items, list) or not items:
            raise YamlValidationError("experiments は配列で指定してください")
    else:
        items = [data]
    return [validate_experiment_definition(item) for item in items]


def validate_experiment_definition(data: Any) -> Dict[str, Any]:
    """Validate experiment definition YAML data and normalize its keys."""
    if not isinstance(data, dict):
        raise YamlValidationError("実験定義はオブジェクトで指定してください")

    normalized = {_KEY_ALIASES.get(key, key): value for key, value in data.items()}
    _require_fields(normalized, ["name", "variants", "goals"])

    if not isinstance(normalized["name"], str) or not normalized["name"]:
        raise YamlValidationError("name は文字列で指定してください")

    variants = normalized["variants"]
    if not isinstance(variants, list):
        raise YamlValidationError("variants は配列で指定してください")
    for item in variants:
        if isinstance(item, dict):
            if "name" not in item or not isinstance(item["name"], str) or not item["name"]:
                raise YamlValidationError("variants のオブジェクトには name フィールド（文字列）が必要です")
        elif not isinstance(item, str):
            raise YamlValidationError("variants は文字列配列またはオブジェクト配列（{id, name, description}）で指定してください")

    goals = normalized["goals"]
    if isinstance(goals, str):
        # "purchase, signup" 形式
        goals = [g.strip() for g in goals.split(",") if g.strip()]
        normalized["goals"] = goals
    if not isinstance(goals, list) or not all(isinstance(g, str) and g for g in goals):
        raise YamlValidationError("goals は文字列配列で指定してください")

    pages = normalized.get("targetPages")
    if pages is not None and (
        not isinstance(pages, list) or not all(isinstance(p, str) for p in pages)
    ):
        raise YamlValidationError("targetPages は文字列配列で指定してください")

    return normalized


def _require_fields(data: Dict[str, Any], fields: List[str], prefix: str | None = None) -> None:
    missing = [field for field in fields if field not in data]
    if missing:
        label = f"{prefix}." if prefix else ""
        raise YamlValidationError(f"必須フィールドが不足しています: {', '.join(label + f for f in missing)}")
