# A/Bテストモジュール共通フィクスチャ

import pytest

from src.ab_testing.event_bus import EventBus
from src.ab_testing.experiment_registry import ExperimentRegistry
from src.ab_testing.providers import StaticPathProvider, StaticUserIdentityProvider
from src.config.ab_testing_config import ABTestingConfig
from src.storage.blob_store import InMemoryBlobStore


class FixedRandom:
    """uniform() が常に同じ値を返す乱数生成器"""

    def __init__(self, value: float):
        self.value = value

    def uniform(self, a, b):
        return self.value


class SequenceRandom:
    """uniform() が与えた値を順に返す乱数生成器"""

    def __init__(self, values):
        self.values = list(values)

    def uniform(self, a, b):
        return self.values.pop(0)


@pytest.fixture
def config():
    """テスト用設定（環境変数の影響を受けない明示値）"""
    return ABTestingConfig(
        storage_key="ab_testing_experiments",
        data_dir="unused",
        flush_interval_seconds=0,
        min_visitors_per_variant=30,
    )


@pytest.fixture
def store():
    return InMemoryBlobStore()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def path_provider():
    return StaticPathProvider("/home")


@pytest.fixture
def captured(event_bus):
    """全イベントを記録するリスト"""
    events = []
    event_bus.subscribe("*", events.append)
    return events


@pytest.fixture
def make_registry(store, event_bus, config, path_provider):
    """乱数を指定してレジストリを作るファクトリ"""
    registries = []

    def _make(rng=None, user_id="user_1", **kwargs):
        registry = ExperimentRegistry(
            store=kwargs.pop("store", store),
            event_bus=event_bus,
            config=config,
            path_provider=path_provider,
            identity_provider=StaticUserIdentityProvider(user_id),
            rng=rng or FixedRandom(10.0),
            **kwargs,
        )
        registries.append(registry)
        return registry

    yield _make
    for registry in registries:
        registry.close()


@pytest.fixture
def registry(make_registry):
    """r=10 で常にバリアントBを選ぶレジストリ"""
    return make_registry()


@pytest.fixture
def experiment_config():
    return {
        "name": "Hero Button Color Test",
        "description": "Test different colors for the main CTA button",
        "variants": [
            {"id": "variant_0", "name": "Blue Button"},
            {"id": "variant_1", "name": "Green Button"},
        ],
        "trafficAllocation": 50,
        "targetPages": ["/home", "/"],
        "goals": ["purchase_initiated", "demo_requested"],
    }


@pytest.fixture
def active_experiment(registry, experiment_config):
    experiment = registry.create(experiment_config)
    return registry.start(experiment.id)


@pytest.fixture
def fixed_random():
    return FixedRandom


@pytest.fixture
def sequence_random():
    return SequenceRandom
