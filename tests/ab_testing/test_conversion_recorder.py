# ConversionRecorder テスト
"""
ConversionRecorder の単体テスト

検証観点:
- ゴール・ユーザーごとに最大1回
- 未割り当て・対象外ゴール・完了済み・存在しない実験では何もしない
- 一時停止中でも既存割り当てのコンバージョンは記録する
- 記録時の結果再計算とイベント通知
"""

import pytest

from src.ab_testing import event_bus as events


@pytest.fixture
def assigned(registry, active_experiment):
    """user_1 を variant_1 に割り当て済みの実験"""
    registry.assign(active_experiment.id)
    return active_experiment


class TestRecordConversion:
    """コンバージョン記録のテスト"""

    def test_records_once_per_goal(self, registry, assigned):
        assert registry.record_conversion(assigned.id, "purchase_initiated") is True
        assert registry.record_conversion(assigned.id, "purchase_initiated") is False

        results = registry.get(assigned.id).results
        assert results.variant_b.conversions == 1
        assert results.variant_b.conversion_rate == pytest.approx(1.0)

    def test_second_goal_is_recorded_separately(self, registry, assigned):
        """別ゴールもイベントとして記録するが、ユーザー単位で1回だけ加算"""
        assert registry.record_conversion(assigned.id, "purchase_initiated") is True
        assert registry.record_conversion(assigned.id, "demo_requested") is True

        assignment = registry.get_assignment(assigned.id, "user_1")
        assert [e.goal for e in assignment.conversion_events] == [
            "purchase_initiated",
            "demo_requested",
        ]
        results = registry.get(assigned.id).results
        assert results.variant_b.conversions == 1

    def test_multi_goal_user_does_not_crowd_out_others(self, registry, assigned, captured):
        registry.assign(assigned.id, user_id="user_2")
        registry.record_conversion(assigned.id, "purchase_initiated")
        registry.record_conversion(assigned.id, "demo_requested")

        assert registry.record_conversion(assigned.id, "purchase_initiated", user_id="user_2") is True

        variant_b = registry.get_results(assigned.id).variant_b
        assert variant_b.visitors == 2
        assert variant_b.conversions == 2
        assert variant_b.conversion_rate == pytest.approx(1.0)
        assert len([e for e in captured if e.type == events.CONVERSION]) == 3

    def test_sets_converted_and_metadata(self, registry, assigned):
        registry.record_conversion(assigned.id, "purchase_initiated", metadata={"amount": 99})

        assignment = registry.get_assignment(assigned.id, "user_1")
        assert assignment.converted is True
        assert assignment.conversion_events[0].metadata == {"amount": 99}

    def test_publishes_conversion_event(self, registry, assigned, captured):
        registry.record_conversion(assigned.id, "purchase_initiated", metadata={"amount": 99})

        event = [e for e in captured if e.type == events.CONVERSION][-1]
        assert event.data == {
            "experimentId": assigned.id,
            "userId": "user_1",
            "variantId": "variant_1",
            "goal": "purchase_initiated",
            "metadata": {"amount": 99},
        }

    def test_paused_experiment_still_records(self, registry, assigned):
        registry.pause(assigned.id)

        assert registry.record_conversion(assigned.id, "purchase_initiated") is True


class TestIgnoredConversions:
    """記録しないケースのテスト"""

    def test_unassigned_user(self, registry, active_experiment, captured):
        captured.clear()

        assert registry.record_conversion(active_experiment.id, "purchase_initiated") is False
        assert captured == []

    def test_goal_not_in_experiment(self, registry, assigned):
        assert registry.record_conversion(assigned.id, "newsletter_signup") is False
        assert registry.get(assigned.id).results.variant_b.conversions == 0

    def test_unknown_experiment(self, registry):
        assert registry.record_conversion("exp_missing", "purchase_initiated") is False

    def test_completed_experiment(self, registry, assigned):
        registry.complete(assigned.id)

        assert registry.record_conversion(assigned.id, "purchase_initiated") is False
        assert registry.get(assigned.id).results.variant_b.conversions == 0


class TestConversionPersistence:
    """永続化のテスト"""

    def test_conversion_is_saved(self, registry, assigned, store, config):
        registry.record_conversion(assigned.id, "purchase_initiated")

        stored = store.get(config.assignments_key)[f"{assigned.id}_user_1"]
        assert stored["converted"] is True
        assert stored["conversionEvents"][0]["goal"] == "purchase_initiated"
        experiments = store.get(config.storage_key)
        assert experiments[assigned.id]["results"]["variantB"]["conversions"] == 1
