#!/usr/bin/env python3
from __future__ import annotations
"""
A/Bテスト CLI メインエントリーポイント

実験の作成・開始・一時停止・完了、割り当て、コンバージョン記録、
結果確認、エクスポート/インポートをターミナルから行う。
"""

import click
import sys
import os
from typing import Optional

# プロジェクトルートをパスに追加
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../..'))

from src.ab_testing.errors import InvalidStateError, NotFoundError, ValidationError
from src.ab_testing.experiment_registry import ExperimentRegistry
from src.ab_testing.event_bus import EventBus
from src.ab_testing.models import ExperimentStatus
from src.config.ab_testing_config import ABTestingConfig
from src.storage.blob_store import JsonFileBlobStore
from src.cli.utils.output import echo_json, echo_table, experiment_rows, format_results
from src.cli.utils.yaml_loader import YamlValidationError, load_experiment_definitions


class CLIContext:
    """CLI共通コンテキスト（依存関係を保持）"""

    def __init__(self):
        self.config: Optional[ABTestingConfig] = None
        self.backend: str = "json"
        self.output_json: bool = False
        self._registry: Optional[ExperimentRegistry] = None

    @property
    def registry(self) -> ExperimentRegistry:
        """ExperimentRegistry を遅延初期化"""
        if self._registry is None:
            config = self.config or ABTestingConfig()
            try:
                store = self._create_store(config)
                self._registry = ExperimentRegistry(
                    store=store,
                    event_bus=EventBus(),
                    config=config,
                )
            except Exception as e:
                click.echo(f"[初期化エラー] レジストリの初期化に失敗しました: {e}", err=True)
                sys.exit(1)
        return self._registry

    def _create_store(self, config: ABTestingConfig):
        if self.backend == "postgres":
            from src.db.connection import DatabaseConnection
            from src.storage.postgres_blob_store import PostgresBlobStore

            store = PostgresBlobStore(DatabaseConnection(config.database_url))
            store.ensure_schema()
            return store
        return JsonFileBlobStore(config.data_dir)

    def close(self) -> None:
        if self._registry is not None:
            self._registry.close()


# click の pass_context でCLIContextを共有
pass_context = click.make_pass_decorator(CLIContext, ensure=True)


def _fail(message: str, code: int = 1) -> None:
    click.echo(f"[エラー] {message}", err=True)
    sys.exit(code)


def _run(action):
    """ドメイン例外をCLIのエラー表示に変換して実行"""
    try:
        return action()
    except NotFoundError as e:
        _fail(f"実験 '{e.experiment_id}' が見つかりません", code=2)
    except ValidationError as e:
        for error in e.errors:
            click.echo(f"  - {error}", err=True)
        _fail("実験の設定が不正です")
    except InvalidStateError as e:
        _fail(str(e))


@click.group()
@click.version_option(version="1.0.0", prog_name="abtest")
@click.option('--data-dir', default=None, help='JSONスナップショットの保存先')
@click.option('--backend', type=click.Choice(['json', 'postgres']), default='json',
              help='保存先バックエンド')
@click.option('--json', 'output_json', is_flag=True, help='JSON形式で出力')
@pass_context
def abtest(ctx: CLIContext, data_dir: Optional[str], backend: str, output_json: bool):
    """
    A/Bテスト CLI

    実験のライフサイクル管理と結果確認をターミナルから行えます。
    """
    ctx.config = ABTestingConfig()
    if data_dir:
        ctx.config.data_dir = data_dir
    ctx.backend = backend
    ctx.output_json = output_json
    click.get_current_context().call_on_close(ctx.close)


@abtest.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@pass_context
def create(ctx: CLIContext, file: str):
    """YAML定義から実験を作成する（複数可）"""
    try:
        definitions = load_experiment_definitions(file)
    except YamlValidationError as e:
        _fail(f"YAMLの検証に失敗しました: {e}")

    created = [_run(lambda d=d: ctx.registry.create(d)) for d in definitions]

    if ctx.output_json:
        echo_json([exp.to_dict() for exp in created])
        return
    for exp in created:
        click.echo(f"✓ 実験を作成しました: {exp.id} ({exp.name})")


@abtest.command()
@click.argument('experiment_id')
@pass_context
def start(ctx: CLIContext, experiment_id: str):
    """実験を開始（再開）する"""
    exp = _run(lambda: ctx.registry.start(experiment_id))
    click.echo(f"✓ 実験を開始しました: {exp.id} (開始日: {exp.start_date})")


@abtest.command()
@click.argument('experiment_id')
@pass_context
def pause(ctx: CLIContext, experiment_id: str):
    """実験を一時停止する"""
    exp = _run(lambda: ctx.registry.pause(experiment_id))
    click.echo(f"✓ 実験を一時停止しました: {exp.id}")


@abtest.command()
@click.argument('experiment_id')
@pass_context
def complete(ctx: CLIContext, experiment_id: str):
    """実験を完了し、結果を確定する"""
    exp = _run(lambda: ctx.registry.complete(experiment_id))
    if ctx.output_json:
        echo_json(exp.to_dict())
        return
    click.echo(f"✓ 実験を完了しました: {exp.id}")
    click.echo(format_results(exp, exp.results))


@abtest.command(name="list")
@click.option('--status', type=click.Choice([s.value for s in ExperimentStatus]),
              default=None, help='ステータスで絞り込み')
@pass_context
def list_experiments(ctx: CLIContext, status: Optional[str]):
    """実験一覧を表示する"""
    experiments = ctx.registry.list(status)

    if ctx.output_json:
        echo_json([exp.to_dict() for exp in experiments])
        return
    if not experiments:
        click.echo("実験がありません")
        return
    echo_table(
        ["ID", "NAME", "STATUS", "TRAFFIC(B)", "VISITORS", "WINNER"],
        experiment_rows(experiments),
    )


@abtest.command()
@click.argument('experiment_id')
@pass_context
def results(ctx: CLIContext, experiment_id: str):
    """実験結果を表示する"""
    exp = _run(lambda: ctx.registry.get(experiment_id))
    if ctx.output_json:
        echo_json(exp.results.to_dict())
        return
    click.echo(format_results(exp, exp.results))


@abtest.command()
@click.argument('experiment_id')
@click.option('--user', 'user_id', default=None, help='ユーザーID（省略時は保存済みID）')
@click.option('--path', default=None, help='現在のページパス')
@pass_context
def assign(ctx: CLIContext, experiment_id: str, user_id: Optional[str], path: Optional[str]):
    """ユーザーをバリアントに割り当てる"""
    assignment = _run(lambda: ctx.registry.assign(experiment_id, user_id, path or "/"))

    if ctx.output_json:
        echo_json(assignment.to_dict() if assignment else None)
        return
    if assignment is None:
        click.echo("割り当て対象外です（実験が active でない、または対象ページ外）")
        return
    click.echo(f"✓ {assignment.user_id} → {assignment.variant_id}")


@abtest.command()
@click.argument('experiment_id')
@click.argument('goal')
@click.option('--user', 'user_id', default=None, help='ユーザーID（省略時は保存済みID）')
@click.option('--meta', multiple=True, help='付加情報 key=value（複数指定可）')
@pass_context
def convert(ctx: CLIContext, experiment_id: str, goal: str, user_id: Optional[str], meta):
    """コンバージョンを記録する"""
    metadata = {}
    for item in meta:
        if "=" not in item:
            _fail(f"--meta は key=value 形式で指定してください: {item}", code=2)
        key, value = item.split("=", 1)
        metadata[key] = value

    recorded = ctx.registry.record_conversion(experiment_id, goal, user_id, metadata)
    if recorded:
        click.echo(f"✓ コンバージョンを記録しました: {experiment_id} / {goal}")
    else:
        click.echo("記録されませんでした（未割り当て、対象外ゴール、または記録済み）")


@abtest.command(name="export")
@click.argument('experiment_id')
@click.option('-o', '--output', default=None, help='出力ファイル（省略時は標準出力）')
@pass_context
def export_experiment(ctx: CLIContext, experiment_id: str, output: Optional[str]):
    """実験と割り当てをJSONでエクスポートする"""
    if output:
        path = _run(lambda: ctx.registry.export_experiment_to_file(experiment_id, output))
        click.echo(f"✓ エクスポートしました: {path}")
        return
    echo_json(_run(lambda: ctx.registry.export_experiment(experiment_id)))


@abtest.command(name="import")
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--overwrite', is_flag=True, help='同じIDの実験を置き換える')
@pass_context
def import_experiment(ctx: CLIContext, file: str, overwrite: bool):
    """エクスポートしたJSONを取り込む"""
    exp = _run(lambda: ctx.registry.import_experiment_from_file(file, overwrite=overwrite))
    click.echo(f"✓ インポートしました: {exp.id} ({exp.name})")


@abtest.command(name="reset-assignments")
@click.argument('experiment_id', required=False)
@click.option('--yes', is_flag=True, help='確認なしで実行')
@pass_context
def reset_assignments(ctx: CLIContext, experiment_id: Optional[str], yes: bool):
    """割り当てを削除する（実験ID省略時は全実験）"""
    target = experiment_id or "全実験"
    if not yes and not click.confirm(f"{target} の割り当てを削除しますか?"):
        click.echo("中止しました")
        return
    count = _run(lambda: ctx.registry.reset_assignments(experiment_id))
    click.echo(f"✓ 割り当てを削除しました: {count}件")


@abtest.command()
@pass_context
def dashboard(ctx: CLIContext):
    """実験全体の集計を表示する"""
    data = ctx.registry.get_dashboard_data()
    if ctx.output_json:
        echo_json(data)
        return
    click.echo(f"実験数: {data['totalExperiments']}")
    click.echo(f"  draft: {data['draftExperiments']}")
    click.echo(f"  active: {data['activeExperiments']}")
    click.echo(f"  paused: {data['pausedExperiments']}")
    click.echo(f"  completed: {data['completedExperiments']}")
    click.echo(f"完了済み実験の平均コンバージョン率: {data['overallConversionRate']}%")


if __name__ == '__main__':
    abtest()
