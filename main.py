"""オフィス出社チェックインエージェント - エントリーポイント"""
import signal
import sys
import time

from dotenv import load_dotenv
import os

from services.config_loader import load_config
from services.dummy_region_monitor import DummyRegionMonitor
from services.errors import CoordinateParseError
from services.geo import require_coordinates
from services.launch_agent import XdgAutostartLaunchAgent
from services.models import OfficeLocation
from services.notifier import SlackNotifier, ConsoleNotifier
from services.office_store import OfficeStore
from services.state_repository import (
    InMemoryStateRepository,
    SyncedFolderStateRepository,
    YamlFileStateRepository,
)
from services.status_report import build_status_report, format_status_report
from graph.geofence_automaton import GeofenceAutomaton
from schedulers.scheduler import CheckInScheduler


def create_services(config: dict):
    """設定に基づいてサービスインスタンスを生成"""
    load_dotenv()

    # 保存先（ローカル + 同期フォルダ）
    local = YamlFileStateRepository(
        os.path.expanduser(config["storage"]["local_path"])
    )
    sync_config = config["sync"]
    if sync_config["enabled"]:
        remote = SyncedFolderStateRepository(
            os.path.expanduser(os.getenv("OFFICE_SYNC_PATH", sync_config["remote_path"]))
        )
    else:
        remote = InMemoryStateRepository()

    # ログイン時起動
    login_config = config["launch_at_login"]
    launch_agent = XdgAutostartLaunchAgent(
        command=login_config["command"],
        autostart_dir=login_config["autostart_dir"],
    )

    store = OfficeStore(local=local, remote=remote, launch_agent=launch_agent)

    # Slack通知
    notifier_config = config["notifier"]
    slack_token = os.getenv("SLACK_BOT_TOKEN", "")
    slack_channel = os.getenv("SLACK_NOTIFY_CHANNEL", notifier_config.get("notify_channel", ""))
    if notifier_config["enabled"] and slack_token:
        notifier = SlackNotifier(token=slack_token, channel=slack_channel)
    else:
        notifier = ConsoleNotifier()

    # 位置情報プロバイダ（プラットフォーム実装はアダプタとして外部から差し込む）
    monitor = DummyRegionMonitor()

    location_config = config["location"]
    automaton = GeofenceAutomaton(
        office_store=store,
        monitor=monitor,
        notifier=notifier,
        fix_timeout_seconds=location_config["fix_timeout_seconds"],
        max_regions=location_config["max_regions"],
    )

    return store, remote, automaton, notifier


def add_office_from_text(store, args: list[str]):
    """地図URLや "lat, lon" からオフィスを追加する: --add-office NAME TEXT"""
    if len(args) < 2:
        print("使い方: --add-office NAME \"LAT, LON\"|MAP_URL", file=sys.stderr)
        sys.exit(2)
    name, text = args[0], " ".join(args[1:])
    try:
        coord = require_coordinates(text)
    except CoordinateParseError as e:
        print(f"[チェックイン] {e}", file=sys.stderr)
        sys.exit(1)
    store.add_office(OfficeLocation(name=name, latitude=coord.latitude, longitude=coord.longitude))
    print(f"[チェックイン] {name} を追加しました ({coord.latitude}, {coord.longitude})")


def run_tick(remote, automaton):
    """1回分の定期処理を実行"""
    if isinstance(remote, SyncedFolderStateRepository):
        remote.poll()
    automaton.tick()


def main():
    """メイン起動処理"""
    config = load_config("config.yaml")
    store, remote, automaton, notifier = create_services(config)
    store.load()

    if "--status" in sys.argv[1:]:
        report = build_status_report(store.config, store.log)
        print(format_status_report(report))
        return

    if sys.argv[1:2] == ["--add-office"]:
        add_office_from_text(store, sys.argv[2:])
        return

    automaton.bind()
    print(f"[チェックイン] {automaton.status}")

    interval = config["scheduler"]["tick_interval_seconds"]

    def tick_job():
        try:
            run_tick(remote, automaton)
        except Exception as e:
            print(f"[チェックイン] 定期処理中にエラー: {e}", file=sys.stderr)
            notifier.send_error(str(e))

    scheduler = CheckInScheduler(interval_seconds=interval, job_func=tick_job)
    scheduler.start()
    print(f"[チェックイン] {interval}秒間隔で状態を確認します")

    # シグナルハンドリング
    def shutdown(signum, frame):
        print("\n[チェックイン] 停止中...")
        scheduler.stop()
        remote.close()
        print("[チェックイン] 停止しました")
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    # メインループ
    print("[チェックイン] Ctrl+Cで停止します")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        shutdown(None, None)


if __name__ == "__main__":
    main()
