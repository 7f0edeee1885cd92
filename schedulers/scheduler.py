# schedulers/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from typing import Callable


class CheckInScheduler:
    """APSchedulerによる定期実行管理（リモート同期の確認・測位待ちの期限切れ・日付変更）"""

    def __init__(self, interval_seconds: int, job_func: Callable):
        self._interval = interval_seconds
        self._job_func = job_func
        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self._job_func,
            trigger=IntervalTrigger(seconds=self._interval),
            id="office_checkin_tick",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    def start(self):
        """スケジューラ開始"""
        self._scheduler.start()

    def stop(self):
        """スケジューラ停止"""
        self._scheduler.shutdown(wait=False)
