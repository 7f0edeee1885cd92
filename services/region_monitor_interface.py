from abc import ABC, abstractmethod
from dataclasses import dataclass

from services.geo import Coordinate


@dataclass(frozen=True)
class CircularRegion:
    identifier: str
    center: Coordinate
    radius_meters: float
    notify_on_entry: bool = True
    notify_on_exit: bool = False


class RegionMonitorInterface(ABC):
    """領域監視・位置情報プロバイダの抽象インターフェース

    コールバック（領域進入・位置取得・権限変更・エラー）は
    GeofenceAutomaton の on_* メソッドへ渡す。
    """

    @abstractmethod
    def start_monitoring(self, region: CircularRegion) -> None:
        """領域監視を開始"""
        ...

    @abstractmethod
    def stop_monitoring(self, identifier: str) -> None:
        """領域監視を停止"""
        ...

    @abstractmethod
    def monitored_regions(self) -> list[CircularRegion]:
        """監視中の領域"""
        ...

    @abstractmethod
    def request_location(self) -> None:
        """現在地を1回だけ要求する"""
        ...

    @abstractmethod
    def request_permission(self) -> None:
        """常時の位置情報利用許可を要求する"""
        ...

    @abstractmethod
    def is_authorized(self) -> bool:
        ...
