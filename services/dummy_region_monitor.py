from services.region_monitor_interface import CircularRegion, RegionMonitorInterface


class DummyRegionMonitor(RegionMonitorInterface):
    """ダミー領域監視（ログ出力のみ）。位置情報を使えない環境向け"""

    def __init__(self, authorized: bool = True):
        self._regions: dict[str, CircularRegion] = {}
        self._authorized = authorized
        self.location_requests = 0

    def start_monitoring(self, region: CircularRegion) -> None:
        self._regions[region.identifier] = region
        print(
            f"[DummyRegionMonitor] 監視開始（シミュレーション）: {region.identifier} "
            f"({int(region.radius_meters)}m)"
        )

    def stop_monitoring(self, identifier: str) -> None:
        self._regions.pop(identifier, None)

    def monitored_regions(self) -> list[CircularRegion]:
        return list(self._regions.values())

    def request_location(self) -> None:
        self.location_requests += 1
        print("[DummyRegionMonitor] 現在地を要求（シミュレーション）")

    def request_permission(self) -> None:
        self._authorized = True

    def is_authorized(self) -> bool:
        return self._authorized
