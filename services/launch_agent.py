# services/launch_agent.py
import sys
from abc import ABC, abstractmethod
from pathlib import Path

DESKTOP_ENTRY = """[Desktop Entry]
Type=Application
Name=Office Check-In
Exec={command}
X-GNOME-Autostart-enabled=true
"""


class LaunchAgentInterface(ABC):
    """ログイン時起動の登録先"""

    @abstractmethod
    def register(self) -> None:
        ...

    @abstractmethod
    def unregister(self) -> None:
        ...

    def apply(self, enabled: bool) -> bool:
        """有効/無効を反映する（失敗はログのみで継続）"""
        try:
            if enabled:
                self.register()
            else:
                self.unregister()
            return True
        except OSError as e:
            print(f"[LaunchAgent] ログイン時起動の設定に失敗しました: {e}", file=sys.stderr)
            return False


class XdgAutostartLaunchAgent(LaunchAgentInterface):
    """~/.config/autostart に .desktop ファイルを置いて登録する"""

    def __init__(self, command: str, autostart_dir: str = "~/.config/autostart"):
        self._command = command
        self._path = Path(autostart_dir).expanduser() / "office-check-in.desktop"

    @property
    def path(self) -> Path:
        return self._path

    def register(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(DESKTOP_ENTRY.format(command=self._command), encoding="utf-8")

    def unregister(self) -> None:
        if self._path.exists():
            self._path.unlink()
