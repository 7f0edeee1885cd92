import sys


class ConsoleNotifier:
    """コンソール出力による通知（フォールバック用）"""

    def send(self, title: str, body: str) -> bool:
        print(f"[チェックイン通知] {title}: {body}", file=sys.stdout)
        return True

    def send_error(self, error: str) -> bool:
        print(f"[チェックインエラー] {error}", file=sys.stderr)
        return True


class SlackNotifier:
    """Slack APIによる通知サービス"""

    def __init__(self, token: str, channel: str):
        self._channel = channel
        self._client = None
        self._fallback = ConsoleNotifier()

        if token:
            try:
                from slack_sdk import WebClient
                self._client = WebClient(token=token)
            except Exception:
                pass

    def send(self, title: str, body: str) -> bool:
        """通知送信（失敗しても例外は出さない）"""
        if self._client is None:
            return self._fallback.send(title, body)

        try:
            self._client.chat_postMessage(channel=self._channel, text=f"*{title}*\n{body}")
            return True
        except Exception:
            return False

    def send_error(self, error: str) -> bool:
        """エラー通知"""
        return self.send("Office Check-In", f"❌ 自動チェックインに失敗しました（エラー: {error}）")
