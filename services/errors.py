class OfficeCheckInError(Exception):
    """チェックインエージェントの基底例外"""


class CoordinateParseError(OfficeCheckInError, ValueError):
    """座標テキストを解釈できない"""


class PersistenceError(OfficeCheckInError):
    """状態の保存・読み込みに失敗した"""


class LocationError(OfficeCheckInError):
    """位置情報プロバイダのエラー"""


class AuthorizationDenied(LocationError):
    """位置情報の利用が許可されていない"""
