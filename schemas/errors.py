"""
Error taxonomy for the companion.

Every failure the UI can show carries a ``user_message`` so handlers never
have to guess wording. Nothing here is fatal to the running service.
"""


class CompanionError(Exception):
    """Base class for all expected companion failures."""

    user_message = "操作失败"

    def __init__(self, message: str = "", user_message: str = None):
        super().__init__(message or self.user_message)
        if user_message:
            self.user_message = user_message


class ConfigError(CompanionError):
    user_message = "缺少 API 密钥配置"


# -- capture ------------------------------------------------------------------

class CaptureError(CompanionError):
    """Raised by the capture source adapter when no stream can be acquired."""


class PermissionDenied(CaptureError):
    user_message = "未获得屏幕或相机权限"


class UnsupportedDevice(CaptureError):
    user_message = "当前设备不支持该采集方式"


class NoFrameAvailable(CompanionError):
    """No active stream, or the stream produced no decodable frame."""

    user_message = "没有可用画面"


# -- model round trips --------------------------------------------------------

class ClientError(CompanionError):
    """A recognition or analysis round trip failed."""


class TransportFailure(ClientError):
    user_message = "网络请求失败"


class MalformedResponse(ClientError):
    user_message = "返回数据格式错误"
