"""
Error types raised by the menu pipeline
"""

from typing import Optional


class MenuError(Exception):
    """Base class for menu pipeline errors"""


class FetchError(MenuError):
    """Network failure, timeout or unexpected status from the school site"""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class BlockedError(FetchError):
    """The school firewall intercepted the request"""

    def __init__(self, message: str, url: Optional[str] = None, location: Optional[str] = None):
        super().__init__(message, url)
        self.location = location


class RendererUnavailableError(FetchError):
    """Browser rendering was needed but could not be started"""


class PhotoTimeoutError(MenuError):
    """Photo lookup did not finish in time"""


class MalformedDateError(ValueError, MenuError):
    """Date is not a valid YYYYMMDD value or range"""


def user_message(exc: BaseException) -> str:
    """Short user-facing message for an error"""
    if isinstance(exc, BlockedError):
        return "학교 홈페이지가 접근을 차단했어요. 잠시 후 다시 시도해주세요."
    if isinstance(exc, RendererUnavailableError):
        return "학교 홈페이지를 불러올 수 없어요. 관리자에게 문의해주세요."
    if isinstance(exc, PhotoTimeoutError):
        return "사진 불러오기가 지연되고 있어요. 10초 뒤에 다시 눌러주세요!"
    if isinstance(exc, MalformedDateError):
        return "날짜 형식이 올바르지 않아요. (예: 20250301)"
    if isinstance(exc, FetchError):
        return "학교 홈페이지 응답이 느려요. 잠시 후 다시 시도해주세요."
    return "급식 불러오다가 오류가 났어. 잠시 후 다시 시도해줘!"
