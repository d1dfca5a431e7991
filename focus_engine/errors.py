"""Common exceptions raised inside the focus engine"""


class FocusEngineError(Exception):
    """Base exception for all engine errors"""
    pass


class StoreError(FocusEngineError):
    """The persistent key-value store failed to read or write"""
    pass


class BrowserError(FocusEngineError):
    """Base exception for browser host errors"""
    pass


class TabNotFoundError(BrowserError):
    """A tab operation targeted a tab the browser no longer knows about"""

    def __init__(self, tab_id: int):
        super().__init__(f"No tab with id {tab_id}")
        self.tab_id = tab_id
