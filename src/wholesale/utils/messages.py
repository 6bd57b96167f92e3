from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    broadcasted when the user logs out
    """

    bubble = True


class EntitiesChangedMessage(Message):
    """
    Posted by a screen's feed callback after the entity cache for ``kind``
    was replaced. The screen re-renders its projection.
    """

    bubble = False

    def __init__(self, kind: str) -> None:
        super().__init__()
        self.kind = kind


class ViewSwitchedMessage(Message):
    """
    fired whenever the app switches to another view
    must be fired from app level
    """

    bubble = True

    def __init__(self, old_view: str, new_view: str) -> None:
        super().__init__()
        self.old_view = old_view
        self.new_view = new_view


class NavigateMessage(Message):
    """
    Ask the app to route to ``view_key`` for the current role
    (sidebar selection, dashboard shortcuts)
    """

    bubble = True

    def __init__(self, view_key: str) -> None:
        super().__init__()
        self.view_key = view_key
