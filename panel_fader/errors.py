"""Error kinds raised and handled inside the fader. None of them is fatal."""


class PanelFaderError(Exception):
    """Base class for every fader error."""


class ConfigurationUnavailable(PanelFaderError):
    """Settings store missing or a key could not be read; defaults apply."""


class WindowAttributeUnreadable(PanelFaderError):
    """A window vanished or returned garbage between listing and reading."""

    def __init__(self, window_id, detail=""):
        self.window_id = window_id
        self.detail = detail
        message = f"cannot read window {window_id}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class StyleApplicationFailed(PanelFaderError):
    """The host refused to paint an opacity value."""


class SubscriptionFailure(PanelFaderError):
    """A signal source could not be attached."""
