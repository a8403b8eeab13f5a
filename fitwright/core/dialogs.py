from __future__ import annotations

"""Native browser dialogs
-------------------------
alert/confirm/prompt dialogs are not part of the DOM, so commands reach them
through reserved locators instead of element queries:

    dialog, alert        the pending dialog (click accepts it)
    dialog=confirm       accept
    dialog=cancel        dismiss

A focused-element locator (empty) also targets a pending dialog, so `click`
right after an action that opened an alert confirms it.
"""

from enum import Enum
from typing import Any, Callable, Optional, TypeVar

from playwright.sync_api import Dialog

from fitwright.core.errors import ElementNotFound
from fitwright.selectors.locator import Selector
from fitwright.utils import markup
from fitwright.utils.logger import get_logger

T = TypeVar("T")


class DialogIdentifier(str, Enum):
    dialog = "dialog"
    alert = "alert"
    confirm = "confirm"
    cancel = "cancel"


class BrowserDialogHelper:
    def __init__(self) -> None:
        self.log = get_logger(__name__)

    def click(self, driver: Any, selector: Selector) -> bool:
        """Accept or dismiss the dialog; False when the locator is not about dialogs."""
        def handle(dialog: Dialog, value: str) -> bool:
            action = DialogIdentifier(value) if value else DialogIdentifier.confirm
            if action == DialogIdentifier.cancel:
                dialog.dismiss()
            else:
                dialog.accept()
            # text/present leave the dialog pending; only click consumes it
            driver.take_dialog()
            self.log.debug(f"Dialog {dialog.type!r} handled with {action.value}")
            return True

        return bool(self._do_if_available(driver, selector, handle))

    def text(self, driver: Any, selector: Selector) -> Optional[str]:
        return self._do_if_available(driver, selector, lambda dialog, _: dialog.message)

    def present(self, driver: Any, selector: Selector) -> bool:
        return bool(self._do_if_available(driver, selector, lambda dialog, _: True))

    def _do_if_available(self, driver: Any, selector: Selector, callback: Callable[[Dialog, str], T]) -> Optional[T]:
        key, value = markup.parse_key_value(selector.source)
        if key in DialogIdentifier._value2member_map_:
            dialog = driver.pending_dialog
            if dialog is None:
                raise ElementNotFound("No browser dialog is present")
            if value and value not in DialogIdentifier._value2member_map_:
                raise ValueError(f"Unknown dialog action '{value}', use confirm or cancel")
            return callback(dialog, value)
        if not selector.is_focused or driver.pending_dialog is None:
            return None
        return callback(driver.pending_dialog, value)
