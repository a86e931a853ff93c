"""Caller-side handle for a DOM node living in the browser."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .errors import MouseEventFailed, WrongWorld

if TYPE_CHECKING:
    from .driver import Driver

HIT_TEST_JS = """
function(x, y) {
  const hit = document.elementFromPoint(x, y);
  if (!hit || hit === this || this.contains(hit)) return null;
  let desc = hit.tagName.toLowerCase();
  if (hit.id) desc += '#' + hit.id;
  if (hit.className && typeof hit.className === 'string') desc += '.' + hit.className.trim().split(/\\s+/).join('.');
  return desc;
}
"""

SET_VALUE_JS = """
function(value) {
  if (this.isContentEditable) { this.textContent = value; }
  else if (this.type === 'checkbox' || this.type === 'radio') { this.checked = !!value; }
  else { this.value = value; }
  this.dispatchEvent(new Event('input', {bubbles: true}));
  this.dispatchEvent(new Event('change', {bubbles: true}));
}
"""


class Node:
    """Opaque reference to ``(page_id, object_id)``.

    Liveness is the browser's business: operations on a node that was
    garbage-collected or navigated away raise ``ObsoleteNode``.
    """

    def __init__(self, driver: Driver, page_id: str, object_id: str) -> None:
        self.driver = driver
        self.page_id = page_id
        self.object_id = object_id

    def __repr__(self) -> str:
        return f"<Node page={self.page_id} object={self.object_id}>"

    @property
    def native(self) -> str:
        return self.object_id

    def _page(self):
        browser = self.driver.browser()
        if browser.current_page_id != self.page_id:
            raise WrongWorld(self)
        return browser.current_page

    def _call(self, declaration: str, *args: Any, by_value: bool = True) -> Any:
        return self._page().call_function_on(self.object_id, declaration, *args, return_by_value=by_value)

    @property
    def visible_text(self) -> str:
        return str(self._call("function() { return this.innerText || ''; }") or "")

    @property
    def all_text(self) -> str:
        return str(self._call("function() { return this.textContent || ''; }") or "")

    @property
    def tag_name(self) -> str:
        return str(self._call("function() { return this.tagName.toLowerCase(); }") or "")

    @property
    def value(self) -> Any:
        return self._call(
            "function() { if (this.tagName === 'SELECT' && this.multiple)"
            " return Array.from(this.selectedOptions).map(o => o.value);"
            " return this.value; }"
        )

    def __getitem__(self, name: str) -> Any:
        return self._call(
            "function(name) { const attr = this.getAttribute(name);"
            " if (name in this && typeof this[name] !== 'object' && typeof this[name] !== 'function') return this[name];"
            " return attr; }",
            name,
        )

    def is_visible(self) -> bool:
        return bool(
            self._call(
                "function() { if (!this.isConnected) return false;"
                " if (this.checkVisibility) return this.checkVisibility({visibilityProperty: true, opacityProperty: false});"
                " const s = getComputedStyle(this); return s.display !== 'none' && s.visibility !== 'hidden'"
                " && !!(this.offsetWidth || this.offsetHeight || this.getClientRects().length); }"
            )
        )

    def click(self) -> None:
        page = self._page()
        rect = page.element_rect(self.object_id)
        x = rect["x"] + rect["width"] / 2
        y = rect["y"] + rect["height"] / 2
        blocker = page.call_function_on(self.object_id, HIT_TEST_JS, x, y, return_by_value=True)
        if blocker:
            raise MouseEventFailed(self, blocker, (x, y))
        ox, oy = page.frame_offset()
        self.driver.browser().click_coordinates(x + ox, y + oy)

    def set(self, value: Any) -> None:
        self._call(SET_VALUE_JS, value)

    def find(self, method: str, selector: str) -> list[Node]:
        object_ids = self._page().find(method, selector, within=self.object_id)
        return [Node(self.driver, self.page_id, oid) for oid in object_ids]

    def find_css(self, selector: str) -> list[Node]:
        return self.find("css", selector)

    def find_xpath(self, selector: str) -> list[Node]:
        return self.find("xpath", selector)

    def evaluate(self, script: str, *args: Any) -> Any:
        """Run ``script`` as a function body with ``this`` bound to the node."""
        raw = self._page().call_function_on(self.object_id, f"function() {{ return {script}\n}}", *args)
        return self.driver.unwrap(raw)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        if self.page_id != other.page_id:
            return False
        if self.object_id == other.object_id:
            return True
        return bool(self._call("function(other) { return this === other; }", other))

    def __hash__(self) -> int:
        return hash((self.page_id, type(self).__name__))


__all__ = ["Node"]
