"""Element Index: a short-lived catalog of interactive page elements.

A snapshot queries the live page once and assigns each visible interactive
element a sequential identifier (``el_0``, ``el_1``, …). Identifiers are only
meaningful within the index that produced them: once an index is invalidated
every lookup fails with :class:`ElementNotFoundError`, so a stale identifier
can never resolve against a changed DOM.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING

from tabwright.errors import ElementNotFoundError

if TYPE_CHECKING:
    from playwright.async_api import Page

MAX_ELEMENTS = 120
MAX_ELEMENTS_VERBOSE = 300
LABEL_LENGTH = 80

LINK_ROLE = "link"

SNAPSHOT_JS = """
({ limit, labelLength }) => {
    const selectors = [
        'a[href]', 'button', 'input', 'textarea', 'select',
        '[role="button"]', '[role="link"]', '[role="textbox"]',
    ];
    const esc = (value) => {
        if (window.CSS && typeof window.CSS.escape === 'function') return window.CSS.escape(value);
        return String(value).replace(/([^a-zA-Z0-9_-])/g, '\\\\$1');
    };
    const visible = (el) => {
        const r = el.getBoundingClientRect();
        if (r.width === 0 || r.height === 0) return false;
        const s = window.getComputedStyle(el);
        return s.visibility !== 'hidden' && s.display !== 'none';
    };
    const inputRole = (el) => {
        const type = (el.getAttribute('type') || 'text').toLowerCase();
        if (['button', 'submit', 'reset', 'image'].includes(type)) return 'button';
        if (type === 'checkbox') return 'checkbox';
        if (type === 'radio') return 'radio';
        return 'textbox';
    };
    const implicitRole = (el) => {
        const tag = el.tagName.toLowerCase();
        if (tag === 'a') return 'link';
        if (tag === 'button') return 'button';
        if (tag === 'textarea') return 'textbox';
        if (tag === 'select') return 'combobox';
        if (tag === 'input') return inputRole(el);
        return tag;
    };
    const seen = new Set();
    const nodes = [];
    for (const sel of selectors) {
        for (const el of document.querySelectorAll(sel)) {
            if (seen.has(el)) continue;
            seen.add(el);
            nodes.push(el);
        }
    }
    return nodes.filter(visible).slice(0, limit).map((el) => {
        const tag = el.tagName.toLowerCase();
        const label = (el.getAttribute('aria-label') || el.innerText || el.textContent || '')
            .replace(/\\s+/g, ' ').trim().slice(0, labelLength);
        const name = el.getAttribute('name');
        const selector = el.id
            ? `#${esc(el.id)}`
            : `${tag}${name ? `[name="${String(name).replace(/"/g, '\\\\"')}"]` : ''}`;
        return {
            selector,
            role: el.getAttribute('role') || implicitRole(el),
            label,
            href: el.getAttribute('href') || null,
        };
    });
}
"""


@dataclass(frozen=True)
class ElementRecord:
    """One addressable element of a snapshot."""

    id: str
    selector: str
    role: str
    label: str = ""
    href: str | None = None

    @property
    def is_link(self) -> bool:
        return self.role == LINK_ROLE

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ElementIndex:
    """Ordered records plus a validity flag shared by every identifier in it."""

    records: list[ElementRecord] = field(default_factory=list)
    generation: int = 0
    valid: bool = True

    def __len__(self) -> int:
        return len(self.records)

    def lookup(self, element_id: str) -> ElementRecord:
        """Return the record for *element_id*.

        Raises :class:`ElementNotFoundError` if the index has been
        invalidated or never contained the identifier.
        """
        if not self.valid:
            raise ElementNotFoundError(
                f"Element not found in snapshot: {element_id} (snapshot is stale, take a new one)",
                element_id=element_id,
                generation=self.generation,
            )
        for record in self.records:
            if record.id == element_id:
                return record
        raise ElementNotFoundError(
            f"Element not found in snapshot: {element_id}",
            element_id=element_id,
            generation=self.generation,
        )

    def invalidate(self) -> None:
        self.valid = False

    def text(self) -> str:
        """Render one ``el_N [role] label`` line per element."""
        return "\n".join(f"{r.id} [{r.role}] {r.label}".rstrip() for r in self.records)

    @classmethod
    def from_raw(cls, raw: list[dict], generation: int = 0) -> "ElementIndex":
        records = [
            ElementRecord(
                id=f"el_{idx}",
                selector=str(item.get("selector") or ""),
                role=str(item.get("role") or ""),
                label=str(item.get("label") or "")[:LABEL_LENGTH],
                href=item.get("href") or None,
            )
            for idx, item in enumerate(raw or [])
        ]
        return cls(records=records, generation=generation)


async def create_snapshot(page: "Page", verbose: bool = False, generation: int = 0) -> ElementIndex:
    """Query *page* for visible interactive elements and index them."""
    limit = MAX_ELEMENTS_VERBOSE if verbose else MAX_ELEMENTS
    raw = await page.evaluate(SNAPSHOT_JS, {"limit": limit, "labelLength": LABEL_LENGTH})
    return ElementIndex.from_raw(list(raw or [])[:limit], generation=generation)
