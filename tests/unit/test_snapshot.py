"""Unit tests for the element index."""

from __future__ import annotations

import pytest

from fakes import FakePage, button
from tabwright.browser.snapshot import (
    LABEL_LENGTH,
    MAX_ELEMENTS,
    ElementIndex,
    create_snapshot,
)
from tabwright.errors import ElementNotFoundError


class TestFromRaw:
    def test_assigns_sequential_ids(self):
        index = ElementIndex.from_raw([button("#a", "A"), button("#b", "B")], generation=4)
        assert [r.id for r in index.records] == ["el_0", "el_1"]
        assert index.generation == 4
        assert index.valid

    def test_truncates_labels(self):
        index = ElementIndex.from_raw([button("#a", "x" * 200)])
        assert len(index.records[0].label) == LABEL_LENGTH

    def test_missing_fields_become_empty(self):
        record = ElementIndex.from_raw([{}]).records[0]
        assert record.selector == "" and record.role == "" and record.href is None

    def test_link_detection(self):
        index = ElementIndex.from_raw([button("a", "Docs", role="link", href="/docs"), button("#b", "B")])
        assert index.records[0].is_link
        assert not index.records[1].is_link

    def test_text_rendering(self):
        index = ElementIndex.from_raw([button("#a", "Submit"), button("#b", "", role="textbox")])
        assert index.text() == "el_0 [button] Submit\nel_1 [textbox]"


class TestLookup:
    def test_lookup_hit(self):
        index = ElementIndex.from_raw([button("#a", "A")])
        assert index.lookup("el_0").selector == "#a"

    def test_unknown_id_is_not_found(self):
        index = ElementIndex.from_raw([button("#a", "A")])
        with pytest.raises(ElementNotFoundError) as exc_info:
            index.lookup("el_7")
        assert exc_info.value.details["element_id"] == "el_7"

    def test_invalidated_index_never_resolves(self):
        index = ElementIndex.from_raw([button("#a", "A")], generation=2)
        index.invalidate()
        with pytest.raises(ElementNotFoundError) as exc_info:
            index.lookup("el_0")
        assert "stale" in exc_info.value.message
        assert exc_info.value.details["generation"] == 2


class TestCreateSnapshot:
    @pytest.mark.asyncio
    async def test_default_limit(self):
        page = FakePage()
        page.elements = [button(f"#b{i}", f"B{i}") for i in range(200)]
        index = await create_snapshot(page)
        assert len(index) == MAX_ELEMENTS

    @pytest.mark.asyncio
    async def test_verbose_limit(self):
        page = FakePage()
        page.elements = [button(f"#b{i}", f"B{i}") for i in range(200)]
        index = await create_snapshot(page, verbose=True)
        assert len(index) == 200
        assert page.evaluations[-1][1] == {"limit": 300, "labelLength": LABEL_LENGTH}

    @pytest.mark.asyncio
    async def test_empty_page(self):
        index = await create_snapshot(FakePage(), generation=1)
        assert len(index) == 0
        assert index.text() == ""
