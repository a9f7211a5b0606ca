"""Tests for the document models, enums, and factories."""

import re

import pytest

from slashcut.models import (
    DEFAULT_PAGE_SECONDS,
    AppState,
    Composition,
    Element,
    ElementType,
    Page,
    Project,
    TextAlign,
    default_page,
    generate_id,
    new_project,
)


class TestEnums:
    """String parsing for element types and text alignment."""

    @pytest.mark.parametrize("raw,expected", [
        ("text", ElementType.TEXT),
        ("IMAGE", ElementType.IMAGE),
        (" Video ", ElementType.VIDEO),
    ])
    def test_element_type_from_string(self, raw, expected):
        assert ElementType.from_string(raw) is expected

    def test_element_type_invalid(self):
        with pytest.raises(ValueError, match="Valid types: text, image, video, group"):
            ElementType.from_string("sprite")

    @pytest.mark.parametrize("raw", ["", "   ", "a\x00b", "x" * 100])
    def test_rejects_malformed_strings(self, raw):
        with pytest.raises(ValueError):
            TextAlign.from_string(raw)

    def test_rejects_non_strings(self):
        with pytest.raises(TypeError):
            TextAlign.from_string(3)


class TestGenerateId:
    def test_format(self):
        assert re.fullmatch(r"audio-\d{13}-[a-z0-9]{9}", generate_id("audio"))

    def test_unique_among_existing(self):
        taken = {generate_id("note") for _ in range(20)}
        assert generate_id("note", taken) not in taken


class TestProject:
    def _project(self, selected=None, pages=2):
        return Project(
            id="p",
            name="Test",
            composition=Composition(pages=[Page(id=f"page-{i}", name=str(i), duration=30)
                                           for i in range(1, pages + 1)]),
            app_state=AppState(selected_page_id=selected),
        )

    def test_selected_page(self):
        assert self._project(selected="page-2").selected_page.id == "page-2"

    @pytest.mark.parametrize("selected", [None, "page-gone"])
    def test_selected_page_falls_back_to_first(self, selected):
        assert self._project(selected=selected).selected_page.id == "page-1"

    def test_selected_page_without_pages(self):
        assert self._project(pages=0).selected_page is None

    def test_fps_defaults_without_composition(self):
        assert Project(id="p", name="x").fps == 30

    def test_total_frames(self):
        assert self._project(pages=3).composition.total_frames == 90

    def test_find_element(self, project):
        page, element = project.composition.find_element("el-c")
        assert page.id == "page-1" and element.type is ElementType.VIDEO
        assert project.composition.find_element("nope") is None


class TestDisplayName:
    @pytest.mark.parametrize("element,expected", [
        (Element(id="a", type=ElementType.TEXT, text="Hi"), '"Hi"'),
        (Element(id="b", type=ElementType.TEXT), "Text element"),
        (Element(id="c", type=ElementType.IMAGE, src="https://cdn.example.com/img/logo.png"), "logo.png"),
        (Element(id="d", type=ElementType.VIDEO), "video element"),
    ])
    def test_display_name(self, element, expected):
        assert element.display_name == expected


class TestFactories:
    def test_default_page_length_follows_fps(self):
        page = default_page(fps=24, name="Scene")
        assert page.duration == DEFAULT_PAGE_SECONDS * 24
        assert page.name == "Scene" and page.elements == []

    def test_new_project(self):
        project = new_project("Promo", fps=60, width=1080, height=1920)
        composition = project.composition
        assert (composition.fps, composition.width, composition.height) == (60, 1080, 1920)
        assert len(composition.pages) == 1
        assert project.app_state.selected_page_id == composition.pages[0].id
        assert composition.pages[0].duration == 300
        assert project.notes == [] and composition.audios == []
