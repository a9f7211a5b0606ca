"""Tests for immutable updates and the reorder algorithm."""

import pytest

from slashcut.errors import ConflictError, NotFoundError, ValidationError
from slashcut.models import Audio, Page
from slashcut.mutator import (
    AUDIOS,
    NOTES,
    PAGES,
    Direction,
    MoveMode,
    MoveRequest,
    append_entity,
    compute_move_target,
    element_collection_for,
    elements_of,
    insert_entities,
    merge_fields,
    move_item,
    move_request,
    remove_entities,
    update_entity,
)

IDS = ["A", "B", "C", "D"]


def reorder(ids, moving, direction, value, mode):
    index = ids.index(moving)
    target, _ = compute_move_target(ids, index, MoveRequest(direction, value), mode)
    result, _ = move_item(ids, index, target)
    return result


# ============================================================
# Reordering
# ============================================================


class TestComputeMoveTarget:
    def test_sibling_before(self):
        assert reorder(IDS, "C", Direction.BEFORE, "B", MoveMode.ABSOLUTE) == ["A", "C", "B", "D"]

    def test_sibling_after_uses_pre_removal_index(self):
        # j + 1 = 3 is computed before A is removed, so A lands after D
        assert reorder(IDS, "A", Direction.AFTER, "C", MoveMode.ABSOLUTE) == ["B", "C", "D", "A"]

    def test_sibling_after_moving_backwards(self):
        assert reorder(IDS, "D", Direction.AFTER, "A", MoveMode.ABSOLUTE) == ["A", "D", "B", "C"]

    def test_absolute_after_three(self):
        # target = 3 against the pre-removal list, insert into [B, C, D] at 3
        assert reorder(IDS, "A", Direction.AFTER, "3", MoveMode.ABSOLUTE) == ["B", "C", "D", "A"]

    def test_absolute_before_one(self):
        assert reorder(IDS, "D", Direction.BEFORE, "1", MoveMode.ABSOLUTE) == ["D", "A", "B", "C"]

    def test_absolute_past_end_is_clamped(self):
        assert reorder(IDS, "B", Direction.AFTER, "99", MoveMode.ABSOLUTE) == ["A", "C", "D", "B"]

    def test_relative_after(self):
        assert reorder(IDS, "A", Direction.AFTER, "2", MoveMode.RELATIVE) == ["B", "C", "A", "D"]

    def test_relative_before_clamps_to_start(self):
        assert reorder(IDS, "C", Direction.BEFORE, "5", MoveMode.RELATIVE) == ["C", "A", "B", "D"]

    def test_relative_after_clamps_to_end(self):
        assert reorder(IDS, "B", Direction.AFTER, "10", MoveMode.RELATIVE) == ["A", "C", "D", "B"]

    def test_sibling_mode_reported(self):
        _, mode = compute_move_target(IDS, 0, MoveRequest(Direction.AFTER, "B"), MoveMode.RELATIVE)
        assert mode is MoveMode.SIBLING

    def test_unknown_sibling(self):
        with pytest.raises(NotFoundError, match="'Z' not found"):
            compute_move_target(IDS, 0, MoveRequest(Direction.BEFORE, "Z"), MoveMode.ABSOLUTE)

    def test_zero_position_rejected(self):
        with pytest.raises(ValidationError, match="positive integer"):
            compute_move_target(IDS, 0, MoveRequest(Direction.BEFORE, "0"), MoveMode.ABSOLUTE)

    def test_move_onto_itself_keeps_order(self):
        assert reorder(IDS, "B", Direction.BEFORE, "B", MoveMode.ABSOLUTE) == IDS


class TestMoveRequest:
    def test_conflict(self):
        with pytest.raises(ConflictError):
            move_request("1", "2")

    def test_none(self):
        assert move_request(None, None) is None

    def test_numeric_detection(self):
        assert move_request("12", None).is_numeric
        assert not move_request(None, "audio-1").is_numeric
        assert not move_request("-1", None).is_numeric


# ============================================================
# Collections
# ============================================================


class TestCollections:
    def test_append_shares_untouched_structure(self, project):
        audio = Audio(id="audio-new", src="x.mp3")
        updated = append_entity(project, AUDIOS, audio)
        assert updated is not project
        assert [a.id for a in updated.composition.audios][-1] == "audio-new"
        assert updated.composition.audios[0] is project.composition.audios[0]
        assert updated.composition.pages is project.composition.pages
        assert len(project.composition.audios) == 4

    def test_append_duplicate_id(self, project):
        with pytest.raises(ValidationError, match="already exists"):
            append_entity(project, AUDIOS, Audio(id="audio-a", src="x.mp3"))

    def test_element_collection_clones_only_its_page(self, project):
        updated = remove_entities(project, elements_of("page-1"), ["el-b"])
        assert [e.id for e in updated.composition.pages[0].elements] == ["el-a", "el-c", "el-d"]
        assert updated.composition.pages[1] is project.composition.pages[1]
        assert len(project.composition.pages[0].elements) == 4

    def test_element_collection_for(self, project):
        assert element_collection_for(project, "el-c").page_id == "page-1"
        with pytest.raises(NotFoundError):
            element_collection_for(project, "missing")

    def test_insert_entities(self, project):
        updated = insert_entities(project, PAGES, 1, [Page(id="page-x", name="X", duration=30)])
        assert PAGES.ids(updated) == ["page-1", "page-x", "page-2", "page-3", "page-4"]

    def test_require_missing(self, project):
        with pytest.raises(NotFoundError) as exc:
            NOTES.require(project, "note-x")
        assert exc.value.title == "Note Not Found"


# ============================================================
# Field merge / update
# ============================================================


class TestMergeFields:
    def test_diff_lists_only_changes(self, project):
        audio = project.composition.audios[1]
        updated, diff = merge_fields(audio, {"volume": 0.5, "delay": 60, "src": "voice.mp3"}, 30,
                                     frame_fields=("delay",))
        assert diff == ["volume: 0.8 → 0.5", "delay: 1s → 2s"]
        assert updated.src == "voice.mp3" and updated.volume == 0.5
        assert audio.volume == 0.8

    def test_no_changes_returns_same_entity(self, project):
        audio = project.composition.audios[0]
        updated, diff = merge_fields(audio, {"volume": 1.0}, 30)
        assert updated is audio and diff == []

    def test_camel_case_keys(self, project):
        audio = project.composition.audios[0]
        _, diff = merge_fields(audio, {"trim_before": 15}, 30, frame_fields=("trim_before",))
        assert diff == ["trimBefore: 0f → 15f"]


class TestUpdateEntity:
    def test_merge_and_move(self, project):
        outcome = update_entity(project, AUDIOS, "audio-a", {"volume": 0.3}, 30,
                                move=MoveRequest(Direction.AFTER, "2"), numeric_mode=MoveMode.RELATIVE)
        assert AUDIOS.ids(outcome.project) == ["audio-b", "audio-c", "audio-a", "audio-d"]
        assert outcome.diff == ["volume: 1.0 → 0.3"]
        assert (outcome.old_index, outcome.new_index) == (0, 2)
        assert AUDIOS.ids(project) == ["audio-a", "audio-b", "audio-c", "audio-d"]

    def test_identical_values_return_same_project(self, project):
        outcome = update_entity(project, AUDIOS, "audio-b", {"volume": 0.8}, 30)
        assert outcome.project is project
        assert not outcome.changed and outcome.diff == []

    def test_bad_sibling_leaves_project_alone(self, project):
        with pytest.raises(NotFoundError):
            update_entity(project, AUDIOS, "audio-a", {"volume": 0.1}, 30,
                          move=MoveRequest(Direction.BEFORE, "audio-zzz"))

    def test_missing_entity(self, project):
        with pytest.raises(NotFoundError, match="audio-zzz"):
            update_entity(project, AUDIOS, "audio-zzz", {"volume": 0.1}, 30)
