from __future__ import annotations

from core.mapping.changeset import compute_changes
from core.mapping.model import MappingModel
from core.mapping.models import BaselineSnapshot, MappingRecord


def _loaded_model() -> MappingModel:
    model = MappingModel()
    model.replace_all(
        [
            MappingRecord(target="a", source="x"),
            MappingRecord(target="b", source="y"),
            MappingRecord(target="c", source="z", transformation="conditional"),
        ]
    )
    return model


def test_no_changes_after_baseline_reset() -> None:
    model = _loaded_model()

    changes = compute_changes(model.records, model.baseline)

    assert changes.has_changes is False
    assert changes.unchanged_count == 3
    assert changes.baseline_version == model.baseline.version


def test_added_modified_deleted_are_disjoint() -> None:
    model = _loaded_model()
    a, b, c = model.records
    model.update(a.id, source="x2")
    model.delete(b.id)
    created = model.create(target="d", source="w")

    changes = compute_changes(model.records, model.baseline)

    assert [record.id for record in changes.added] == [created.id]
    assert [record.id for record in changes.modified] == [a.id]
    assert [record.id for record in changes.deleted] == [b.id]
    assert changes.unchanged_count == 1

    ids = [record.id for record in changes.added + changes.modified + changes.deleted]
    assert len(ids) == len(set(ids))


def test_target_and_transformation_edits_are_modifications() -> None:
    model = _loaded_model()
    a, b, _ = model.records
    model.update(a.id, target="renamed")
    model.update(b.id, transformation="custom")

    changes = compute_changes(model.records, model.baseline)

    assert {record.id for record in changes.modified} == {a.id, b.id}


def test_condition_only_edit_is_not_a_modification() -> None:
    model = _loaded_model()
    conditional = model.records[2]
    model.update(conditional.id, condition="z?has_content")

    changes = compute_changes(model.records, model.baseline)

    assert changes.modified == []
    assert changes.has_changes is False


def test_delete_then_recreate_reports_both() -> None:
    model = _loaded_model()
    a = model.records[0]
    model.delete(a.id)
    recreated = model.create(target=a.target, source=a.source)

    changes = compute_changes(model.records, model.baseline)

    assert [record.id for record in changes.deleted] == [a.id]
    assert [record.id for record in changes.added] == [recreated.id]
    assert changes.modified == []


def test_edited_new_record_stays_added() -> None:
    model = _loaded_model()
    created = model.create(target="d", source="w")
    model.update(created.id, source="w2")

    changes = compute_changes(model.records, model.baseline)

    assert [record.source for record in changes.added] == ["w2"]
    assert changes.modified == []


def test_accepts_plain_record_list_as_baseline() -> None:
    baseline = [MappingRecord(target="a", source="x")]

    changes = compute_changes([], baseline)

    assert [record.id for record in changes.deleted] == [baseline[0].id]
    assert changes.baseline_version == 0


def test_summary_counts() -> None:
    record = MappingRecord(target="a", source="x")
    snapshot = BaselineSnapshot.capture([record], version=3)

    summary = compute_changes([record], snapshot).summary()

    assert summary.model_dump() == {
        "added_count": 0,
        "modified_count": 0,
        "deleted_count": 0,
        "unchanged_count": 1,
    }


def test_record_absent_from_baseline_is_added_even_when_not_new() -> None:
    record = MappingRecord(target="x", source="y")

    changes = compute_changes([record], BaselineSnapshot())

    assert [item.id for item in changes.added] == [record.id]
    assert changes.modified == []
    assert changes.has_changes is True


def test_every_current_record_is_classified_once() -> None:
    model = _loaded_model()
    a = model.records[0]
    model.update(a.id, source="x2")
    model.create(target="d", source="w")
    stray = MappingRecord(target="e", source="v")
    current = [*model.records, stray]

    changes = compute_changes(current, model.baseline)

    classified = [record.id for record in changes.added + changes.modified]
    assert len(classified) == len(set(classified))
    assert len(classified) + changes.unchanged_count == len(current)
    assert stray.id in {record.id for record in changes.added}
    assert changes.deleted == []
