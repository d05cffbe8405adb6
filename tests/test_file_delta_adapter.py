from testscope.models.schemas import UNKNOWN_PATH, ChangeKind
from testscope.services.file_delta_adapter import normalize_file_entries, normalize_file_entry


def test_server_change_entry():
    raw = {
        "path": {"components": ["src", "a.ts"], "parent": "src", "name": "a.ts", "extension": "ts", "toString": "src/a.ts"},
        "type": "ADD",
        "linesAdded": 3,
    }

    delta = normalize_file_entry(raw)

    assert delta.path == "src/a.ts"
    assert delta.change_kind == ChangeKind.ADD
    assert delta.lines_added == 3
    assert delta.lines_removed == 0


def test_cloud_diffstat_entry_uses_old_path_when_removed():
    raw = {"type": "diffstat", "status": "removed", "lines_added": 0, "lines_removed": 9, "old": {"path": "src/old.ts"}, "new": None}

    delta = normalize_file_entry(raw)

    assert delta.path == "src/old.ts"
    assert delta.change_kind == ChangeKind.DELETE
    assert delta.lines_changed == 9


def test_cloud_diffstat_prefers_new_path():
    raw = {"status": "renamed", "old": {"path": "a/old.py"}, "new": {"path": "a/new.py"}}

    delta = normalize_file_entry(raw)

    assert delta.path == "a/new.py"
    assert delta.change_kind == ChangeKind.MODIFY


def test_string_path_defaults_to_modify():
    delta = normalize_file_entry({"path": "README.md"})

    assert delta.path == "README.md"
    assert delta.change_kind == ChangeKind.MODIFY


def test_path_object_fallbacks():
    assert normalize_file_entry({"path": {"value": "x/y.py"}}).path == "x/y.py"
    assert normalize_file_entry({"path": {"text": "x/z.py"}}).path == "x/z.py"
    assert normalize_file_entry({"path": {"parent": "x", "name": "y.py", "full": "x/full.py"}}).path == "x/full.py"


def test_unrelated_dotted_fields_are_not_paths():
    raw = {"type": "MODIFY", "file": "lib/thing.rb", "contentId": "a1b2.c3"}

    assert normalize_file_entry(raw).path == UNKNOWN_PATH


def test_unresolvable_entries_get_sentinel():
    for raw in ({"type": "MODIFY"}, {"path": {}}, {"path": "   "}, None, "src/a.ts"):
        delta = normalize_file_entry(raw)
        assert delta.path == UNKNOWN_PATH
        assert delta.is_unknown


def test_bad_line_counts_are_zero():
    delta = normalize_file_entry({"path": "a.py", "linesAdded": -4, "linesRemoved": "7"})

    assert delta.lines_added == 0
    assert delta.lines_removed == 0


def test_one_bad_entry_does_not_abort_the_rest():
    deltas = normalize_file_entries([{"path": "a.py"}, {}, {"path": "b.py"}])

    assert [d.path for d in deltas] == ["a.py", UNKNOWN_PATH, "b.py"]
    assert normalize_file_entries([]) == []
