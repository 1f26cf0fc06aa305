import pytest  # type: ignore

from command import SearchPath
from completion import (
    Autocomplete,
    Bell,
    CompletionEngine,
    CompletionState,
    ExtendTo,
    ListCandidates,
    longest_common_prefix,
)
from conftest import make_executable

BUILTINS = ("echo", "exit", "type", "pwd", "cd")


@pytest.fixture()
def engine(bin_dir):
    return CompletionEngine(BUILTINS, SearchPath({"PATH": str(bin_dir)}))


def test_longest_common_prefix():
    assert longest_common_prefix(["xyz_foo", "xyz_foo_bar", "xyz_foo_bar_baz"]) == "xyz_foo"
    assert longest_common_prefix(["abc", "xyz"]) == ""
    assert longest_common_prefix([]) == ""
    assert longest_common_prefix(["solo"]) == "solo"


def test_single_builtin_match_autocompletes(engine):
    state = CompletionState()
    action = engine.complete("ech", state)
    assert action == Autocomplete("echo ")
    assert not state.last_key_was_tab


def test_single_executable_match_autocompletes(engine, bin_dir):
    make_executable(bin_dir, "custom_tool_42")
    assert engine.complete("custom_", CompletionState()) == Autocomplete("custom_tool_42 ")


def test_non_executable_files_are_ignored(engine, bin_dir):
    (bin_dir / "notes_readme").write_text("x")
    assert engine.complete("notes_", CompletionState()) == Bell()


def test_exact_name_is_not_a_candidate(engine):
    assert engine.candidates("echo") == []


def test_no_match_rings_bell_and_clears_state(engine):
    state = CompletionState(last_key_was_tab=True, pending={"a", "b"}, prefix="q")
    assert engine.complete("zzz_nothing", state) == Bell()
    assert state == CompletionState()


def test_ambiguous_prefix_bells_then_lists(engine):
    state = CompletionState()
    assert engine.complete("e", state) == Bell()
    assert state.last_key_was_tab
    assert state.pending == {"echo", "exit"}

    listing = engine.complete("e", state)
    assert listing == ListCandidates(["echo", "exit"])
    assert listing.render() == "echo  exit"
    assert state == CompletionState()


def test_common_prefix_extends(engine, bin_dir):
    for name in ("xyz_foo", "xyz_foo_bar", "xyz_foo_bar_baz"):
        make_executable(bin_dir, name)
    state = CompletionState()
    assert engine.complete("xyz_", state) == ExtendTo("xyz_foo")
    assert not state.last_key_was_tab
    assert engine.complete("xyz_foo", state) == ExtendTo("xyz_foo_bar")
    assert engine.complete("xyz_foo_bar", state) == Autocomplete("xyz_foo_bar_baz ")


def test_changed_prefix_does_not_list(engine):
    state = CompletionState()
    engine.complete("e", state)
    # A different word on the next tab is a fresh completion
    assert engine.complete("ex", state) == Autocomplete("exit ")


def test_duplicates_across_directories_collapse(tmp_path):
    first = tmp_path / "one"
    second = tmp_path / "two"
    first.mkdir()
    second.mkdir()
    make_executable(first, "dup_cmd")
    make_executable(second, "dup_cmd")
    make_executable(second, "dup_other")
    engine = CompletionEngine((), SearchPath({"PATH": f"{first}:{second}"}))
    assert sorted(engine.candidates("dup_")) == ["dup_cmd", "dup_other"]


def test_missing_path_directories_are_skipped(tmp_path):
    engine = CompletionEngine(BUILTINS, SearchPath({"PATH": f"{tmp_path / 'nope'}"}))
    assert engine.complete("pw", CompletionState()) == Autocomplete("pwd ")
