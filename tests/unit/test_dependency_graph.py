"""Unit tests for dependency graph maintenance."""

import pytest

from questlog.core.errors import DependencyCycleError, RecordNotFoundError
from questlog.domain.task import Task
from questlog.services import dependency_graph as graph


def make_task(task_id: str, *, depends_on: list[str] | None = None, blocks: list[str] | None = None, **kw) -> Task:
    return Task(id=task_id, title=f"Task {task_id}", depends_on=depends_on or [], blocks=blocks or [], **kw)


def apply(tasks: list[Task], updates: dict[str, dict[str, list[str]]]) -> list[Task]:
    return [t.model_copy(update=updates.get(t.id, {})) for t in tasks]


def has_cycle(tasks: list[Task]) -> bool:
    by_id = graph.index_tasks(tasks)
    return any(graph.would_create_cycle(by_id, t.id, dep) for t in tasks for dep in t.depends_on)


@pytest.mark.unit
class TestAddDependency:
    """Tests for add_dependency."""

    def test_adds_edge_to_dependent_only(self) -> None:
        tasks = [make_task("a"), make_task("b")]

        updates = graph.add_dependency(tasks, "b", "a")

        assert updates == {"b": {"depends_on": ["a"]}}

    def test_rejects_self_dependency(self) -> None:
        with pytest.raises(DependencyCycleError):
            graph.add_dependency([make_task("a")], "a", "a")

    def test_rejects_direct_cycle(self) -> None:
        tasks = [make_task("a"), make_task("b", depends_on=["a"])]

        with pytest.raises(DependencyCycleError):
            graph.add_dependency(tasks, "a", "b")

    def test_rejects_indirect_cycle(self) -> None:
        tasks = [
            make_task("a", depends_on=["b"]),
            make_task("b", depends_on=["c"]),
            make_task("c"),
        ]

        with pytest.raises(DependencyCycleError):
            graph.add_dependency(tasks, "c", "a")

    def test_existing_edge_is_noop(self) -> None:
        tasks = [make_task("a"), make_task("b", depends_on=["a"])]

        assert graph.add_dependency(tasks, "b", "a") == {}

    def test_missing_task_raises(self) -> None:
        with pytest.raises(RecordNotFoundError):
            graph.add_dependency([make_task("a")], "a", "ghost")

    def test_successful_sequences_stay_acyclic(self) -> None:
        tasks = [make_task(i) for i in "abcde"]
        edits = [("b", "a"), ("c", "b"), ("d", "c"), ("a", "d"), ("e", "a"), ("a", "e"), ("e", "c")]

        for task_id, dep_id in edits:
            try:
                tasks = apply(tasks, graph.add_dependency(tasks, task_id, dep_id))
            except DependencyCycleError:
                continue

        assert not has_cycle(tasks)
        by_id = graph.index_tasks(tasks)
        assert by_id["a"].depends_on == []
        assert by_id["e"].depends_on == ["a", "c"]

    def test_terminates_on_corrupt_cyclic_graph(self) -> None:
        tasks = [make_task("a", depends_on=["b"]), make_task("b", depends_on=["a"]), make_task("c")]

        assert graph.would_create_cycle(graph.index_tasks(tasks), "c", "a") is False


@pytest.mark.unit
class TestBlocking:
    """Tests for the blocks editing path."""

    def test_add_blocking_writes_both_sides(self) -> None:
        tasks = [make_task("a"), make_task("b")]

        updates = graph.add_blocking(tasks, "a", "b")

        assert updates == {"a": {"blocks": ["b"]}, "b": {"depends_on": ["a"]}}

    def test_add_blocking_rejects_cycle(self) -> None:
        tasks = [make_task("a", depends_on=["b"]), make_task("b")]

        with pytest.raises(DependencyCycleError):
            graph.add_blocking(tasks, "a", "b")

    def test_add_blocking_rejects_self(self) -> None:
        with pytest.raises(DependencyCycleError):
            graph.add_blocking([make_task("a")], "a", "a")

    def test_remove_blocking_removes_paired_edge(self) -> None:
        tasks = [make_task("a", blocks=["b"]), make_task("b", depends_on=["a"])]

        updates = graph.remove_blocking(tasks, "a", "b")

        assert updates == {"a": {"blocks": []}, "b": {"depends_on": []}}

    def test_remove_dependency_leaves_blocks_untouched(self) -> None:
        tasks = [make_task("a", blocks=["b"]), make_task("b", depends_on=["a"])]

        updates = graph.remove_dependency(tasks, "b", "a")

        assert updates == {"b": {"depends_on": []}}


@pytest.mark.unit
class TestCanComplete:
    """Tests for can_complete."""

    def test_no_dependencies(self) -> None:
        task = make_task("a")
        assert graph.can_complete(task, [task]) is True

    def test_unmet_dependency(self) -> None:
        a, b = make_task("a"), make_task("b", depends_on=["a"])
        assert graph.can_complete(b, [a, b]) is False

    def test_met_dependency(self) -> None:
        a = make_task("a", completed=True, status="completed")
        b = make_task("b", depends_on=["a"])
        assert graph.can_complete(b, [a, b]) is True

    def test_missing_dependency_counts_as_satisfied(self) -> None:
        b = make_task("b", depends_on=["deleted"])
        assert graph.can_complete(b, [b]) is True


@pytest.mark.unit
def test_dependency_view_resolves_both_directions() -> None:
    a = make_task("a", blocks=["c"])
    b = make_task("b", depends_on=["a", "ghost"])
    c = make_task("c", depends_on=["a"])

    view = graph.dependency_view(a, [a, b, c])

    assert [t.id for t in view.blocks] == ["c"]
    assert [t.id for t in view.depended_on_by] == ["b", "c"]
    assert view.depends_on == []
    assert view.blocked_by == []


@pytest.mark.unit
def test_strip_task_references() -> None:
    tasks = [make_task("a", blocks=["x"]), make_task("b", depends_on=["x", "a"]), make_task("c")]

    updates = graph.strip_task_references(tasks, "x")

    assert updates == {"a": {"blocks": []}, "b": {"depends_on": ["a"]}}
