import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from src.api.db import SQLiteEntityStore
from src.api.errors import DanglingReferenceError, NotFoundError, ValidationError
from src.api.models import EntityKind, Priority, WorkStatus
from src.api.repositories import InMemoryEntityStore, ListQuery
from src.api.schemas import CompanyCreate, ProjectUpdate, TaskCreate

C, P, T, E, A = (
    EntityKind.COMPANY,
    EntityKind.PROJECT,
    EntityKind.TASK,
    EntityKind.TIME_ENTRY,
    EntityKind.ARTICLE,
)


def seed_chain(store):
    """Company -> project -> task -> time entry, returned as records."""
    company = store.create(C, {"name": "Acme"})
    project = store.create(
        P, {"name": "Site", "status": "Incoming", "priority": "Low", "company_id": company["id"]}
    )
    task = store.create(T, {"name": "Design", "status": "Incoming", "project_id": project["id"]})
    entry = store.create(E, {"task_id": task["id"], "user_id": "u1", "duration": 3600})
    return company, project, task, entry


class TestCreate:
    def test_create_assigns_id_and_equal_timestamps(self, store):
        company = store.create(C, {"name": "Acme"})
        assert isinstance(company["id"], str) and company["id"]
        assert company["created_at"] == company["updated_at"]
        assert company["created_at"].tzinfo is not None
        assert company["contact_person"] is None
        assert company["hourly_rate"] is None

    def test_create_ids_are_unique(self, store):
        ids = {store.create(C, {"name": f"Company {i}"})["id"] for i in range(25)}
        assert len(ids) == 25

    def test_create_accepts_schema_instances(self, store):
        company = store.create(C, CompanyCreate(name="  Acme  ", email=""))
        assert company["name"] == "Acme"
        assert company["email"] is None

    def test_project_defaults(self, store):
        project = store.create(P, {"name": "Internal"})
        assert project["status"] is WorkStatus.INCOMING
        assert project["priority"] is Priority.MEDIUM
        assert project["is_archived"] is False
        assert project["company_id"] is None

    def test_time_entry_has_no_updated_at(self, store):
        _, _, _, entry = seed_chain(store)
        assert "updated_at" not in entry
        assert entry["duration"] == 3600
        assert entry["notes"] is None

    @pytest.mark.parametrize(
        "kind,payload",
        [
            (C, {}),
            (C, {"name": "   "}),
            (P, {"name": "X", "status": "Done"}),
            (P, {"name": "X", "priority": "Urgent"}),
            (T, {"name": "X", "status": "in progress"}),
            (A, {"title": "Only a title", "content": ""}),
            (C, {"name": "Acme", "hourly_rate": -5}),
        ],
    )
    def test_create_rejects_invalid_fields(self, store, kind, payload):
        with pytest.raises(ValidationError) as exc_info:
            store.create(kind, payload)
        assert exc_info.value.errors
        assert store.list(kind)[1] == 0

    def test_time_entry_rejects_negative_duration(self, store):
        _, _, task, _ = seed_chain(store)
        with pytest.raises(ValidationError):
            store.create(E, {"task_id": task["id"], "user_id": "u1", "duration": -1})

    @pytest.mark.parametrize("duration", [True, 3600.0, "3600"])
    def test_time_entry_duration_must_be_an_integer(self, store, duration):
        _, _, task, _ = seed_chain(store)
        with pytest.raises(ValidationError):
            store.create(E, {"task_id": task["id"], "user_id": "u1", "duration": duration})
        assert store.list(E)[1] == 1

    @pytest.mark.parametrize(
        "kind,payload,field",
        [
            (P, {"name": "Site", "company_id": "missing"}, "company_id"),
            (T, {"name": "Design", "project_id": "missing"}, "project_id"),
            (E, {"task_id": "missing", "user_id": "u1", "duration": 60}, "task_id"),
            (A, {"title": "T", "content": "C", "company_id": "missing"}, "company_id"),
        ],
    )
    def test_create_rejects_dangling_references(self, store, kind, payload, field):
        with pytest.raises(DanglingReferenceError) as exc_info:
            store.create(kind, payload)
        assert exc_info.value.field == field
        assert exc_info.value.ref_id == "missing"

    def test_foreign_key_must_point_at_correct_collection(self, store):
        project = store.create(P, {"name": "Site"})
        # A project id is not a company id
        with pytest.raises(DanglingReferenceError):
            store.create(A, {"title": "T", "content": "C", "company_id": project["id"]})


class TestUpdate:
    def test_update_keeps_identity_and_advances_updated_at(self, store):
        company = store.create(C, {"name": "Acme"})
        first = store.update(C, company["id"], {"phone": "555-0100"})
        second = store.update(C, company["id"], {"phone": "555-0199"})

        for updated in (first, second):
            assert updated["id"] == company["id"]
            assert updated["created_at"] == company["created_at"]
        assert company["updated_at"] < first["updated_at"] < second["updated_at"]
        assert second["phone"] == "555-0199"
        assert second["name"] == "Acme"

    def test_update_only_touches_provided_fields(self, store):
        project = store.create(P, {"name": "Site", "description": "Relaunch", "priority": "High"})
        updated = store.update(P, project["id"], ProjectUpdate(status=WorkStatus.IN_PROGRESS))
        assert updated["status"] is WorkStatus.IN_PROGRESS
        assert updated["priority"] is Priority.HIGH
        assert updated["description"] == "Relaunch"

    def test_update_can_clear_optional_fields(self, store):
        project = store.create(P, {"name": "Site", "description": "Relaunch"})
        updated = store.update(P, project["id"], {"description": None})
        assert updated["description"] is None

    def test_update_unknown_id(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            store.update(C, "nope", {"name": "X"})
        assert str(exc_info.value) == "Company not found"

    @pytest.mark.parametrize(
        "kind,payload",
        [(P, {"status": "Bogus"}), (P, {"name": None}), (E, {"duration": 1})],
    )
    def test_update_unknown_id_wins_over_invalid_payload(self, store, kind, payload):
        with pytest.raises(NotFoundError):
            store.update(kind, "nope", payload)

    @pytest.mark.parametrize(
        "payload",
        [{"status": "Archived"}, {"priority": "Critical"}, {"name": None}, {"name": ""}, {"is_archived": None}],
    )
    def test_update_rejects_invalid_fields(self, store, payload):
        project = store.create(P, {"name": "Site"})
        with pytest.raises(ValidationError):
            store.update(P, project["id"], payload)
        assert store.get(P, project["id"]) == project

    def test_update_rejects_dangling_reference(self, store):
        company = store.create(C, {"name": "Acme"})
        project = store.create(P, {"name": "Site", "company_id": company["id"]})
        with pytest.raises(DanglingReferenceError):
            store.update(P, project["id"], {"company_id": "missing"})
        assert store.get(P, project["id"])["company_id"] == company["id"]

    def test_update_can_detach_from_parent(self, store):
        _, project, task, _ = seed_chain(store)
        updated = store.update(T, task["id"], {"project_id": None})
        assert updated["project_id"] is None
        assert store.list(T, ListQuery(project_id=project["id"]))[1] == 0

    def test_time_entries_are_append_only(self, store):
        _, _, _, entry = seed_chain(store)
        with pytest.raises(ValidationError):
            store.update(E, entry["id"], {"duration": 10})
        assert store.get(E, entry["id"])["duration"] == 3600

    def test_archive_project(self, store):
        project = store.create(P, {"name": "Old"})
        archived = store.archive_project(project["id"])
        assert archived["is_archived"] is True
        assert archived["updated_at"] > project["updated_at"]


class TestDelete:
    def test_delete_project_cascades_to_tasks_and_time_entries(self, store):
        company, project, task, entry = seed_chain(store)
        assert store.delete(P, project["id"]) == 3

        for kind, record in ((P, project), (T, task), (E, entry)):
            with pytest.raises(NotFoundError):
                store.get(kind, record["id"])
        assert store.get(C, company["id"])["name"] == "Acme"

    def test_delete_company_cascades_to_projects_and_articles(self, store):
        company, project, task, entry = seed_chain(store)
        article = store.create(A, {"title": "FAQ", "content": "...", "company_id": company["id"]})
        public = store.create(A, {"title": "Welcome", "content": "Hello", "is_public": True})

        assert store.delete(C, company["id"]) == 5
        for kind in (C, P, T, E):
            assert store.list(kind)[1] == 0
        with pytest.raises(NotFoundError):
            store.get(A, article["id"])
        assert store.get(A, public["id"])["title"] == "Welcome"

    def test_delete_task_removes_only_its_entries(self, store):
        _, project, task, entry = seed_chain(store)
        other = store.create(T, {"name": "Build", "project_id": project["id"]})
        kept = store.create(E, {"task_id": other["id"], "user_id": "u2", "duration": 60})

        assert store.delete(T, task["id"]) == 2
        with pytest.raises(NotFoundError):
            store.get(E, entry["id"])
        assert store.get(E, kept["id"])["duration"] == 60

    def test_delete_time_entry(self, store):
        _, _, task, entry = seed_chain(store)
        assert store.delete(E, entry["id"]) == 1
        assert store.get(T, task["id"])["name"] == "Design"

    def test_delete_unknown_id(self, store):
        with pytest.raises(NotFoundError):
            store.delete(T, "nope")


class TestList:
    def test_filter_by_project_keeps_insertion_order(self, store):
        a = store.create(P, {"name": "A"})
        b = store.create(P, {"name": "B"})
        expected = []
        for i in range(5):
            expected.append(store.create(T, {"name": f"Task {i}", "project_id": a["id"]})["id"])
            store.create(T, {"name": f"Other {i}", "project_id": b["id"]})

        items, total = store.list(T, ListQuery(project_id=a["id"]))
        assert total == 5
        assert [t["id"] for t in items] == expected

    def test_filter_by_status_and_priority(self, store):
        store.create(P, {"name": "One", "status": "Completed", "priority": "High"})
        store.create(P, {"name": "Two", "status": "Completed", "priority": "Low"})
        store.create(P, {"name": "Three", "status": "Incoming", "priority": "High"})

        items, total = store.list(P, ListQuery(status=WorkStatus.COMPLETED, priority=Priority.HIGH))
        assert total == 1
        assert items[0]["name"] == "One"

    def test_filter_by_archived_flag(self, store):
        store.create(P, {"name": "Live"})
        old = store.create(P, {"name": "Old"})
        store.archive_project(old["id"])

        items, _ = store.list(P, ListQuery(is_archived=False))
        assert [p["name"] for p in items] == ["Live"]
        assert store.list(P)[1] == 2

    def test_filter_time_entries_by_user(self, store):
        _, _, task, _ = seed_chain(store)
        store.create(E, {"task_id": task["id"], "user_id": "u2", "duration": 120})
        items, total = store.list(E, ListQuery(user_id="u2"))
        assert total == 1
        assert items[0]["duration"] == 120

    def test_filter_not_carried_by_kind_is_rejected(self, store):
        with pytest.raises(ValidationError):
            store.list(C, ListQuery(status=WorkStatus.INCOMING))
        with pytest.raises(ValidationError):
            store.list(P, ListQuery(visible_to_company="x"))

    def test_articles_visible_to_company(self, store):
        acme = store.create(C, {"name": "Acme"})
        globex = store.create(C, {"name": "Globex"})
        store.create(A, {"title": "Welcome", "content": "Hi", "is_public": True})
        store.create(A, {"title": "Acme runbook", "content": "...", "company_id": acme["id"]})
        store.create(A, {"title": "Globex runbook", "content": "...", "company_id": globex["id"]})

        items, total = store.list(A, ListQuery(visible_to_company=acme["id"]))
        assert total == 2
        assert [a["title"] for a in items] == ["Welcome", "Acme runbook"]

    def test_search_is_case_insensitive_substring(self, store):
        store.create(T, TaskCreate(name="Design homepage", platform="Figma"))
        store.create(T, TaskCreate(name="Write copy"))
        items, total = store.list(T, ListQuery(search="FIGMA"))
        assert total == 1
        assert items[0]["name"] == "Design homepage"

    def test_search_folds_non_ascii_case(self, store):
        store.create(C, {"name": "ÉCOLE Supérieure"})
        store.create(C, {"name": "Acme"})
        items, total = store.list(C, ListQuery(search="école"))
        assert total == 1
        assert items[0]["name"] == "ÉCOLE Supérieure"

    def test_sort_and_pagination(self, store):
        for name in ("beta", "Alpha", "gamma", "Delta"):
            store.create(C, {"name": name})

        items, _ = store.list(C, ListQuery(sort="name"))
        assert [c["name"] for c in items] == ["Alpha", "beta", "Delta", "gamma"]

        items, _ = store.list(C, ListQuery(sort="-name"))
        assert [c["name"] for c in items] == ["gamma", "Delta", "beta", "Alpha"]

        page, total = store.list(C, ListQuery(limit=2, offset=1))
        assert total == 4
        assert [c["name"] for c in page] == ["Alpha", "gamma"]

    def test_sort_time_entries_by_duration(self, store):
        _, _, task, _ = seed_chain(store)
        for seconds in (60, 7200, 0):
            store.create(E, {"task_id": task["id"], "user_id": "u1", "duration": seconds})
        items, _ = store.list(E, ListQuery(sort="-duration"))
        assert [e["duration"] for e in items] == [7200, 3600, 60, 0]

    def test_sort_by_unknown_field_is_rejected(self, store):
        with pytest.raises(ValidationError):
            store.list(C, ListQuery(sort="phone"))
        with pytest.raises(ValidationError):
            store.list(E, ListQuery(sort="updated_at"))

    def test_list_returns_copies(self, store):
        company = store.create(C, {"name": "Acme"})
        items, _ = store.list(C)
        items[0]["name"] = "Mutated"
        assert store.get(C, company["id"])["name"] == "Acme"


class TestTotals:
    def test_total_seconds_sums_entries_of_project_tasks(self, store):
        _, project, task, _ = seed_chain(store)
        second = store.create(T, {"name": "Build", "project_id": project["id"]})
        store.create(E, {"task_id": second["id"], "user_id": "u2", "duration": 1800})
        store.create(E, {"task_id": task["id"], "user_id": "u1", "duration": 600})

        elsewhere = store.create(T, {"name": "Unrelated"})
        store.create(E, {"task_id": elsewhere["id"], "user_id": "u1", "duration": 999})

        assert store.total_seconds(project["id"]) == 3600 + 1800 + 600
        assert store.task_total_seconds(task["id"]) == 4200
        assert store.task_total_seconds(elsewhere["id"]) == 999

    def test_total_seconds_of_empty_project(self, store):
        project = store.create(P, {"name": "Empty"})
        assert store.total_seconds(project["id"]) == 0

    def test_totals_for_unknown_ids(self, store):
        with pytest.raises(NotFoundError):
            store.total_seconds("nope")
        with pytest.raises(NotFoundError):
            store.task_total_seconds("nope")


class TestConcurrency:
    def test_concurrent_creates_get_unique_ids(self, store):
        company = store.create(C, {"name": "Acme"})

        def create(i):
            return store.create(P, {"name": f"Project {i}", "company_id": company["id"]})["id"]

        with ThreadPoolExecutor(max_workers=8) as pool:
            ids = list(pool.map(create, range(200)))

        assert len(set(ids)) == 200
        items, total = store.list(P, ListQuery(company_id=company["id"]))
        assert total == 200
        assert {p["id"] for p in items} == set(ids)

    def test_create_racing_parent_delete_leaves_no_orphans(self, store):
        project = store.create(P, {"name": "Site"})

        def create_task(i):
            try:
                return store.create(T, {"name": f"Task {i}", "project_id": project["id"]})
            except DanglingReferenceError:
                return None

        with ThreadPoolExecutor(max_workers=8) as pool:
            futures = [pool.submit(create_task, i) for i in range(100)]
            removed = pool.submit(store.delete, P, project["id"]).result()
            created = [f.result() for f in futures]

        assert removed >= 1
        with pytest.raises(NotFoundError):
            store.get(P, project["id"])
        tasks, _ = store.list(T)
        assert all(t["project_id"] != project["id"] for t in tasks)
        # Tasks created before the delete were cascaded away with it
        assert removed == 1 + sum(1 for t in created if t is not None)

    def test_readers_see_whole_records_during_updates(self, store):
        project = store.create(P, {"name": "v0", "priority": "Low"})

        def write(i):
            level = "High" if i % 2 else "Low"
            store.update(P, project["id"], {"name": f"v{i}-{level}", "priority": level})

        def read(_):
            record = store.get(P, project["id"])
            if record["name"] != "v0":
                assert record["name"].endswith(record["priority"].value)
            return record["updated_at"]

        with ThreadPoolExecutor(max_workers=8) as pool:
            writes = [pool.submit(write, i) for i in range(1, 101)]
            reads = [pool.submit(read, i) for i in range(100)]
            for f in writes + reads:
                f.result()

        assert store.get(P, project["id"])["updated_at"] > project["updated_at"]


def test_sqlite_store_persists_across_instances(tmp_path):
    path = str(tmp_path / "data" / "business.db")
    first = SQLiteEntityStore(path)
    _, project, _, entry = seed_chain(first)
    first.archive_project(project["id"])

    reopened = SQLiteEntityStore(path)
    loaded = reopened.get(P, project["id"])
    assert loaded["status"] is WorkStatus.INCOMING
    assert loaded["priority"] is Priority.LOW
    assert loaded["is_archived"] is True
    assert loaded["created_at"] == project["created_at"]
    assert reopened.get(E, entry["id"])["duration"] == 3600


def test_sqlite_memory_database():
    store = SQLiteEntityStore(":memory:")
    try:
        _, project, _, _ = seed_chain(store)
        assert store.total_seconds(project["id"]) == 3600
    finally:
        store.close()


def test_cascade_is_logged(caplog):
    store = InMemoryEntityStore()
    _, project, _, _ = seed_chain(store)
    with caplog.at_level(logging.INFO, logger="src.api.repositories"):
        store.delete(P, project["id"])
    assert "3 records removed" in caplog.text
