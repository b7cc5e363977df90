"""Artifact store layout, visibility and record tests."""

import os
import time
from datetime import datetime, timedelta, timezone

import pytest

from viizor.core.artifact_store import (
    CONVERSION_LIVENESS_SECONDS,
    DESCRIPTOR_NAME,
    IN_PROGRESS_MARKER,
    ArtifactStore,
)
from viizor.core.errors import NotFoundError
from viizor.models.pydantic_models.project import DemoPointer


def test_descriptor_round_trip_uses_camel_case(store, project_factory):
    descriptor = project_factory(owner_id="u1", byte_size=42)

    raw = (store.project_dir(descriptor.id) / DESCRIPTOR_NAME).read_text()
    assert '"ownerId": "u1"' in raw
    assert '"byteSize": 42' in raw
    assert store.read_descriptor(descriptor.id) == descriptor


def test_directory_without_descriptor_is_invisible(store, project_factory):
    visible = project_factory(owner_id="u1")
    store.create_project_dir("inprogress")

    assert store.project_exists("inprogress")
    assert store.read_descriptor("inprogress") is None
    assert [d.id for d in store.iter_descriptors()] == [visible.id]


def test_corrupt_descriptor_is_skipped(store, project_factory):
    good = project_factory(owner_id="u1")
    bad = project_factory(owner_id="u1")
    (store.project_dir(bad.id) / DESCRIPTOR_NAME).write_text("{not json")

    assert store.read_descriptor(bad.id) is None
    assert [d.id for d in store.list_for_owner("u1")] == [good.id]


def test_descriptor_with_foreign_id_is_skipped(store, project_factory):
    a = project_factory(owner_id="u1")
    b = project_factory(owner_id="u1")
    (store.project_dir(b.id) / DESCRIPTOR_NAME).write_text(
        (store.project_dir(a.id) / DESCRIPTOR_NAME).read_text()
    )

    assert store.read_descriptor(b.id) is None


def test_list_for_owner_sorted_newest_first(store, project_factory):
    now = datetime.now(timezone.utc)
    old = project_factory(owner_id="u1", uploaded_at=now - timedelta(days=2))
    new = project_factory(owner_id="u1", uploaded_at=now)
    mid = project_factory(owner_id="u1", uploaded_at=now - timedelta(days=1))
    project_factory(owner_id="u2")

    assert [d.id for d in store.list_for_owner("u1")] == [new.id, mid.id, old.id]


def test_missing_root_lists_nothing(tmp_path):
    store = ArtifactStore(tmp_path / "absent")
    assert store.list_all() == []
    assert store.find_orphans(0) == []


@pytest.mark.parametrize("project_id", ["..", "../etc", "a/b", "", ".records"])
def test_unsafe_ids_are_not_found(store, project_id):
    assert store.project_exists(project_id) is False
    with pytest.raises(NotFoundError):
        store.remove_project(project_id)


def test_remove_project(store, project_factory):
    descriptor = project_factory(owner_id="u1")
    store.remove_project(descriptor.id)

    assert not store.project_exists(descriptor.id)
    with pytest.raises(NotFoundError):
        store.remove_project(descriptor.id)


def test_urls_are_derived_from_id(store):
    assert store.viewer_url("abc") == "/data/converted/abc/index.html"
    assert store.artifact_root_url("abc") == "/data/converted/abc/"


def test_find_and_sweep_orphans_respects_grace_period(store, project_factory):
    published = project_factory(owner_id="u1")
    store.create_project_dir("stale")
    store.create_project_dir("fresh")
    long_ago = time.time() - 3600
    os.utime(store.project_dir("stale"), (long_ago, long_ago))
    os.utime(store.project_dir(published.id), (long_ago, long_ago))

    assert store.find_orphans(older_than_seconds=600) == ["stale"]
    assert store.sweep_orphans(older_than_seconds=600) == ["stale"]
    assert not store.project_exists("stale")
    assert store.project_exists("fresh")
    assert store.project_exists(published.id)


def test_records_are_hidden_from_project_scans(store, project_factory):
    project_factory(owner_id="u1")
    pointer = DemoPointer(
        project_id="abc", display_name="Demo", set_at=datetime.now(timezone.utc)
    )
    store.write_record("demo", pointer)

    assert store.read_record("demo", DemoPointer) == pointer
    assert len(list(store.iter_project_ids())) == 1


def test_unreadable_record_reads_as_absent(store):
    assert store.read_record("demo", DemoPointer) is None
    store.write_record("demo", DemoPointer(project_id="x", display_name="y", set_at=datetime.now(timezone.utc)))
    (store.root / ".records" / "demo.json").write_text("garbage")
    assert store.read_record("demo", DemoPointer) is None


def test_descriptor_without_offset_is_read_as_utc(store, project_factory):
    current = project_factory(owner_id="u1")
    store.create_project_dir("legacy1")
    (store.project_dir("legacy1") / DESCRIPTOR_NAME).write_text(
        '{"id": "legacy1", "ownerId": "u1", "originalName": "old.las",'
        ' "byteSize": 10, "uploadedAt": "2024-01-01T00:00:00",'
        ' "viewerUrl": "/data/converted/legacy1/index.html",'
        ' "artifactRootUrl": "/data/converted/legacy1/"}'
    )

    listed = store.list_for_owner("u1")

    assert [d.id for d in listed] == [current.id, "legacy1"]
    assert listed[1].uploaded_at == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_live_conversion_is_never_an_orphan(store):
    store.create_project_dir("running")
    store.mark_in_progress("running")
    long_ago = time.time() - 3600
    os.utime(store.project_dir("running"), (long_ago, long_ago))

    assert store.is_converting("running")
    assert store.find_orphans(older_than_seconds=0) == []
    assert store.sweep_orphans(older_than_seconds=0) == []
    assert store.project_exists("running")


def test_stale_heartbeat_is_swept(store):
    store.create_project_dir("crashed")
    store.mark_in_progress("crashed")
    long_ago = time.time() - 2 * CONVERSION_LIVENESS_SECONDS
    os.utime(store.project_dir("crashed") / IN_PROGRESS_MARKER, (long_ago, long_ago))
    os.utime(store.project_dir("crashed"), (long_ago, long_ago))

    assert not store.is_converting("crashed")
    assert store.find_orphans(older_than_seconds=CONVERSION_LIVENESS_SECONDS) == ["crashed"]


def test_recent_heartbeat_extends_idle_time(store):
    store.create_project_dir("slow")
    store.mark_in_progress("slow")
    now = time.time() + CONVERSION_LIVENESS_SECONDS + 10
    os.utime(store.project_dir("slow"), (0, 0))

    # heartbeat is stale at ``now`` but still younger than the grace period
    assert store.find_orphans(older_than_seconds=3600, now=now) == []
    assert store.find_orphans(older_than_seconds=60, now=now) == ["slow"]
