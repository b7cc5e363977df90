"""Demo pointer tests."""

import pytest

from viizor.core.demo import DemoPointerService
from viizor.core.errors import NotFoundError, ValidationError


@pytest.fixture()
def demo(store):
    return DemoPointerService(store)


@pytest.mark.asyncio
async def test_no_demo_by_default(demo):
    assert await demo.get_demo() is None


@pytest.mark.asyncio
async def test_set_and_get(demo, project_factory):
    project = project_factory(owner_id="u1")

    pointer = await demo.set_demo(project.id, "Downtown survey")

    assert await demo.get_demo() == pointer
    assert pointer.project_id == project.id
    assert pointer.display_name == "Downtown survey"


@pytest.mark.asyncio
async def test_set_replaces_previous(demo, project_factory):
    first = project_factory(owner_id="u1")
    second = project_factory(owner_id="u1")

    await demo.set_demo(first.id, "First")
    await demo.set_demo(second.id, "Second")

    current = await demo.get_demo()
    assert (current.project_id, current.display_name) == (second.id, "Second")


@pytest.mark.asyncio
async def test_set_unknown_project_keeps_previous(demo, project_factory):
    project = project_factory(owner_id="u1")
    previous = await demo.set_demo(project.id, "Keep me")

    with pytest.raises(NotFoundError):
        await demo.set_demo("missing", "Nope")

    assert await demo.get_demo() == previous


@pytest.mark.asyncio
async def test_set_requires_both_fields(demo, project_factory):
    project = project_factory(owner_id="u1")

    with pytest.raises(ValidationError):
        await demo.set_demo(project.id, "")
    with pytest.raises(ValidationError):
        await demo.set_demo("", "Name")


@pytest.mark.asyncio
async def test_pointer_survives_project_deletion(demo, store, project_factory):
    project = project_factory(owner_id="u1")
    pointer = await demo.set_demo(project.id, "Stale soon")

    store.remove_project(project.id)

    assert await demo.get_demo() == pointer


@pytest.mark.asyncio
async def test_pointer_persists_across_instances(store, project_factory):
    project = project_factory(owner_id="u1")
    await DemoPointerService(store).set_demo(project.id, "Durable")

    assert (await DemoPointerService(store).get_demo()).display_name == "Durable"
