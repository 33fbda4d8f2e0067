"""Tests for the Textual host: keys reach the dispatcher, frames get painted."""

import pytest

from task_agent.models import WorkItem
from task_agent.providers import ProviderRegistry
from task_agent.state import Pane
from task_agent.tui import TaskAgentApp


class FakeSource:
    def list_items(self, project_id=""):
        return [WorkItem(id=str(i), name=f"Task {i}") for i in range(5)]

    def search_items(self, workspace_id, query):
        return []


async def _settle(app, pilot):
    await app.workers.wait_for_complete()
    await pilot.pause()


@pytest.mark.asyncio
async def test_startup_loads_items(make_dispatcher):
    dispatcher = make_dispatcher(task_source=FakeSource())
    app = TaskAgentApp(dispatcher, ProviderRegistry())

    async with app.run_test(size=(120, 30)) as pilot:
        await _settle(app, pilot)
        assert dispatcher.width == 120
        assert dispatcher.height == 30
        assert len(dispatcher.state.tasks.items) == 5
        assert dispatcher.state.status.text == "Loaded 5 tasks"


@pytest.mark.asyncio
async def test_keys_drive_panes(make_dispatcher):
    dispatcher = make_dispatcher(task_source=FakeSource())
    app = TaskAgentApp(dispatcher, ProviderRegistry())

    async with app.run_test(size=(120, 30)) as pilot:
        await _settle(app, pilot)

        await pilot.press("tab")
        assert dispatcher.state.pane is Pane.MODELS

        await pilot.press("escape", "down", "down")
        assert dispatcher.state.pane is Pane.TASKS
        assert dispatcher.state.tasks.cursor == 2

        await pilot.press("c")
        assert dispatcher.state.pane is Pane.SETTINGS
        await pilot.press("escape")
        assert dispatcher.state.pane is Pane.TASKS


@pytest.mark.asyncio
async def test_search_overlay_receives_text(make_dispatcher):
    dispatcher = make_dispatcher(task_source=FakeSource())
    app = TaskAgentApp(dispatcher, ProviderRegistry())

    async with app.run_test(size=(120, 30)) as pilot:
        await _settle(app, pilot)

        await pilot.press("slash", "t", "a", "s", "k", "space", "3")
        assert dispatcher.state.searching
        assert dispatcher.state.search_query == "task 3"

        await pilot.press("enter")
        await _settle(app, pilot)
        assert not dispatcher.state.searching
        assert [it.id for it in dispatcher.state.tasks.visible] == ["3"]
