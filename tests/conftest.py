"""Shared fixtures for task-agent tests."""

import pytest

from task_agent.config import Settings, SettingsStore
from task_agent.dispatcher import Dispatcher
from task_agent.execution import ExecutionController
from task_agent.output import write_output
from task_agent.providers import ProviderRegistry


@pytest.fixture
def make_dispatcher(tmp_path, monkeypatch):
    """Build a Dispatcher wired to fakes and a temporary settings file."""
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    def _make(engine=None, task_source=None, store=None, sink=write_output, **settings_kwargs):
        settings_kwargs.setdefault("api_keys", {"anthropic": "sk-test"})
        settings_kwargs.setdefault("output_dir", str(tmp_path / "out"))
        registry = ProviderRegistry()
        controller = ExecutionController(lambda provider, model, api_key: engine, registry, sink=sink)
        return Dispatcher(
            Settings(**settings_kwargs),
            registry,
            task_source,
            controller,
            store or SettingsStore(tmp_path / "config.toml"),
        )

    return _make
