"""Tests for the settings editor and save/cancel through the dispatcher."""

from dataclasses import replace

from task_agent.config import Settings, SettingsStore
from task_agent.dispatcher import KeyPressed, Resize
from task_agent.providers import ProviderRegistry
from task_agent.settings_editor import EditorState
from task_agent.state import Pane


def _focus(editor: EditorState, key: str) -> EditorState:
    index = [f.key for f in editor.fields].index(key)
    return replace(editor, focus=index)


def _open(settings: Settings | None = None) -> EditorState:
    return EditorState.open(settings or Settings(), ProviderRegistry())


class FailingStore(SettingsStore):
    def save(self, settings):
        raise OSError("disk full")


class TestFields:
    def test_field_order(self):
        labels = [f.label for f in _open().fields]
        assert labels[:3] == ["Workspace ID", "Project ID", "Output directory"]
        assert labels[-3:] == ["AI Provider", "Model", "Theme"]
        assert "Ollama (Local) API key" not in labels
        assert "Anthropic API key" in labels

    def test_navigation_wraps(self):
        editor = _open()
        assert editor.prev_field().focus == len(editor.fields) - 1
        last = replace(editor, focus=len(editor.fields) - 1)
        assert last.next_field().focus == 0


class TestTextFields:
    def test_confirm_writes_draft_and_advances(self):
        editor = _open()
        for ch in "12345":
            editor = editor.insert(ch)
        editor = editor.backspace().confirm()
        assert editor.draft.workspace_id == "1234"
        assert editor.focus == 1

    def test_typing_alone_does_not_touch_draft(self):
        editor = _open().insert("9")
        assert editor.values[0] == "9"
        assert editor.draft.workspace_id == ""

    def test_api_key_field(self):
        editor = _focus(_open(), "api_key:openai")
        for ch in "sk-abc":
            editor = editor.insert(ch)
        assert editor.confirm().draft.api_keys == {"openai": "sk-abc"}

    def test_text_keys_ignored_on_option_field(self):
        editor = _focus(_open(), "provider")
        assert editor.insert("x") == editor
        assert editor.backspace() == editor


class TestOptionFields:
    def test_provider_change_resets_model(self):
        editor = _focus(_open(Settings(provider="anthropic", model="claude-opus-4-6")), "provider")
        editor = editor.cycle(1)
        assert editor.draft.provider == "openai"
        assert editor.draft.model == "gpt-4o"
        assert editor.choice("model") == "gpt-4o"

    def test_confirm_cycles_forward_and_left_cycles_back(self):
        editor = _focus(_open(), "provider")
        assert editor.confirm().selected_provider == "openai"
        assert editor.cycle(-1).selected_provider == "ollama"

    def test_model_options_follow_provider(self):
        editor = _focus(_open(), "provider").cycle(1)
        editor = _focus(editor, "model").cycle(1)
        assert editor.choice("model") == "gpt-4o-mini"
        assert editor.commit().model == "gpt-4o-mini"

    def test_commit_applies_unconfirmed_text(self):
        editor = _open().insert("ws-1")
        settings = editor.commit()
        assert settings.workspace_id == "ws-1"
        assert settings.provider == "anthropic"


class TestSaveAndCancel:
    def _open_in_dispatcher(self, d):
        d.dispatch(Resize(120, 30))
        d.dispatch(KeyPressed("c"))
        while d.state.editor.focused.key != "provider":
            d.dispatch(KeyPressed("tab"))

    def test_draft_not_committed_until_save(self, make_dispatcher, tmp_path):
        d = make_dispatcher()
        self._open_in_dispatcher(d)
        d.dispatch(KeyPressed("right"))

        assert d.state.editor.draft.model == "gpt-4o"
        assert d.state.settings.provider == "anthropic"
        assert d.state.settings.model == "claude-sonnet-4-6"

        d.dispatch(KeyPressed("ctrl+s"))
        assert d.state.pane is Pane.TASKS
        assert d.state.editor is None
        assert d.state.settings.provider == "openai"
        assert d.state.settings.model == "gpt-4o"
        assert d.state.status.kind == "ok"
        assert SettingsStore(tmp_path / "config.toml").read().provider == "openai"

    def test_cancel_discards_draft(self, make_dispatcher):
        d = make_dispatcher()
        self._open_in_dispatcher(d)
        d.dispatch(KeyPressed("right"))
        d.dispatch(KeyPressed("escape"))
        assert d.state.pane is Pane.TASKS
        assert d.state.settings.provider == "anthropic"

    def test_save_failure_keeps_commit_and_closes(self, make_dispatcher, tmp_path):
        d = make_dispatcher(store=FailingStore(tmp_path / "config.toml"))
        self._open_in_dispatcher(d)
        d.dispatch(KeyPressed("right"))
        d.dispatch(KeyPressed("ctrl+s"))
        assert d.state.pane is Pane.TASKS
        assert d.state.settings.provider == "openai"
        assert d.state.status.kind == "err"
        assert "disk full" in d.state.status.text

    def test_typed_characters_go_to_field(self, make_dispatcher):
        d = make_dispatcher()
        d.dispatch(Resize(120, 30))
        d.dispatch(KeyPressed("c"))
        for ch in "qlc/":
            d.dispatch(KeyPressed(ch))
        assert d.state.pane is Pane.SETTINGS
        assert d.state.editor.values[0] == "qlc/"

    def test_project_change_reloads_tasks(self, make_dispatcher):
        d = make_dispatcher()
        d.dispatch(Resize(120, 30))
        d.dispatch(KeyPressed("c"))
        d.dispatch(KeyPressed("tab"))
        d.dispatch(KeyPressed("7"))
        effects = d.dispatch(KeyPressed("ctrl+s"))
        assert d.state.settings.project_id == "7"
        assert len(effects) == 1
        assert effects[0].project_id == "7"
