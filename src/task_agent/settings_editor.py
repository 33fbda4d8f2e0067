"""Settings editor: a linear list of text and option fields over a draft."""

from dataclasses import dataclass, field, replace

from .config import DEFAULT_OUTPUT_DIR, Settings, set_api_key
from .providers import ProviderRegistry
from .themes import THEME_NAMES

API_KEY_PREFIX = "api_key:"


@dataclass(frozen=True)
class SettingsField:
    label: str
    key: str
    kind: str = "text"  # "text" | "secret" | "option"

    @property
    def is_option(self) -> bool:
        return self.kind == "option"

    @property
    def secret(self) -> bool:
        return self.kind == "secret"


def build_fields(registry: ProviderRegistry) -> tuple[SettingsField, ...]:
    fields = [
        SettingsField("Workspace ID", "workspace_id"),
        SettingsField("Project ID", "project_id"),
        SettingsField("Output directory", "output_dir"),
    ]
    for p in registry.key_providers():
        fields.append(SettingsField(f"{p.name} API key", API_KEY_PREFIX + p.id, "secret"))
    fields += [
        SettingsField("AI Provider", "provider", "option"),
        SettingsField("Model", "model", "option"),
        SettingsField("Theme", "theme", "option"),
    ]
    return tuple(fields)


def _text_value(settings: Settings, key: str) -> str:
    if key.startswith(API_KEY_PREFIX):
        return settings.api_keys.get(key[len(API_KEY_PREFIX):], "")
    return str(getattr(settings, key, ""))


@dataclass(frozen=True)
class EditorState:
    """Field focus, per-field drafts and the parallel draft Settings.

    ``values`` holds the text being typed for text fields, ``choices`` the
    selected index for option fields. ``draft`` only changes when a text
    field is confirmed or an option is cycled, and nothing reaches the real
    settings until ``commit``.
    """

    fields: tuple[SettingsField, ...]
    values: tuple[str, ...]
    choices: tuple[int, ...]
    draft: Settings
    focus: int = 0
    registry: ProviderRegistry = field(default=None, compare=False, repr=False)

    @classmethod
    def open(cls, settings: Settings, registry: ProviderRegistry) -> "EditorState":
        fields = build_fields(registry)
        values = tuple("" if f.is_option else _text_value(settings, f.key) for f in fields)
        choices = []
        for f in fields:
            if f.key == "provider":
                choices.append(registry.index_of(settings.provider))
            elif f.key == "model":
                choices.append(registry.model_index(settings.provider, settings.model))
            elif f.key == "theme":
                choices.append(THEME_NAMES.index(settings.theme) if settings.theme in THEME_NAMES else 0)
            else:
                choices.append(0)
        return cls(fields=fields, values=values, choices=tuple(choices), draft=settings, registry=registry)

    @property
    def focused(self) -> SettingsField:
        return self.fields[self.focus]

    def _index(self, key: str) -> int:
        for i, f in enumerate(self.fields):
            if f.key == key:
                return i
        raise KeyError(key)

    def options(self, index: int) -> tuple[str, ...]:
        """Choices for an option field; empty for text fields."""
        key = self.fields[index].key
        if key == "provider":
            return self.registry.ids
        if key == "model":
            provider = self.registry.get(self.selected_provider)
            return provider.models if provider else ()
        if key == "theme":
            return THEME_NAMES
        return ()

    def choice(self, key: str) -> str:
        i = self._index(key)
        opts = self.options(i)
        return opts[self.choices[i]] if opts else ""

    @property
    def selected_provider(self) -> str:
        i = self._index("provider")
        return self.registry.ids[self.choices[i]]

    # Navigation

    def next_field(self) -> "EditorState":
        return replace(self, focus=(self.focus + 1) % len(self.fields))

    def prev_field(self) -> "EditorState":
        return replace(self, focus=(self.focus - 1) % len(self.fields))

    # Text editing

    def _set_value(self, value: str) -> "EditorState":
        values = list(self.values)
        values[self.focus] = value
        return replace(self, values=tuple(values))

    def insert(self, text: str) -> "EditorState":
        if self.focused.is_option:
            return self
        return self._set_value(self.values[self.focus] + text)

    def backspace(self) -> "EditorState":
        if self.focused.is_option:
            return self
        return self._set_value(self.values[self.focus][:-1])

    def clear(self) -> "EditorState":
        if self.focused.is_option:
            return self
        return self._set_value("")

    def _apply_text(self, draft: Settings, index: int) -> Settings:
        key = self.fields[index].key
        value = self.values[index].strip()
        if key.startswith(API_KEY_PREFIX):
            return set_api_key(draft, key[len(API_KEY_PREFIX):], value)
        if key == "output_dir":
            value = value or DEFAULT_OUTPUT_DIR
        return replace(draft, **{key: value})

    def confirm(self) -> "EditorState":
        """Enter: store a text field and advance, or cycle an option forward."""
        if self.focused.is_option:
            return self.cycle(1)
        return replace(self, draft=self._apply_text(self.draft, self.focus)).next_field()

    # Option cycling

    def cycle(self, delta: int) -> "EditorState":
        f = self.focused
        if not f.is_option:
            return self
        opts = self.options(self.focus)
        if not opts:
            return self
        choices = list(self.choices)
        choices[self.focus] = (choices[self.focus] + delta) % len(opts)
        value = opts[choices[self.focus]]
        draft = replace(self.draft, **{f.key: value})
        if f.key == "provider":
            # Keep the model inside the new provider's list.
            default = self.registry.default_model(value)
            choices[self._index("model")] = self.registry.model_index(value, default)
            draft = replace(draft, model=default)
        return replace(self, choices=tuple(choices), draft=draft)

    def commit(self) -> Settings:
        """Every field's current value applied to the draft."""
        draft = self.draft
        for i, f in enumerate(self.fields):
            if not f.is_option:
                draft = self._apply_text(draft, i)
        return replace(
            draft,
            provider=self.selected_provider,
            model=self.choice("model"),
            theme=self.choice("theme"),
        )
