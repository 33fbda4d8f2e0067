"""Colour themes for the console.

A Theme is a plain value handed to the render composer; nothing here is
global mutable state.
"""

from dataclasses import dataclass

from rich.style import Style


@dataclass(frozen=True)
class Theme:
    name: str
    bg: str
    surface: str
    border: str
    accent: str
    selected: str
    text: str
    muted: str
    green: str
    red: str
    yellow: str

    def style(self, role: str, bold: bool = False) -> Style:
        """Foreground style for a named colour role."""
        return Style(color=getattr(self, role), bold=bold)

    @property
    def base(self) -> Style:
        return Style(color=self.text, bgcolor=self.bg)

    @property
    def highlight(self) -> Style:
        return Style(color=self.text, bgcolor=self.selected, bold=True)


THEMES: tuple[Theme, ...] = (
    Theme("dark", "#0d1117", "#161b22", "#30363d", "#58a6ff", "#1f6feb", "#e6edf3", "#8b949e", "#3fb950", "#f85149", "#e3b341"),
    Theme("light", "#ffffff", "#f6f8fa", "#d0d7de", "#0969da", "#ddf4ff", "#1f2328", "#656d76", "#1a7f37", "#cf222e", "#9a6700"),
    Theme("homebrew", "#1a0a00", "#2a1500", "#cc6600", "#ff8c00", "#7a3300", "#ffcc99", "#cc8844", "#66cc44", "#ff4444", "#ffcc00"),
    Theme("dracula", "#282a36", "#1e1f29", "#6272a4", "#bd93f9", "#44475a", "#f8f8f2", "#6272a4", "#50fa7b", "#ff5555", "#f1fa8c"),
    Theme("solarized", "#002b36", "#073642", "#586e75", "#268bd2", "#094557", "#839496", "#657b83", "#859900", "#dc322f", "#b58900"),
    Theme("nord", "#2e3440", "#3b4252", "#4c566a", "#88c0d0", "#434c5e", "#eceff4", "#d8dee9", "#a3be8c", "#bf616a", "#ebcb8b"),
    Theme("monokai", "#272822", "#1e1f1c", "#75715e", "#66d9e8", "#49483e", "#f8f8f2", "#75715e", "#a6e22e", "#f92672", "#e6db74"),
)

THEME_NAMES: tuple[str, ...] = tuple(t.name for t in THEMES)


def theme_by_name(name: str) -> Theme:
    """Look up a theme, falling back to the first (dark) one."""
    for theme in THEMES:
        if theme.name == name:
            return theme
    return THEMES[0]
