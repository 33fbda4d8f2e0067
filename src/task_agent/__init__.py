"""task-agent - browse tracker tasks and hand them to an LLM from the terminal."""

try:
    from ._version import __version__
except ImportError:
    try:
        from importlib.metadata import version

        __version__ = version("task-agent")
    except Exception:
        __version__ = "0.0.0+unknown"
