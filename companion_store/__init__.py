"""SQLite persistence for companion chat, memory, affinity, insight, personas, wallet links and ownership."""

__version__ = "0.1.0"