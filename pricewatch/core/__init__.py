"""Cross-cutting building blocks: error taxonomy and logging setup."""
