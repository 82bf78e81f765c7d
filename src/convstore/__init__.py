"""convstore - persistence core for coding-assistant sessions and history."""

from convstore.logging_config import configure_library_default

__version__ = "0.1.0"

configure_library_default()
