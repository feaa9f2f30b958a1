"""HTTP adapter for task coordination."""
