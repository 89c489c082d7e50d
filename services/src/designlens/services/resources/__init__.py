"""Package data: critique prompt catalogue."""
