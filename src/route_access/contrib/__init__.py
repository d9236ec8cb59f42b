"""Framework integrations. Each subpackage pulls in its own optional dependency."""
