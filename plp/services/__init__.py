"""Service layer: persistence and outbound API access for the routes and CLI."""
