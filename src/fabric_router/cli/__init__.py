"""Interactive command-line interface for the router."""
