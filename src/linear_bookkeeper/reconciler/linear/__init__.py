"""Linear API access and the services built on it."""
