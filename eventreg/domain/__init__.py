"""Event domain: models, listing rules and the event service."""
