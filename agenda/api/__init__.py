"""HTTP API package: request/response models, dependencies and database tables."""
