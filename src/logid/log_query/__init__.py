"""Regional log service querying: request/result models, parsing, client."""
