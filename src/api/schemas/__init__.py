# Pydantic models for the response envelope and for the typed subscription and health payloads.
