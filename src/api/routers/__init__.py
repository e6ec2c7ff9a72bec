# Route modules, one per feature area; `src.api.app` mounts them under the versioned prefix.
