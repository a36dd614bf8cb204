# Pydantic models for captures, actions, ARD comparison, runs and browser config.
# Prefer importing from the specific submodule (e.g. ga4_audit.models.capture).
