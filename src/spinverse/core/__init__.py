"""Domain model, selection and authoring helpers."""
