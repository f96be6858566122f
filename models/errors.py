class ValidationError(ValueError):
    """Input rejected before anything is written to the store."""
