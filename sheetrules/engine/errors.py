class RuleDefinitionError(ValueError):
    """A rule, note or element was declared with the wrong shape."""
