class PostprocessError(ValueError):
    """
    Base error for post-processing failures.

    Subclasses ValueError so callers that already guard against bad model output
    with `except ValueError` keep working.
    """


class InvalidDimensions(PostprocessError):
    """Image or network input size is zero or negative."""


class InvalidModelOutput(PostprocessError):
    """A tensor does not have the rank, extents or label count the model implies."""
