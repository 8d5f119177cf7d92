"""Detection package."""


def __getattr__(name: str):
    """Lazy re-export so that ``from scanredact.detection import RedactionPipeline``
    works without importing every layer when only the constants are needed."""
    if name == "RedactionPipeline":
        from scanredact.detection.pipeline import RedactionPipeline  # noqa: F811
        return RedactionPipeline
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
