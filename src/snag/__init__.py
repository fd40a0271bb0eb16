"""snag - composable git hook policy kit."""

__version__ = "0.12.0"

__all__ = ["__version__"]
