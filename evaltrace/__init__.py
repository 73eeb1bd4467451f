"""evaltrace — trace reconstruction over the suggestion pipeline's stage outputs."""

__version__ = "0.1.0"
