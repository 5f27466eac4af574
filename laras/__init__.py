"""laras: compile percussion/vocal score notation and play it back."""

__version__ = "0.1.0"
