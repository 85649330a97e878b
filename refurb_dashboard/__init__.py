"""Executive analytics over refurbished-electronics inventory."""

__version__ = "1.0.0"
