"""Convert planned routes into Garmin Connect courses and upload them."""

__version__ = "0.1.0"
