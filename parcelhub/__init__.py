"""ParcelHub: multi-partner parcel booking with a prepaid wallet."""

__version__ = "0.3.0"
