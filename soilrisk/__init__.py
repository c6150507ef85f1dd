"""soilrisk: corrosion-risk evaluation and versioned reports for soil field surveys."""

__version__ = "1.0.0"
