"""PriceWatch: scheduled product price monitoring with threshold alerts."""

__version__ = "0.1.0"
