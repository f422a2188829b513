"""Site-specific extraction strategies."""

from .generic import GenericExtractor
from .amazon import AmazonExtractor
from .mercadolivre import MercadoLivreExtractor

__all__ = [
    "GenericExtractor",
    "AmazonExtractor",
    "MercadoLivreExtractor",
]
