"""Dataset containers and preprocessing for mlpnet."""

from .dataset import ATTRIBUTE_KINDS, DATE, NOMINAL, NUMERIC, STRING, Attribute, Dataset
from .preprocess import AttributeScaler, NominalToBinary, check_capabilities, compute_ranges

__all__ = [
    "ATTRIBUTE_KINDS",
    "DATE",
    "NOMINAL",
    "NUMERIC",
    "STRING",
    "Attribute",
    "Dataset",
    "AttributeScaler",
    "NominalToBinary",
    "check_capabilities",
    "compute_ranges",
]
