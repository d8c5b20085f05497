"""Utility functions for tallybook."""

from tallybook.utils.date_parser import parse_date
from tallybook.utils.amount_parser import parse_amount, parse_rate
from tallybook.utils.money import round2

__all__ = ["parse_date", "parse_amount", "parse_rate", "round2"]
