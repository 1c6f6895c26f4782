"""
MyTrip Listing - incremental tourist-information listing engine

Aggregates a paginated tourism catalog with pet-friendliness annotations
into a continuously growing, correctly ordered display list.
"""

__version__ = "1.0.0"
