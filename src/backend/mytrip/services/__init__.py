"""Listing, source adapter, statistics and configuration services."""
