"""
Infrastructure Layer - Concrete transports for the search service.
"""
