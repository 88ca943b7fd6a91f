"""
Presentation Layer - Consumers of the search service

Contains:
- cli: Command-line search with streaming progress
"""
