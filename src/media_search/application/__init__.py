"""
Application Layer - Use cases over the domain.

Contains:
- search: fan-out, classification, content policy and delivery pipeline
"""
