"""Example dimension jobs for testing and demonstration.

YAML examples (recommended for most use cases):
- configs/ecommerce.yaml: Reporting periods plus the addresses snapshot
- configs/holidays.yaml: A custom holiday table

Python examples:
- addresses_hist.py: The addresses snapshot driven from Python
"""
