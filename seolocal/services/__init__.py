"""
Audit pipeline services: robots rules, crawling, analysis, scoring,
processing and export.
"""
