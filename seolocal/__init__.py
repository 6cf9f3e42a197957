"""
seolocal - SEO auditor for locally running websites.
"""

__version__ = "0.1.0"
