"""
sitedeploy - deploys a single-page app and its backend API behind one CDN
distribution under a custom domain.
"""

__version__ = "0.1.0"
