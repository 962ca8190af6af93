"""
GrantWatch - Funding opportunity extraction for the Idox Open4Community portal.

Logs into the portal with a browser session, walks the paginated search
results, and optionally enriches each grant from its detail page.
"""

__version__ = "0.1.0"
__app_name__ = "grantwatch"
