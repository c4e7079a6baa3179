"""sfhelper - Destructive change deploy helper for Salesforce projects.

Comments out references to deleted components, deploys, and restores
the source tree afterwards.
"""

__version__ = "0.1.0"
