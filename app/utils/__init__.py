"""
Application utilities.

Modules:
- config: data directories, classifier configuration, appliance credentials
"""
