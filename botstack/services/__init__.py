"""
botstack.services - Service Layer

Database-backed services around the tool subsystem: credentials, OAuth
token refresh, appointment storage, bot tool installation and custom tools.
"""
