"""
botstack.core - Core tool subsystem.
"""
