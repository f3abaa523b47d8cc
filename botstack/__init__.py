"""
botstack - Tool Registry & Execution Service

Pluggable capabilities (calendar booking, lead capture, conversation pause,
user-authored webhook tools) that a bot's LLM loop can invoke with per-bot
configuration and encrypted third-party credentials.
"""

__version__ = "0.1.0"
