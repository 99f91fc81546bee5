"""Agent assets package.

Contains the assistant's prompt, context assembly, and tool registry that are
wired into chat completion requests.
"""

__all__ = ["assistant"]
