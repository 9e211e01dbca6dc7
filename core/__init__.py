"""Core application components.

Application is imported from core.application directly so that the input
handling can be used without an OpenGL context.
"""

from .input_handler import InputHandler

__all__ = ["InputHandler"]
