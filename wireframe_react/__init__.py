"""
Wireframe to React

Turns a wireframe image plus a text description into a React + Tailwind
component using chat-completion models, and renders it as a live preview in a
sandboxed browser frame.
"""

__version__ = "0.1.0"
