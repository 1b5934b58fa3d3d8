"""Minimal event manager whose handlers are plain callables."""