"""Renderers for generated conversion files."""

from .base import Renderer, available_renderers, create_renderer

__all__ = ["Renderer", "available_renderers", "create_renderer"]
