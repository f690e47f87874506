"""
Renderers turn a generated file into text.

The core never produces source text itself; renderers walk the typed
operations of each conversion and decide how they are spelled.
"""

from abc import ABC, abstractmethod

from convgen.core.generated_file import GeneratedFile
from convgen.exceptions import RenderError
from convgen.utils.logging_utils import get_logger

logger = get_logger(__name__)


class Renderer(ABC):
    """Base class for renderers."""

    name: str = ""
    extension: str = ""

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    @abstractmethod
    def render(self, generated: GeneratedFile) -> str:
        """
        Render one generated file.

        Args:
            generated: The file to render

        Returns:
            The complete file contents

        Raises:
            RenderError: If an operation cannot be rendered
        """
        pass


def available_renderers() -> list[str]:
    return sorted(_registry())


def _registry() -> dict[str, type[Renderer]]:
    from convgen.renderers.go_renderer import GoRenderer
    from convgen.renderers.listing_renderer import ListingRenderer

    return {GoRenderer.name: GoRenderer, ListingRenderer.name: ListingRenderer}


def create_renderer(name: str) -> Renderer:
    """
    Create the renderer registered under ``name``.

    Raises:
        RenderError: If no renderer has that name
    """
    renderers = _registry()
    if name not in renderers:
        raise RenderError(f"renderer must be one of {sorted(renderers)}, got: {name}")
    logger.debug(f"Using renderer: {name}")
    return renderers[name]()
