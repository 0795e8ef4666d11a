"""Container image building for ctfixture.

This module handles image building functionality including:
- Build context assembly off the event loop
- Streaming image builds through the container engine
- Image inspection
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from .context import BuildContext, create_build_context
from .digests import DIGESTS_FILENAME
from .engine import EngineClient
from .errors import BuildError, EngineError


class ImageManager:
    """Builds and inspects images through the container engine.

    Files named in excluded_filenames, such as the digest registry, are left
    out of every build context.
    """

    def __init__(
        self, engine: EngineClient, excluded_filenames: Iterable[str] = (DIGESTS_FILENAME,)
    ) -> None:
        self.engine = engine
        self.excluded_filenames = tuple(excluded_filenames)

    async def context(self, directory: Path) -> BuildContext:
        """Assemble the build context of `directory`."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, create_build_context, Path(directory), self.excluded_filenames
        )

    async def build(
        self,
        directory: Path,
        name: str,
        tag: str = "latest",
        dockerfile: Optional[str] = None,
        context: Optional[BuildContext] = None,
    ) -> BuildContext:
        """Build image `name:tag` from `directory`.

        The build always runs. Callers that want to skip unchanged images
        compare the returned digest against a DigestRegistry themselves.

        Args:
            directory: Build directory
            name: Image name
            tag: Image tag
            dockerfile: Dockerfile path relative to directory (engine default if None)
            context: Previously assembled context of directory, reused if given

        Returns:
            The build context the image was built from

        Raises:
            BuildError: If the context cannot be assembled or the engine reports
                a build error
        """
        if context is None:
            context = await self.context(directory)

        image = f"{name}:{tag}"
        logging.info(f"Build container image: {image}")
        logging.debug(f"Container image digest: {context.digest}")
        try:
            async for event in self.engine.build_image(context.archive, image, dockerfile):
                if event.get("error"):
                    raise BuildError(f"Error during image build of {image}: {event['error'].strip()}")
                if event.get("stream"):
                    logging.debug(event["stream"].rstrip("\n"))
        except EngineError as e:
            raise BuildError(f"Error during image build of {image}: {e}") from e
        return context

    async def inspect(self, name: str) -> Dict[str, Any]:
        return await self.engine.inspect_image(name)
