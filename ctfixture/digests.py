"""Persisted record of the content digest each image was last built from."""

import logging
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

DIGESTS_FILENAME = ".digests"


class DigestRegistry:
    """Maps image names to the build context digest of their last build.

    The registry is loaded once per test run, updated with push() after each
    build and written back with persist() at teardown. It is the only signal
    used to decide whether a build can be skipped.
    """

    def __init__(self, path: Path, digests: Optional[Dict[str, str]] = None) -> None:
        self.path = Path(path)
        self._digests: Dict[str, str] = dict(digests or {})

    @classmethod
    def load(cls, path: Path) -> "DigestRegistry":
        """Load the registry from `path`.

        A missing or unreadable file gives an empty registry: the first run
        has no build history.
        """
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logging.debug(f"No image digests loaded from {path}: {e}")
            return cls(path)

        digests = {}
        for line in content.splitlines():
            image_name, separator, digest = line.strip().partition("=")
            if not separator or not image_name:
                if line.strip():
                    logging.debug(f"Ignoring malformed digest entry: {line!r}")
                continue
            digests[image_name] = digest
        logging.debug(f"Loaded {len(digests)} image digests from {path}")
        return cls(path, digests)

    def push(self, image_name: str, digest: str) -> None:
        self._digests[image_name] = digest

    def get(self, image_name: str) -> Optional[str]:
        return self._digests.get(image_name)

    def is_build_needed(self, image_name: str, digest: str) -> bool:
        """True unless `image_name` was last built from exactly `digest`."""
        return self._digests.get(image_name) != digest

    def persist(self) -> None:
        """Rewrite the registry file with every entry."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            for image_name, digest in sorted(self._digests.items()):
                logging.info(f"Registering image digest to further process: {image_name}")
                f.write(f"{image_name}={digest}\n")

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(sorted(self._digests.items()))

    def __contains__(self, image_name: object) -> bool:
        return image_name in self._digests

    def __len__(self) -> int:
        return len(self._digests)
