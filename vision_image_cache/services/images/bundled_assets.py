"""
Bundled hardware asset resolution.

Hardware records store image paths such as ``/hardware/camera-basler.png``.
When a file with that name ships in the local asset directory it is used
instead of a network fetch.
"""

from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

import structlog

logger = structlog.get_logger()

HARDWARE_PATH_PREFIXES = ("/hardware/", "/public/hardware/")


class HardwareKind(str, Enum):
    """Hardware catalog families with bundled photos."""

    CAMERA = "camera"
    LENS = "lens"
    LIGHT = "light"
    CONTROLLER = "controller"


def is_relative_hardware_path(url: Optional[str]) -> bool:
    """True when ``url`` is a relative hardware path needing resolution."""
    if not url:
        return False
    return url.startswith(HARDWARE_PATH_PREFIXES)


class BundledAssetResolver:
    """
    Maps hardware image URLs and catalog keys onto files under
    ``<asset_dir>/hardware``.

    The directory listing is read once and cached; call ``refresh`` after
    adding files.
    """

    def __init__(self, hardware_dir: Union[str, Path]):
        self.hardware_dir = Path(hardware_dir)
        self._catalog: Optional[Dict[HardwareKind, Dict[str, Path]]] = None

    @property
    def catalog(self) -> Dict[HardwareKind, Dict[str, Path]]:
        if self._catalog is None:
            self._catalog = self._scan()
        return self._catalog

    def refresh(self) -> None:
        self._catalog = None

    def _scan(self) -> Dict[HardwareKind, Dict[str, Path]]:
        catalog: Dict[HardwareKind, Dict[str, Path]] = {kind: {} for kind in HardwareKind}
        if not self.hardware_dir.is_dir():
            logger.warning(
                "Bundled hardware asset directory missing",
                directory=str(self.hardware_dir),
            )
            return catalog

        for path in sorted(self.hardware_dir.iterdir()):
            if not path.is_file() or path.suffix.lower() != ".png":
                continue
            for kind in HardwareKind:
                if path.name.startswith(f"{kind.value}-"):
                    catalog[kind][path.name] = path
                    break

        logger.debug(
            "Bundled hardware assets indexed",
            directory=str(self.hardware_dir),
            counts={kind.value: len(files) for kind, files in catalog.items()},
        )
        return catalog

    def _by_filename(self) -> Dict[str, Path]:
        files: Dict[str, Path] = {}
        for kind_files in self.catalog.values():
            files.update(kind_files)
        return files

    def resolve(self, url: Optional[str]) -> Optional[Path]:
        """
        Find the bundled file for ``url``.

        Inline payloads and absolute http(s) URLs are never bundled. Relative
        ``/hardware/<file>`` paths and any path whose last segment is a known
        file name resolve to the local file.
        """
        if not url:
            return None
        if url.startswith(("data:", "http://", "https://")):
            return None

        files = self._by_filename()

        for prefix in HARDWARE_PATH_PREFIXES:
            if url.startswith(prefix):
                local = files.get(url[len(prefix):])
                if local is not None:
                    logger.debug("Resolved bundled asset", url=url, path=str(local))
                    return local

        file_name = url.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
        return files.get(file_name)

    def get_hardware_image(
        self, kind: Union[HardwareKind, str], key: str
    ) -> Optional[Path]:
        """Look up a bundled photo by exact name, then ``key.png``, then substring."""
        try:
            kind = HardwareKind(kind)
        except ValueError:
            return None

        files = self.catalog[kind]
        if not key:
            return None
        if key in files:
            return files[key]
        if f"{key}.png" in files:
            return files[f"{key}.png"]

        for name, path in files.items():
            if key in name:
                return path
        return None
