"""
Registry index generation.

Builds a package list document from a local checkout of a package
collection such as micropython-lib.
"""
import os
import re
from pathlib import Path
from typing import Any, Dict, List

import yaml

from upy_package.utils.logger import get_logger

DESCRIPTOR_FILES = ("package.json", "manifest.py")
_DESCRIPTION_RE = re.compile(r'description="(.*?)"')


def build_index(directory: Path) -> Dict[str, List[Dict[str, Any]]]:
    """
    Collect one record per folder holding a package descriptor.

    The folder name serves as both name and url. Descriptions are taken
    from ``description="..."`` in manifest.py when present.
    """
    logger = get_logger()
    packages: List[Dict[str, Any]] = []

    for root, dirs, files in os.walk(directory):
        dirs.sort()
        present = [f for f in DESCRIPTOR_FILES if f in files]
        if not present:
            continue

        folder = Path(root)
        record: Dict[str, Any] = {"name": folder.name, "url": folder.name}
        if "manifest.py" in present:
            try:
                content = (folder / "manifest.py").read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("IndexBuilder", f"Error reading {folder / 'manifest.py'}: {e}")
            else:
                match = _DESCRIPTION_RE.search(content)
                if match and match.group(1):
                    record["description"] = match.group(1)
        packages.append(record)

    logger.info("IndexBuilder", f"Indexed {len(packages)} packages under {directory}")
    return {"packages": packages}


def write_index(directory: Path, output: Path) -> Path:
    """Write the index for ``directory`` to ``output`` as a YAML document."""
    index = build_index(directory)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text("---\n" + yaml.safe_dump(index, sort_keys=False), encoding="utf-8")
    get_logger().success("IndexBuilder", f"YAML file saved to {output}")
    return output
