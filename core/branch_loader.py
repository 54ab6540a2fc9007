"""
Branch loader for the application bot.

Discovers branches (folder-based discord.py extensions under branches/) and
manages their config.yml files, generating them from the branch's
DEFAULT_CONFIG the first time a branch is loaded.
"""

import copy
import yaml
import logging
import importlib
from pathlib import Path
from typing import Optional, Dict, Any

from constants import BRANCH_CONFIG_FILE
from utils import deep_merge

logger = logging.getLogger(__name__)

GENERIC_DEFAULT_CONFIG = {
    "enabled": True,
    "version": "1.0.0",
    "settings": {},
}


class BranchLoader:
    """Manages loading branches with auto-generated configs."""

    def __init__(self, branches_dir: str = "branches", package: str = "branches"):
        self.branches_dir = Path(branches_dir)
        self.package = package

    def discover_branches(self) -> list[str]:
        """Return the names of all folder branches, skipping private folders."""
        branch_names = []

        if not self.branches_dir.is_dir():
            logger.warning(f"Branches directory {self.branches_dir} not found")
            return branch_names

        for item in self.branches_dir.iterdir():
            if item.name.startswith("_") or item.name.startswith("."):
                continue

            if item.is_dir() and (item / "__init__.py").exists():
                branch_names.append(item.name)
                logger.debug(f"Discovered branch: {item.name}")

        return sorted(branch_names)

    def get_branch_path(self, branch_name: str) -> Optional[Path]:
        branch_folder = self.branches_dir / branch_name
        if branch_folder.is_dir():
            return branch_folder
        return None

    def get_config_path(self, branch_name: str) -> Optional[Path]:
        branch_path = self.get_branch_path(branch_name)
        if not branch_path:
            return None
        return branch_path / BRANCH_CONFIG_FILE

    def load_config(self, branch_name: str) -> Dict[str, Any]:
        """Load config for a branch, generating the default file if it doesn't exist."""
        default_config = self.get_default_config(branch_name)
        config_path = self.get_config_path(branch_name)

        if not config_path:
            return default_config

        if not config_path.exists():
            self.save_config(branch_name, default_config)
            return default_config

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
            logger.info(f"Loaded config for {branch_name}")
            return deep_merge(default_config, config)
        except Exception as e:
            logger.error(f"Failed to load config for {branch_name}: {e}")
            return default_config

    def save_config(self, branch_name: str, config: Dict[str, Any]):
        config_path = self.get_config_path(branch_name)
        if not config_path:
            logger.error(f"Cannot save config for {branch_name}: no valid path")
            return

        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)

            with open(config_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

            logger.info(f"✅ Saved config for {branch_name}")
        except Exception as e:
            logger.error(f"Failed to save config for {branch_name}: {e}")

    def get_default_config(self, branch_name: str) -> Dict[str, Any]:
        """
        Get default config for a branch.

        Uses the DEFAULT_CONFIG exported by the branch's branch.py module,
        falling back to a generic config.
        """
        try:
            module = importlib.import_module(f"{self.package}.{branch_name}.branch")
            if hasattr(module, "DEFAULT_CONFIG"):
                logger.debug(f"Using branch-defined defaults for {branch_name}")
                return copy.deepcopy(module.DEFAULT_CONFIG)
        except Exception as e:
            logger.debug(f"Could not load branch-defined defaults for {branch_name}: {e}")

        return copy.deepcopy(GENERIC_DEFAULT_CONFIG)

    def get_load_path(self, branch_name: str) -> str:
        """Import path for load_extension; branches load through their __init__.py."""
        return f"{self.package}.{branch_name}"


# Global loader instance
_loader: Optional[BranchLoader] = None


def get_branch_loader() -> BranchLoader:
    """Get the global branch loader instance."""
    global _loader
    if _loader is None:
        _loader = BranchLoader()
    return _loader
