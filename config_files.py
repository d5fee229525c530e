"""
Per-instance files in the module config folder: Tesseract user patterns and
the detection mask artifact.
"""

import logging
import os

from config import CONFIG_DIR

logger = logging.getLogger(__name__)


def user_patterns_path(unique_id, config_dir=CONFIG_DIR):
    return os.path.join(config_dir, f"user-patterns-{unique_id}.txt")


def user_patterns_config_path(unique_id, config_dir=CONFIG_DIR):
    return os.path.join(config_dir, f"user-patterns{unique_id}.config")


def mask_image_path(unique_id, config_dir=CONFIG_DIR):
    return os.path.join(config_dir, f"{unique_id}.png")


def ensure_config_dir(config_dir=CONFIG_DIR):
    os.makedirs(config_dir, exist_ok=True)


def write_user_patterns(unique_id, user_patterns, config_dir=CONFIG_DIR):
    """
    Persist user patterns and a Tesseract .config file pointing at them.

    Returns:
        List of config file paths for the backend's init configs. Empty when
        there are no patterns.
    """
    if not user_patterns:
        return []

    ensure_config_dir(config_dir)

    patterns_path = user_patterns_path(unique_id, config_dir)
    logger.info(f"Saving user patterns to: {patterns_path}")
    with open(patterns_path, "w", encoding="utf-8") as f:
        f.write(user_patterns)

    config_path = user_patterns_config_path(unique_id, config_dir)
    logger.info(f"Saving user patterns config to: {config_path}")
    with open(config_path, "w", encoding="utf-8") as f:
        f.write(f"user_patterns_file {patterns_path}\n")

    return [config_path]


def cleanup_config_files(unique_id, config_dir=CONFIG_DIR):
    """Remove the pattern files and mask artifact of an instance. Missing files are fine."""
    for path in (
        user_patterns_path(unique_id, config_dir),
        user_patterns_config_path(unique_id, config_dir),
        mask_image_path(unique_id, config_dir),
    ):
        try:
            os.remove(path)
            logger.info(f"Removed {path}")
        except FileNotFoundError:
            pass
