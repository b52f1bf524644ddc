from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional

import yaml

from modelstore_lib.config import DEFAULT_CONFIG_PATH


def configure_logging(config_path: Optional[Path] = None) -> logging.Logger:
    """Configure root logging for applications embedding the store.

    An early NOTSET basic config lets imports emit while the YAML config is
    read; the root logger is then reconfigured to the `log_level` found there
    (WARNING when absent or unreadable). Returns a module logger.
    """
    logging.basicConfig(level=logging.NOTSET, format='%(asctime)s INFO %(message)s')
    level = logging.WARNING

    cfg_path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    if cfg_path.exists():
        try:
            with cfg_path.open('r', encoding='utf-8') as f:
                cfg = yaml.safe_load(f) or {}
            name = cfg.get('log_level') if isinstance(cfg, dict) else None
            if name:
                level = getattr(logging, str(name).upper(), logging.WARNING)
        except (OSError, yaml.YAMLError):
            level = logging.WARNING

    logging.log(100, f'[modelstore]: Log level set to: {logging.getLevelName(level)}')

    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s [%(name)s]: %(message)s')
    logger = logging.getLogger(__name__)

    # Keep known noisy libraries quiet by default
    logging.getLogger('redis').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    return logger
