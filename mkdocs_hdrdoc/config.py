from __future__ import annotations

import logging

import yaml
from mkdocs.config import config_options
from mkdocs.config.base import Config as MkDocsConfig

from .errors import ConfigurationError

log = logging.getLogger("mkdocs.plugins.hdrdoc")


OPTION_NAMES = (
    "inputs",
    "outputs",
    "assets_dir",
    "defines",
    "fail_on_warn",
    "extensions",
    "page_extension",
    "anchor_map",
    "index_page",
    "source_uri",
)


class HdrdocConfig(MkDocsConfig):
    inputs = config_options.Type(list, default=[])
    outputs = config_options.Type(list, default=[])
    assets_dir = config_options.Type(str, default="_assets")
    defines = config_options.Type(list, default=[])
    fail_on_warn = config_options.Type(bool, default=False)
    extensions = config_options.Type(list, default=[".h"])
    page_extension = config_options.Type(str, default=".mdx")
    anchor_map = config_options.Type(str, default=".hdrdoc-anchors.json")
    index_page = config_options.Type(bool, default=True)
    source_uri = config_options.Type(str, default="")


def load_config(options, config_file_path=None, schema=HdrdocConfig):
    """Validate a dict of options into a config object.

    ``None`` values are dropped so unset CLI flags fall back to defaults.
    """
    cfg = schema(config_file_path=config_file_path)
    cfg.load_dict({k: v for k, v in options.items() if v is not None})
    failed, warnings = cfg.validate()
    for key, msg in warnings:
        log.warning("hdrdoc: config option '%s': %s", key, msg)
    if failed:
        detail = "; ".join(f"{key}: {msg}" for key, msg in failed)
        raise ConfigurationError(f"invalid configuration: {detail}")
    return cfg


def read_config_file(path):
    """Load a YAML options file; an empty file yields ``{}``."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigurationError(f"cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"cannot parse config file {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {path} must contain a mapping")
    return data
