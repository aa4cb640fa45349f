"""
MkDocs plugin that runs the header documentation generator during a build.

Pages are generated into ``<docs_dir>/<output_dir>`` from ``on_config``, so
MkDocs picks them up like any other markdown source.
"""

from __future__ import annotations

import logging
import os

from mkdocs.config import config_options
from mkdocs.exceptions import PluginError
from mkdocs.plugins import BasePlugin

from .config import OPTION_NAMES, HdrdocConfig
from .errors import HdrdocError
from .generator import Generator

log = logging.getLogger("mkdocs.plugins.hdrdoc")


class HdrdocPluginConfig(HdrdocConfig):
    output_dir = config_options.Type(str, default="api")
    page_extension = config_options.Type(str, default=".md")


class HdrdocPlugin(BasePlugin[HdrdocPluginConfig]):

    def __init__(self):
        super().__init__()
        self.result = None

    def _options(self, config):
        config_dir = os.path.dirname(config.get("config_file_path") or "") or os.getcwd()
        docs_dir = config["docs_dir"]
        out_root = os.path.join(docs_dir, self.config["output_dir"])
        outputs = self.config["outputs"] or [out_root]
        outputs = [os.path.join(docs_dir, o) for o in outputs]
        assets = os.path.join(out_root, self.config["assets_dir"])
        options = {k: self.config[k] for k in OPTION_NAMES}
        options.update(outputs=outputs, assets_dir=assets)
        return options, config_dir

    def on_config(self, config, **kwargs):
        if not self.config["inputs"]:
            log.warning("hdrdoc: no inputs configured, nothing to generate")
            return config
        options, config_dir = self._options(config)
        try:
            self.result = Generator(options, base_dir=config_dir).run()
        except HdrdocError as exc:
            raise PluginError("\n".join(exc.details())) from exc
        log.info(
            "hdrdoc: %d pages generated under %s", len(self.result.pages), self.config["output_dir"]
        )
        return config
