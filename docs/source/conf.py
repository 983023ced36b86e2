#!/usr/bin/env python3
from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.abspath("../../"))

import rediswire

master_doc = "index"
project = "rediswire"
author = "rediswire contributors"
description = "Blocking redis client built on a small RESP2 codec"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.intersphinx",
    "sphinx.ext.viewcode",
    "sphinx_paramlinks",
]

autodoc_default_options = {
    "members": True,
    "member-order": "bysource",
}

version = release = rediswire.__version__

add_module_names = False
autodoc_typehints_format = "short"
autodoc_preserve_defaults = True
autodoc_type_aliases = {
    "ValueT": "~rediswire.typing.ValueT",
    "ResponsePrimitive": "~rediswire.typing.ResponsePrimitive",
    "ResponseType": "~rediswire.typing.ResponseType",
    "Reply": "~rediswire.response.types.Reply",
}

htmlhelp_basename = "rediswiredoc"

intersphinx_mapping = {
    "python": ("https://docs.python.org/3", None),
}
