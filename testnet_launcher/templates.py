"""
Rendering of the packaged configuration templates.

Templates use string.Template "$name" placeholders and are shipped in the templates/ directory of
the package.
"""

from importlib import resources
import logging
import os
import os.path
from string import Template
from typing import Any, Mapping

from .exceptions import RenderError
from .staging import SharedPath

LOG = logging.getLogger(__name__)

GENESIS_CONFIG_TEMPLATE = 'genesis-config.yaml.tmpl'
MNEMONICS_TEMPLATE = 'mnemonics.yaml.tmpl'


def load_template(name: str) -> Template:
    """
    Load a template shipped with the package.

    :param name: file name in the templates/ directory
    :raise RenderError: if there is no such template
    """
    try:
        text = resources.files('testnet_launcher').joinpath('templates', name).read_text()
    except OSError as err:
        raise RenderError(f"failed to load template {name}: {err}") from err
    return Template(text)


def render_template(template: Template, data: Mapping[str, Any], dest: SharedPath) -> None:
    """
    Fill a template and write the result to a shared path.

    :param template: the template
    :param data: values for every placeholder in the template
    :param dest: the file to write
    :raise RenderError: if a placeholder has no value or the file cannot be written
    """
    try:
        rendered = template.substitute(data)
    except KeyError as err:
        raise RenderError(f"no value for template placeholder {err} rendering {dest.local_path}") \
            from err
    except ValueError as err:
        raise RenderError(f"malformed template for {dest.local_path}: {err}") from err

    try:
        os.makedirs(os.path.dirname(dest.local_path), exist_ok=True)
        with open(dest.local_path, 'w') as f:
            f.write(rendered)
    except OSError as err:
        raise RenderError(f"failed to write rendered template to {dest.local_path}: {err}") \
            from err
    LOG.debug(f"Rendered template to {dest.local_path}")
