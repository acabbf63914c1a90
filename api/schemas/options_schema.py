"""
options_schema.py - Marshmallow schema validating build options once,
at the process boundary, into a typed BuildOptions.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from marshmallow import Schema, fields, validate, post_load, ValidationError

from config import Config
from pipeline.errors import ConfigurationError
from pipeline.resolver import split_dir_list

BUILD_MODES = ["staging", "production"]
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@dataclass(frozen=True)
class BuildOptions:
    inputs: Tuple[str, ...]
    output: str = Config.OUTPUT_DIR
    roots: Tuple[str, ...] = ()
    static: Tuple[str, ...] = ()
    minify_css: bool = True
    minify_js: bool = True
    sourcemaps: bool = True
    modes: Tuple[str, ...] = tuple(BUILD_MODES)
    serve: bool = True
    base_dir: Optional[str] = None
    log_level: str = Config.LOG_LEVEL
    log_dir: Optional[str] = Config.LOG_DIR


class DirList(fields.Field):
    """A list of paths given as a list, a comma-separated string, or both."""

    def _deserialize(self, value, attr, data, **kwargs):
        if value is None:
            return []
        if not isinstance(value, (str, list, tuple)):
            raise ValidationError("Must be a string or a list of strings.")
        return split_dir_list(value)


class Flag(fields.Boolean):
    """Boolean that also treats "none" and an empty value as false."""

    truthy = fields.Boolean.truthy | {"on"}
    falsy = fields.Boolean.falsy | {"none", "None", "NONE", ""}


class BuildOptionsSchema(Schema):
    inputs = DirList(required=True, validate=validate.Length(min=1, error="No input HTML file given"))
    output = fields.String(load_default=Config.OUTPUT_DIR)
    roots = DirList(load_default=list)
    static = DirList(load_default=list)
    minify_css = Flag(load_default=True)
    minify_js = Flag(load_default=True)
    sourcemaps = Flag(load_default=True)
    modes = fields.List(
        fields.String(validate=validate.OneOf(BUILD_MODES, error="Invalid mode")),
        load_default=lambda: list(BUILD_MODES),
    )
    serve = Flag(load_default=True)
    base_dir = fields.String(load_default=None, allow_none=True)
    log_level = fields.String(
        load_default=Config.LOG_LEVEL,
        validate=validate.OneOf(LOG_LEVELS, error="Invalid log level"),
    )
    log_dir = fields.String(load_default=Config.LOG_DIR, allow_none=True)

    @post_load
    def make_options(self, data, **kwargs):
        modes = [m for m in BUILD_MODES if m in data["modes"]]
        return BuildOptions(
            inputs=tuple(data["inputs"]),
            output=data["output"],
            roots=tuple(data["roots"]),
            static=tuple(data["static"]),
            minify_css=data["minify_css"],
            minify_js=data["minify_js"],
            sourcemaps=data["sourcemaps"],
            modes=tuple(modes),
            serve=data["serve"],
            base_dir=data["base_dir"],
            log_level=data["log_level"],
            log_dir=data["log_dir"],
        )


def load_options(data):
    """Validate raw option values; raise ConfigurationError on bad input."""
    try:
        return BuildOptionsSchema().load(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid build options: {e.messages}", e.messages) from e
