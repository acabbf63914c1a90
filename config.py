"""
config.py - Build configuration classes, one per mode.
"""

import os
import enum
from dataclasses import dataclass


class BuildMode(enum.Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


@dataclass(frozen=True)
class ModeFlags:
    """Transform switches in effect for one build pass."""
    mode: BuildMode
    minify_css: bool = True
    minify_js: bool = True
    sourcemaps: bool = True


class Config:
    """Base configuration."""

    # Output
    OUTPUT_DIR = os.environ.get("TO_BUILD_OUTPUT", "./out")

    # Lookup
    LOOKUP_PACKAGE_DIR = "node_modules"

    # Services
    ESBUILD_BINARY = os.environ.get("TO_BUILD_ESBUILD", "esbuild")
    ESBUILD_TIMEOUT = 120

    # Preview servers
    SERVER_NAMESPACE = "to-build"
    SERVER_HOST = os.environ.get("TO_BUILD_HOST", "127.0.0.1")
    DYNAMIC_DIRS = ["dynamic"]
    SERVER_STOP_TIMEOUT = 5
    MODE = None
    PORT = None

    # Logging
    LOG_DIR = os.environ.get("TO_BUILD_LOG_DIR") or None
    LOG_LEVEL = os.environ.get("TO_BUILD_LOG_LEVEL", "INFO")

    # Transform policy (None = take the caller's value)
    FORCE_MINIFY = None
    FORCE_SOURCEMAPS = None

    @classmethod
    def mode_flags(cls, minify_css=True, minify_js=True, sourcemaps=True):
        """Apply this mode's entry policy to caller-supplied flags."""
        if cls.FORCE_MINIFY is not None:
            minify_css = minify_js = cls.FORCE_MINIFY
        if cls.FORCE_SOURCEMAPS is not None:
            sourcemaps = cls.FORCE_SOURCEMAPS
        return ModeFlags(cls.MODE, minify_css, minify_js, sourcemaps)


class DevelopmentConfig(Config):
    MODE = BuildMode.DEVELOPMENT
    PORT = 10000
    LOG_LEVEL = "DEBUG"


class StagingConfig(Config):
    MODE = BuildMode.STAGING
    PORT = 10002


class ProductionConfig(Config):
    MODE = BuildMode.PRODUCTION
    PORT = 10004
    FORCE_MINIFY = True
    FORCE_SOURCEMAPS = False


config_map = {
    "development": DevelopmentConfig,
    "staging": StagingConfig,
    "production": ProductionConfig,
}


def config_for(mode):
    return config_map[getattr(mode, "value", mode)]
