"""Configuration management for callscope.

Loads environment variables (and a `.env` file from the working directory)
and merges them with CLI flags. Flags win over environment, environment
wins over defaults.
"""
import os
from dataclasses import dataclass, fields
from typing import Optional
from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError

__version__ = "0.3.0"

DISPATCH_MODES = ('conservative', 'declared')

TRUE_VALUES = {'1', 'true', 'yes', 'on'}


@dataclass
class AnalyzerConfig:
    """Settings for one analysis run."""
    class_name: Optional[str] = None
    method_name: Optional[str] = None
    project: str = '.'
    file_hint: Optional[str] = None
    debug: bool = False
    skip_super: bool = False
    dispatch: str = 'conservative'
    loose: bool = False

    def __post_init__(self):
        if self.dispatch not in DISPATCH_MODES:
            raise ConfigError(
                f"Invalid dispatch mode '{self.dispatch}' (expected one of: {', '.join(DISPATCH_MODES)})"
            )


def _flag(value: Optional[str]) -> Optional[bool]:
    if value is None or value == '':
        return None
    return value.strip().lower() in TRUE_VALUES


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self, dotenv: bool = True):
        """Initialize config, loading `.env` from the working directory.

        Args:
            dotenv: Set False to read the process environment only
        """
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))

    @property
    def class_name(self) -> Optional[str]:
        return os.getenv("P_CLASS") or None

    @property
    def method_name(self) -> Optional[str]:
        return os.getenv("P_METHOD") or None

    @property
    def project(self) -> Optional[str]:
        """Project directory or tsconfig path (P_PROJECT)."""
        return os.getenv("P_PROJECT") or None

    @property
    def file_hint(self) -> Optional[str]:
        return os.getenv("P_FILE") or None

    @property
    def debug(self) -> Optional[bool]:
        return _flag(os.getenv("P_DEBUG"))

    @property
    def skip_super(self) -> Optional[bool]:
        return _flag(os.getenv("P_SKIP_SUPER"))

    @property
    def dispatch(self) -> Optional[str]:
        value = os.getenv("P_DISPATCH")
        return value.strip().lower() if value else None

    @property
    def loose(self) -> Optional[bool]:
        return _flag(os.getenv("P_LOOSE"))

    def resolve(self, **flags) -> AnalyzerConfig:
        """Merge CLI flags over environment over defaults.

        Flags left as None (not given on the command line) fall through to
        the environment. Missing class/method names are not an error here;
        the Declaration Resolver reports them.

        Raises:
            ConfigError: If the dispatch mode is not recognised
        """
        values = {}
        for name in (f.name for f in fields(AnalyzerConfig)):
            flag_value = flags.get(name)
            env_value = getattr(self, name)
            if flag_value is not None and flag_value is not False:
                values[name] = flag_value
            elif env_value is not None:
                values[name] = env_value
            elif flag_value is not None:
                values[name] = flag_value
        return AnalyzerConfig(**values)


# Singleton instance
_config = None


def get_config() -> Config:
    """Get or create singleton Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config
