import logging
import warnings
from functools import lru_cache
from typing import Any, Dict, Optional


class BaseConfig(object):
    """BaseConfig provides a common interface for nested access for all Config objects."""

    defaults = {}
    config: dict
    logger: logging.Logger

    def __init__(self, config: Optional[dict] = None):
        if config is None:
            self.config = {}
        else:
            self.config = config.copy()

        self._init_logger()
        self._load_config()

    def _init_logger(self):
        """Initializes self.logger"""
        self.logger = logging.getLogger(__name__)

    def _load_config(self):
        """Subclasses may override this method to initialize :py:attr:`~config`"""
        pass

    @classmethod
    def _allowed_names(cls) -> Dict[str, type]:
        return getattr(cls, "__annotations__", {})

    def __getattr__(self, name: str) -> Any:
        """Look up a property in a sub-dictionary

        Property names should be declared in each Config class with type annotations.
        """
        if not name.startswith("_"):
            first_part = name.split("__")[0]
            if first_part not in self._all_allowed_names():
                warnings.warn(
                    f"Property `{first_part}` is unknown on class `{self.__class__.__name__}`. "
                    + "Either declare it in the type declaration or use lookup() to look it up dynamically",
                    DeprecationWarning,
                )
        return self.lookup(name, already_called_getattr=True)

    @classmethod
    @lru_cache
    def _all_allowed_names(cls) -> Dict[str, type]:
        "Allowed names from this class and its base classes"
        ret = {}
        for baseclass in reversed(cls.__mro__):
            if hasattr(baseclass, "_allowed_names"):
                ret.update(baseclass._allowed_names())  # type: ignore
        return ret

    def lookup(
        self, name: str, default: Any = None, already_called_getattr: bool = False
    ) -> Any:
        tree = name.split("__")
        if name.startswith("_"):
            raise AttributeError(f"Attribute {name} not found")
        value: Any = None
        value_found = False
        config = self.config
        if len(tree) > 1:
            # Walk through the config dictionary using __ as a delimiter
            for key in tree[:-1]:
                config = config.get(key)
                if config is None:
                    break
        if config and tree[-1] in config:
            value = config[tree[-1]]
            value_found = True

        if value_found:
            return value
        if not already_called_getattr:
            # real attributes only; __getattr__ would drop the default
            try:
                return object.__getattribute__(self, name)
            except AttributeError:
                pass
        return self.defaults.get(name, default)
