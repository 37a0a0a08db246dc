from .build import build
from .config import config
from .init import init
from .log import log
from .options import list_options
from .plan import plan
from .probe import probe
from .version import version

__all__ = ["build", "config", "init", "log", "list_options", "plan", "probe", "version"]
