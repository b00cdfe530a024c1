"""backlinks — internal link graph, backlink counts and link suggestions."""

from backlinks.config import BacklinksConfig, load_config
from backlinks.links.graph import LinkGraph

__version__ = "0.1.0"

__all__ = ["BacklinksConfig", "LinkGraph", "load_config", "__version__"]
