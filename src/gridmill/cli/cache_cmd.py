"""Cache management commands."""

import json

from rich.console import Console

console = Console()


def clear_cache():
    """Clear all cached extraction results.

    Extracted values already in a workspace are kept; the next extraction
    for a changed cell will call the service again.

    Example:

        gridmill clear-cache
    """
    from gridmill.cache import get_cache
    from gridmill.config.settings import get_settings

    cache = get_cache(str(get_settings().cache.directory))
    cache.clear()

    result = {
        "success": True,
        "cleared": "all",
        "cache_dir": str(cache.cache_dir),
    }
    console.print(json.dumps(result, indent=2), soft_wrap=True)


def cache_info():
    """Show cache location, entry count and size.

    Example:

        gridmill cache-info
    """
    from gridmill.cache import get_cache
    from gridmill.config.settings import get_settings

    cache = get_cache(str(get_settings().cache.directory))
    console.print(json.dumps(cache.info(), indent=2), soft_wrap=True)
