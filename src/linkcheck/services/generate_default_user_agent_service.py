import platform

import aiohttp

from pubrules.core.managers.config_manager import config_manager


def generate_default_user_agent() -> str:
    """
    Generates the User-Agent string sent with every outbound request,
    based on the operating system and the product/version from settings.json.

    Returns:
        str: The constructed User-Agent string.
    """
    os_name = platform.system()

    if os_name == "Windows":
        os_part = "Windows NT 10.0; Win64; x64"
    elif os_name == "Darwin":  # macOS
        os_part = "Macintosh; Intel Mac OS X 10_15_7"
    elif os_name == "Linux":
        os_part = "X11; Linux x86_64"
    else:
        os_part = "Unknown OS"

    product = config_manager.get_nested("user_agent.product", "pubrules")
    version = config_manager.get_nested("user_agent.version", "1.0.0")

    return f"{product}/{version} ({os_part}) aiohttp/{aiohttp.__version__}"
