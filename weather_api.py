import logging

import requests

from config import OPENWEATHERMAP_URL

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    pass


class ProviderUnavailable(ProviderError):
    pass


class ProviderMalformedResponse(ProviderError):
    pass


# Queries the current-weather endpoint and returns the raw Kelvin reading for one city.
def fetch_current(city: str, api_key: str, base_url: str = OPENWEATHERMAP_URL, timeout: float = 10):
    """
    Return {"city", "temp_k", "condition"} for the current observation in `city`.
    The temperature is left in Kelvin (the provider's default unit).
    Raises ProviderUnavailable on network/HTTP failures and
    ProviderMalformedResponse when the payload has no main.temp.
    """
    params = {"q": city, "appid": api_key}
    try:
        response = requests.get(base_url, params=params, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise ProviderUnavailable(f"Weather request for {city} failed: {e}") from e

    try:
        data = response.json()
    except ValueError as e:
        raise ProviderMalformedResponse(f"Weather response for {city} is not JSON: {e}") from e
    logger.debug("Received response for city %s: %s", city, data)

    main = data.get("main") if isinstance(data, dict) else None
    if not isinstance(main, dict) or main.get("temp") is None:
        raise ProviderMalformedResponse(f"Weather response for {city} has no main.temp")

    return {
        "city": city,
        "temp_k": main["temp"],
        "condition": _first_condition(data.get("weather")),
    }

# Returns the first "main" label of the weather list, or None.
def _first_condition(conditions):
    if not conditions:
        return None
    try:
        return conditions[0].get("main")
    except (AttributeError, IndexError, KeyError, TypeError):
        return None
