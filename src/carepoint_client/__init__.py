from carepoint_client.api import CarePointAPIError, CarePointClient
from carepoint_client.app import CarePointApp

__all__ = ["CarePointAPIError", "CarePointApp", "CarePointClient"]
