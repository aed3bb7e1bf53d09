from src.providers.directions import (
    DirectionsProvider,
    GoogleDistanceMatrixProvider,
    HaversineDirectionsProvider,
)
from src.providers.geocoding import GeocodingProvider, GoogleGeocodingProvider, RequestGeocoder
from src.providers.store import (
    BookingStore,
    InMemoryBookingStore,
    InMemoryTechnicianDirectory,
    InMemoryVehicleLocations,
    TechnicianDirectory,
    VehicleLocationProvider,
    load_snapshot,
)

__all__ = [
    "DirectionsProvider", "GoogleDistanceMatrixProvider", "HaversineDirectionsProvider",
    "GeocodingProvider", "GoogleGeocodingProvider", "RequestGeocoder",
    "BookingStore", "TechnicianDirectory", "VehicleLocationProvider",
    "InMemoryBookingStore", "InMemoryTechnicianDirectory", "InMemoryVehicleLocations",
    "load_snapshot",
]
